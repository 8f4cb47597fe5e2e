from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from policy_loop.backends import get_backend, list_backends
from policy_loop.config.loader import (
    Settings,
    list_task_presets,
    load_settings,
    load_task_file,
    load_task_preset,
)
from policy_loop.core.errors import PolicyLoopError, RunNotFound
from policy_loop.core.types import RunDetail
from policy_loop.service.runs import MAX_ATTEMPTS_LIMIT, RunService
from policy_loop.storage.codec import run_detail_to_dict, run_summary_to_dict
from policy_loop.storage.json_store import JsonRunStore

console = Console()


def _service(settings: Settings) -> RunService:
    return RunService(JsonRunStore(settings.data_dir), settings)


def _attach_debug_log(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    pl_logger = logging.getLogger("policy_loop")
    pl_logger.setLevel(logging.DEBUG)
    fh = logging.FileHandler(path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter("%(asctime)s [%(name)s]\n%(message)s\n"))
    pl_logger.addHandler(fh)


def _print_detail(detail: RunDetail) -> None:
    run = detail.run
    console.print(f"[bold]Run:[/bold] {run.id}")
    console.print(f"[bold]Title:[/bold] {run.title}")
    console.print(f"[bold]Status:[/bold] {run.status.value}")
    console.print(f"[bold]Target score:[/bold] {run.target_score}")

    table = Table(title="Attempts")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Violations", justify="right")
    table.add_column("Notes")
    for attempt in detail.attempts:
        table.add_row(
            str(attempt.index),
            str(attempt.score_total),
            str(len(attempt.violations)),
            escape(attempt.notes[:80]),
        )
    console.print(table)

    policy = detail.current_policy
    if policy is not None:
        console.print(
            f"[bold]Final policy:[/bold] v{policy.version}, {len(policy.rules)} rules, "
            f"{len(policy.checklist)} checklist items, style {dict(policy.style)}"
        )


def _run_async(coro):
    try:
        return asyncio.run(coro)
    except RunNotFound as e:
        raise click.ClickException(str(e)) from e
    except PolicyLoopError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}") from e


@click.group()
@click.option("--data-dir", default=None, type=click.Path(path_type=Path),
              help="Directory holding run data (default: $POLICY_LOOP_DATA_DIR or ./runs)")
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None) -> None:
    """Policy Loop: generate, evaluate and patch a policy until the target score is met."""
    load_dotenv()
    ctx.obj = load_settings(data_dir=data_dir)


@cli.command("run")
@click.option("--task", "task_text", default=None, help="Task text with embedded constraints")
@click.option("--task-file", default=None, type=click.Path(exists=True, path_type=Path),
              help="YAML file with title/task_text/max_attempts/target_score")
@click.option("--preset", default=None, help="Bundled task preset name (see list-presets)")
@click.option("--title", default=None, help="Run title")
@click.option("--max-attempts", default=None, type=click.IntRange(1, MAX_ATTEMPTS_LIMIT),
              help="Attempt budget (1-20)")
@click.option("--target-score", default=None, type=click.IntRange(1, 100),
              help="Stop once a score reaches this (1-100)")
@click.option("--simulate/--live", default=None,
              help="Use the scripted simulation backend instead of the live model")
@click.option("--verbose", "-v", is_flag=True, help="Log full prompts and responses to debug.log in run dir")
@click.pass_obj
def run_cmd(
    settings: Settings,
    task_text: str | None,
    task_file: Path | None,
    preset: str | None,
    title: str | None,
    max_attempts: int | None,
    target_score: int | None,
    simulate: bool | None,
    verbose: bool,
) -> None:
    """Create a run and execute it immediately."""
    sources = [s for s in (task_text, task_file, preset) if s is not None]
    if len(sources) != 1:
        raise click.UsageError("Provide exactly one of --task, --task-file or --preset")

    task: dict = {"task_text": task_text}
    if task_file is not None:
        task = load_task_file(task_file)
    elif preset is not None:
        try:
            task = load_task_preset(preset)
        except FileNotFoundError as e:
            raise click.BadParameter(str(e), param_hint="--preset") from e

    if simulate is not None:
        settings = load_settings(data_dir=settings.data_dir, simulation=simulate)

    service = _service(settings)
    try:
        run_id = asyncio.run(
            service.create_run(
                task_text=task["task_text"],
                title=title or task.get("title"),
                max_attempts=max_attempts if max_attempts is not None else task.get("max_attempts"),
                target_score=target_score if target_score is not None else task.get("target_score"),
            )
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    console.print(f"[bold]Backend:[/bold] {settings.backend_name}")
    if not settings.simulation:
        console.print(f"[bold]Model:[/bold] {settings.model}")

    if verbose:
        log_path = JsonRunStore(settings.data_dir).run_dir(run_id) / "debug.log"
        _attach_debug_log(log_path)

    detail = _run_async(service.execute_run(run_id))
    console.print()
    _print_detail(detail)
    if verbose:
        console.print(f"[bold]Debug log:[/bold] {log_path}")


@cli.command("create")
@click.option("--task", "task_text", required=True, help="Task text with embedded constraints")
@click.option("--title", default=None, help="Run title")
@click.option("--max-attempts", default=None, type=click.IntRange(1, MAX_ATTEMPTS_LIMIT),
              help="Attempt budget (1-20)")
@click.option("--target-score", default=None, type=click.IntRange(1, 100),
              help="Stop once a score reaches this (1-100)")
@click.pass_obj
def create_cmd(
    settings: Settings,
    task_text: str,
    title: str | None,
    max_attempts: int | None,
    target_score: int | None,
) -> None:
    """Create a pending run and print its id."""
    try:
        run_id = asyncio.run(
            _service(settings).create_run(task_text, title, max_attempts, target_score)
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    click.echo(run_id)


@cli.command("execute")
@click.argument("run_id")
@click.option("--simulate/--live", default=None,
              help="Use the scripted simulation backend instead of the live model")
@click.pass_obj
def execute_cmd(settings: Settings, run_id: str, simulate: bool | None) -> None:
    """Execute (or re-execute from scratch) an existing run."""
    if simulate is not None:
        settings = load_settings(data_dir=settings.data_dir, simulation=simulate)
    detail = _run_async(_service(settings).execute_run(run_id))
    _print_detail(detail)


@cli.command("show")
@click.argument("run_id")
@click.option("--json", "as_json", is_flag=True, help="Print the full run as JSON")
@click.pass_obj
def show_cmd(settings: Settings, run_id: str, as_json: bool) -> None:
    """Show a run with its attempts and policy versions."""
    detail = _run_async(_service(settings).get_run(run_id))
    if as_json:
        click.echo(json.dumps(run_detail_to_dict(detail), indent=2))
    else:
        _print_detail(detail)


@cli.command("list")
@click.option("--json", "as_json", is_flag=True, help="Print summaries as JSON")
@click.pass_obj
def list_cmd(settings: Settings, as_json: bool) -> None:
    """List runs, newest first, with their best score."""
    summaries = _run_async(_service(settings).list_runs())
    if as_json:
        click.echo(json.dumps([run_summary_to_dict(s) for s in summaries], indent=2))
        return

    table = Table(title="Runs")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Best", justify="right")
    for s in summaries:
        table.add_row(
            s.id,
            escape(s.title),
            s.status.value,
            str(s.attempt_count),
            "-" if s.best_score is None else str(s.best_score),
        )
    console.print(table)


@cli.command("delete")
@click.argument("run_id")
@click.pass_obj
def delete_cmd(settings: Settings, run_id: str) -> None:
    """Delete a run and everything recorded for it."""
    _run_async(_service(settings).delete_run(run_id))
    console.print(f"[green]Deleted run[/green] {run_id}")


@cli.command("list-backends")
@click.pass_obj
def list_backends_cmd(settings: Settings) -> None:
    """List available generation backends."""
    table = Table(title="Available Backends")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    table.add_column("Active")

    for name in list_backends():
        plugin = get_backend(name)
        table.add_row(name, plugin.description, "*" if name == settings.backend_name else "")

    console.print(table)


@cli.command("list-presets")
def list_presets_cmd() -> None:
    """List bundled task presets."""
    table = Table(title="Task Presets")
    table.add_column("Name", style="cyan")
    table.add_column("Title")

    for name in list_task_presets():
        preset = load_task_preset(name)
        table.add_row(name, preset.get("title", name))

    console.print(table)


if __name__ == "__main__":
    cli()

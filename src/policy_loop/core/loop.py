from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from policy_loop.core.errors import RunNotFound
from policy_loop.core.policy import DEFAULT_POLICY, apply_patch
from policy_loop.core.types import Attempt, PolicyVersion, RunDetail, RunStatus

if TYPE_CHECKING:
    from policy_loop.backends.base import BackendComponents
    from policy_loop.core.protocols import RunStore

console = Console()
logger = logging.getLogger(__name__)


def round_score(score: float) -> int:
    """Round half away from zero (scores are never negative)."""
    return int(math.floor(score + 0.5))


async def load_run_detail(store: RunStore, run_id: str) -> RunDetail:
    run = await store.get_run(run_id)
    if run is None:
        raise RunNotFound(run_id)
    return RunDetail(
        run=run,
        attempts=await store.list_attempts(run_id),
        policy_versions=await store.list_policy_versions(run_id),
    )


async def execute_run(
    run_id: str,
    store: RunStore,
    components: BackendComponents,
) -> RunDetail:
    """Run the generate/evaluate/patch loop for one run.

    Execution always starts from a clean slate: prior attempts and policy
    versions for the run are deleted and the default policy is persisted as
    version 1. The run ends ``completed`` on reaching its target score or on
    exhausting ``max_attempts``, and ``failed`` if any backend call raises.
    """
    run = await store.get_run(run_id)
    if run is None:
        raise RunNotFound(run_id)

    await store.update_run_status(run_id, RunStatus.RUNNING)
    await store.delete_attempts(run_id)
    await store.delete_policy_versions(run_id)

    current_policy = DEFAULT_POLICY
    await store.create_policy_version(
        PolicyVersion(run_id=run_id, version=current_policy.version, policy=current_policy)
    )
    console.print(
        f"\n[bold blue]Executing run {run_id}[/bold blue] "
        f"(max attempts {run.max_attempts}, target {run.target_score})"
    )

    try:
        for i in range(1, run.max_attempts + 1):
            console.print(
                f"[bold]--- Attempt {i}/{run.max_attempts} "
                f"(policy v{current_policy.version}) ---[/bold]"
            )

            output_text = await components.generator.generate(
                run.task_text, current_policy, i
            )
            evaluation = await components.evaluator.evaluate(
                run.task_text, output_text, current_policy, i
            )
            score = round_score(evaluation.score_total)

            await store.create_attempt(
                Attempt(
                    run_id=run_id,
                    index=i,
                    output_text=output_text,
                    score_total=score,
                    score_breakdown=evaluation.score_breakdown,
                    violations=evaluation.violations,
                    notes=evaluation.notes,
                )
            )
            logger.debug(
                "Run %s attempt %d scored %d with %d violation(s)",
                run_id, i, score, len(evaluation.violations),
            )

            if score >= run.target_score:
                await store.update_run_status(run_id, RunStatus.COMPLETED)
                console.print(
                    f"[green]★ Target reached:[/green] score {score} >= {run.target_score}"
                )
                return await load_run_detail(store, run_id)

            console.print(
                f"[yellow]Score {score} below target {run.target_score}[/yellow] "
                f"({len(evaluation.violations)} violation(s))"
            )

            if i < run.max_attempts:
                patch = await components.patcher.derive_patch(
                    run.task_text, output_text, evaluation, current_policy, i
                )
                current_policy = apply_patch(current_policy, patch)
                await store.create_policy_version(
                    PolicyVersion(
                        run_id=run_id,
                        version=current_policy.version,
                        policy=current_policy,
                    )
                )
                console.print(
                    f"[cyan]Policy patched to v{current_policy.version}.[/cyan] "
                    f"{escape(patch.rationale[:120])}"
                )
    except Exception:
        logger.exception("Run %s failed", run_id)
        await store.update_run_status(run_id, RunStatus.FAILED)
        console.print(f"[red]Run {run_id} failed.[/red]")
        raise

    await store.update_run_status(run_id, RunStatus.COMPLETED)
    console.print(
        f"\n[bold green]Attempt budget of {run.max_attempts} exhausted.[/bold green]"
    )
    return await load_run_detail(store, run_id)

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from policy_loop.backends import build_components
from policy_loop.core.errors import RunNotFound
from policy_loop.core.loop import execute_run, load_run_detail
from policy_loop.core.types import Run, RunDetail, RunSummary

if TYPE_CHECKING:
    from policy_loop.backends.base import BackendComponents
    from policy_loop.config.loader import Settings
    from policy_loop.core.protocols import RunStore

DEFAULT_TITLE = "Untitled Run"
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_TARGET_SCORE = 90
MAX_ATTEMPTS_LIMIT = 20


class RunService:
    """Create, execute, inspect and delete runs against a RunStore."""

    def __init__(
        self,
        store: RunStore,
        settings: Settings,
        components: BackendComponents | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self._components = components

    def components(self) -> BackendComponents:
        # Built lazily so a missing API key only matters once something executes.
        if self._components is None:
            self._components = build_components(self.settings)
        return self._components

    async def create_run(
        self,
        task_text: str,
        title: str | None = None,
        max_attempts: int | None = None,
        target_score: int | None = None,
    ) -> str:
        if not isinstance(task_text, str) or not task_text.strip():
            raise ValueError("task_text is required")

        max_attempts = DEFAULT_MAX_ATTEMPTS if max_attempts is None else max_attempts
        target_score = DEFAULT_TARGET_SCORE if target_score is None else target_score
        if not 1 <= max_attempts <= MAX_ATTEMPTS_LIMIT:
            raise ValueError(
                f"max_attempts must be between 1 and {MAX_ATTEMPTS_LIMIT}, got {max_attempts}"
            )
        if not 1 <= target_score <= 100:
            raise ValueError(f"target_score must be between 1 and 100, got {target_score}")

        run = Run(
            id=uuid.uuid4().hex,
            title=(title or "").strip() or DEFAULT_TITLE,
            task_text=task_text.strip(),
            max_attempts=max_attempts,
            target_score=target_score,
        )
        await self.store.create_run(run)
        return run.id

    async def execute_run(self, run_id: str) -> RunDetail:
        if await self.store.get_run(run_id) is None:
            raise RunNotFound(run_id)
        components = self.components()
        return await execute_run(run_id, self.store, components)

    async def get_run(self, run_id: str) -> RunDetail:
        return await load_run_detail(self.store, run_id)

    async def delete_run(self, run_id: str) -> None:
        await self.store.delete_run(run_id)

    async def list_runs(self) -> list[RunSummary]:
        summaries = []
        for run in await self.store.list_runs():
            scores = [a.score_total for a in await self.store.list_attempts(run.id)]
            summaries.append(
                RunSummary(
                    id=run.id,
                    title=run.title,
                    status=run.status,
                    created_at=run.created_at,
                    attempt_count=len(scores),
                    best_score=max(scores) if scores else None,
                )
            )
        return summaries

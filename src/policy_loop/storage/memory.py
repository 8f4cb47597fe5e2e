from __future__ import annotations

from dataclasses import replace

from policy_loop.core.errors import RunNotFound
from policy_loop.core.types import Attempt, PolicyVersion, Run, RunStatus


class InMemoryRunStore:
    """Dict-backed RunStore, for tests and one-off sessions."""

    def __init__(self) -> None:
        self.runs: dict[str, Run] = {}
        self.attempts: dict[str, list[Attempt]] = {}
        self.policy_versions: dict[str, list[PolicyVersion]] = {}
        self.status_history: dict[str, list[RunStatus]] = {}

    async def create_run(self, run: Run) -> None:
        self.runs[run.id] = replace(run)
        self.status_history[run.id] = [run.status]

    async def get_run(self, run_id: str) -> Run | None:
        run = self.runs.get(run_id)
        return replace(run) if run is not None else None

    async def update_run_status(self, run_id: str, status: RunStatus) -> None:
        if run_id not in self.runs:
            raise RunNotFound(run_id)
        self.runs[run_id].status = status
        self.status_history[run_id].append(status)

    async def delete_run(self, run_id: str) -> None:
        if self.runs.pop(run_id, None) is None:
            raise RunNotFound(run_id)
        self.attempts.pop(run_id, None)
        self.policy_versions.pop(run_id, None)
        self.status_history.pop(run_id, None)

    async def list_runs(self) -> list[Run]:
        return sorted(
            (replace(r) for r in self.runs.values()),
            key=lambda r: r.created_at,
            reverse=True,
        )

    async def create_attempt(self, attempt: Attempt) -> None:
        self.attempts.setdefault(attempt.run_id, []).append(attempt)

    async def list_attempts(self, run_id: str) -> list[Attempt]:
        return sorted(self.attempts.get(run_id, []), key=lambda a: a.index)

    async def delete_attempts(self, run_id: str) -> None:
        self.attempts.pop(run_id, None)

    async def create_policy_version(self, policy_version: PolicyVersion) -> None:
        self.policy_versions.setdefault(policy_version.run_id, []).append(policy_version)

    async def list_policy_versions(self, run_id: str) -> list[PolicyVersion]:
        return sorted(self.policy_versions.get(run_id, []), key=lambda p: p.version)

    async def delete_policy_versions(self, run_id: str) -> None:
        self.policy_versions.pop(run_id, None)

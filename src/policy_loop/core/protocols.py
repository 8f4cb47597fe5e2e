from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from policy_loop.core.types import (
        Attempt,
        Evaluation,
        Patch,
        Policy,
        PolicyVersion,
        Run,
        RunStatus,
    )


@runtime_checkable
class Generator(Protocol):
    async def generate(self, task_text: str, policy: Policy, attempt_index: int) -> str: ...


@runtime_checkable
class Evaluator(Protocol):
    async def evaluate(
        self, task_text: str, output_text: str, policy: Policy, attempt_index: int
    ) -> Evaluation: ...


@runtime_checkable
class Patcher(Protocol):
    async def derive_patch(
        self,
        task_text: str,
        output_text: str,
        evaluation: Evaluation,
        policy: Policy,
        attempt_index: int,
    ) -> Patch: ...


@runtime_checkable
class RunStore(Protocol):
    async def create_run(self, run: Run) -> None: ...

    async def get_run(self, run_id: str) -> Run | None: ...

    async def update_run_status(self, run_id: str, status: RunStatus) -> None: ...

    async def delete_run(self, run_id: str) -> None: ...

    async def list_runs(self) -> list[Run]: ...

    async def create_attempt(self, attempt: Attempt) -> None: ...

    async def list_attempts(self, run_id: str) -> list[Attempt]: ...

    async def delete_attempts(self, run_id: str) -> None: ...

    async def create_policy_version(self, policy_version: PolicyVersion) -> None: ...

    async def list_policy_versions(self, run_id: str) -> list[PolicyVersion]: ...

    async def delete_policy_versions(self, run_id: str) -> None: ...

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any

from policy_loop.core.errors import RunNotFound
from policy_loop.core.types import Attempt, PolicyVersion, Run, RunStatus
from policy_loop.storage.codec import (
    attempt_from_dict,
    attempt_to_dict,
    policy_version_from_dict,
    policy_version_to_dict,
    run_from_dict,
    run_to_dict,
)


class JsonRunStore:
    """RunStore keeping one directory per run under ``root``.

    Layout::

        <root>/<run_id>/run.json
        <root>/<run_id>/attempts/attempt_001.json
        <root>/<run_id>/policies/policy_v001.json
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _is_valid_id(self, run_id: str) -> bool:
        # Ids must name a directory directly under root.
        if not run_id or run_id in (".", ".."):
            return False
        return (self.root / run_id).resolve().parent == self.root.resolve()

    def run_dir(self, run_id: str) -> Path:
        if not self._is_valid_id(run_id):
            raise RunNotFound(run_id)
        return self.root / run_id

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    def _require_dir(self, run_id: str) -> Path:
        run_dir = self.run_dir(run_id)
        if not (run_dir / "run.json").exists():
            raise RunNotFound(run_id)
        return run_dir

    async def create_run(self, run: Run) -> None:
        run_dir = self.run_dir(run.id)
        run_dir.mkdir(parents=True, exist_ok=True)
        for subdir in ("attempts", "policies"):
            (run_dir / subdir).mkdir(exist_ok=True)
        self._write(run_dir / "run.json", run_to_dict(run))

    async def get_run(self, run_id: str) -> Run | None:
        if not self._is_valid_id(run_id):
            return None
        path = self.run_dir(run_id) / "run.json"
        if not path.exists():
            return None
        return run_from_dict(json.loads(path.read_text()))

    async def update_run_status(self, run_id: str, status: RunStatus) -> None:
        path = self._require_dir(run_id) / "run.json"
        data = json.loads(path.read_text())
        data["status"] = status.value
        self._write(path, data)

    async def delete_run(self, run_id: str) -> None:
        shutil.rmtree(self._require_dir(run_id))

    async def list_runs(self) -> list[Run]:
        runs = [
            run_from_dict(json.loads(path.read_text()))
            for path in self.root.glob("*/run.json")
        ]
        return sorted(runs, key=lambda r: r.created_at, reverse=True)

    async def create_attempt(self, attempt: Attempt) -> None:
        path = self._require_dir(attempt.run_id) / "attempts" / f"attempt_{attempt.index:03d}.json"
        self._write(path, attempt_to_dict(attempt))

    async def list_attempts(self, run_id: str) -> list[Attempt]:
        attempts = [
            attempt_from_dict(json.loads(p.read_text()))
            for p in (self.run_dir(run_id) / "attempts").glob("attempt_*.json")
        ]
        return sorted(attempts, key=lambda a: a.index)

    async def delete_attempts(self, run_id: str) -> None:
        for path in (self.run_dir(run_id) / "attempts").glob("attempt_*.json"):
            path.unlink()

    async def create_policy_version(self, policy_version: PolicyVersion) -> None:
        path = (
            self._require_dir(policy_version.run_id)
            / "policies"
            / f"policy_v{policy_version.version:03d}.json"
        )
        self._write(path, policy_version_to_dict(policy_version))

    async def list_policy_versions(self, run_id: str) -> list[PolicyVersion]:
        versions = [
            policy_version_from_dict(json.loads(p.read_text()))
            for p in (self.run_dir(run_id) / "policies").glob("policy_v*.json")
        ]
        return sorted(versions, key=lambda p: p.version)

    async def delete_policy_versions(self, run_id: str) -> None:
        for path in (self.run_dir(run_id) / "policies").glob("policy_v*.json"):
            path.unlink()

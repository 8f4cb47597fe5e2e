from __future__ import annotations

import pytest

from policy_loop.backends import build_components
from policy_loop.config.loader import Settings
from policy_loop.core.types import Evaluation, Run, ScoreBreakdown
from policy_loop.storage.memory import InMemoryRunStore


def make_evaluation(score: float, notes: str = "") -> Evaluation:
    per_item = score / 20
    return Evaluation(
        score_total=score,
        score_breakdown=ScoreBreakdown(per_item, per_item, per_item, per_item, per_item),
        notes=notes,
    )


@pytest.fixture
def store():
    return InMemoryRunStore()


@pytest.fixture
def sim_settings(tmp_path):
    return Settings(simulation=True, simulation_delay=0.0, data_dir=tmp_path)


@pytest.fixture
def sim_components(sim_settings):
    return build_components(sim_settings)


@pytest.fixture
def make_run(store):
    async def _make(run_id: str = "run-1", max_attempts: int = 5, target_score: int = 90) -> Run:
        run = Run(
            id=run_id,
            title="Test run",
            task_text="Write a reply. Constraints: 1) be brief",
            max_attempts=max_attempts,
            target_score=target_score,
        )
        await store.create_run(run)
        return run

    return _make

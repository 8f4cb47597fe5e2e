from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import make_evaluation

from policy_loop.backends.base import BackendComponents
from policy_loop.core.errors import GenerationError, InvalidJSONError, RunNotFound
from policy_loop.core.loop import execute_run, round_score
from policy_loop.core.policy import DEFAULT_POLICY
from policy_loop.core.types import Patch, RunStatus


def make_components(scores, patches=None, outputs=None) -> BackendComponents:
    generator = MagicMock()
    generator.generate = AsyncMock(
        side_effect=outputs or [f"output {i}" for i in range(1, len(scores) + 1)]
    )
    evaluator = MagicMock()
    evaluator.evaluate = AsyncMock(side_effect=[make_evaluation(s) for s in scores])
    patcher = MagicMock()
    patcher.derive_patch = AsyncMock(
        side_effect=patches
        or [Patch(new_rules=(f"rule {i}",), rationale=f"fix {i}") for i in range(1, len(scores) + 1)]
    )
    return BackendComponents(generator=generator, evaluator=evaluator, patcher=patcher)


@pytest.mark.parametrize(
    "score, expected", [(89.4, 89), (89.5, 90), (90.5, 91), (0, 0), (100, 100)]
)
def test_round_score_half_up(score, expected):
    assert round_score(score) == expected


@pytest.mark.asyncio
async def test_early_termination_on_target(store, make_run):
    await make_run(max_attempts=5, target_score=80)
    components = make_components([50, 70, 85, 95, 99])

    detail = await execute_run("run-1", store, components)

    assert detail.run.status is RunStatus.COMPLETED
    assert [a.index for a in detail.attempts] == [1, 2, 3]
    assert [p.version for p in detail.policy_versions] == [1, 2, 3]
    # No patch is derived for the terminal attempt
    assert components.patcher.derive_patch.await_count == 2
    assert components.generator.generate.await_count == 3


@pytest.mark.asyncio
async def test_exhaustion_completes_without_failure(store, make_run):
    await make_run(max_attempts=3, target_score=95)
    components = make_components([40, 50, 60])

    detail = await execute_run("run-1", store, components)

    assert detail.run.status is RunStatus.COMPLETED
    assert [a.index for a in detail.attempts] == [1, 2, 3]
    # Patches after attempts 1 and 2 only; none after the final attempt
    assert [p.version for p in detail.policy_versions] == [1, 2, 3]
    assert components.patcher.derive_patch.await_count == 2


@pytest.mark.asyncio
async def test_single_attempt_budget(store, make_run):
    await make_run(max_attempts=1, target_score=95)
    components = make_components([40])

    detail = await execute_run("run-1", store, components)

    assert len(detail.attempts) == 1
    assert [p.version for p in detail.policy_versions] == [1]
    components.patcher.derive_patch.assert_not_awaited()


@pytest.mark.asyncio
async def test_score_is_rounded_before_comparison(store, make_run):
    await make_run(max_attempts=3, target_score=90)
    components = make_components([89.5, 10, 10])

    detail = await execute_run("run-1", store, components)

    assert len(detail.attempts) == 1
    assert detail.attempts[0].score_total == 90


@pytest.mark.asyncio
async def test_policy_threads_through_attempts(store, make_run):
    await make_run(max_attempts=3, target_score=95)
    patches = [
        Patch(new_rules=("be brief",), update_style={"max_words_default": 80}, rationale="a"),
        Patch(update_checklist=("brief?",), rationale="b"),
    ]
    components = make_components([10, 20, 30], patches=patches)

    await execute_run("run-1", store, components)

    policies = [c.args[1] for c in components.generator.generate.await_args_list]
    assert [p.version for p in policies] == [1, 2, 3]
    assert policies[0] == DEFAULT_POLICY
    assert "be brief" in policies[1].rules
    assert policies[1].style["max_words_default"] == 80
    assert policies[2].checklist[-1] == "brief?"
    # Attempt indices are passed to every backend
    assert [c.args[2] for c in components.generator.generate.await_args_list] == [1, 2, 3]
    assert [c.args[4] for c in components.patcher.derive_patch.await_args_list] == [1, 2]


@pytest.mark.asyncio
async def test_attempt_records_evaluation(store, make_run):
    await make_run(max_attempts=1, target_score=50)
    components = make_components([75], outputs=["the answer"])

    detail = await execute_run("run-1", store, components)

    attempt = detail.attempts[0]
    assert attempt.output_text == "the answer"
    assert attempt.score_total == 75
    assert attempt.score_breakdown.total() == pytest.approx(18.75)
    assert attempt.run_id == "run-1"


@pytest.mark.asyncio
async def test_status_transitions(store, make_run):
    await make_run(max_attempts=2, target_score=10)
    await execute_run("run-1", store, make_components([50]))

    assert store.status_history["run-1"] == [
        RunStatus.PENDING,
        RunStatus.RUNNING,
        RunStatus.COMPLETED,
    ]


@pytest.mark.asyncio
async def test_unknown_run_raises(store):
    with pytest.raises(RunNotFound):
        await execute_run("missing", store, make_components([50]))


@pytest.mark.asyncio
async def test_generation_failure_marks_run_failed(store, make_run):
    await make_run(max_attempts=3, target_score=95)
    components = make_components([40, 50, 60])
    components.generator.generate.side_effect = ["first", GenerationError("upstream 500")]

    with pytest.raises(GenerationError, match="upstream 500"):
        await execute_run("run-1", store, components)

    run = await store.get_run("run-1")
    assert run.status is RunStatus.FAILED
    # Attempt 1 and the patch it produced remain; nothing for the failed attempt
    assert [a.index for a in await store.list_attempts("run-1")] == [1]
    assert [p.version for p in await store.list_policy_versions("run-1")] == [1, 2]


@pytest.mark.asyncio
async def test_evaluation_failure_creates_no_attempt(store, make_run):
    await make_run(max_attempts=3, target_score=95)
    components = make_components([40])
    components.evaluator.evaluate.side_effect = InvalidJSONError("bad json", raw="{{")

    with pytest.raises(InvalidJSONError):
        await execute_run("run-1", store, components)

    assert await store.list_attempts("run-1") == []
    assert (await store.get_run("run-1")).status is RunStatus.FAILED


@pytest.mark.asyncio
async def test_patch_failure_marks_run_failed(store, make_run):
    await make_run(max_attempts=3, target_score=95)
    components = make_components([40, 50, 60])
    components.patcher.derive_patch.side_effect = ValueError("bad patch")

    with pytest.raises(ValueError, match="bad patch"):
        await execute_run("run-1", store, components)

    assert (await store.get_run("run-1")).status is RunStatus.FAILED
    assert [a.index for a in await store.list_attempts("run-1")] == [1]
    assert [p.version for p in await store.list_policy_versions("run-1")] == [1]


@pytest.mark.asyncio
async def test_reexecution_resets_history(store, make_run):
    await make_run(max_attempts=3, target_score=95)
    await execute_run("run-1", store, make_components([10, 20, 30]))
    assert len(await store.list_attempts("run-1")) == 3

    detail = await execute_run("run-1", store, make_components([99]))

    assert [a.index for a in detail.attempts] == [1]
    assert detail.attempts[0].score_total == 99
    assert [p.version for p in detail.policy_versions] == [1]
    assert detail.policy_versions[0].policy == DEFAULT_POLICY


@pytest.mark.asyncio
async def test_reexecution_after_failure(store, make_run):
    await make_run(max_attempts=2, target_score=95)
    failing = make_components([10])
    failing.patcher.derive_patch.side_effect = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        await execute_run("run-1", store, failing)

    detail = await execute_run("run-1", store, make_components([10, 20]))

    assert detail.run.status is RunStatus.COMPLETED
    assert [a.index for a in detail.attempts] == [1, 2]


@pytest.mark.asyncio
async def test_stored_policy_cannot_alter_default(store, make_run):
    await make_run(max_attempts=1, target_score=10)
    detail = await execute_run("run-1", store, make_components([50]))

    with pytest.raises(TypeError):
        detail.policy_versions[0].policy.style["tone"] = "hostile"

    await make_run(run_id="run-2", max_attempts=1, target_score=10)
    second = await execute_run("run-2", store, make_components([50]))
    assert second.policy_versions[0].policy.style["tone"] == "calm, confident"

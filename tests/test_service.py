from __future__ import annotations

import pytest

from policy_loop.config.loader import Settings
from policy_loop.core.errors import ConfigurationError, RunNotFound
from policy_loop.core.types import RunStatus
from policy_loop.service.runs import RunService


@pytest.fixture
def service(store, sim_settings):
    return RunService(store, sim_settings)


@pytest.mark.asyncio
async def test_create_run_applies_defaults(service, store):
    run_id = await service.create_run("  Reply to the customer.  ")
    run = await store.get_run(run_id)
    assert run.title == "Untitled Run"
    assert run.task_text == "Reply to the customer."
    assert run.max_attempts == 5
    assert run.target_score == 90
    assert run.status is RunStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"task_text": "   "},
        {"task_text": "ok", "max_attempts": 0},
        {"task_text": "ok", "max_attempts": 21},
        {"task_text": "ok", "target_score": 0},
        {"task_text": "ok", "target_score": 101},
    ],
)
async def test_create_run_validation(service, kwargs):
    with pytest.raises(ValueError):
        await service.create_run(**kwargs)


@pytest.mark.asyncio
async def test_execute_and_get(service):
    run_id = await service.create_run("Reply.", title="Demo")
    detail = await service.execute_run(run_id)
    assert detail.run.status is RunStatus.COMPLETED
    assert (await service.get_run(run_id)).attempts == detail.attempts


@pytest.mark.asyncio
async def test_get_and_delete_unknown(service):
    with pytest.raises(RunNotFound):
        await service.get_run("nope")
    with pytest.raises(RunNotFound):
        await service.delete_run("nope")
    with pytest.raises(RunNotFound):
        await service.execute_run("nope")


@pytest.mark.asyncio
async def test_list_runs_reports_best_score(service):
    executed = await service.create_run("Reply.", title="executed")
    pending = await service.create_run("Reply.", title="pending")
    await service.execute_run(executed)

    summaries = {s.id: s for s in await service.list_runs()}

    assert summaries[executed].best_score == 92
    assert summaries[executed].attempt_count == 4
    assert summaries[pending].best_score is None
    assert summaries[pending].attempt_count == 0


@pytest.mark.asyncio
async def test_delete_run(service, store):
    run_id = await service.create_run("Reply.")
    await service.execute_run(run_id)
    await service.delete_run(run_id)
    assert await store.get_run(run_id) is None
    assert await store.list_attempts(run_id) == []


@pytest.mark.asyncio
async def test_missing_api_key_leaves_run_pending(store, tmp_path):
    service = RunService(store, Settings(api_key=None, simulation=False, data_dir=tmp_path))
    run_id = await service.create_run("Reply.")

    with pytest.raises(ConfigurationError):
        await service.execute_run(run_id)

    assert (await store.get_run(run_id)).status is RunStatus.PENDING

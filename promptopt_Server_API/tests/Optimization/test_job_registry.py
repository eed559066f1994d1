import asyncio

import pytest

from promptopt_Server_API.app.core.Optimization.exceptions import JobAlreadyRunningError, NoActiveJobError
from promptopt_Server_API.app.core.Optimization.job_registry import (
    OptimizationJobRegistry,
    get_job_registry,
    reset_job_registry,
)
from promptopt_Server_API.app.core.Optimization.models import OptimizationSettings
from promptopt_Server_API.app.core.Optimization.status_store import StatusStore


pytestmark = pytest.mark.optimization


class _BlockingRunner:
    def __init__(self):
        self.release = asyncio.Event()
        self.calls = []

    async def __call__(self, job_id, opt_settings):
        self.calls.append((job_id, opt_settings))
        await self.release.wait()
        return job_id


@pytest.mark.asyncio
async def test_start_marks_running_and_schedules(paths):
    registry = OptimizationJobRegistry()
    store = StatusStore(paths)
    runner = _BlockingRunner()
    opt = OptimizationSettings.from_raw({"auto": "light"})

    job = await registry.start(opt, runner=runner, status_store=store)

    status = store.read()
    assert status.status == "running"
    assert status.job_id == job.job_id
    assert status.started_at == job.started_at
    assert registry.is_running()
    assert job.snapshot() == {
        "jobId": job.job_id,
        "startedAt": job.started_at,
        "state": "running",
        "settings": {"auto": "light"},
    }

    runner.release.set()
    await registry.wait()
    assert not registry.is_running()
    assert job.snapshot()["state"] == "finished"
    assert runner.calls == [(job.job_id, opt)]


@pytest.mark.asyncio
async def test_second_start_while_running_is_rejected(paths):
    registry = OptimizationJobRegistry()
    store = StatusStore(paths)
    runner = _BlockingRunner()
    first = await registry.start(None, runner=runner, status_store=store)

    with pytest.raises(JobAlreadyRunningError) as exc_info:
        await registry.start(None, runner=runner, status_store=store)
    assert exc_info.value.job_id == first.job_id

    runner.release.set()
    await registry.wait()
    assert [job_id for job_id, _ in runner.calls] == [first.job_id]
    second = await registry.start(None, runner=runner, status_store=store)
    assert second.job_id != first.job_id
    await registry.wait()


@pytest.mark.asyncio
async def test_concurrent_starts_admit_exactly_one(paths):
    registry = OptimizationJobRegistry()
    store = StatusStore(paths)
    runner = _BlockingRunner()
    results = await asyncio.gather(
        *(registry.start(None, runner=runner, status_store=store) for _ in range(5)),
        return_exceptions=True,
    )
    started = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, JobAlreadyRunningError)]
    assert len(started) == 1
    assert len(rejected) == 4
    runner.release.set()
    await registry.wait()


@pytest.mark.asyncio
async def test_stale_running_status_does_not_block_start(paths):
    from promptopt_Server_API.app.core.Optimization.models import OptimizationStatus

    store = StatusStore(paths)
    store.write(OptimizationStatus.running(job_id="left-over"))
    registry = OptimizationJobRegistry()
    runner = _BlockingRunner()
    runner.release.set()
    job = await registry.start(None, runner=runner, status_store=store)
    assert job.job_id != "left-over"
    await registry.wait()


@pytest.mark.asyncio
async def test_cancel_running_job(paths):
    registry = OptimizationJobRegistry()
    runner = _BlockingRunner()
    job = await registry.start(None, runner=runner, status_store=StatusStore(paths))
    await asyncio.sleep(0)

    cancelled = await registry.cancel()
    assert cancelled is job
    assert job.task.cancelled()
    assert job.snapshot()["state"] == "cancelled"
    assert not registry.is_running()


@pytest.mark.asyncio
async def test_cancel_without_job_raises():
    registry = OptimizationJobRegistry()
    with pytest.raises(NoActiveJobError):
        await registry.cancel()


@pytest.mark.asyncio
async def test_shutdown_cancels_live_job_and_is_idempotent(paths):
    registry = OptimizationJobRegistry()
    runner = _BlockingRunner()
    job = await registry.start(None, runner=runner, status_store=StatusStore(paths))
    await registry.shutdown()
    assert job.task.done()
    await registry.shutdown()


@pytest.mark.asyncio
async def test_failed_status_write_schedules_nothing(paths, monkeypatch):
    registry = OptimizationJobRegistry()
    store = StatusStore(paths)
    runner = _BlockingRunner()

    def _boom(status):
        raise OSError("disk full")

    monkeypatch.setattr(store, "write", _boom)
    with pytest.raises(OSError):
        await registry.start(None, runner=runner, status_store=store)
    assert registry.current() is None
    assert runner.calls == []


def test_module_registry_is_shared_until_reset():
    first = get_job_registry()
    assert get_job_registry() is first
    reset_job_registry()
    assert get_job_registry() is not first
    reset_job_registry()

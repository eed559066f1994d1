# job_registry.py
# Description: Process-wide holder for the active optimization job and its asyncio task.
#
# At most one job runs at a time. Start and cancel decisions are serialized by
# an asyncio.Lock; a start while a job is live raises JobAlreadyRunningError.
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger

from promptopt_Server_API.app.core.Logging.log_context import new_job_id
from promptopt_Server_API.app.core.Optimization.exceptions import JobAlreadyRunningError, NoActiveJobError
from promptopt_Server_API.app.core.Optimization.models import OptimizationSettings, OptimizationStatus
from promptopt_Server_API.app.core.Optimization.status_store import StatusStore


JobRunner = Callable[[str, Optional[OptimizationSettings]], Awaitable[Any]]

CANCEL_WAIT_SEC = 5.0


@dataclass
class OptimizationJob:
    job_id: str
    settings: Optional[OptimizationSettings]
    started_at: Optional[str]
    task: Optional["asyncio.Task[Any]"] = field(default=None, repr=False)

    def done(self) -> bool:
        return self.task is None or self.task.done()

    def snapshot(self) -> Dict[str, Any]:
        state = "running"
        if self.task is not None and self.task.done():
            state = "cancelled" if self.task.cancelled() else "finished"
        return {
            "jobId": self.job_id,
            "startedAt": self.started_at,
            "state": state,
            "settings": self.settings.to_document() if self.settings else None,
        }


class OptimizationJobRegistry:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._active: Optional[OptimizationJob] = None

    def current(self) -> Optional[OptimizationJob]:
        return self._active

    def is_running(self) -> bool:
        return self._active is not None and not self._active.done()

    async def start(
        self,
        opt_settings: Optional[OptimizationSettings],
        *,
        runner: JobRunner,
        status_store: StatusStore,
    ) -> OptimizationJob:
        """Mark status running and schedule ``runner`` as a background task.

        Raises:
            JobAlreadyRunningError: another job is still live.
            OSError: the running status could not be written; nothing is scheduled.
        """
        async with self._lock:
            if self.is_running():
                raise JobAlreadyRunningError(self._active.job_id if self._active else None)
            job_id = new_job_id()
            status = OptimizationStatus.running(job_id=job_id)
            status_store.write(status)
            job = OptimizationJob(job_id=job_id, settings=opt_settings, started_at=status.started_at)
            job.task = asyncio.create_task(runner(job_id, opt_settings), name=f"optimization:{job_id}")
            job.task.add_done_callback(self._on_task_done)
            self._active = job
            logger.info(f"Scheduled optimization job {job_id}")
            return job

    @staticmethod
    def _on_task_done(task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            logger.info(f"Task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Task {task.get_name()} crashed: {exc!r}")
        else:
            logger.debug(f"Task {task.get_name()} finished")

    async def wait(self) -> Optional[OptimizationJob]:
        """Wait for the current job's task to finish, whatever its outcome."""
        job = self._active
        if job is not None and job.task is not None and not job.task.done():
            await asyncio.wait({job.task})
        return job

    async def cancel(self) -> OptimizationJob:
        """Cancel the live job and give it a moment to record its status.

        Raises:
            NoActiveJobError: nothing is running.
        """
        async with self._lock:
            if not self.is_running() or self._active is None or self._active.task is None:
                raise NoActiveJobError()
            job = self._active
            job.task.cancel()
        await asyncio.wait({job.task}, timeout=CANCEL_WAIT_SEC)
        logger.info(f"Cancelled optimization job {job.job_id}")
        return job

    async def shutdown(self) -> None:
        if self.is_running():
            try:
                await self.cancel()
            except NoActiveJobError:
                # finished between the check and the cancel
                pass


_registry: Optional[OptimizationJobRegistry] = None


def get_job_registry() -> OptimizationJobRegistry:
    global _registry
    if _registry is None:
        _registry = OptimizationJobRegistry()
    return _registry


def reset_job_registry() -> None:
    """Drop the process-wide registry (tests)."""
    global _registry
    _registry = None

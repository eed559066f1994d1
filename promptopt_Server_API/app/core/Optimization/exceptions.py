# exceptions.py
# Description: Errors raised by the optimization job pipeline.
from __future__ import annotations

from typing import Optional


class OptimizationError(Exception):
    """Base class for optimization job failures."""


class NoTrainingExamplesError(OptimizationError):
    def __init__(self, message: str = "Need at least one chat session to optimize"):
        super().__init__(message)


class OptimizerRemoteError(OptimizationError):
    """The optimizer service answered /optimize with a non-success status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Optimizer error {status_code}: {body}")


class JobAlreadyRunningError(OptimizationError):
    def __init__(self, job_id: Optional[str]):
        self.job_id = job_id
        super().__init__(f"Optimization job {job_id} is already running")


class NoActiveJobError(OptimizationError):
    def __init__(self, message: str = "No optimization is running"):
        super().__init__(message)

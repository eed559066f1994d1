# optimize_schemas.py
# Description: Response models for the optimization job endpoints.
from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OptimizeStartedResponse(_CamelModel):
    status: Literal["started"] = "started"
    job_id: str = Field(..., alias="jobId", description="Identifier of the scheduled job")


class OptimizeCancelledResponse(_CamelModel):
    status: Literal["cancelled"] = "cancelled"
    job_id: str = Field(..., alias="jobId")


class OptimizeErrorResponse(_CamelModel):
    error: str
    job_id: Optional[str] = Field(default=None, alias="jobId")


class OptimizeJobResponse(_CamelModel):
    job_id: Optional[str] = Field(default=None, alias="jobId")
    started_at: Optional[str] = Field(default=None, alias="startedAt")
    state: Literal["none", "running", "finished", "cancelled"] = "none"
    settings: Optional[Dict[str, Any]] = None


class OptimizeStatusResponse(_CamelModel):
    """Either the raw status document (running/error/idle) or a completed-run summary."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    status: Literal["idle", "running", "completed", "error"]
    started_at: Optional[str] = Field(default=None, alias="startedAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    job_id: Optional[str] = Field(default=None, alias="jobId")
    best_score: Optional[float] = Field(default=None, alias="bestScore")
    instruction: Optional[str] = None
    demos_count: Optional[int] = Field(default=None, alias="demosCount")

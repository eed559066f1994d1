# models.py
# Description: Data models for recorded chat sessions, training examples, job status and tuning settings.
#
# Wire documents use camelCase keys; Python attributes stay snake_case and map
# through pydantic aliases.
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError


def utc_now_iso() -> str:
    """UTC timestamp with millisecond precision and a trailing ``Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


########################################################################################################################
# Recorded sessions

class Pair(_WireModel):
    """One recorded question/answer turn, optionally tagged with the tool that was invoked."""

    question: str
    answer: str
    tool: Optional[str] = None


class ChatSession(_WireModel):
    id: Optional[Union[str, int]] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    pairs: List[Pair] = Field(default_factory=list)


class SamplesDocument(_WireModel):
    """Current on-disk shape: ``{"samples": [...]}``."""

    samples: List[ChatSession] = Field(default_factory=list)


class LegacySamplesDocument(_WireModel):
    """Older on-disk shape that split sessions into ``good`` and ``bad`` lists."""

    good: List[ChatSession] = Field(default_factory=list)
    bad: List[ChatSession] = Field(default_factory=list)

    def to_canonical(self) -> SamplesDocument:
        return SamplesDocument(samples=[*self.good, *self.bad])


########################################################################################################################
# Training examples

class TrainingExample(_WireModel):
    conversation_context: str = Field(alias="conversationContext")
    expected_turn_response: str = Field(alias="expectedTurnResponse")
    tools_used: Optional[List[str]] = Field(default=None, alias="toolsUsed")

    @property
    def uses_tools(self) -> bool:
        return bool(self.tools_used)


########################################################################################################################
# Job status

StatusValue = Literal["idle", "running", "completed", "error"]


class OptimizationStatus(_WireModel):
    status: StatusValue
    started_at: Optional[str] = Field(default=None, alias="startedAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    job_id: Optional[str] = Field(default=None, alias="jobId")

    @classmethod
    def running(cls, job_id: Optional[str] = None) -> "OptimizationStatus":
        return cls(status="running", started_at=utc_now_iso(), job_id=job_id)

    @classmethod
    def completed(cls, job_id: Optional[str] = None) -> "OptimizationStatus":
        return cls(status="completed", updated_at=utc_now_iso(), job_id=job_id)

    @classmethod
    def failed(cls, message: str, job_id: Optional[str] = None) -> "OptimizationStatus":
        return cls(status="error", error_message=message, updated_at=utc_now_iso(), job_id=job_id)

    @property
    def is_active_or_failed(self) -> bool:
        return self.status in ("running", "error")


########################################################################################################################
# Tuning settings

class OptimizationSettings(_WireModel):
    """Optional optimizer tuning parameters supplied with a start request."""

    auto: Optional[Literal["off", "light", "medium", "heavy"]] = None
    max_metric_calls: Optional[int] = Field(default=None, alias="maxMetricCalls", ge=1)
    candidate_selection_strategy: Optional[Literal["pareto", "current_best"]] = Field(
        default=None, alias="candidateSelectionStrategy"
    )
    reflection_minibatch_size: Optional[int] = Field(default=None, alias="reflectionMinibatchSize", ge=1)
    use_merge: Optional[bool] = Field(default=None, alias="useMerge")
    num_threads: Optional[int] = Field(default=None, alias="numThreads", ge=1)

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["OptimizationSettings"]:
        """Build settings from an untrusted mapping, dropping fields that fail validation.

        Returns None when ``raw`` is not a mapping.
        """
        if not isinstance(raw, dict):
            return None
        accepted: Dict[str, Any] = {}
        for key, value in raw.items():
            if value is None:
                continue
            try:
                cls.model_validate({key: value})
            except ValidationError as e:
                logger.warning(f"Ignoring invalid optimization setting {key}={value!r}: {e.errors()[0].get('msg')}")
                continue
            accepted[key] = value
        return cls.model_validate(accepted)

"""Request and response models for the quiz generation API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

from quizgen.config import get_settings
from quizgen.jobs.models import GenerationRequest, JobStatus

Difficulty = Literal["简单", "中等", "困难"]


class GenerateQuizRequest(BaseModel):
  """Inputs for an asynchronous quiz generation job."""

  topic: StrictStr = Field(min_length=1, max_length=200)
  difficulty: Difficulty | None = Field(default=None, validate_default=True)
  count: StrictInt | None = Field(default=None, validate_default=True)
  subject: StrictStr | None = Field(default=None, max_length=100)
  learning_goals: StrictStr | None = Field(default=None, alias="learningGoals", max_length=2000)
  knowledge_points: StrictStr | None = Field(default=None, alias="knowledgePoints", max_length=2000)
  model_config = ConfigDict(populate_by_name=True, extra="forbid")

  @field_validator("topic")
  @classmethod
  def _topic_not_blank(cls, value: str) -> str:
    stripped = value.strip()
    if not stripped:
      raise ValueError("topic must not be blank")
    return stripped

  @field_validator("difficulty")
  @classmethod
  def _default_difficulty(cls, value: str | None) -> str:
    return value or get_settings().default_difficulty

  @field_validator("count")
  @classmethod
  def _count_within_configured_range(cls, value: int | None) -> int:
    """Fill an omitted count from settings and bound it to the configured range."""
    settings = get_settings()
    if value is None:
      return settings.default_item_count
    if not settings.min_item_count <= value <= settings.max_item_count:
      raise ValueError(f"count must be between {settings.min_item_count} and {settings.max_item_count}.")
    return value

  def to_domain(self) -> GenerationRequest:
    return GenerationRequest(
      topic=self.topic,
      difficulty=self.difficulty,
      count=self.count,
      subject=self.subject,
      learning_goals=self.learning_goals,
      knowledge_points=self.knowledge_points,
    )


class JobCreateResponse(BaseModel):
  """Response payload for job creation."""

  task_id: StrictStr = Field(serialization_alias="taskId")
  status: JobStatus
  message: StrictStr


class JobStatusResponse(BaseModel):
  """Polling payload for a generation job."""

  task_id: StrictStr = Field(serialization_alias="taskId")
  status: JobStatus
  progress: int = Field(ge=0, le=100)
  message: StrictStr
  result: dict[str, Any] | None = None
  error: StrictStr | None = None


class MonitorHealthResponse(BaseModel):
  """Health summary for the completion endpoint."""

  healthy: bool
  stats: dict[str, Any]
  recommendations: list[str]

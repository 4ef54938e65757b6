"""Domain models for asynchronous quiz generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

JobStatus = Literal["pending", "processing", "completed", "failed"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


@dataclass(frozen=True)
class GenerationRequest:
  """Inputs for a quiz generation job."""

  topic: str
  difficulty: str
  count: int
  subject: str | None = None
  learning_goals: str | None = None
  knowledge_points: str | None = None


@dataclass(frozen=True)
class GenerationJob:
  """Represents a tracked quiz generation job.

  `result` is set only for completed jobs and `error` only for failed ones; the task store
  enforces both through its transition methods.
  """

  job_id: str
  owner_id: str
  request: GenerationRequest
  status: JobStatus
  created_at: float
  updated_at: float
  progress: int = 0
  message: str = ""
  result: dict[str, Any] | None = None
  error: str | None = None
  finished_at: float | None = None
  logs: tuple[str, ...] = field(default_factory=tuple)

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  def to_progress(self) -> dict[str, Any]:
    """Shape the record for polling clients."""
    return {
      "taskId": self.job_id,
      "status": self.status,
      "progress": self.progress,
      "message": self.message,
      "result": self.result if self.status == "completed" else None,
      "error": self.error if self.status == "failed" else None,
    }

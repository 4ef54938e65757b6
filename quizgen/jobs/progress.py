"""Fixed progress checkpoints reported to polling clients."""

from __future__ import annotations

from dataclasses import dataclass

from quizgen.jobs.store import TaskStore


@dataclass(frozen=True)
class Checkpoint:
  """A named, fixed progress percentage."""

  phase: str
  percent: int
  message: str


# Polling clients rely on this sequence; it must stay monotonic.
PARSED = Checkpoint("parse", 15, "Parsing learning goals and knowledge points.")
PROMPT_READY = Checkpoint("prompt", 25, "Prompt assembled.")
REQUEST_ISSUED = Checkpoint("request", 30, "Requesting quiz items from the model.")
RESPONSE_PARSED = Checkpoint("parsed", 60, "Model response parsed.")
VALIDATED = Checkpoint("validated", 85, "Content validated.")
REGENERATING = Checkpoint("regenerate", 88, "Quality below threshold; regenerating once.")
REVALIDATED = Checkpoint("revalidated", 95, "Regenerated content validated.")
PERSISTING = Checkpoint("persist", 97, "Saving quiz items.")

CHECKPOINTS: tuple[Checkpoint, ...] = (PARSED, PROMPT_READY, REQUEST_ISSUED, RESPONSE_PARSED, VALIDATED, REGENERATING, REVALIDATED, PERSISTING)


class JobProgressTracker:
  """Stamps checkpoints for one job onto the task store."""

  def __init__(self, job_id: str, store: TaskStore) -> None:
    self.job_id = job_id
    self._store = store
    self.reached: list[str] = []

  def mark(self, checkpoint: Checkpoint, message: str | None = None) -> None:
    self._store.update_progress(self.job_id, checkpoint.percent, message or checkpoint.message)
    self.reached.append(checkpoint.phase)

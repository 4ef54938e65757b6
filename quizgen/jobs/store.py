"""In-memory task store with a cancellable retention sweep."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable

from quizgen.ai.errors import TaskForbiddenError, TaskNotFoundError
from quizgen.jobs.models import GenerationJob, GenerationRequest

logger = logging.getLogger(__name__)

MAX_TRACKED_LOGS = 50


class InvalidTransitionError(RuntimeError):
  """Raised when a terminal job is asked to change state."""


class TaskStore:
  """Owns job records; every mutation is a single locked replace of an immutable record."""

  def __init__(self, *, retention_seconds: float = 300.0, sweep_interval: float = 300.0, clock: Callable[[], float] = time.time) -> None:
    self._jobs: dict[str, GenerationJob] = {}
    self._lock = threading.Lock()
    self._retention = retention_seconds
    self._sweep_interval = sweep_interval
    self._clock = clock
    self._sweeper: asyncio.Task[None] | None = None

  def create(self, job_id: str, owner_id: str, request: GenerationRequest) -> GenerationJob:
    now = self._clock()
    job = GenerationJob(job_id=job_id, owner_id=owner_id, request=request, status="pending", created_at=now, updated_at=now, message="Task created.")
    with self._lock:
      if job_id in self._jobs:
        raise ValueError(f"Job {job_id} already exists.")
      self._jobs[job_id] = job
    logger.info("Created job %s for owner %s topic=%r count=%d", job_id, owner_id, request.topic, request.count)
    return job

  def get(self, job_id: str) -> GenerationJob:
    with self._lock:
      job = self._jobs.get(job_id)
    if job is None:
      raise TaskNotFoundError(f"Job {job_id} not found.")
    return job

  def get_for_owner(self, job_id: str, owner_id: str) -> GenerationJob:
    job = self.get(job_id)
    if job.owner_id != owner_id:
      raise TaskForbiddenError(f"Job {job_id} belongs to another user.")
    return job

  def _transition(self, job_id: str, compute: Callable[[GenerationJob], dict[str, Any]]) -> GenerationJob:
    with self._lock:
      job = self._jobs.get(job_id)
      if job is None:
        raise TaskNotFoundError(f"Job {job_id} not found.")
      if job.is_terminal:
        raise InvalidTransitionError(f"Job {job_id} is already {job.status}.")
      changes = compute(job)
      message = changes.get("message")
      if message:
        changes["logs"] = (job.logs + (message,))[-MAX_TRACKED_LOGS:]
      updated = replace(job, updated_at=self._clock(), **changes)
      self._jobs[job_id] = updated
    return updated

  def update_progress(self, job_id: str, progress: float, message: str) -> GenerationJob:
    """Record progress; clamps to 0-100, never lowers it and never completes the job."""
    clamped = int(min(max(progress, 0), 100))
    updated = self._transition(job_id, lambda job: {"status": "processing", "progress": max(clamped, job.progress), "message": message})
    logger.debug("Job %s progress=%d %s", job_id, updated.progress, message)
    return updated

  def complete(self, job_id: str, result: dict[str, Any], message: str = "Generation completed.") -> GenerationJob:
    """Atomically mark the job completed with its result and full progress."""
    finished = self._clock()
    updated = self._transition(job_id, lambda job: {"status": "completed", "progress": 100, "message": message, "result": result, "error": None, "finished_at": finished})
    logger.info("Job %s completed", job_id)
    return updated

  def fail(self, job_id: str, error: str) -> GenerationJob:
    finished = self._clock()
    updated = self._transition(job_id, lambda job: {"status": "failed", "message": error, "error": error, "result": None, "finished_at": finished})
    logger.warning("Job %s failed: %s", job_id, error)
    return updated

  def sweep(self, now: float | None = None) -> list[str]:
    """Remove terminal jobs older than the retention window; returns removed ids."""
    cutoff = (self._clock() if now is None else now) - self._retention
    with self._lock:
      expired = [job_id for job_id, job in self._jobs.items() if job.is_terminal and job.finished_at is not None and job.finished_at <= cutoff]
      for job_id in expired:
        del self._jobs[job_id]
    if expired:
      logger.info("Swept %d expired job(s)", len(expired))
    return expired

  def __len__(self) -> int:
    with self._lock:
      return len(self._jobs)

  async def _sweep_forever(self) -> None:
    while True:
      await asyncio.sleep(self._sweep_interval)
      self.sweep()

  def start(self) -> None:
    """Start the background sweep on the running loop."""
    if self._sweeper is not None and not self._sweeper.done():
      return
    self._sweeper = asyncio.create_task(self._sweep_forever(), name="task-store-sweep")

  async def stop(self) -> None:
    """Cancel the background sweep and wait for it to exit."""
    sweeper, self._sweeper = self._sweeper, None
    if sweeper is None:
      return
    sweeper.cancel()
    try:
      await sweeper
    except asyncio.CancelledError:
      pass

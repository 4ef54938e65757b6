"""Explicitly constructed runtime components shared by the API and background jobs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from quizgen.ai.orchestrator import QuizOrchestrator
from quizgen.ai.parameters import ParseCache
from quizgen.ai.providers.base import TextModel
from quizgen.ai.providers.dashscope import DashScopeModel
from quizgen.config import Settings
from quizgen.jobs.models import GenerationJob, GenerationRequest
from quizgen.jobs.store import TaskStore
from quizgen.storage.items_repo import InMemoryItemStore, ItemStore
from quizgen.telemetry.monitor import ApiMonitor
from quizgen.utils.ids import generate_job_id

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
  """Owns the task store, monitor, model client and in-flight job tasks."""

  settings: Settings
  store: TaskStore
  monitor: ApiMonitor
  model: TextModel
  item_store: ItemStore
  orchestrator: QuizOrchestrator
  http_client: httpx.AsyncClient | None = None
  _tasks: set[asyncio.Task[None]] = field(default_factory=set)

  def submit(self, owner_id: str, request: GenerationRequest) -> GenerationJob:
    """Register a job for the owner and start generating it in the background."""
    job = self.store.create(generate_job_id(owner_id), owner_id, request)
    self.spawn(job.job_id)
    return job

  def poll_progress(self, job_id: str, owner_id: str) -> dict[str, Any]:
    """Return the polling view; raises TaskNotFoundError or TaskForbiddenError."""
    return self.store.get_for_owner(job_id, owner_id).to_progress()

  def spawn(self, job_id: str) -> asyncio.Task[None]:
    """Run a job as an independent task, keeping a reference until it finishes."""
    task = asyncio.create_task(self.orchestrator.run(job_id), name=f"quiz-job-{job_id}")
    self._tasks.add(task)
    task.add_done_callback(self._tasks.discard)
    return task

  async def start(self) -> None:
    self.store.start()
    logger.info("Runtime started model=%s", self.model.name)

  async def stop(self) -> None:
    await self.store.stop()
    pending = list(self._tasks)
    for task in pending:
      task.cancel()
    if pending:
      await asyncio.gather(*pending, return_exceptions=True)
      logger.info("Cancelled %d in-flight job(s) on shutdown", len(pending))
    if self.http_client is not None:
      await self.http_client.aclose()


def build_runtime(settings: Settings, *, model: TextModel | None = None, item_store: ItemStore | None = None, monitor: ApiMonitor | None = None) -> Runtime:
  """Wire the default components; callers may inject a model or item store."""
  monitor = monitor or ApiMonitor(settings.monitor_thresholds)
  store = TaskStore(retention_seconds=settings.task_retention, sweep_interval=settings.task_sweep_interval)
  http_client: httpx.AsyncClient | None = None
  if model is None:
    http_client = httpx.AsyncClient()
    model = DashScopeModel(http_client, api_url=settings.api_url, api_key=settings.api_key, model=settings.model, monitor=monitor)
  item_store = item_store or InMemoryItemStore()
  orchestrator = QuizOrchestrator(model, store, item_store, settings, parse_cache=ParseCache(ttl_seconds=settings.parse_cache_ttl))
  return Runtime(settings=settings, store=store, monitor=monitor, model=model, item_store=item_store, orchestrator=orchestrator, http_client=http_client)

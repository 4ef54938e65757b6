"""Persistence contract for generated quiz items."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from quizgen.jobs.models import GenerationJob
from quizgen.schema.quiz import GeneratedItem, items_to_builtins
from quizgen.utils.ids import generate_item_id


class ItemStore(Protocol):
  """Repository contract for saving generated items."""

  async def store(self, items: list[GeneratedItem], *, job: GenerationJob) -> list[dict[str, Any]]:
    """Persist items and return the saved representations."""


class InMemoryItemStore:
  """Process-local item store keyed by owner."""

  def __init__(self) -> None:
    self._items: dict[str, list[dict[str, Any]]] = {}
    self._lock = asyncio.Lock()

  async def store(self, items: list[GeneratedItem], *, job: GenerationJob) -> list[dict[str, Any]]:
    saved: list[dict[str, Any]] = []
    for payload in items_to_builtins(items):
      payload.pop("validation", None)
      payload.update({"id": generate_item_id(), "jobId": job.job_id, "topic": job.request.topic, "subject": job.request.subject})
      saved.append(payload)
    async with self._lock:
      self._items.setdefault(job.owner_id, []).extend(saved)
    return saved

  async def list_for_owner(self, owner_id: str) -> list[dict[str, Any]]:
    async with self._lock:
      return list(self._items.get(owner_id, []))

from __future__ import annotations

import asyncio

import pytest

from quizgen.ai.errors import TaskForbiddenError, TaskNotFoundError
from quizgen.jobs.models import GenerationRequest
from quizgen.jobs.progress import CHECKPOINTS, JobProgressTracker
from quizgen.jobs.store import InvalidTransitionError, TaskStore

REQUEST = GenerationRequest(topic="二次函数", difficulty="中等", count=5)


@pytest.fixture
def clock():
  return [1000.0]


@pytest.fixture
def store(clock):
  return TaskStore(retention_seconds=300, sweep_interval=300, clock=lambda: clock[0])


def test_create_and_fetch_for_owner(store) -> None:
  job = store.create("job-1", "alice", REQUEST)
  assert job.status == "pending"
  assert store.get_for_owner("job-1", "alice") == job
  with pytest.raises(TaskForbiddenError):
    store.get_for_owner("job-1", "bob")
  with pytest.raises(TaskNotFoundError):
    store.get("missing")
  with pytest.raises(ValueError):
    store.create("job-1", "alice", REQUEST)


def test_progress_is_monotonic_and_never_completes(store) -> None:
  store.create("job-1", "alice", REQUEST)
  store.update_progress("job-1", 60, "parsed")
  job = store.update_progress("job-1", 30, "late update")
  assert job.progress == 60
  job = store.update_progress("job-1", 140, "overflow")
  assert job.progress == 100
  assert job.status == "processing"
  assert job.result is None
  assert job.to_progress()["result"] is None


def test_complete_sets_result_atomically(store) -> None:
  store.create("job-1", "alice", REQUEST)
  job = store.complete("job-1", {"items": []}, message="done")
  assert (job.status, job.progress, job.result, job.error) == ("completed", 100, {"items": []}, None)
  assert job.to_progress() == {"taskId": "job-1", "status": "completed", "progress": 100, "message": "done", "result": {"items": []}, "error": None}


def test_terminal_jobs_reject_transitions(store) -> None:
  store.create("job-1", "alice", REQUEST)
  job = store.fail("job-1", "upstream down")
  assert job.error == "upstream down"
  assert job.to_progress()["result"] is None
  with pytest.raises(InvalidTransitionError):
    store.update_progress("job-1", 50, "too late")
  with pytest.raises(InvalidTransitionError):
    store.complete("job-1", {})


def test_sweep_removes_only_expired_terminal_jobs(store, clock) -> None:
  store.create("done", "alice", REQUEST)
  store.create("running", "alice", REQUEST)
  store.complete("done", {"items": []})
  store.update_progress("running", 30, "working")

  clock[0] += 299
  assert store.sweep() == []
  clock[0] += 2
  assert store.sweep() == ["done"]
  assert len(store) == 1
  with pytest.raises(TaskNotFoundError):
    store.get("done")


def test_logs_are_bounded(store) -> None:
  store.create("job-1", "alice", REQUEST)
  for index in range(60):
    store.update_progress("job-1", index, f"step {index}")
  assert len(store.get("job-1").logs) == 50


def test_tracker_checkpoints_are_monotonic(store) -> None:
  store.create("job-1", "alice", REQUEST)
  tracker = JobProgressTracker("job-1", store)
  seen = []
  for checkpoint in CHECKPOINTS:
    tracker.mark(checkpoint)
    seen.append(store.get("job-1").progress)
  assert seen == sorted(seen)
  assert seen[-1] < 100
  assert tracker.reached == [checkpoint.phase for checkpoint in CHECKPOINTS]


@pytest.mark.anyio
async def test_background_sweep_starts_and_stops() -> None:
  store = TaskStore(retention_seconds=0.001, sweep_interval=0.01)
  store.create("job-1", "alice", REQUEST)
  store.fail("job-1", "boom")
  store.start()
  await asyncio.sleep(0.05)
  await store.stop()
  assert len(store) == 0

from __future__ import annotations

import asyncio

import pytest

from quizgen.main import app

PAYLOAD = {"topic": "二次函数", "difficulty": "中等", "count": 5, "subject": "数学", "knowledgePoints": "求根公式,不包括虚数"}


async def _poll_until_terminal(client, task_id: str, user_id: str = "alice") -> dict:
  body: dict = {}
  for _ in range(100):
    response = await client.get(f"/v1/quizzes/jobs/{task_id}", headers={"X-User-Id": user_id})
    assert response.status_code == 200
    body = response.json()
    if body["status"] in {"completed", "failed"}:
      return body
    await asyncio.sleep(0.01)
  return body


@pytest.mark.anyio
async def test_create_and_poll_job(async_client, runtime_factory, scripted_model, quadratic_response) -> None:
  app.state.runtime = runtime_factory(scripted_model([quadratic_response()]))

  response = await async_client.post("/v1/quizzes/jobs", json=PAYLOAD, headers={"X-User-Id": "alice"})

  assert response.status_code == 202
  created = response.json()
  assert created["taskId"].startswith("generate_alice_")
  assert created["status"] == "pending"

  body = await _poll_until_terminal(async_client, created["taskId"])
  assert body["status"] == "completed"
  assert body["progress"] == 100
  assert body["error"] is None
  assert len(body["result"]["items"]) == 5
  assert body["result"]["validation"]["passed"] is True


@pytest.mark.anyio
async def test_failed_job_reports_error(async_client, runtime_factory, scripted_model) -> None:
  app.state.runtime = runtime_factory(scripted_model(["no json here"]))

  created = (await async_client.post("/v1/quizzes/jobs", json=PAYLOAD, headers={"X-User-Id": "alice"})).json()
  body = await _poll_until_terminal(async_client, created["taskId"])

  assert body["status"] == "failed"
  assert body["result"] is None
  assert body["error"].startswith("Unable to parse")


@pytest.mark.anyio
async def test_unknown_job_returns_404(async_client, runtime_factory, scripted_model) -> None:
  app.state.runtime = runtime_factory(scripted_model([]))

  response = await async_client.get("/v1/quizzes/jobs/missing", headers={"X-User-Id": "alice", "X-Request-Id": "req-42"})

  assert response.status_code == 404
  assert response.json() == {"detail": "Job not found.", "requestId": "req-42"}


@pytest.mark.anyio
async def test_other_users_job_returns_403(async_client, runtime_factory, scripted_model, quadratic_response) -> None:
  app.state.runtime = runtime_factory(scripted_model([quadratic_response()]))
  created = (await async_client.post("/v1/quizzes/jobs", json=PAYLOAD, headers={"X-User-Id": "alice"})).json()

  response = await async_client.get(f"/v1/quizzes/jobs/{created['taskId']}", headers={"X-User-Id": "mallory"})

  assert response.status_code == 403
  assert response.json()["detail"] == "Access denied."


@pytest.mark.anyio
async def test_missing_identity_returns_401(async_client, runtime_factory, scripted_model) -> None:
  app.state.runtime = runtime_factory(scripted_model([]))

  response = await async_client.post("/v1/quizzes/jobs", json=PAYLOAD)

  assert response.status_code == 401


@pytest.mark.anyio
async def test_invalid_request_is_rejected_without_echoing_input(async_client, runtime_factory, scripted_model) -> None:
  app.state.runtime = runtime_factory(scripted_model([]))

  response = await async_client.post("/v1/quizzes/jobs", json={**PAYLOAD, "count": 0}, headers={"X-User-Id": "alice"})

  assert response.status_code == 422
  errors = response.json()["detail"]
  assert errors[0]["loc"] == ["body", "count"]
  assert "input" not in errors[0]


@pytest.mark.anyio
async def test_monitor_and_service_health(async_client, runtime_factory, scripted_model) -> None:
  runtime = runtime_factory(scripted_model([]))
  app.state.runtime = runtime
  runtime.monitor.record_call(success=True, duration=1.5, status_code=200)

  monitor = await async_client.get("/v1/monitor/health")
  assert monitor.status_code == 200
  assert monitor.json()["healthy"] is True
  assert monitor.json()["stats"]["total_calls"] == 1

  upstream = await async_client.get("/v1/monitor/upstream")
  assert upstream.json() == {"healthy": True}

  reset = await async_client.post("/v1/monitor/reset")
  assert reset.status_code == 204
  assert runtime.monitor.stats().total_calls == 0

  health = await async_client.get("/health")
  assert health.json()["status"] == "ok"


@pytest.mark.anyio
async def test_requests_before_startup_return_503(async_client) -> None:
  app.state.runtime = None

  response = await async_client.get("/v1/monitor/health")

  assert response.status_code == 503

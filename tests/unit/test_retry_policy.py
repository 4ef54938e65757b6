from __future__ import annotations

import random

import httpx
import pytest

from quizgen.ai.errors import ClientError, NetworkError, RateLimitedError, ServerError
from quizgen.ai.providers.policy import RetryPolicy, classify_exception, request_with_retry, scale_timeout
from quizgen.telemetry.monitor import ApiMonitor

URL = "https://completions.test/api/v1/generate"


class FakeSleep:
  def __init__(self) -> None:
    self.delays: list[float] = []

  async def __call__(self, delay: float) -> None:
    self.delays.append(delay)


def _client(statuses: list[int], calls: list[httpx.Request]) -> httpx.AsyncClient:
  def handler(request: httpx.Request) -> httpx.Response:
    calls.append(request)
    status = statuses[min(len(calls) - 1, len(statuses) - 1)]
    return httpx.Response(status, json={"ok": status < 400})

  return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_backoff_stays_within_jitter_bounds_and_grows() -> None:
  policy = RetryPolicy(base_delay=1.0, max_delay=100.0)
  rng = random.Random(7)
  delays = [policy.backoff_delay(attempt, rng) for attempt in range(5)]
  for attempt, delay in enumerate(delays):
    assert 2**attempt <= delay <= 1.3 * 2**attempt
  assert delays == sorted(delays)


def test_backoff_is_capped() -> None:
  assert RetryPolicy(base_delay=2.0, max_delay=10.0).backoff_delay(10, random.Random(1)) == 10.0


def test_reduced_policy_is_lighter() -> None:
  reduced = RetryPolicy(max_retries=3, base_delay=2.0, max_delay=10.0, timeout=60.0).reduced(0.75)
  assert (reduced.max_retries, reduced.base_delay, reduced.max_delay, reduced.timeout) == (2, 1.0, 5.0, 45.0)
  assert RetryPolicy(max_retries=0).reduced(0.5).max_retries == 0


def test_scale_timeout_grows_with_count_up_to_ceiling() -> None:
  assert scale_timeout(5, base=60, per_item=8, ceiling=120) == 60
  assert scale_timeout(10, base=60, per_item=8, ceiling=120) == 80
  assert scale_timeout(50, base=60, per_item=8, ceiling=120) == 120


def test_classify_exception_maps_transport_errors() -> None:
  request = httpx.Request("POST", URL)
  timeout = classify_exception(httpx.ReadTimeout("timed out", request=request))
  assert isinstance(timeout, NetworkError) and timeout.classification == "timeout"
  refused = classify_exception(httpx.ConnectError("Connection refused", request=request))
  assert isinstance(refused, NetworkError) and refused.classification == "connection"
  assert classify_exception(ValueError("bug")) is None


@pytest.mark.anyio
async def test_server_errors_are_retried_until_exhausted() -> None:
  calls: list[httpx.Request] = []
  sleep = FakeSleep()
  monitor = ApiMonitor()
  policy = RetryPolicy(max_retries=3, base_delay=1.0, max_delay=8.0)
  async with _client([503], calls) as client:
    with pytest.raises(ServerError) as exc_info:
      await request_with_retry(lambda timeout: client.post(URL, timeout=timeout), policy, monitor=monitor, sleep=sleep, rng=random.Random(3))

  assert len(calls) == 4
  assert exc_info.value.attempts == 4
  assert exc_info.value.status_code == 503
  assert "after 4 attempt(s)" in exc_info.value.describe()
  assert len(sleep.delays) == 3
  assert all(1.0 * 2**attempt <= delay <= min(1.3 * 2**attempt, 8.0) for attempt, delay in enumerate(sleep.delays))
  stats = monitor.stats()
  assert (stats.total_calls, stats.failed_calls) == (1, 1)


@pytest.mark.anyio
async def test_client_errors_fail_without_retry() -> None:
  calls: list[httpx.Request] = []
  sleep = FakeSleep()
  async with _client([401], calls) as client:
    with pytest.raises(ClientError) as exc_info:
      await request_with_retry(lambda timeout: client.post(URL, timeout=timeout), RetryPolicy(), sleep=sleep)

  assert len(calls) == 1
  assert sleep.delays == []
  assert exc_info.value.classification == "auth"
  assert exc_info.value.retryable is False


@pytest.mark.anyio
async def test_rate_limit_recovers_and_records_one_success() -> None:
  calls: list[httpx.Request] = []
  monitor = ApiMonitor()
  async with _client([429, 200], calls) as client:
    response = await request_with_retry(lambda timeout: client.post(URL, timeout=timeout), RetryPolicy(), monitor=monitor, sleep=FakeSleep())

  assert response.status_code == 200
  assert len(calls) == 2
  stats = monitor.stats()
  assert (stats.total_calls, stats.success_calls, stats.failed_calls) == (1, 1, 0)


@pytest.mark.anyio
async def test_timeouts_are_classified_and_counted() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)

  monitor = ApiMonitor()
  async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
    with pytest.raises(NetworkError) as exc_info:
      await request_with_retry(lambda timeout: client.post(URL, timeout=timeout), RetryPolicy(max_retries=1), monitor=monitor, sleep=FakeSleep())

  assert exc_info.value.classification == "timeout"
  assert exc_info.value.attempts == 2
  assert isinstance(exc_info.value.cause, httpx.ReadTimeout)
  assert monitor.stats().timeout_calls == 1


def test_rate_limited_error_is_retryable() -> None:
  assert RateLimitedError("slow down", status_code=429).retryable is True

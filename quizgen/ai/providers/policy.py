"""Retry, backoff and timeout policy for completion requests."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable

import httpx

from quizgen.ai.errors import NetworkError, RequestError, error_for_status, is_connection_message, is_timeout_message
from quizgen.telemetry.monitor import ApiMonitor

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Send = Callable[[float], Awaitable[httpx.Response]]

JITTER_RATIO = 0.3


@dataclass(frozen=True)
class RetryPolicy:
  """Retry/timeout policy configuration."""

  max_retries: int = 3
  base_delay: float = 2.0
  max_delay: float = 10.0
  timeout: float = 60.0
  slow_response_ratio: float = 0.8

  def backoff_delay(self, attempt: int, rng: random.Random | None = None) -> float:
    """Exponential backoff with up to 30% jitter, capped at max_delay."""
    jitter = (rng or random).random() * JITTER_RATIO
    return min(self.base_delay * (2**attempt) * (1 + jitter), self.max_delay)

  def reduced(self, timeout_multiplier: float) -> RetryPolicy:
    """Return the lighter profile used for a validation-triggered regeneration."""
    return replace(
      self,
      max_retries=max(self.max_retries - 1, 0),
      base_delay=self.base_delay / 2,
      max_delay=max(self.max_delay / 2, self.base_delay / 2),
      timeout=self.timeout * timeout_multiplier,
    )


def scale_timeout(count: int, *, base: float, per_item: float, ceiling: float) -> float:
  """Scale a request timeout with the number of requested items."""
  return min(max(base, count * per_item), ceiling)


def classify_exception(exc: BaseException) -> RequestError | None:
  """Map transport and status failures onto the request error taxonomy."""
  if isinstance(exc, RequestError):
    return exc
  if isinstance(exc, httpx.HTTPStatusError):
    return error_for_status(exc.response.status_code, str(exc))
  if isinstance(exc, httpx.TimeoutException | asyncio.TimeoutError):
    return NetworkError(str(exc) or "request timed out", timeout=True, cause=exc)
  if isinstance(exc, httpx.TransportError):
    message = str(exc) or type(exc).__name__
    return NetworkError(message, timeout=is_timeout_message(message) and not is_connection_message(message), cause=exc)
  return None


def _response_error(response: httpx.Response) -> RequestError:
  snippet = response.text[:200] if response.content else ""
  return error_for_status(response.status_code, f"HTTP {response.status_code} from {response.request.url.path}: {snippet}")


async def request_with_retry(
  send: Send,
  policy: RetryPolicy,
  *,
  monitor: ApiMonitor | None = None,
  path: str = "unknown",
  sleep: Sleep = asyncio.sleep,
  rng: random.Random | None = None,
) -> httpx.Response:
  """Execute `send` under the policy and record exactly one monitor entry for the whole request.

  `send` receives the per-attempt timeout and must return the raw response; status handling and
  retry decisions happen here. Retryable failures (timeouts, connection/DNS errors, 429 and 5xx)
  are retried up to `policy.max_retries` times; any other 4xx fails immediately. The raised error
  carries the attempt count, the total duration and its classification.
  """
  started = time.monotonic()
  attempt = 0
  while True:
    attempt_started = time.monotonic()
    try:
      response = await send(policy.timeout)
      if response.status_code >= 400:
        raise _response_error(response)
    except Exception as exc:
      error = classify_exception(exc)
      duration = time.monotonic() - started
      if error is None:
        # Unclassified errors are programming faults; record and propagate untouched.
        if monitor is not None:
          monitor.record_call(success=False, duration=duration, path=path, error=exc)
        raise
      error.attempts = attempt + 1
      error.duration = duration
      if error is not exc and error.cause is None:
        error.cause = exc
      if not error.retryable or attempt >= policy.max_retries:
        logger.error("Completion request failed path=%s attempts=%d duration=%.2fs classification=%s: %s", path, error.attempts, duration, error.classification, error)
        if monitor is not None:
          monitor.record_call(success=False, duration=duration, status_code=error.status_code, path=path, error=error, timed_out=error.classification == "timeout")
        if error is exc:
          raise
        raise error from exc
      delay = policy.backoff_delay(attempt, rng)
      logger.warning("Retrying completion request path=%s attempt=%d/%d in %.2fs after %s: %s", path, attempt + 1, policy.max_retries + 1, delay, error.classification, error)
      await sleep(delay)
      attempt += 1
      continue

    elapsed = time.monotonic() - attempt_started
    if elapsed > policy.timeout * policy.slow_response_ratio:
      logger.warning("Slow completion response path=%s took %.1fs (timeout %.1fs)", path, elapsed, policy.timeout)
    if monitor is not None:
      monitor.record_call(success=True, duration=time.monotonic() - started, status_code=response.status_code, path=path)
    return response

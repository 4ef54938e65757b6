"""DashScope-style HTTP text completion model."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

import httpx

from quizgen.ai.errors import ServerError
from quizgen.ai.providers.base import SimpleModelResponse, TextModel
from quizgen.ai.providers.policy import RetryPolicy, Sleep, request_with_retry
from quizgen.config import SamplingParams
from quizgen.telemetry.monitor import ApiMonitor

logger = logging.getLogger(__name__)


def _extract_text(payload: Any) -> str | None:
  """Read completion text from `output.text`, falling back to the chat-style choices shape."""
  if not isinstance(payload, dict):
    return None
  output = payload.get("output")
  if not isinstance(output, dict):
    return None
  text = output.get("text")
  if isinstance(text, str):
    return text
  choices = output.get("choices")
  if isinstance(choices, list) and choices:
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, str):
      return content
  return None


def _usage(payload: dict[str, Any]) -> dict[str, int] | None:
  usage = payload.get("usage")
  if not isinstance(usage, dict):
    return None
  return {key: int(value) for key, value in usage.items() if isinstance(value, int | float)}


class DashScopeModel(TextModel):
  """Posts `{model, input: {prompt}, parameters}` and reads the generated text."""

  def __init__(
    self,
    client: httpx.AsyncClient,
    *,
    api_url: str,
    api_key: str | None,
    model: str,
    monitor: ApiMonitor | None = None,
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
  ) -> None:
    self._client = client
    self._api_url = api_url
    self._api_key = api_key
    self._monitor = monitor
    self._sleep = sleep
    self._rng = rng
    self._path = urlparse(api_url).path or "/"
    self.name = model

  def _headers(self) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if self._api_key:
      headers["Authorization"] = f"Bearer {self._api_key}"
    return headers

  async def generate(self, prompt: str, *, sampling: SamplingParams, policy: RetryPolicy) -> SimpleModelResponse:
    body = {"model": self.name, "input": {"prompt": prompt}, "parameters": sampling.as_payload()}

    async def _send(timeout: float) -> httpx.Response:
      return await self._client.post(self._api_url, json=body, headers=self._headers(), timeout=timeout)

    logger.info("Requesting completion model=%s prompt_chars=%d timeout=%.0fs max_retries=%d", self.name, len(prompt), policy.timeout, policy.max_retries)
    response = await request_with_retry(_send, policy, monitor=self._monitor, path=self._path, sleep=self._sleep, rng=self._rng)
    try:
      payload = response.json()
    except ValueError as exc:
      raise ServerError("Completion response was not valid JSON", status_code=response.status_code, cause=exc) from exc
    text = _extract_text(payload)
    if text is None:
      raise ServerError("Completion response did not include output text", status_code=response.status_code)
    return SimpleModelResponse(content=text, usage=_usage(payload))

  async def health_check(self, timeout: float = 5.0) -> dict[str, Any]:
    """Issue a lightweight GET; any status below 500 counts as reachable."""
    started = time.monotonic()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
      response = await self._client.get(self._api_url, headers=self._headers(), timeout=timeout)
    except httpx.HTTPError as exc:
      logger.warning("Completion health check failed: %s", exc)
      return {"healthy": False, "error": str(exc) or type(exc).__name__, "duration": time.monotonic() - started, "timestamp": timestamp}
    return {"healthy": response.status_code < 500, "status": response.status_code, "duration": time.monotonic() - started, "timestamp": timestamp}

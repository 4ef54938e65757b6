"""Shared fixtures for the quiz generation test suite."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from quizgen.ai.providers.base import SimpleModelResponse, TextModel
from quizgen.config import get_settings
from quizgen.main import app
from quizgen.services.runtime import build_runtime


@pytest.fixture
def anyio_backend():
  return "asyncio"


class ScriptedModel(TextModel):
  """Returns queued responses in order and records every call."""

  def __init__(self, responses: list[str | BaseException]) -> None:
    self.name = "scripted-model"
    self._responses = list(responses)
    self.calls: list[dict[str, Any]] = []

  async def generate(self, prompt, *, sampling, policy):
    self.calls.append({"prompt": prompt, "sampling": sampling, "policy": policy})
    if not self._responses:
      raise AssertionError("ScriptedModel ran out of responses")
    response = self._responses.pop(0)
    if isinstance(response, BaseException):
      raise response
    return SimpleModelResponse(content=response)


def quadratic_items(count: int = 5) -> list[dict[str, Any]]:
  """Items that satisfy every axis for topic 二次函数 at 中等 with point 求根公式."""
  return [
    {
      "question": f"第{index + 1}题：应用求根公式求解方程 x^2-5x+6=0 的根是？",
      "options": ["A. 2和3", "B. -2和-3", "C. 1和6", "D. -1和-6"],
      "correctAnswer": "A",
      "explanation": "利用求根公式计算判别式后得到 x=2 或 x=3。",
      "relatedKnowledgePoint": "求根公式",
    }
    for index in range(count)
  ]


def off_target_items(count: int = 5) -> list[dict[str, Any]]:
  """Structurally valid items that miss the knowledge point and the difficulty vocabulary."""
  return [
    {
      "question": f"第{index + 1}题：简单计算 1+{index} 等于多少？",
      "options": [f"A. {index + 1}", f"B. {index + 2}"],
      "correctAnswer": "A",
      "explanation": "这是简单的加法。",
    }
    for index in range(count)
  ]


@pytest.fixture
def scripted_model():
  return ScriptedModel


@pytest.fixture
def quadratic_response():
  def _build(count: int = 5, *, wrap_fence: bool = True) -> str:
    payload = json.dumps(quadratic_items(count), ensure_ascii=False, indent=2)
    return f"好的，以下是生成的题目：\n```json\n{payload}\n```" if wrap_fence else payload

  return _build


@pytest.fixture
def off_target_response():
  def _build(count: int = 5) -> str:
    return json.dumps(off_target_items(count), ensure_ascii=False)

  return _build


@pytest.fixture
def settings():
  return replace(get_settings(), max_retries=2, retry_base_delay=0.01, retry_max_delay=0.02)


@pytest.fixture
async def runtime_factory(settings):
  created = []

  def _build(model: TextModel):
    runtime = build_runtime(settings, model=model)
    created.append(runtime)
    return runtime

  yield _build
  for runtime in created:
    await runtime.stop()


@pytest.fixture
async def async_client():
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.state.runtime = None

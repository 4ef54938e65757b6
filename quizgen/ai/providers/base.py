"""Base interfaces for text completion models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol

from quizgen.ai.providers.policy import RetryPolicy
from quizgen.config import SamplingParams


class ModelResponse(Protocol):
  """Response contract for model outputs."""

  content: str
  usage: dict[str, int] | None


@dataclass
class SimpleModelResponse:
  """Minimal model response structure."""

  content: str
  usage: dict[str, int] | None = None


class TextModel(ABC):
  """Abstract base class for prompt-in, text-out completion models."""

  name: str

  @abstractmethod
  async def generate(self, prompt: str, *, sampling: SamplingParams, policy: RetryPolicy) -> ModelResponse:
    """Generate a completion for the prompt under the given sampling and retry policy."""

  async def health_check(self) -> dict[str, Any]:
    """Report whether the backing service is reachable."""
    return {"healthy": True}

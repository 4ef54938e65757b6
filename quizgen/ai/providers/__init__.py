"""Provider implementations."""

from quizgen.ai.providers.base import ModelResponse, SimpleModelResponse, TextModel
from quizgen.ai.providers.dashscope import DashScopeModel
from quizgen.ai.providers.policy import RetryPolicy, request_with_retry, scale_timeout

__all__ = ["ModelResponse", "SimpleModelResponse", "TextModel", "DashScopeModel", "RetryPolicy", "request_with_retry", "scale_timeout"]

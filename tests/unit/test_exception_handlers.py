"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from quizgen.core.exceptions import _error_body, _json_safe, _scrub_validation_errors


def test_scrub_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Validation errors stay JSON-serializable and never echo the request payload."""
  errors = [{"type": "value_error", "loc": ("body", "topic"), "msg": "Value error, topic must not be blank", "input": "   ", "ctx": {"error": ValueError("topic must not be blank"), "input": "   "}}]
  scrubbed = _scrub_validation_errors(errors)
  assert "input" not in scrubbed[0]
  assert scrubbed[0]["loc"] == ["body", "topic"]
  assert scrubbed[0]["ctx"]["error"] == "ValueError: topic must not be blank"
  assert "input" not in scrubbed[0]["ctx"]


def test_json_safe_handles_nested_values() -> None:
  assert _json_safe({1: {"a"}, "b": (1, None)}) == {"1": ["a"], "b": [1, None]}
  assert _json_safe(RuntimeError()) == "RuntimeError"


def test_error_body_includes_request_id_when_present() -> None:
  assert _error_body("nope") == {"detail": "nope"}
  assert _error_body("nope", "req-1") == {"detail": "nope", "requestId": "req-1"}

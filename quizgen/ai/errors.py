"""Error taxonomy for the quiz generation pipeline."""

from __future__ import annotations

from typing import Iterable, Literal

Classification = Literal["timeout", "connection", "rate_limit", "auth", "server", "client"]

_TIMEOUT_HINTS: tuple[str, ...] = ("timeout", "timed out")
_CONNECTION_HINTS: tuple[str, ...] = (
  "connection refused",
  "connection reset",
  "name or service not known",
  "nodename nor servname",
  "temporary failure in name resolution",
  "getaddrinfo",
  "network is unreachable",
)


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  for hint in hints:
    if hint in message:
      return True
  return False


class QuizGenerationError(Exception):
  """Base class for pipeline errors."""


class ParseError(QuizGenerationError):
  """Raised when every repair strategy failed to produce JSON."""

  def __init__(self, message: str, *, position: int | None = None, snippet: str = "") -> None:
    super().__init__(message)
    self.position = position
    self.snippet = snippet


class RequestError(QuizGenerationError):
  """Base class for completion request failures, carrying retry diagnostics."""

  classification: Classification = "client"
  retryable = False

  def __init__(self, message: str, *, status_code: int | None = None, cause: BaseException | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.cause = cause
    self.attempts = 1
    self.duration = 0.0

  def describe(self) -> str:
    """Return a human readable failure description including retry diagnostics."""
    label = {
      "timeout": "request timed out",
      "connection": "could not reach the completion service",
      "rate_limit": "completion service is rate limiting requests",
      "auth": "completion service rejected the credentials",
      "server": "completion service returned a server error",
      "client": "completion service rejected the request",
    }[self.classification]
    status = f" (HTTP {self.status_code})" if self.status_code is not None else ""
    return f"{label}{status} after {self.attempts} attempt(s) in {self.duration:.1f}s: {self}"


class NetworkError(RequestError):
  """Timeout, refused connection or DNS failure."""

  retryable = True

  def __init__(self, message: str, *, timeout: bool = False, cause: BaseException | None = None) -> None:
    super().__init__(message, cause=cause)
    self.classification = "timeout" if timeout else "connection"


class RateLimitedError(RequestError):
  """HTTP 429 from the completion service."""

  classification: Classification = "rate_limit"
  retryable = True


class ServerError(RequestError):
  """HTTP 5xx from the completion service."""

  classification: Classification = "server"
  retryable = True


class ClientError(RequestError):
  """Non-retryable HTTP 4xx from the completion service."""

  def __init__(self, message: str, *, status_code: int | None = None, cause: BaseException | None = None) -> None:
    super().__init__(message, status_code=status_code, cause=cause)
    self.classification = "auth" if status_code in {401, 403} else "client"


class ValidationBelowThreshold(QuizGenerationError):
  """Soft signal that generated content scored below the regeneration threshold."""

  def __init__(self, score: float, threshold: float) -> None:
    super().__init__(f"Overall validation score {score:.2f} is below {threshold:.2f}.")
    self.score = score
    self.threshold = threshold


class TaskNotFoundError(QuizGenerationError):
  """Raised when a task id is unknown or already collected."""


class TaskForbiddenError(QuizGenerationError):
  """Raised when a caller polls a task it does not own."""


def error_for_status(status_code: int, message: str) -> RequestError:
  """Map an HTTP status code to the matching request error."""
  if status_code == 429:
    return RateLimitedError(message, status_code=status_code)
  if status_code >= 500:
    return ServerError(message, status_code=status_code)
  return ClientError(message, status_code=status_code)


def is_timeout_message(message: str) -> bool:
  """Return True when an error message describes a timeout."""
  return _match_hint(message.lower(), _TIMEOUT_HINTS)


def is_connection_message(message: str) -> bool:
  """Return True when an error message describes a connection or DNS failure."""
  return _match_hint(message.lower(), _CONNECTION_HINTS)

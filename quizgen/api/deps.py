"""Request dependencies for the quiz API."""

from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from quizgen.services.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
  """Return the runtime attached to the application during startup."""
  runtime = getattr(request.app.state, "runtime", None)
  if runtime is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting.")
  return runtime


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:  # noqa: B008
  """Resolve the caller identity forwarded by the upstream auth layer."""
  if x_user_id is None or not x_user_id.strip():
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity.")
  return x_user_id.strip()

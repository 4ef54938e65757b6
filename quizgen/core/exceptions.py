"""HTTP exception handlers that keep error bodies small and free of request payloads."""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from quizgen.ai.errors import QuizGenerationError

logger = logging.getLogger("uvicorn.error")

_MASKED_DETAIL = "Internal Server Error"
_REQUEST_ID_HEADER = "x-request-id"


def _json_safe(value: Any) -> Any:
  """Reduce arbitrary values to JSON primitives; exceptions become "Type: message"."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set | frozenset):
    return [_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    text = str(value)
    return f"{type(value).__name__}: {text}" if text else type(value).__name__
  return str(value)


def _request_id(request: Request) -> str | None:
  return request.headers.get(_REQUEST_ID_HEADER) or None


def _error_body(detail: Any, request_id: str | None = None) -> dict[str, Any]:
  body: dict[str, Any] = {"detail": detail}
  if request_id:
    body["requestId"] = request_id
  return body


def _scrub_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Drop echoed `input` values from pydantic errors and their context."""
  scrubbed: list[dict[str, Any]] = []
  for error in errors:
    entry = {key: value for key, value in error.items() if key != "input"}
    context = entry.get("ctx")
    if isinstance(context, dict):
      entry["ctx"] = {key: value for key, value in context.items() if key != "input"}
    scrubbed.append(_json_safe(entry))
  return scrubbed


def _masked(request: Request, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
  return JSONResponse(status_code=status_code, content=_error_body(_MASKED_DETAIL, _request_id(request)), headers=headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  logger.error("Unhandled %s on %s %s request_id=%s", type(exc).__name__, request.method, request.url.path, _request_id(request), exc_info=exc)
  return _masked(request, status.HTTP_500_INTERNAL_SERVER_ERROR)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  errors = _scrub_validation_errors(list(exc.errors()))
  logger.warning("Rejected %s %s request_id=%s errors=%s", request.method, request.url.path, _request_id(request), errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_body(errors, _request_id(request)))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Pass 4xx details through; mask anything 5xx."""
  from quizgen.config import get_settings

  if exc.status_code >= 500:
    logger.error("HTTP %s on %s request_id=%s detail=%s", exc.status_code, request.url.path, _request_id(request), exc.detail)
    return _masked(request, exc.status_code, exc.headers)
  if get_settings().log_http_4xx:
    logger.warning("HTTP %s on %s request_id=%s detail=%s", exc.status_code, request.url.path, _request_id(request), exc.detail)
  return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail, _request_id(request)), headers=exc.headers)


async def quiz_generation_exception_handler(request: Request, exc: QuizGenerationError) -> JSONResponse:
  logger.error("Pipeline error %s escaped %s request_id=%s: %s", type(exc).__name__, request.url.path, _request_id(request), exc)
  return _masked(request, status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
  app.add_exception_handler(Exception, unhandled_exception_handler)
  app.add_exception_handler(HTTPException, http_exception_handler)
  app.add_exception_handler(QuizGenerationError, quiz_generation_exception_handler)
  app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from quizgen.core.logging import initialize_logging
from quizgen.services.runtime import build_runtime


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging and own the runtime for the lifetime of the app."""
  from quizgen.config import get_settings

  settings = get_settings()
  logger = logging.getLogger(__name__)

  try:
    initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except RuntimeError:
    # Keep serving with the default handlers when the log directory is unavailable.
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  if settings.api_key is None:
    logger.warning("QUIZGEN_API_KEY is not set; completion requests will be rejected upstream.")

  runtime = build_runtime(settings)
  app.state.runtime = runtime
  await runtime.start()
  try:
    yield
  finally:
    await runtime.stop()
    app.state.runtime = None
    logger.info("Shutdown complete.")

from __future__ import annotations

from fastapi import FastAPI

from quizgen import __version__
from quizgen.api.routes import jobs, monitor
from quizgen.core.exceptions import register_exception_handlers
from quizgen.core.lifespan import lifespan

app = FastAPI(title="Quiz Generation Engine", version=__version__, lifespan=lifespan)
register_exception_handlers(app)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(jobs.router, prefix="/v1/quizzes/jobs", tags=["jobs"])
app.include_router(monitor.router, prefix="/v1/monitor", tags=["monitor"])

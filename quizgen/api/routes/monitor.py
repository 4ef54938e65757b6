from fastapi import APIRouter, Depends, status

from quizgen.api.deps import get_runtime
from quizgen.api.models import MonitorHealthResponse
from quizgen.services.runtime import Runtime

router = APIRouter()


@router.get("/health", response_model=MonitorHealthResponse)
async def monitor_health(runtime: Runtime = Depends(get_runtime)) -> MonitorHealthResponse:  # noqa: B008
  """Return rolling completion-call statistics and recommendations."""
  return MonitorHealthResponse(**runtime.monitor.health_status())


@router.get("/upstream")
async def upstream_health(runtime: Runtime = Depends(get_runtime)) -> dict:  # noqa: B008
  """Probe the completion endpoint directly."""
  return await runtime.model.health_check()


@router.post("/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_monitor(runtime: Runtime = Depends(get_runtime)) -> None:  # noqa: B008
  """Clear accumulated call statistics and alerts."""
  runtime.monitor.reset()

import logging

from fastapi import APIRouter, Depends, status

from quizgen.api.deps import get_current_user_id, get_runtime
from quizgen.api.models import GenerateQuizRequest, JobCreateResponse, JobStatusResponse
from quizgen.services import jobs as job_service
from quizgen.services.runtime import Runtime

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_job(  # noqa: B008
  request: GenerateQuizRequest,
  runtime: Runtime = Depends(get_runtime),  # noqa: B008
  user_id: str = Depends(get_current_user_id),  # noqa: B008
) -> JobCreateResponse:
  """Create a background quiz generation job."""
  return job_service.create_job(request, runtime, user_id=user_id)


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(  # noqa: B008
  job_id: str,
  runtime: Runtime = Depends(get_runtime),  # noqa: B008
  user_id: str = Depends(get_current_user_id),  # noqa: B008
) -> JobStatusResponse:
  """Fetch the progress and result of a quiz generation job."""
  return job_service.get_job_status(job_id, runtime, user_id=user_id)

import logging

from fastapi import HTTPException, status

from quizgen.ai.errors import TaskForbiddenError, TaskNotFoundError
from quizgen.api.models import GenerateQuizRequest, JobCreateResponse, JobStatusResponse
from quizgen.services.runtime import Runtime

logger = logging.getLogger(__name__)

_JOB_NOT_FOUND_MSG = "Job not found."


def create_job(request: GenerateQuizRequest, runtime: Runtime, *, user_id: str) -> JobCreateResponse:
  """Register a generation job and start it in the background."""
  job = runtime.submit(user_id, request.to_domain())
  return JobCreateResponse(task_id=job.job_id, status=job.status, message="Quiz generation started.")


def get_job_status(job_id: str, runtime: Runtime, *, user_id: str) -> JobStatusResponse:
  """Fetch the polling view of a job owned by the caller."""
  try:
    view = runtime.poll_progress(job_id, user_id)
  except TaskNotFoundError as exc:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG) from exc
  except TaskForbiddenError as exc:
    logger.warning("User %s attempted to read job %s owned by another user", user_id, job_id)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.") from exc
  return JobStatusResponse(task_id=view["taskId"], status=view["status"], progress=view["progress"], message=view["message"], result=view["result"], error=view["error"])

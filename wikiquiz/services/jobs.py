import logging

from fastapi import HTTPException, status

from wikiquiz.api.models import JobCreateRequest, JobCreateResponse, JobListResponse, JobSnapshotResponse
from wikiquiz.jobs.models import Job
from wikiquiz.services.container import Services

logger = logging.getLogger(__name__)

_JOB_NOT_FOUND_MSG = "Job not found."


def _to_response(job: Job) -> JobSnapshotResponse:
  return JobSnapshotResponse.model_validate(job.snapshot())


async def create_job(request: JobCreateRequest, services: Services) -> JobCreateResponse:
  """Validate a submission and start it in the background."""
  orchestrator = services.orchestrator
  # ValidationError propagates to the domain handler and becomes a 400.
  spec = orchestrator.build_spec(
    source_id=request.source_id,
    group_selectors=request.group_selectors,
    individual_locators=request.individual_locators,
    call_budget=request.call_budget,
    target_question_density=request.target_question_density,
    model_id=request.model_id,
    prompt_template=request.prompt_template,
    title_name=request.title_name,
    temperature=request.temperature,
  )
  job_id = await orchestrator.submit(spec)
  return JobCreateResponse(job_id=job_id)


def get_job_status(job_id: str, services: Services) -> JobSnapshotResponse:
  job = services.orchestrator.get(job_id)
  if job is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)
  return _to_response(job)


def list_jobs(services: Services, limit: int | None = None) -> JobListResponse:
  """Return recent jobs, newest first, capped at the configured history size."""
  cap = services.job_history_limit
  effective = cap if limit is None else max(1, min(limit, cap))
  return JobListResponse(jobs=[_to_response(job) for job in services.orchestrator.recent(effective)])


def stop_job(job_id: str, services: Services) -> JobSnapshotResponse:
  job = services.orchestrator.request_stop(job_id)
  if job is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)
  logger.info("Stop requested for job %s (status=%s)", job_id, job.status)
  return _to_response(job)

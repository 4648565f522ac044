import logging

from fastapi import APIRouter, Depends, Query, status

from wikiquiz.api.deps import get_services
from wikiquiz.api.models import JobCreateRequest, JobCreateResponse, JobListResponse, JobSnapshotResponse
from wikiquiz.services import jobs as job_service
from wikiquiz.services.container import Services

router = APIRouter()
logger = logging.getLogger("wikiquiz.api.routes.jobs")


@router.post("", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_job(  # noqa: B008
  request: JobCreateRequest,
  services: Services = Depends(get_services),  # noqa: B008
) -> JobCreateResponse:
  """Submit a question generation job; processing continues in the background."""
  return await job_service.create_job(request, services)


@router.get("", response_model=JobListResponse)
async def list_jobs(  # noqa: B008
  limit: int | None = Query(default=None, ge=1),
  services: Services = Depends(get_services),  # noqa: B008
) -> JobListResponse:
  """List recent jobs, newest first."""
  return job_service.list_jobs(services, limit)


@router.get("/{job_id}", response_model=JobSnapshotResponse)
async def get_job_status(  # noqa: B008
  job_id: str,
  services: Services = Depends(get_services),  # noqa: B008
) -> JobSnapshotResponse:
  """Fetch progress, counters and the log of a job."""
  return job_service.get_job_status(job_id, services)


@router.post("/{job_id}/stop", response_model=JobSnapshotResponse)
async def stop_job(  # noqa: B008
  job_id: str,
  services: Services = Depends(get_services),  # noqa: B008
) -> JobSnapshotResponse:
  """Ask a running job to stop after the unit it is working on."""
  return job_service.stop_job(job_id, services)

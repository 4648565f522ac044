from fastapi import APIRouter, Depends, Query, status

from wikiquiz.api.deps import get_services
from wikiquiz.api.models import ReviewCreateRequest, ReviewCreateResponse, ReviewListResponse, ReviewSnapshotResponse
from wikiquiz.services import reviews as review_service
from wikiquiz.services.container import Services

router = APIRouter()


@router.post("", response_model=ReviewCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_review(  # noqa: B008
  request: ReviewCreateRequest,
  services: Services = Depends(get_services),  # noqa: B008
) -> ReviewCreateResponse:
  """Score the unreviewed questions of a source in the background."""
  return await review_service.create_review(request, services)


@router.get("", response_model=ReviewListResponse)
async def list_reviews(  # noqa: B008
  limit: int | None = Query(default=None, ge=1),
  services: Services = Depends(get_services),  # noqa: B008
) -> ReviewListResponse:
  return review_service.list_reviews(services, limit)


@router.get("/{review_id}", response_model=ReviewSnapshotResponse)
async def get_review_status(  # noqa: B008
  review_id: str,
  services: Services = Depends(get_services),  # noqa: B008
) -> ReviewSnapshotResponse:
  return review_service.get_review_status(review_id, services)


@router.post("/{review_id}/stop", response_model=ReviewSnapshotResponse)
async def stop_review(  # noqa: B008
  review_id: str,
  services: Services = Depends(get_services),  # noqa: B008
) -> ReviewSnapshotResponse:
  """Ask a running review to stop after its current batch."""
  return review_service.stop_review(review_id, services)

import logging

from fastapi import HTTPException, status

from wikiquiz.api.models import ReviewCreateRequest, ReviewCreateResponse, ReviewListResponse, ReviewSnapshotResponse, ReviewStatsResponse
from wikiquiz.errors import StorageError
from wikiquiz.jobs.review import ReviewRun
from wikiquiz.services.container import Services

logger = logging.getLogger(__name__)

_REVIEW_NOT_FOUND_MSG = "Review not found."


def _to_response(run: ReviewRun) -> ReviewSnapshotResponse:
  return ReviewSnapshotResponse.model_validate(run.snapshot())


async def create_review(request: ReviewCreateRequest, services: Services) -> ReviewCreateResponse:
  """Validate a review request and start scoring in the background."""
  reviewer = services.reviewer
  spec = reviewer.build_spec(
    source_id=request.source_id,
    batch_size=request.batch_size,
    model_id=request.model_id,
    prompt_template=request.prompt_template,
    max_questions=request.max_questions,
  )
  review_id = await reviewer.submit(spec)
  return ReviewCreateResponse(review_id=review_id)


def get_review_status(review_id: str, services: Services) -> ReviewSnapshotResponse:
  run = services.reviewer.get(review_id)
  if run is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_REVIEW_NOT_FOUND_MSG)
  return _to_response(run)


def list_reviews(services: Services, limit: int | None = None) -> ReviewListResponse:
  cap = services.job_history_limit
  effective = cap if limit is None else max(1, min(limit, cap))
  return ReviewListResponse(reviews=[_to_response(run) for run in services.reviewer.recent(effective)])


def stop_review(review_id: str, services: Services) -> ReviewSnapshotResponse:
  run = services.reviewer.request_stop(review_id)
  if run is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_REVIEW_NOT_FOUND_MSG)
  logger.info("Stop requested for review %s (status=%s)", review_id, run.status)
  return _to_response(run)


async def get_review_stats(source_id: str, services: Services) -> ReviewStatsResponse:
  """Report how many questions of a source are scored, and how."""
  try:
    stats = await services.questions.review_stats(source_id)
  except StorageError as exc:
    logger.error("Review stats failed for %s: %s", source_id, exc)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Question store unavailable.") from exc
  return ReviewStatsResponse.model_validate({"sourceId": source_id, **stats.as_dict()})

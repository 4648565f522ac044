from fastapi import APIRouter, Depends, Query

from wikiquiz.api.deps import get_services
from wikiquiz.api.models import QuestionDeleteRequest, QuestionDeleteResponse, QuestionListResponse, QuestionStatsResponse
from wikiquiz.services import questions as question_service
from wikiquiz.services.container import Services
from wikiquiz.storage.questions_repo import QuestionFilters

router = APIRouter()


@router.get("", response_model=QuestionListResponse)
async def list_questions(  # noqa: B008
  source_id: str | None = Query(default=None, alias="sourceId"),
  title_id: int | None = Query(default=None, alias="titleId"),
  group_label: str | None = Query(default=None, alias="groupLabel"),
  model_id: str | None = Query(default=None, alias="modelId"),
  scores: str | None = Query(default=None, description="Comma-separated review scores, e.g. 1,2."),
  limit: int = Query(default=50, ge=1, le=500),
  services: Services = Depends(get_services),  # noqa: B008
) -> QuestionListResponse:
  """Browse generated questions with their provenance."""
  filters = QuestionFilters(
    source_id=source_id,
    title_id=title_id,
    group_label=group_label,
    model_id=model_id,
    review_scores=question_service.parse_score_filter(scores),
    limit=limit,
  )
  return await question_service.list_questions(filters, services)


@router.get("/stats", response_model=QuestionStatsResponse)
async def question_stats(  # noqa: B008
  source_id: str | None = Query(default=None, alias="sourceId"),
  services: Services = Depends(get_services),  # noqa: B008
) -> QuestionStatsResponse:
  """Count stored questions by source, group, section, model and title."""
  return await question_service.get_question_stats(source_id, services)


@router.delete("/bulk", response_model=QuestionDeleteResponse)
async def delete_questions(  # noqa: B008
  request: QuestionDeleteRequest,
  services: Services = Depends(get_services),  # noqa: B008
) -> QuestionDeleteResponse:
  """Delete questions by id, e.g. the low scorers of a review."""
  return await question_service.delete_questions(request.question_ids, services)

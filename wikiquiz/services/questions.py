import logging
from collections.abc import Sequence

from fastapi import HTTPException, status

from wikiquiz.api.models import QuestionDeleteResponse, QuestionItem, QuestionListResponse, QuestionStatsResponse
from wikiquiz.errors import StorageError
from wikiquiz.services.container import Services
from wikiquiz.storage.questions_repo import REVIEW_SCORES, QuestionFilters

logger = logging.getLogger(__name__)

_STORE_UNAVAILABLE_MSG = "Question store unavailable."


def _unavailable(action: str, exc: StorageError) -> HTTPException:
  logger.error("Question %s failed: %s", action, exc)
  return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=_STORE_UNAVAILABLE_MSG)


def parse_score_filter(raw: str | None) -> tuple[int, ...] | None:
  """Parse a comma-separated score list such as ``"1,2"``; raises a 400 on bad input."""
  if raw is None or not raw.strip():
    return None
  scores: list[int] = []
  for part in raw.split(","):
    token = part.strip()
    if not token.isdigit() or int(token) not in REVIEW_SCORES:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="scores must be a comma-separated list of integers from 1 to 5.")
    if int(token) not in scores:
      scores.append(int(token))
  return tuple(scores)


async def list_questions(filters: QuestionFilters, services: Services) -> QuestionListResponse:
  """Return stored questions matching the filters, newest first."""
  try:
    stored = await services.questions.query(filters)
  except StorageError as exc:
    raise _unavailable("query", exc) from exc
  return QuestionListResponse(questions=[QuestionItem.model_validate(question.as_dict()) for question in stored])


async def get_question_stats(source_id: str | None, services: Services) -> QuestionStatsResponse:
  try:
    stats = await services.questions.stats(source_id)
  except StorageError as exc:
    raise _unavailable("stats", exc) from exc
  return QuestionStatsResponse.model_validate(stats.as_dict())


async def delete_questions(question_ids: Sequence[int], services: Services) -> QuestionDeleteResponse:
  try:
    deleted = await services.questions.delete(question_ids)
  except StorageError as exc:
    raise _unavailable("delete", exc) from exc
  logger.info("Deleted %d of %d requested questions", deleted, len(question_ids))
  return QuestionDeleteResponse(deleted_count=deleted)

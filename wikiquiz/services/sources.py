import logging

from fastapi import HTTPException, status

from wikiquiz.api.models import NameListResponse, SourceStatsResponse, TitleInfo, TitleSearchResponse
from wikiquiz.errors import ContentAcquisitionError, LedgerUnavailable, TitleResolutionError
from wikiquiz.services.container import Services

logger = logging.getLogger(__name__)


async def get_source_stats(source_id: str, services: Services) -> SourceStatsResponse:
  """Summarize what the ledger holds for one source."""
  try:
    stats = await services.ledger.stats(source_id)
  except LedgerUnavailable as exc:
    logger.error("Ledger stats failed for %s: %s", source_id, exc)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Ledger unavailable.") from exc
  return SourceStatsResponse.model_validate(stats.as_dict())


async def list_groups(source_id: str, prefix: str, limit: int, services: Services) -> NameListResponse:
  try:
    groups = await services.content.list_groups(source_id, prefix=prefix, limit=limit)
  except ContentAcquisitionError as exc:
    logger.warning("Category listing failed for %s: %s", source_id, exc)
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
  return NameListResponse(items=groups)


async def search_pages(source_id: str, prefix: str, limit: int, services: Services) -> NameListResponse:
  try:
    pages = await services.content.search_pages(source_id, prefix, limit=limit)
  except ContentAcquisitionError as exc:
    logger.warning("Page search failed for %s: %s", source_id, exc)
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
  return NameListResponse(items=pages)


async def search_titles(query: str, limit: int, services: Services) -> TitleSearchResponse:
  if services.title_resolver is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Title lookup is not configured.")
  try:
    titles = await services.title_resolver.search(query, limit=limit)
  except TitleResolutionError as exc:
    logger.warning("Title search failed for %r: %s", query, exc)
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
  return TitleSearchResponse(titles=[TitleInfo.model_validate(title.as_dict()) for title in titles])

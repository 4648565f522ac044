from fastapi import APIRouter, Depends, Query

from wikiquiz.api.deps import get_services
from wikiquiz.api.models import NameListResponse, ReviewStatsResponse, SourceStatsResponse
from wikiquiz.services import reviews as review_service
from wikiquiz.services import sources as source_service
from wikiquiz.services.container import Services

router = APIRouter()


@router.get("/{source_id}/stats", response_model=SourceStatsResponse)
async def source_stats(  # noqa: B008
  source_id: str,
  services: Services = Depends(get_services),  # noqa: B008
) -> SourceStatsResponse:
  """Report processed units and question totals recorded for a source."""
  return await source_service.get_source_stats(source_id, services)


@router.get("/{source_id}/groups", response_model=NameListResponse)
async def list_groups(  # noqa: B008
  source_id: str,
  prefix: str = Query(default=""),
  limit: int = Query(default=500, ge=1, le=500),
  services: Services = Depends(get_services),  # noqa: B008
) -> NameListResponse:
  """List the categories a job can select."""
  return await source_service.list_groups(source_id, prefix, limit, services)


@router.get("/{source_id}/pages", response_model=NameListResponse)
async def search_pages(  # noqa: B008
  source_id: str,
  prefix: str = Query(min_length=1),
  limit: int = Query(default=10, ge=1, le=50),
  services: Services = Depends(get_services),  # noqa: B008
) -> NameListResponse:
  """Autocomplete page titles by prefix."""
  return await source_service.search_pages(source_id, prefix, limit, services)


@router.get("/{source_id}/review-stats", response_model=ReviewStatsResponse)
async def review_stats(  # noqa: B008
  source_id: str,
  services: Services = Depends(get_services),  # noqa: B008
) -> ReviewStatsResponse:
  """Report review coverage and the score distribution for a source."""
  return await review_service.get_review_stats(source_id, services)

from fastapi import APIRouter, Depends, Query

from wikiquiz.api.deps import get_services
from wikiquiz.api.models import TitleSearchResponse
from wikiquiz.services import sources as source_service
from wikiquiz.services.container import Services

router = APIRouter()


@router.get("", response_model=TitleSearchResponse)
async def search_titles(  # noqa: B008
  search: str = Query(min_length=1),
  limit: int = Query(default=10, ge=1, le=25),
  services: Services = Depends(get_services),  # noqa: B008
) -> TitleSearchResponse:
  """Look up AniList titles to attach to a job."""
  return await source_service.search_titles(search, limit, services)

from typing import Literal

from fastapi import APIRouter, Depends, Query

from wikiquiz.api.deps import get_services
from wikiquiz.api.models import ModelListResponse, ProviderHealthResponse, RecommendedModelResponse
from wikiquiz.services import catalog as catalog_service
from wikiquiz.services.container import Services

router = APIRouter()


@router.get("", response_model=ModelListResponse)
async def list_models(  # noqa: B008
  provider: Literal["openai", "gemini"] | None = Query(default=None),
  services: Services = Depends(get_services),  # noqa: B008
) -> ModelListResponse:
  """List catalog models and their capabilities."""
  return catalog_service.get_models(services, provider)


@router.get("/recommended", response_model=RecommendedModelResponse)
async def recommended_model(use_case: str = Query(default="default", alias="useCase")) -> RecommendedModelResponse:
  return catalog_service.get_recommended(use_case)


@router.get("/health", response_model=ProviderHealthResponse)
async def provider_health(services: Services = Depends(get_services)) -> ProviderHealthResponse:  # noqa: B008
  """Check connectivity to every configured provider."""
  return await catalog_service.get_provider_health(services)

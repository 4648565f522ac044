"""Model catalog and provider health lookups for the API."""

from wikiquiz.ai.catalog import ModelSpec, ProviderName, list_models, recommend_model
from wikiquiz.api.models import ModelInfo, ModelListResponse, ProviderHealth, ProviderHealthResponse, RecommendedModelResponse
from wikiquiz.services.container import Services


def _to_info(spec: ModelSpec) -> ModelInfo:
  return ModelInfo.model_validate(spec.as_dict())


def get_models(services: Services, provider: ProviderName | None = None) -> ModelListResponse:
  specs = list_models(provider)
  return ModelListResponse(models=[_to_info(spec) for spec in specs], default_model=services.orchestrator.settings.default_model)


def get_recommended(use_case: str) -> RecommendedModelResponse:
  return RecommendedModelResponse(use_case=use_case, model=_to_info(recommend_model(use_case)))


async def get_provider_health(services: Services) -> ProviderHealthResponse:
  """Ping one model per configured provider."""
  results = await services.gateway.check_connections()
  return ProviderHealthResponse(providers=[ProviderHealth.model_validate(result.as_dict()) for result in results])

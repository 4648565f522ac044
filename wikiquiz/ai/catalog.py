"""Static model catalog mapping model ids to providers and capabilities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from wikiquiz.errors import UnknownModel

ProviderName = Literal["openai", "gemini"]
UseCase = Literal["speed", "quality", "cost", "default"]


@dataclass(frozen=True)
class ModelSpec:
  """Capabilities advertised for one model id."""

  id: str
  provider: ProviderName
  label: str
  description: str
  supports_function_calling: bool
  supports_structured_output: bool

  def as_dict(self) -> dict[str, Any]:
    return {
      "id": self.id,
      "provider": self.provider,
      "label": self.label,
      "description": self.description,
      "supportsFunctionCalling": self.supports_function_calling,
      "supportsStructuredOutput": self.supports_structured_output,
    }


MODEL_CATALOG: dict[str, ModelSpec] = {
  spec.id: spec
  for spec in (
    ModelSpec("gpt-4o-mini", "openai", "GPT-4o Mini", "Fast and cost-effective, best for most use cases", True, False),
    ModelSpec("gpt-4.1", "openai", "GPT-4.1", "Higher quality, slower", True, False),
    ModelSpec("gpt-4.1-mini", "openai", "GPT-4.1 Mini", "Faster 4.1", True, False),
    ModelSpec("o4-mini", "openai", "o4-mini", "Reasoning model", True, False),
    ModelSpec("gemini-2.5-pro", "gemini", "Gemini 2.5 Pro", "Most capable model, higher quality but slower", True, True),
    ModelSpec("gemini-2.5-flash", "gemini", "Gemini 2.5 Flash", "Fast and efficient, good for most use cases", True, True),
  )
}

# Preference order per use case; the first id present in the catalog wins.
_RECOMMENDATIONS: dict[str, tuple[str, ...]] = {
  "speed": ("gpt-4o-mini", "gemini-2.5-flash"),
  "quality": ("gemini-2.5-pro", "gpt-4.1"),
  "cost": ("gpt-4o-mini", "gemini-2.5-flash"),
  "default": ("gpt-4o-mini",),
}


def get_model_spec(model_id: str, catalog: Mapping[str, ModelSpec] | None = None) -> ModelSpec:
  """Look up a model id, raising UnknownModel when it is not in the catalog."""
  spec = (MODEL_CATALOG if catalog is None else catalog).get(model_id)
  if spec is None:
    raise UnknownModel(model_id)
  return spec


def list_models(provider: ProviderName | None = None) -> list[ModelSpec]:
  return [spec for spec in MODEL_CATALOG.values() if provider is None or spec.provider == provider]


def recommend_model(use_case: str = "default") -> ModelSpec:
  """Pick a model for a use case; unknown use cases get the default pick."""
  for model_id in _RECOMMENDATIONS.get(use_case, _RECOMMENDATIONS["default"]):
    if model_id in MODEL_CATALOG:
      return MODEL_CATALOG[model_id]
  return next(iter(MODEL_CATALOG.values()))

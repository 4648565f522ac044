"""Provider registry for question generation models."""

from __future__ import annotations

from wikiquiz.ai.providers.base import Provider
from wikiquiz.config import Settings


def build_providers(settings: Settings) -> dict[str, Provider]:
  """Build one provider per catalog provider name from configured credentials."""
  from wikiquiz.ai.providers.gemini import GeminiProvider
  from wikiquiz.ai.providers.openai import OpenAIProvider

  return {
    "openai": OpenAIProvider(settings.openai_api_key, timeout_seconds=settings.provider_timeout_seconds),
    "gemini": GeminiProvider(settings.gemini_api_key, timeout_seconds=settings.provider_timeout_seconds),
  }

"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import logging
from typing import Any, Final

from google import genai
from google.genai import errors as genai_errors

from wikiquiz.ai.providers.base import MAX_OUTPUT_TOKENS, QUESTION_TOOL_DESCRIPTION, QUESTION_TOOL_NAME, SYSTEM_PROMPT, ModelOutput, Provider, QuestionModel, questions_schema
from wikiquiz.errors import ProviderUnavailable

_DEFAULT_TEMPERATURE: Final[float] = 0.7

logger = logging.getLogger(__name__)


def _usage(response: Any) -> dict[str, int] | None:
  if not response.usage_metadata:
    return None
  return {"prompt_tokens": response.usage_metadata.prompt_token_count, "completion_tokens": response.usage_metadata.candidates_token_count, "total_tokens": response.usage_metadata.total_token_count}


class GeminiModel(QuestionModel):
  """Gemini model supporting function calling and JSON-schema output."""

  def __init__(self, name: str, client: genai.Client) -> None:
    self.name = name
    self.supports_function_calling = True
    self.supports_structured_output = True
    self._client = client

  async def _generate(self, prompt: str, config: dict[str, Any]) -> Any:
    try:
      # Use the async client to avoid blocking the asyncio event loop.
      return await self._client.aio.models.generate_content(model=self.name, contents=prompt, config=config)
    except genai_errors.APIError as exc:
      raise ProviderUnavailable(f"Gemini request for {self.name} failed: {exc}") from exc

  async def generate_with_function_call(self, prompt: str, *, temperature: float | None = None) -> ModelOutput:
    config = {
      "system_instruction": SYSTEM_PROMPT,
      "temperature": _DEFAULT_TEMPERATURE if temperature is None else temperature,
      "max_output_tokens": MAX_OUTPUT_TOKENS,
      "tools": [{"function_declarations": [{"name": QUESTION_TOOL_NAME, "description": QUESTION_TOOL_DESCRIPTION, "parameters": questions_schema()}]}],
      "tool_config": {"function_calling_config": {"mode": "ANY", "allowed_function_names": [QUESTION_TOOL_NAME]}},
    }
    response = await self._generate(prompt, config)

    function_calls = response.function_calls or []
    if function_calls:
      raw: Any = dict(function_calls[0].args or {})
    else:
      logger.warning("Gemini model %s returned no function call", self.name)
      raw = response.text or ""

    return ModelOutput(raw=raw, mode="function_call", usage=_usage(response))

  async def generate_structured(self, prompt: str, *, temperature: float | None = None) -> ModelOutput:
    config = {
      "system_instruction": SYSTEM_PROMPT,
      "temperature": _DEFAULT_TEMPERATURE if temperature is None else temperature,
      "max_output_tokens": MAX_OUTPUT_TOKENS,
      "response_mime_type": "application/json",
      "response_schema": questions_schema(),
    }
    response = await self._generate(prompt, config)
    logger.debug("Gemini structured response (raw):\n%s", response.text)
    return ModelOutput(raw=response.text or "", mode="structured", usage=_usage(response))

  async def generate_text(self, prompt: str, *, system: str, temperature: float | None = None) -> ModelOutput:
    config = {
      "system_instruction": system,
      "temperature": _DEFAULT_TEMPERATURE if temperature is None else temperature,
      "max_output_tokens": MAX_OUTPUT_TOKENS,
    }
    response = await self._generate(prompt, config)
    return ModelOutput(raw=response.text or "", mode="text", usage=_usage(response))

  async def ping(self) -> str:
    response = await self._generate("Hello, this is a test. Please respond with 'Connection successful'.", {"max_output_tokens": 20})
    return response.text or ""


class GeminiProvider(Provider):
  """Gemini provider."""

  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-2.5-pro", "gemini-2.5-flash"}

  def __init__(self, api_key: str | None, *, timeout_seconds: float = 60.0) -> None:
    self.name = "gemini"
    self._api_key = api_key
    self._timeout_seconds = timeout_seconds
    self._client: genai.Client | None = None

  def _get_client(self) -> genai.Client:
    if not self._api_key:
      raise ProviderUnavailable("GEMINI_API_KEY is not configured.")
    if self._client is None:
      self._client = genai.Client(api_key=self._api_key, http_options={"timeout": int(self._timeout_seconds * 1000)})
    return self._client

  def get_model(self, model: str) -> QuestionModel:
    if model not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model}'.")
    return GeminiModel(model, self._get_client())

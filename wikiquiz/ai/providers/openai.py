"""OpenAI provider implementation using the openai SDK."""

from __future__ import annotations

import logging
from typing import Any, Final

import openai
from openai import AsyncOpenAI

from wikiquiz.ai.providers.base import MAX_OUTPUT_TOKENS, QUESTION_TOOL_DESCRIPTION, QUESTION_TOOL_NAME, SYSTEM_PROMPT, ModelOutput, Provider, QuestionModel, questions_schema
from wikiquiz.errors import ProviderTimeout, ProviderUnavailable

_DEFAULT_TEMPERATURE: Final[float] = 0.7

logger = logging.getLogger(__name__)


def _usage(response: Any) -> dict[str, int] | None:
  if not response.usage:
    return None
  return {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}


class OpenAIModel(QuestionModel):
  """OpenAI chat model answering through a forced tool call."""

  def __init__(self, name: str, client: AsyncOpenAI, *, timeout_seconds: float) -> None:
    self.name = name
    self.supports_function_calling = True
    self.supports_structured_output = False
    self._client = client
    self._timeout_seconds = timeout_seconds

  def _sampling_kwargs(self, temperature: float | None) -> dict[str, Any]:
    # Reasoning models reject sampling parameters.
    if self.name.startswith("o"):
      return {}
    return {"temperature": _DEFAULT_TEMPERATURE if temperature is None else temperature}

  async def generate_with_function_call(self, prompt: str, *, temperature: float | None = None) -> ModelOutput:
    tool = {"type": "function", "function": {"name": QUESTION_TOOL_NAME, "description": QUESTION_TOOL_DESCRIPTION, "parameters": questions_schema()}}
    try:
      response = await self._client.chat.completions.create(
        model=self.name,
        messages=[{"role": "system", "content": SYSTEM_PROMPT}, {"role": "user", "content": prompt}],
        tools=[tool],
        tool_choice={"type": "function", "function": {"name": QUESTION_TOOL_NAME}},
        max_completion_tokens=MAX_OUTPUT_TOKENS,
        **self._sampling_kwargs(temperature),
      )
    except openai.APITimeoutError as exc:
      raise ProviderTimeout(self.name, self._timeout_seconds) from exc
    except openai.APIError as exc:
      raise ProviderUnavailable(f"OpenAI request for {self.name} failed: {exc}") from exc

    message = response.choices[0].message
    tool_calls = message.tool_calls or []
    if tool_calls:
      raw: Any = tool_calls[0].function.arguments
    else:
      # The model answered in prose; the normalizer may still find JSON in it.
      logger.warning("OpenAI model %s returned no tool call", self.name)
      raw = message.content or ""

    return ModelOutput(raw=raw, mode="function_call", usage=_usage(response))

  async def generate_text(self, prompt: str, *, system: str, temperature: float | None = None) -> ModelOutput:
    try:
      response = await self._client.chat.completions.create(
        model=self.name,
        messages=[{"role": "system", "content": system}, {"role": "user", "content": prompt}],
        max_completion_tokens=MAX_OUTPUT_TOKENS,
        **self._sampling_kwargs(temperature),
      )
    except openai.APITimeoutError as exc:
      raise ProviderTimeout(self.name, self._timeout_seconds) from exc
    except openai.APIError as exc:
      raise ProviderUnavailable(f"OpenAI request for {self.name} failed: {exc}") from exc
    return ModelOutput(raw=response.choices[0].message.content or "", mode="text", usage=_usage(response))

  async def ping(self) -> str:
    try:
      response = await self._client.chat.completions.create(model=self.name, messages=[{"role": "user", "content": "Hello, this is a test. Please respond with 'Connection successful'."}], max_completion_tokens=20)
    except openai.APIError as exc:
      raise ProviderUnavailable(f"OpenAI connection test failed: {exc}") from exc
    return response.choices[0].message.content or ""


class OpenAIProvider(Provider):
  """OpenAI provider."""

  _AVAILABLE_MODELS: Final[set[str]] = {"gpt-4o-mini", "gpt-4.1", "gpt-4.1-mini", "o4-mini"}

  def __init__(self, api_key: str | None, *, timeout_seconds: float = 60.0) -> None:
    self.name = "openai"
    self._api_key = api_key
    self._timeout_seconds = timeout_seconds
    self._client: AsyncOpenAI | None = None

  def _get_client(self) -> AsyncOpenAI:
    if not self._api_key:
      raise ProviderUnavailable("OPENAI_API_KEY is not configured.")
    if self._client is None:
      # SDK retries are disabled; retry policy belongs to the orchestrator.
      self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout_seconds, max_retries=0)
    return self._client

  def get_model(self, model: str) -> QuestionModel:
    if model not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported OpenAI model '{model}'.")
    return OpenAIModel(model, self._get_client(), timeout_seconds=self._timeout_seconds)

"""Provider gateway: one entry point for generating questions with any catalog model."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from wikiquiz.ai.catalog import MODEL_CATALOG, ModelSpec, get_model_spec
from wikiquiz.ai.normalizer import GeneratedQuestion, normalize
from wikiquiz.ai.providers.base import ModelOutput, Provider, QuestionModel
from wikiquiz.errors import ProviderError, ProviderInvalidOutput, ProviderTimeout, ProviderUnavailable, SchemaViolation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateOptions:
  temperature: float | None = None
  timeout_seconds: float | None = None


@dataclass(frozen=True)
class ConnectionStatus:
  provider: str
  model_id: str
  ok: bool
  error: str | None = None

  def as_dict(self) -> dict[str, Any]:
    return {"provider": self.provider, "modelId": self.model_id, "ok": self.ok, "error": self.error}


class ProviderGateway:
  """Route a prompt to the provider owning a model id and normalize the result.

  Models advertising function calling are tried in that mode first. When that output
  cannot be normalized and the model also advertises structured output, the gateway
  retries once in structured mode. Timeouts are never retried here.
  """

  def __init__(self, providers: Mapping[str, Provider], *, timeout_seconds: float = 60.0, catalog: Mapping[str, ModelSpec] | None = None) -> None:
    self._providers = dict(providers)
    self._timeout_seconds = timeout_seconds
    self._catalog = catalog if catalog is not None else MODEL_CATALOG

  def _model(self, spec: ModelSpec) -> QuestionModel:
    provider = self._providers.get(spec.provider)
    if provider is None:
      raise ProviderUnavailable(f"No provider registered for '{spec.provider}'.")
    try:
      return provider.get_model(spec.id)
    except ValueError as exc:
      raise ProviderUnavailable(str(exc)) from exc

  async def _call(self, spec: ModelSpec, call: Callable[[], Awaitable[ModelOutput]], timeout_seconds: float) -> ModelOutput:
    started = time.monotonic()
    try:
      output = await asyncio.wait_for(call(), timeout=timeout_seconds)
    except TimeoutError as exc:
      raise ProviderTimeout(spec.id, timeout_seconds) from exc
    except ProviderError:
      raise
    except Exception as exc:  # noqa: BLE001
      # SDK failures outside the mapped error types stay scoped to this call.
      logger.exception("Model %s call failed", spec.id)
      raise ProviderUnavailable(f"{spec.id} call failed: {exc}") from exc
    logger.info("Model %s answered in %dms (%s)", spec.id, int((time.monotonic() - started) * 1000), output.mode)
    return output

  async def generate(self, prompt: str, model_id: str, options: GenerateOptions | None = None) -> list[GeneratedQuestion]:
    """Generate validated questions for `prompt` with `model_id`."""
    options = options or GenerateOptions()
    spec = get_model_spec(model_id, self._catalog)
    model = self._model(spec)
    timeout_seconds = options.timeout_seconds or self._timeout_seconds

    if not spec.supports_function_calling and not spec.supports_structured_output:
      raise ProviderUnavailable(f"Model {spec.id} advertises no question generation mode.")

    if spec.supports_function_calling:
      output = await self._call(spec, lambda: model.generate_with_function_call(prompt, temperature=options.temperature), timeout_seconds)
      try:
        return normalize(output.raw)
      except SchemaViolation as exc:
        if not spec.supports_structured_output:
          raise ProviderInvalidOutput(f"{spec.id} returned unusable output: {exc}") from exc
        logger.warning("Function-call output from %s could not be normalized (%s); retrying with structured output", spec.id, exc)

    output = await self._call(spec, lambda: model.generate_structured(prompt, temperature=options.temperature), timeout_seconds)
    try:
      return normalize(output.raw)
    except SchemaViolation as exc:
      raise ProviderInvalidOutput(f"{spec.id} returned unusable output: {exc}") from exc

  async def complete_text(self, prompt: str, model_id: str, *, system: str, options: GenerateOptions | None = None) -> str:
    """Return the model's free-form answer; an empty answer is ProviderInvalidOutput."""
    options = options or GenerateOptions()
    spec = get_model_spec(model_id, self._catalog)
    model = self._model(spec)
    output = await self._call(spec, lambda: model.generate_text(prompt, system=system, temperature=options.temperature), options.timeout_seconds or self._timeout_seconds)
    text = output.raw if isinstance(output.raw, str) else ""
    if not text.strip():
      raise ProviderInvalidOutput(f"{spec.id} returned an empty answer.")
    return text

  async def check_connections(self, *, timeout_seconds: float | None = None) -> list[ConnectionStatus]:
    """Ping the first catalog model of every registered provider."""
    timeout = timeout_seconds or self._timeout_seconds
    statuses: list[ConnectionStatus] = []
    for provider_name in self._providers:
      specs = [spec for spec in self._catalog.values() if spec.provider == provider_name]
      if not specs:
        continue
      spec = specs[0]
      try:
        model = self._model(spec)
        await asyncio.wait_for(model.ping(), timeout=timeout)
      except TimeoutError:
        statuses.append(ConnectionStatus(provider_name, spec.id, False, f"Timed out after {timeout:g}s"))
      except ProviderError as exc:
        statuses.append(ConnectionStatus(provider_name, spec.id, False, str(exc)))
      else:
        statuses.append(ConnectionStatus(provider_name, spec.id, True))
    return statuses

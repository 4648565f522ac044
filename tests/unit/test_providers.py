from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest

from wikiquiz.ai.providers.base import QUESTION_TOOL_NAME
from wikiquiz.ai.providers.gemini import GeminiModel, GeminiProvider
from wikiquiz.ai.providers.openai import OpenAIModel, OpenAIProvider
from wikiquiz.errors import ProviderTimeout, ProviderUnavailable

ARGUMENTS = '{"questions": [{"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswerIndex": 0}]}'


class FakeCompletions:
  def __init__(self, response: Any = None, error: Exception | None = None) -> None:
    self.response = response
    self.error = error
    self.kwargs: dict[str, Any] = {}

  async def create(self, **kwargs: Any) -> Any:
    self.kwargs = kwargs
    if self.error is not None:
      raise self.error
    return self.response


def _openai_client(completions: FakeCompletions) -> Any:
  return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _chat_response(tool_arguments: str | None, content: str | None = None) -> Any:
  tool_calls = [SimpleNamespace(function=SimpleNamespace(name=QUESTION_TOOL_NAME, arguments=tool_arguments))] if tool_arguments else None
  message = SimpleNamespace(tool_calls=tool_calls, content=content)
  usage = SimpleNamespace(prompt_tokens=10, completion_tokens=20, total_tokens=30)
  return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


@pytest.mark.anyio
async def test_openai_forces_the_question_tool() -> None:
  completions = FakeCompletions(_chat_response(ARGUMENTS))
  model = OpenAIModel("gpt-4o-mini", _openai_client(completions), timeout_seconds=30)

  output = await model.generate_with_function_call("prompt", temperature=0.2)

  assert output.raw == ARGUMENTS
  assert output.mode == "function_call"
  assert output.usage == {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30}
  assert completions.kwargs["tool_choice"] == {"type": "function", "function": {"name": QUESTION_TOOL_NAME}}
  assert completions.kwargs["temperature"] == 0.2


@pytest.mark.anyio
async def test_openai_reasoning_models_omit_temperature_and_fall_back_to_content() -> None:
  completions = FakeCompletions(_chat_response(None, content="Here: " + ARGUMENTS))
  model = OpenAIModel("o4-mini", _openai_client(completions), timeout_seconds=30)

  output = await model.generate_with_function_call("prompt")

  assert "temperature" not in completions.kwargs
  assert output.raw.startswith("Here: ")


@pytest.mark.anyio
async def test_openai_errors_are_mapped() -> None:
  request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
  timeout = OpenAIModel("gpt-4o-mini", _openai_client(FakeCompletions(error=openai.APITimeoutError(request=request))), timeout_seconds=30)
  failure = OpenAIModel("gpt-4o-mini", _openai_client(FakeCompletions(error=openai.APIConnectionError(request=request))), timeout_seconds=30)

  with pytest.raises(ProviderTimeout):
    await timeout.generate_with_function_call("prompt")
  with pytest.raises(ProviderUnavailable):
    await failure.generate_with_function_call("prompt")


def test_providers_require_credentials_and_known_models() -> None:
  with pytest.raises(ProviderUnavailable, match="OPENAI_API_KEY"):
    OpenAIProvider(None).get_model("gpt-4o-mini")
  with pytest.raises(ValueError):
    OpenAIProvider("sk-test").get_model("gemini-2.5-pro")
  with pytest.raises(ProviderUnavailable, match="GEMINI_API_KEY"):
    GeminiProvider(None).get_model("gemini-2.5-pro")
  with pytest.raises(ValueError):
    GeminiProvider("key").get_model("gpt-4o-mini")


class FakeGeminiModels:
  def __init__(self, response: Any) -> None:
    self.response = response
    self.calls: list[dict[str, Any]] = []

  async def generate_content(self, *, model: str, contents: str, config: dict[str, Any]) -> Any:
    self.calls.append({"model": model, "contents": contents, "config": config})
    return self.response


def _gemini_client(models: FakeGeminiModels) -> Any:
  return SimpleNamespace(aio=SimpleNamespace(models=models))


@pytest.mark.anyio
async def test_gemini_function_call_returns_call_arguments() -> None:
  args = {"questions": [{"question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswerIndex": 1}]}
  response = SimpleNamespace(function_calls=[SimpleNamespace(name=QUESTION_TOOL_NAME, args=args)], text=None, usage_metadata=None)
  models = FakeGeminiModels(response)

  output = await GeminiModel("gemini-2.5-flash", _gemini_client(models)).generate_with_function_call("prompt")

  assert output.raw == args
  config = models.calls[0]["config"]
  assert config["tool_config"]["function_calling_config"]["mode"] == "ANY"
  assert config["temperature"] == 0.7


@pytest.mark.anyio
async def test_gemini_structured_output_requests_json_schema() -> None:
  response = SimpleNamespace(function_calls=None, text=ARGUMENTS, usage_metadata=SimpleNamespace(prompt_token_count=1, candidates_token_count=2, total_token_count=3))
  models = FakeGeminiModels(response)

  output = await GeminiModel("gemini-2.5-pro", _gemini_client(models)).generate_structured("prompt", temperature=0.1)

  assert output.raw == ARGUMENTS
  assert output.usage == {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}
  assert models.calls[0]["config"]["response_mime_type"] == "application/json"
  assert models.calls[0]["config"]["response_schema"]["required"] == ["questions"]


@pytest.mark.anyio
async def test_openai_text_answer_sends_the_system_message() -> None:
  completions = FakeCompletions(_chat_response(None, content="[4, 3]"))
  model = OpenAIModel("gpt-4o-mini", _openai_client(completions), timeout_seconds=30)

  output = await model.generate_text("Rate these.", system="Scores only.", temperature=0.3)

  assert output.raw == "[4, 3]"
  assert output.mode == "text"
  assert completions.kwargs["messages"] == [{"role": "system", "content": "Scores only."}, {"role": "user", "content": "Rate these."}]
  assert "tools" not in completions.kwargs
  assert completions.kwargs["temperature"] == 0.3


@pytest.mark.anyio
async def test_gemini_text_answer_uses_a_system_instruction() -> None:
  response = SimpleNamespace(function_calls=None, text="[5]", usage_metadata=None)
  models = FakeGeminiModels(response)

  output = await GeminiModel("gemini-2.5-flash", _gemini_client(models)).generate_text("Rate these.", system="Scores only.", temperature=0.3)

  assert output.raw == "[5]"
  assert output.mode == "text"
  config = models.calls[0]["config"]
  assert config["system_instruction"] == "Scores only."
  assert config["temperature"] == 0.3
  assert "tools" not in config

"""Base interfaces for question-generating model providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

GenerationMode = Literal["function_call", "structured", "text"]

QUESTION_TOOL_NAME = "generate_questions"
QUESTION_TOOL_DESCRIPTION = "Generate multiple-choice questions from a text"
SYSTEM_PROMPT = (
  "You are a helpful assistant that is an expert in generating fun, challenging, and diverse quiz questions. "
  "You will receive wiki text clearly marked with XML tags, followed by reference information and specific instructions."
)
MAX_OUTPUT_TOKENS = 4000


def questions_schema() -> dict[str, Any]:
  """JSON schema for the question array both generation modes request."""
  return {
    "type": "object",
    "properties": {
      "questions": {
        "type": "array",
        "items": {
          "type": "object",
          "properties": {
            "question": {"type": "string", "description": "The question text"},
            "options": {"type": "array", "items": {"type": "string"}, "description": "Exactly four answer options", "minItems": 4, "maxItems": 4},
            "correctAnswerIndex": {"type": "integer", "description": "Zero-based index of the correct option", "minimum": 0, "maximum": 3},
          },
          "required": ["question", "options", "correctAnswerIndex"],
        },
      }
    },
    "required": ["questions"],
  }


@dataclass
class ModelOutput:
  """Raw model output handed to the normalizer."""

  raw: Any
  mode: GenerationMode
  usage: dict[str, int] | None = None


class QuestionModel(ABC):
  """A provider model able to produce question payloads."""

  name: str
  supports_function_calling: bool = False
  supports_structured_output: bool = False

  async def generate_with_function_call(self, prompt: str, *, temperature: float | None = None) -> ModelOutput:
    """Ask the model to answer through the question tool."""
    raise RuntimeError("Function calling is not supported by this model.")

  async def generate_structured(self, prompt: str, *, temperature: float | None = None) -> ModelOutput:
    """Ask the model for JSON constrained by the question schema."""
    raise RuntimeError("Structured output is not supported by this model.")

  async def generate_text(self, prompt: str, *, system: str, temperature: float | None = None) -> ModelOutput:
    """Ask the model for a free-form answer to `prompt`."""
    raise RuntimeError("Plain text generation is not supported by this model.")

  @abstractmethod
  async def ping(self) -> str:
    """Issue a minimal request and return the reply text."""


class Provider(ABC):
  """A family of models sharing credentials and a wire format."""

  name: str

  @abstractmethod
  def get_model(self, model: str) -> QuestionModel:
    """Return the client for a model id."""

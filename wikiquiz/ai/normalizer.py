"""Repair and validate raw provider output into multiple-choice questions.

Providers answer in different shapes: a parsed tool-call argument object, a JSON string,
JSON wrapped in prose, or JSON inside a markdown fence. `normalize` runs an ordered list of
pure extraction strategies until one yields a non-empty question array, then coerces each
item into a `GeneratedQuestion`, repairing the correct-answer index where it can.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from wikiquiz.ai.json_parser import extract_json_block, strip_json_fences, strip_trailing_commas, try_parse_json
from wikiquiz.errors import SchemaViolation

OPTION_COUNT = 4

_TEXT_KEYS = ("question", "questionText", "question_text")
_OPTION_KEYS = ("options", "choices", "answers")
_INDEX_KEYS = ("correctAnswerIndex", "correctAnswer", "correct_answer_index", "correct_answer", "answerIndex", "answer")
_WRAPPER_KEYS = ("text", "content", "arguments", "output")
_LETTER_RE = re.compile(r"^\(?([A-Da-d])[\).:]?$")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedQuestion:
  """A validated multiple-choice question."""

  question_text: str
  options: tuple[str, str, str, str]
  correct_answer_index: int
  repaired: bool = False

  def as_dict(self) -> dict[str, Any]:
    return {"question": self.question_text, "options": list(self.options), "correctAnswerIndex": self.correct_answer_index}


Strategy = Callable[[Any], "list[Any] | None"]


def _question_array(value: Any) -> list[Any] | None:
  if isinstance(value, Mapping):
    questions = value.get("questions")
    if isinstance(questions, list):
      return questions
    # A lone question object is treated as a one-item array.
    if any(key in value for key in _TEXT_KEYS) and any(key in value for key in _OPTION_KEYS):
      return [value]
    return None

  if isinstance(value, list):
    if value and all(isinstance(item, Mapping) for item in value):
      return value
    return None

  questions = getattr(value, "questions", None)
  if isinstance(questions, list):
    return questions
  return None


def _as_text(raw: Any) -> str | None:
  if isinstance(raw, str):
    return raw
  if isinstance(raw, bytes):
    return raw.decode("utf-8", errors="replace")
  if isinstance(raw, Mapping):
    for key in _WRAPPER_KEYS:
      candidate = raw.get(key)
      if isinstance(candidate, str):
        return candidate
  return None


def from_question_field(raw: Any) -> list[Any] | None:
  """Use output that already carries a question array."""
  return _question_array(raw)


def from_json_string(raw: Any) -> list[Any] | None:
  """Parse the whole textual payload as JSON."""
  text = _as_text(raw)
  if text is None:
    return None
  return _question_array(try_parse_json(text.strip()))


def from_balanced_block(raw: Any) -> list[Any] | None:
  """Parse the first balanced object or array embedded in surrounding prose."""
  text = _as_text(raw)
  if text is None:
    return None
  block = extract_json_block(text)
  if block is None:
    return None
  return _question_array(try_parse_json(block))


def from_fenced_block(raw: Any) -> list[Any] | None:
  """Strip markdown code fences and retry."""
  text = _as_text(raw)
  if text is None or "```" not in text:
    return None
  body = strip_json_fences(text)
  parsed = _question_array(try_parse_json(body))
  if parsed:
    return parsed
  block = extract_json_block(body)
  if block is None:
    return None
  return _question_array(try_parse_json(block))


def from_trailing_comma_repair(raw: Any) -> list[Any] | None:
  """Drop trailing commas, the most common near-JSON defect, and retry."""
  text = _as_text(raw)
  if text is None:
    return None
  body = strip_json_fences(text)
  block = extract_json_block(body) or body
  return _question_array(try_parse_json(strip_trailing_commas(block)))


STRATEGIES: tuple[Strategy, ...] = (
  from_question_field,
  from_json_string,
  from_balanced_block,
  from_fenced_block,
  from_trailing_comma_repair,
)


def _first_present(item: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
  for key in keys:
    if key in item and item[key] is not None:
      return item[key]
  return None


def _coerce_options(value: Any) -> list[str] | None:
  if isinstance(value, Mapping):
    value = list(value.values())
  if not isinstance(value, (list, tuple)):
    return None
  options: list[str] = []
  for option in value:
    if isinstance(option, bool) or not isinstance(option, (str, int, float)):
      return None
    options.append(str(option).strip())
  return options


def _strip_separators(value: str) -> str:
  return value.replace(",", "").replace("_", "").replace(" ", "")


def _exact_option(stray: str, options: list[str]) -> int | None:
  for index, option in enumerate(options):
    if option == stray:
      return index
  return None


def _match_option(stray: str, options: list[str]) -> int | None:
  bare = _strip_separators(stray)
  for index, option in enumerate(options):
    if bare and _strip_separators(option) == bare:
      return index

  needle = stray.casefold()
  # Single characters would match almost any option by substring.
  if len(needle) >= 2:
    for index, option in enumerate(options):
      hay = option.casefold()
      if hay and (needle in hay or hay in needle):
        return index
  return None


def _positional(stray: str) -> int | None:
  if stray.isdigit():
    value = int(stray)
    return value if 0 <= value < OPTION_COUNT else None
  match = _LETTER_RE.match(stray)
  if match:
    return "ABCD".index(match.group(1).upper())
  return None


def _resolve_index(value: Any, options: list[str], position: int) -> tuple[int, bool]:
  """Return (index, repaired) for a raw correct-answer value."""
  if not isinstance(value, bool):
    if isinstance(value, int) and 0 <= value < OPTION_COUNT:
      return value, False
    if isinstance(value, float) and value.is_integer() and 0 <= value < OPTION_COUNT:
      return int(value), False

  stray = "" if value is None else str(value).strip()
  index = None
  if stray:
    index = _exact_option(stray, options)
    if index is None:
      index = _positional(stray)
    if index is None:
      index = _match_option(stray, options)
  if index is not None:
    logger.debug("Repaired answer index for question %d from %r to %d", position, value, index)
    return index, True

  logger.warning("Could not repair answer index for question %d (value %r); defaulting to 0", position, value)
  return 0, True


def _coerce_question(item: Any, position: int) -> GeneratedQuestion:
  if not isinstance(item, Mapping):
    raise SchemaViolation(f"Question {position} is not an object.")

  text = _first_present(item, _TEXT_KEYS)
  if not isinstance(text, str) or not text.strip():
    raise SchemaViolation(f"Question {position} has no question text.")

  options = _coerce_options(_first_present(item, _OPTION_KEYS))
  if options is None:
    raise SchemaViolation(f"Question {position} has no options array.")
  if len(options) != OPTION_COUNT:
    raise SchemaViolation(f"Question {position} has {len(options)} options; expected {OPTION_COUNT}.")
  if any(not option for option in options):
    raise SchemaViolation(f"Question {position} has an empty option.")

  index, repaired = _resolve_index(_first_present(item, _INDEX_KEYS), options, position)
  return GeneratedQuestion(
    question_text=text.strip(),
    options=(options[0], options[1], options[2], options[3]),
    correct_answer_index=index,
    repaired=repaired,
  )


def normalize(raw: Any) -> list[GeneratedQuestion]:
  """Turn raw provider output into validated questions or raise SchemaViolation."""
  items: list[Any] | None = None
  for strategy in STRATEGIES:
    items = strategy(raw)
    if items:
      break

  if not items:
    raise SchemaViolation("Provider output does not contain a question array.")

  return [_coerce_question(item, position) for position, item in enumerate(items, start=1)]

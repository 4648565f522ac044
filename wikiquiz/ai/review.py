"""Prompt and response handling for scoring stored questions."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence

from wikiquiz.ai.json_parser import strip_trailing_commas
from wikiquiz.errors import ProviderInvalidOutput
from wikiquiz.storage.questions_repo import StoredQuestion

MIN_SCORE = 1
MAX_SCORE = 5

REVIEW_SYSTEM_PROMPT = "You are a quiz quality expert. Respond only with a JSON array of integer scores from 1-5."

DEFAULT_REVIEW_TEMPLATE = """Rate these {count} quiz questions about "{subject}" on a scale of 1-5:

5 = Excellent (specific details, clear question, balanced options)
4 = Good (clear question, mostly specific, good options)
3 = Acceptable (basic question, adequate options)
2 = Poor (vague question, obvious wrong answers)
1 = Terrible (broken question, impossible to answer)

{questions}

RESPOND WITH ONLY A JSON ARRAY OF {count} INTEGER SCORES:
Example: [4, 5, 3, 2, 4, 5, 1, 3, 4, 2]

Your response:"""

_SCORE_ARRAY_RE = re.compile(r"\[[\d\s,]*\d[\d\s,]*\]")

logger = logging.getLogger(__name__)


def format_question(position: int, question: StoredQuestion) -> str:
  options = "\n".join(f"{chr(65 + index)}. {option}" for index, option in enumerate(question.options))
  return f"Question {position}:\n{question.question_text}\n{options}\nCorrect Answer: {chr(65 + question.correct_answer_index)}"


def build_review_prompt(questions: Sequence[StoredQuestion], *, subject: str, template: str | None = None) -> str:
  """Render the scoring prompt.

  Templates may use the `{count}`, `{subject}` and `{questions}` placeholders. Other
  braces are left untouched, so templates need no escaping.
  """
  rendered = "\n\n".join(format_question(position, question) for position, question in enumerate(questions, start=1))
  prompt = template or DEFAULT_REVIEW_TEMPLATE
  return prompt.replace("{count}", str(len(questions))).replace("{subject}", subject).replace("{questions}", rendered)


def parse_scores(raw: str, expected: int) -> list[int]:
  """Extract up to `expected` scores, clamped to 1-5, from a model answer.

  Raises ProviderInvalidOutput when the answer holds no integer array.
  """
  match = _SCORE_ARRAY_RE.search(raw or "")
  if match is None:
    raise ProviderInvalidOutput("Review answer does not contain a score array.")
  try:
    values = json.loads(strip_trailing_commas(match.group(0)))
  except json.JSONDecodeError as exc:
    raise ProviderInvalidOutput(f"Review answer has a malformed score array: {exc}") from exc

  scores = [max(MIN_SCORE, min(MAX_SCORE, int(value))) for value in values][:expected]
  if len(scores) < expected:
    logger.warning("Review answer scored %d of %d questions", len(scores), expected)
  return scores

"""Prompt construction for question generation."""

from __future__ import annotations

import logging
import re

from wikiquiz.jobs.units import INDIVIDUAL_GROUP, WorkUnit

DEFAULT_INSTRUCTIONS = (
  "Each question should have one correct answer and three incorrect but plausible options. "
  "Create challenging and fun questions. Try and be specific if you can. "
  "For example, mention names of characters, groups, or locations if you have this information. "
  'NEVER mention "according to the text" or something similar.'
)

_OPEN_TAG = "<FANDOM WIKI TEXT>"
_CLOSE_TAG = "</FANDOM WIKI TEXT>"
_OPEN_TAG_RE = re.compile(r"<FANDOM WIKI TEXT>", re.IGNORECASE)
_CLOSE_TAG_RE = re.compile(r"</FANDOM WIKI TEXT>", re.IGNORECASE)

logger = logging.getLogger(__name__)


def _escape_tags(text: str) -> str:
  # Content must not be able to close the wrapping tag early.
  text = _CLOSE_TAG_RE.sub("[/FANDOM WIKI TEXT]", text)
  return _OPEN_TAG_RE.sub("[FANDOM WIKI TEXT]", text)


def reference_line(subject: str, unit: WorkUnit) -> str:
  line = f"For reference, this piece of text is about the Anime: '{subject}' with page title '{unit.locator}'"
  if unit.sub_unit_label:
    line += f" (and section: '{unit.sub_unit_label}')"
  if unit.group_label and unit.group_label.lower() != INDIVIDUAL_GROUP and unit.group_label != unit.locator:
    line += f" from category: '{unit.group_label}'"
  return line


def build_prompt(unit: WorkUnit, *, subject: str, instructions: str | None = None, max_chars: int = 15000) -> str:
  """Wrap a unit's text in tags followed by reference info and instructions."""
  content = unit.text
  if len(content) > max_chars:
    logger.warning("Unit %s/%s is %d chars; truncating to %d", unit.locator, unit.sub_unit_label, len(content), max_chars)
    content = content[:max_chars]

  parts = [
    _OPEN_TAG,
    _escape_tags(content).strip(),
    _CLOSE_TAG,
    reference_line(subject, unit),
    (instructions or "").strip() or DEFAULT_INSTRUCTIONS,
    f"Generate {unit.target_question_count} multiple-choice questions based on the 'FANDOM WIKI TEXT'.",
  ]
  return "\n\n".join(parts)

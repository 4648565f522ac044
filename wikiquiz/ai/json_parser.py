"""Lenient JSON helpers for model output."""

from __future__ import annotations

import json
import re
from typing import Any

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


def try_parse_json(raw: str) -> Any | None:
  """Return the decoded value, or None when `raw` is not strict JSON."""
  try:
    return json.loads(raw)
  except (json.JSONDecodeError, TypeError):
    return None


def extract_json_block(raw: str) -> str | None:
  """Locate the first balanced top-level JSON object or array in `raw`."""
  start_index: int | None = None
  stack: list[str] = []
  in_string = False
  escape = False

  for index, char in enumerate(raw):
    if start_index is None:
      if char in "{[":
        start_index = index
        stack.append("}" if char == "{" else "]")
      continue

    if in_string:
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      in_string = True
      continue

    if char in "{[":
      stack.append("}" if char == "{" else "]")
      continue

    if char in "}]":
      # A mismatched closer means the block is not balanced JSON.
      if not stack or stack[-1] != char:
        return None
      stack.pop()
      if not stack:
        return raw[start_index : index + 1]

  return None


def strip_json_fences(raw: str) -> str:
  """Return the body of the first ```json fence, or `raw` with stray fences removed."""
  match = _FENCE_RE.search(raw)
  if match:
    return match.group(1).strip()
  return raw.replace("```json", "").replace("```", "").strip()


def strip_trailing_commas(raw: str) -> str:
  """Remove trailing commas before closing brackets."""
  return _TRAILING_COMMA_RE.sub(r"\1", raw)

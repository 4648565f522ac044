"""Work units and their content-addressed keys."""

from __future__ import annotations

import hashlib
import re
import unicodedata
from dataclasses import dataclass

INDIVIDUAL_GROUP = "individual"
_KEY_VERSION = "v1"
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class WorkUnit:
  """A named slice of source content submitted to a model in one call."""

  source_id: str
  group_label: str
  locator: str
  sub_unit_label: str
  text: str
  word_count: int
  target_question_count: int

  @property
  def key(self) -> str:
    """Return the deduplication key for this unit."""
    return derive_unit_key(self.source_id, self.group_label, self.locator, self.sub_unit_label)

  @property
  def is_empty(self) -> bool:
    return not self.text.strip()


def _canonicalize(value: str) -> str:
  # NFC keeps visually identical titles from hashing differently.
  return unicodedata.normalize("NFC", str(value)).strip()


def derive_unit_key(source_id: str, group_label: str, locator: str, sub_unit_label: str) -> str:
  """Derive a stable SHA-256 key for a (source, group, locator, sub-unit) tuple.

  Every field is length-prefixed before joining so no field value can collide with
  the separator, e.g. ("a|b", "c") and ("a", "b|c") produce different keys.
  """
  parts = [_KEY_VERSION]
  for field in (source_id, group_label, locator, sub_unit_label):
    value = _canonicalize(field)
    parts.append(f"{len(value.encode('utf-8'))}:{value}")
  digest = hashlib.sha256("|".join(parts).encode("utf-8"))
  return digest.hexdigest()


def count_words(text: str) -> int:
  stripped = text.strip()
  if not stripped:
    return 0
  return len(_WHITESPACE_RE.split(stripped))


def target_question_count(word_count: int, *, density_words: int, minimum: int, maximum: int) -> int:
  """Derive how many questions to request from a unit of `word_count` words."""
  if density_words <= 0:
    raise ValueError("Question density must be a positive number of words per question.")
  # Half-up rounding: 2.5 questions means 3, not banker's 2.
  raw = int(word_count / density_words + 0.5)
  return max(minimum, min(maximum, raw))


def split_words(text: str, *, max_words: int = 500, min_words: int = 200) -> list[str]:
  """Split text into word chunks of at most `max_words`.

  A trailing chunk shorter than `min_words` is merged into the previous chunk when the
  merged chunk stays within `max_words + 300`; otherwise it is dropped. A text shorter
  than `min_words` with no previous chunk is kept as a single chunk.
  """
  words = [word for word in _WHITESPACE_RE.split(text.strip()) if word]
  if not words:
    return []

  chunks: list[list[str]] = []
  current: list[str] = []
  for word in words:
    current.append(word)
    if len(current) >= max_words:
      chunks.append(current)
      current = []

  if current:
    if len(current) >= min_words or not chunks:
      chunks.append(current)
    elif len(chunks[-1]) + len(current) <= max_words + 300:
      chunks[-1] = chunks[-1] + current

  return [" ".join(chunk) for chunk in chunks]

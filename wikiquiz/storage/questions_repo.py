"""Storage interfaces for generated questions."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from wikiquiz.ai.normalizer import GeneratedQuestion


@dataclass(frozen=True)
class QuestionMetadata:
  """Provenance attached to every question before it is persisted."""

  job_id: str
  unit_key: str
  source_id: str
  group_label: str
  locator: str
  sub_unit_label: str
  model_id: str
  prompt_template: str | None = None
  title_id: int | None = None
  canonical_title: str | None = None


@dataclass(frozen=True)
class StoredQuestion:
  id: int
  question_text: str
  options: tuple[str, ...]
  correct_answer_index: int
  repaired: bool
  metadata: QuestionMetadata
  created_at: datetime
  review_score: int | None = None
  reviewed_at: datetime | None = None

  def as_dict(self) -> dict[str, Any]:
    return {
      "id": self.id,
      "question": self.question_text,
      "options": list(self.options),
      "correctAnswerIndex": self.correct_answer_index,
      "repaired": self.repaired,
      "jobId": self.metadata.job_id,
      "unitKey": self.metadata.unit_key,
      "sourceId": self.metadata.source_id,
      "groupLabel": self.metadata.group_label,
      "locator": self.metadata.locator,
      "subUnitLabel": self.metadata.sub_unit_label,
      "modelId": self.metadata.model_id,
      "promptTemplate": self.metadata.prompt_template,
      "titleId": self.metadata.title_id,
      "canonicalTitle": self.metadata.canonical_title,
      "createdAt": self.created_at.isoformat(),
      "reviewScore": self.review_score,
      "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
    }


@dataclass(frozen=True)
class QuestionFilters:
  source_id: str | None = None
  title_id: int | None = None
  group_label: str | None = None
  model_id: str | None = None
  review_scores: tuple[int, ...] | None = None
  limit: int = 50


REVIEW_SCORES: tuple[int, ...] = (1, 2, 3, 4, 5)


@dataclass(frozen=True)
class QuestionStats:
  """Counts of stored questions broken down by provenance."""

  total: int
  by_source: dict[str, int] = field(default_factory=dict)
  by_group: dict[str, int] = field(default_factory=dict)
  by_section: dict[str, int] = field(default_factory=dict)
  by_model: dict[str, int] = field(default_factory=dict)
  by_title: dict[str, int] = field(default_factory=dict)
  repaired: int = 0

  def as_dict(self) -> dict[str, Any]:
    return {
      "total": self.total,
      "bySource": dict(self.by_source),
      "byGroup": dict(self.by_group),
      "bySection": dict(self.by_section),
      "byModel": dict(self.by_model),
      "byTitle": dict(self.by_title),
      "repaired": self.repaired,
    }


@dataclass(frozen=True)
class ReviewStats:
  """Review coverage and score distribution for one source."""

  total: int
  reviewed: int
  score_distribution: dict[int, int]

  @property
  def unreviewed(self) -> int:
    return self.total - self.reviewed

  @property
  def average_score(self) -> float:
    if not self.reviewed:
      return 0.0
    weighted = sum(score * count for score, count in self.score_distribution.items())
    return round(weighted / self.reviewed, 2)

  def as_dict(self) -> dict[str, Any]:
    return {
      "total": self.total,
      "reviewed": self.reviewed,
      "unreviewed": self.unreviewed,
      "scoreDistribution": {str(score): self.score_distribution.get(score, 0) for score in REVIEW_SCORES},
      "averageScore": self.average_score,
    }


class QuestionsRepository(Protocol):
  """Repository contract for generated question persistence.

  Implementations raise `StorageError` when a write cannot be committed.
  """

  async def write(self, questions: Sequence[GeneratedQuestion], metadata: QuestionMetadata) -> int:
    """Persist questions with shared provenance and return how many were written."""

  async def query(self, filters: QuestionFilters) -> list[StoredQuestion]:
    """Return matching questions, newest first."""

  async def unreviewed(self, source_id: str, limit: int | None = None) -> list[StoredQuestion]:
    """Return questions of a source without a review score, oldest first."""

  async def record_scores(self, scores: Mapping[int, int]) -> int:
    """Store review scores keyed by question id and return how many rows changed."""

  async def delete(self, question_ids: Sequence[int]) -> int:
    """Delete questions by id and return how many existed."""

  async def stats(self, source_id: str | None = None) -> QuestionStats:
    """Count stored questions, optionally for a single source."""

  async def review_stats(self, source_id: str) -> ReviewStats:
    """Summarize review coverage for a source."""

"""Storage interfaces for the processed-unit ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from wikiquiz.jobs.units import WorkUnit


@dataclass(frozen=True)
class ProcessedRecord:
  """A completed unit. Created once per key and never updated."""

  key: str
  source_id: str
  group_label: str
  locator: str
  sub_unit_label: str
  word_count: int
  questions_generated: int
  processed_at: datetime

  def as_dict(self) -> dict[str, Any]:
    return {
      "key": self.key,
      "sourceId": self.source_id,
      "groupLabel": self.group_label,
      "locator": self.locator,
      "subUnitLabel": self.sub_unit_label,
      "wordCount": self.word_count,
      "questionsGenerated": self.questions_generated,
      "processedAt": self.processed_at.isoformat(),
    }


@dataclass(frozen=True)
class LedgerStats:
  source_id: str
  total_done: int = 0
  total_questions: int = 0
  by_group: dict[str, int] = field(default_factory=dict)
  first_processed_at: datetime | None = None
  last_processed_at: datetime | None = None

  def as_dict(self) -> dict[str, Any]:
    return {
      "sourceId": self.source_id,
      "totalDone": self.total_done,
      "totalQuestions": self.total_questions,
      "byGroup": dict(self.by_group),
      "firstProcessedAt": self.first_processed_at.isoformat() if self.first_processed_at else None,
      "lastProcessedAt": self.last_processed_at.isoformat() if self.last_processed_at else None,
    }


class ProcessedUnitLedger(Protocol):
  """Durable set of completed work unit keys.

  `claim` is the atomic check-then-mark step: at most one caller holds a live claim for
  a key, and a key that is already done can never be claimed again. Backends raise
  `LedgerUnavailable` when they cannot be reached.
  """

  async def contains(self, key: str) -> bool:
    """Return True when the key has been marked done, by any run."""

  async def claim(self, unit: WorkUnit, *, job_id: str) -> bool:
    """Reserve a unit for processing; False when done or claimed by another live job."""

  async def release(self, key: str, *, job_id: str) -> None:
    """Drop a claim held by `job_id` so the unit can be retried later."""

  async def mark_done(self, unit: WorkUnit, *, questions_generated: int, job_id: str) -> bool:
    """Record a unit as done. Returns False, changing nothing, if it already was."""

  async def get(self, key: str) -> ProcessedRecord | None:
    """Fetch the completed record for a key."""

  async def stats(self, source_id: str) -> LedgerStats:
    """Summarize completed units for a source."""

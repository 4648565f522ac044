"""In-process ledger and question stores used when no database is configured."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from wikiquiz.ai.normalizer import GeneratedQuestion
from wikiquiz.jobs.units import WorkUnit
from wikiquiz.storage.ledger_repo import LedgerStats, ProcessedRecord
from wikiquiz.storage.questions_repo import REVIEW_SCORES, QuestionFilters, QuestionMetadata, QuestionStats, ReviewStats, StoredQuestion


def _now() -> datetime:
  return datetime.now(UTC)


@dataclass
class _Claim:
  job_id: str
  claimed_at: datetime


class InMemoryLedger:
  """Dictionary-backed ledger; a single asyncio lock makes claim atomic."""

  def __init__(self, *, claim_ttl_seconds: int = 900, clock: Callable[[], datetime] = _now) -> None:
    self._lock = asyncio.Lock()
    self._claims: dict[str, _Claim] = {}
    self._done: dict[str, ProcessedRecord] = {}
    self._claim_ttl = timedelta(seconds=claim_ttl_seconds)
    self._clock = clock

  async def contains(self, key: str) -> bool:
    async with self._lock:
      return key in self._done

  async def claim(self, unit: WorkUnit, *, job_id: str) -> bool:
    key = unit.key
    async with self._lock:
      if key in self._done:
        return False
      now = self._clock()
      current = self._claims.get(key)
      if current is not None and current.job_id != job_id and now - current.claimed_at < self._claim_ttl:
        return False
      self._claims[key] = _Claim(job_id=job_id, claimed_at=now)
      return True

  async def release(self, key: str, *, job_id: str) -> None:
    async with self._lock:
      current = self._claims.get(key)
      if current is not None and current.job_id == job_id:
        del self._claims[key]

  async def mark_done(self, unit: WorkUnit, *, questions_generated: int, job_id: str) -> bool:
    key = unit.key
    async with self._lock:
      if key in self._done:
        return False
      now = self._clock()
      current = self._claims.get(key)
      if current is not None and current.job_id != job_id and now - current.claimed_at < self._claim_ttl:
        return False
      self._claims.pop(key, None)
      self._done[key] = ProcessedRecord(
        key=key,
        source_id=unit.source_id,
        group_label=unit.group_label,
        locator=unit.locator,
        sub_unit_label=unit.sub_unit_label,
        word_count=unit.word_count,
        questions_generated=questions_generated,
        processed_at=now,
      )
      return True

  async def get(self, key: str) -> ProcessedRecord | None:
    async with self._lock:
      return self._done.get(key)

  async def stats(self, source_id: str) -> LedgerStats:
    async with self._lock:
      records = [record for record in self._done.values() if record.source_id == source_id]
    by_group: dict[str, int] = {}
    for record in records:
      by_group[record.group_label] = by_group.get(record.group_label, 0) + 1
    timestamps = [record.processed_at for record in records]
    return LedgerStats(
      source_id=source_id,
      total_done=len(records),
      total_questions=sum(record.questions_generated for record in records),
      by_group=by_group,
      first_processed_at=min(timestamps) if timestamps else None,
      last_processed_at=max(timestamps) if timestamps else None,
    )


class InMemoryQuestionsRepository:
  def __init__(self, *, clock: Callable[[], datetime] = _now) -> None:
    self._lock = asyncio.Lock()
    self._rows: dict[int, StoredQuestion] = {}
    self._next_id = 1
    self._clock = clock

  async def write(self, questions: Sequence[GeneratedQuestion], metadata: QuestionMetadata) -> int:
    async with self._lock:
      created_at = self._clock()
      for question in questions:
        self._rows[self._next_id] = StoredQuestion(
          id=self._next_id,
          question_text=question.question_text,
          options=tuple(question.options),
          correct_answer_index=question.correct_answer_index,
          repaired=question.repaired,
          metadata=metadata,
          created_at=created_at,
        )
        self._next_id += 1
    return len(questions)

  async def _snapshot(self) -> list[StoredQuestion]:
    async with self._lock:
      return list(self._rows.values())

  async def query(self, filters: QuestionFilters) -> list[StoredQuestion]:
    rows = list(reversed(await self._snapshot()))
    matches = [
      row
      for row in rows
      if (filters.source_id is None or row.metadata.source_id == filters.source_id)
      and (filters.title_id is None or row.metadata.title_id == filters.title_id)
      and (filters.group_label is None or row.metadata.group_label == filters.group_label)
      and (filters.model_id is None or row.metadata.model_id == filters.model_id)
      and (filters.review_scores is None or row.review_score in filters.review_scores)
    ]
    return matches[: filters.limit]

  async def unreviewed(self, source_id: str, limit: int | None = None) -> list[StoredQuestion]:
    rows = [row for row in await self._snapshot() if row.metadata.source_id == source_id and row.review_score is None]
    return rows if limit is None else rows[:limit]

  async def record_scores(self, scores: Mapping[int, int]) -> int:
    async with self._lock:
      reviewed_at = self._clock()
      changed = 0
      for question_id, score in scores.items():
        row = self._rows.get(question_id)
        if row is None:
          continue
        self._rows[question_id] = replace(row, review_score=score, reviewed_at=reviewed_at)
        changed += 1
      return changed

  async def delete(self, question_ids: Sequence[int]) -> int:
    async with self._lock:
      return sum(1 for question_id in set(question_ids) if self._rows.pop(question_id, None) is not None)

  async def stats(self, source_id: str | None = None) -> QuestionStats:
    rows = [row for row in await self._snapshot() if source_id is None or row.metadata.source_id == source_id]
    return QuestionStats(
      total=len(rows),
      by_source=dict(Counter(row.metadata.source_id for row in rows)),
      by_group=dict(Counter(row.metadata.group_label for row in rows)),
      by_section=dict(Counter(row.metadata.sub_unit_label for row in rows if row.metadata.sub_unit_label)),
      by_model=dict(Counter(row.metadata.model_id for row in rows)),
      by_title=dict(Counter(row.metadata.canonical_title for row in rows if row.metadata.canonical_title)),
      repaired=sum(1 for row in rows if row.repaired),
    )

  async def review_stats(self, source_id: str) -> ReviewStats:
    rows = [row for row in await self._snapshot() if row.metadata.source_id == source_id]
    scores = Counter(row.review_score for row in rows if row.review_score is not None)
    return ReviewStats(
      total=len(rows),
      reviewed=sum(scores.values()),
      score_distribution={score: scores.get(score, 0) for score in REVIEW_SCORES},
    )

  @property
  def count(self) -> int:
    return len(self._rows)

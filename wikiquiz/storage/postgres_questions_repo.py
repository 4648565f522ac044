"""Postgres-backed repository for generated questions."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wikiquiz.ai.normalizer import GeneratedQuestion
from wikiquiz.core.database import get_session_factory
from wikiquiz.errors import StorageError
from wikiquiz.schema.questions import GeneratedQuestionRow
from wikiquiz.storage.questions_repo import REVIEW_SCORES, QuestionFilters, QuestionMetadata, QuestionStats, ReviewStats, StoredQuestion


def _aware(value: datetime | None) -> datetime | None:
  # SQLite drops tzinfo on round trip; stored values are always UTC.
  if value is not None and value.tzinfo is None:
    return value.replace(tzinfo=UTC)
  return value


def _row_to_question(row: GeneratedQuestionRow) -> StoredQuestion:
  metadata = QuestionMetadata(
    job_id=row.job_id,
    unit_key=row.unit_key,
    source_id=row.source_id,
    group_label=row.group_label,
    locator=row.locator,
    sub_unit_label=row.sub_unit_label,
    model_id=row.model_id,
    prompt_template=row.prompt_template,
    title_id=row.title_id,
    canonical_title=row.canonical_title,
  )
  return StoredQuestion(
    id=row.id,
    question_text=row.question_text,
    options=tuple(row.options),
    correct_answer_index=row.correct_answer_index,
    repaired=row.repaired,
    metadata=metadata,
    created_at=_aware(row.created_at),
    review_score=row.review_score,
    reviewed_at=_aware(row.reviewed_at),
  )


class PostgresQuestionsRepository:
  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  @asynccontextmanager
  async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
    try:
      async with self._session_factory() as session:
        yield session
    except (OperationalError, DBAPIError, OSError) as exc:
      raise StorageError(f"Could not {action}: {exc}") from exc

  async def write(self, questions: Sequence[GeneratedQuestion], metadata: QuestionMetadata) -> int:
    created_at = datetime.now(UTC)
    rows = [
      GeneratedQuestionRow(
        unit_key=metadata.unit_key,
        source_id=metadata.source_id,
        title_id=metadata.title_id,
        canonical_title=metadata.canonical_title,
        group_label=metadata.group_label,
        locator=metadata.locator,
        sub_unit_label=metadata.sub_unit_label,
        model_id=metadata.model_id,
        prompt_template=metadata.prompt_template,
        job_id=metadata.job_id,
        question_text=question.question_text,
        options=list(question.options),
        correct_answer_index=question.correct_answer_index,
        repaired=question.repaired,
        created_at=created_at,
      )
      for question in questions
    ]
    async with self._session(f"persist {len(rows)} questions") as session:
      session.add_all(rows)
      await session.commit()
    return len(rows)

  async def query(self, filters: QuestionFilters) -> list[StoredQuestion]:
    stmt = select(GeneratedQuestionRow)
    if filters.source_id is not None:
      stmt = stmt.where(GeneratedQuestionRow.source_id == filters.source_id)
    if filters.title_id is not None:
      stmt = stmt.where(GeneratedQuestionRow.title_id == filters.title_id)
    if filters.group_label is not None:
      stmt = stmt.where(GeneratedQuestionRow.group_label == filters.group_label)
    if filters.model_id is not None:
      stmt = stmt.where(GeneratedQuestionRow.model_id == filters.model_id)
    if filters.review_scores is not None:
      stmt = stmt.where(GeneratedQuestionRow.review_score.in_(filters.review_scores))
    stmt = stmt.order_by(GeneratedQuestionRow.created_at.desc(), GeneratedQuestionRow.id.desc()).limit(filters.limit)

    async with self._session("query questions") as session:
      rows = (await session.scalars(stmt)).all()
    return [_row_to_question(row) for row in rows]

  async def unreviewed(self, source_id: str, limit: int | None = None) -> list[StoredQuestion]:
    stmt = (
      select(GeneratedQuestionRow)
      .where(GeneratedQuestionRow.source_id == source_id, GeneratedQuestionRow.review_score.is_(None))
      .order_by(GeneratedQuestionRow.id)
    )
    if limit is not None:
      stmt = stmt.limit(limit)
    async with self._session("load unreviewed questions") as session:
      rows = (await session.scalars(stmt)).all()
    return [_row_to_question(row) for row in rows]

  async def record_scores(self, scores: Mapping[int, int]) -> int:
    reviewed_at = datetime.now(UTC)
    changed = 0
    async with self._session(f"store {len(scores)} review scores") as session:
      for question_id, score in scores.items():
        result = await session.execute(
          update(GeneratedQuestionRow).where(GeneratedQuestionRow.id == question_id).values(review_score=score, reviewed_at=reviewed_at)
        )
        changed += result.rowcount
      await session.commit()
    return changed

  async def delete(self, question_ids: Sequence[int]) -> int:
    ids = sorted(set(question_ids))
    if not ids:
      return 0
    async with self._session(f"delete {len(ids)} questions") as session:
      result = await session.execute(delete(GeneratedQuestionRow).where(GeneratedQuestionRow.id.in_(ids)))
      await session.commit()
    return result.rowcount

  async def _counts(self, session: AsyncSession, column: Any, source_id: str | None) -> dict[str, int]:
    stmt = select(column, func.count()).where(column.is_not(None)).group_by(column)
    if source_id is not None:
      stmt = stmt.where(GeneratedQuestionRow.source_id == source_id)
    return {key: count for key, count in (await session.execute(stmt)).all() if key != ""}

  async def stats(self, source_id: str | None = None) -> QuestionStats:
    total_stmt = select(func.count(GeneratedQuestionRow.id))
    repaired_stmt = select(func.count(GeneratedQuestionRow.id)).where(GeneratedQuestionRow.repaired.is_(True))
    if source_id is not None:
      total_stmt = total_stmt.where(GeneratedQuestionRow.source_id == source_id)
      repaired_stmt = repaired_stmt.where(GeneratedQuestionRow.source_id == source_id)

    async with self._session("count questions") as session:
      total = await session.scalar(total_stmt)
      repaired = await session.scalar(repaired_stmt)
      by_source = await self._counts(session, GeneratedQuestionRow.source_id, source_id)
      by_group = await self._counts(session, GeneratedQuestionRow.group_label, source_id)
      by_section = await self._counts(session, GeneratedQuestionRow.sub_unit_label, source_id)
      by_model = await self._counts(session, GeneratedQuestionRow.model_id, source_id)
      by_title = await self._counts(session, GeneratedQuestionRow.canonical_title, source_id)

    return QuestionStats(
      total=total or 0,
      by_source=by_source,
      by_group=by_group,
      by_section=by_section,
      by_model=by_model,
      by_title=by_title,
      repaired=repaired or 0,
    )

  async def review_stats(self, source_id: str) -> ReviewStats:
    async with self._session("summarize reviews") as session:
      total = await session.scalar(select(func.count(GeneratedQuestionRow.id)).where(GeneratedQuestionRow.source_id == source_id))
      rows = (
        await session.execute(
          select(GeneratedQuestionRow.review_score, func.count())
          .where(GeneratedQuestionRow.source_id == source_id, GeneratedQuestionRow.review_score.is_not(None))
          .group_by(GeneratedQuestionRow.review_score)
        )
      ).all()
    counts = {score: count for score, count in rows}
    return ReviewStats(
      total=total or 0,
      reviewed=sum(counts.values()),
      score_distribution={score: counts.get(score, 0) for score in REVIEW_SCORES},
    )

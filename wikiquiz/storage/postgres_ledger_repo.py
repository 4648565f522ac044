"""Postgres-backed processed-unit ledger using SQLAlchemy."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wikiquiz.core.database import get_session_factory
from wikiquiz.errors import LedgerUnavailable
from wikiquiz.jobs.units import WorkUnit
from wikiquiz.schema.ledger import ProcessedUnit
from wikiquiz.storage.ledger_repo import LedgerStats, ProcessedRecord

STATE_CLAIMED = "claimed"
STATE_DONE = "done"

logger = logging.getLogger(__name__)


def _now() -> datetime:
  return datetime.now(UTC)


def _aware(value: datetime | None) -> datetime | None:
  # SQLite drops tzinfo on round trip; stored values are always UTC.
  if value is not None and value.tzinfo is None:
    return value.replace(tzinfo=UTC)
  return value


class PostgresProcessedUnitLedger:
  """Ledger rows in `processed_units`; claims are conditional writes on the key."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None, *, claim_ttl_seconds: int = 900) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")
    self._claim_ttl = timedelta(seconds=claim_ttl_seconds)

  @asynccontextmanager
  async def _session(self) -> AsyncIterator[AsyncSession]:
    try:
      async with self._session_factory() as session:
        yield session
    except IntegrityError:
      raise
    except (OperationalError, DBAPIError, OSError) as exc:
      logger.error("Ledger backend unavailable: %s", exc)
      raise LedgerUnavailable(f"Ledger backend unavailable: {exc}") from exc

  async def contains(self, key: str) -> bool:
    async with self._session() as session:
      state = await session.scalar(select(ProcessedUnit.state).where(ProcessedUnit.key == key))
      return state == STATE_DONE

  async def claim(self, unit: WorkUnit, *, job_id: str) -> bool:
    key = unit.key
    now = _now()
    async with self._session() as session:
      session.add(
        ProcessedUnit(
          key=key,
          source_id=unit.source_id,
          group_label=unit.group_label,
          locator=unit.locator,
          sub_unit_label=unit.sub_unit_label,
          word_count=unit.word_count,
          questions_generated=0,
          state=STATE_CLAIMED,
          job_id=job_id,
          claimed_at=now,
        )
      )
      try:
        await session.commit()
        return True
      except IntegrityError:
        await session.rollback()

      # The key exists: take it over only if it is still a claim, and either ours or stale.
      result = await session.execute(
        update(ProcessedUnit)
        .where(ProcessedUnit.key == key, ProcessedUnit.state == STATE_CLAIMED, or_(ProcessedUnit.job_id == job_id, ProcessedUnit.claimed_at < now - self._claim_ttl))
        .values(job_id=job_id, claimed_at=now)
      )
      await session.commit()
      return result.rowcount == 1

  async def release(self, key: str, *, job_id: str) -> None:
    async with self._session() as session:
      await session.execute(delete(ProcessedUnit).where(ProcessedUnit.key == key, ProcessedUnit.state == STATE_CLAIMED, ProcessedUnit.job_id == job_id))
      await session.commit()

  async def mark_done(self, unit: WorkUnit, *, questions_generated: int, job_id: str) -> bool:
    key = unit.key
    now = _now()
    async with self._session() as session:
      result = await session.execute(
        update(ProcessedUnit)
        .where(ProcessedUnit.key == key, ProcessedUnit.state == STATE_CLAIMED, or_(ProcessedUnit.job_id == job_id, ProcessedUnit.claimed_at < now - self._claim_ttl))
        .values(state=STATE_DONE, job_id=job_id, processed_at=now, questions_generated=questions_generated, word_count=unit.word_count)
      )
      await session.commit()
      if result.rowcount == 1:
        return True

      # No claim row of ours: the insert fails if the unit is done or live-claimed elsewhere.
      session.add(
        ProcessedUnit(
          key=key,
          source_id=unit.source_id,
          group_label=unit.group_label,
          locator=unit.locator,
          sub_unit_label=unit.sub_unit_label,
          word_count=unit.word_count,
          questions_generated=questions_generated,
          state=STATE_DONE,
          job_id=job_id,
          claimed_at=now,
          processed_at=now,
        )
      )
      try:
        await session.commit()
        return True
      except IntegrityError:
        await session.rollback()
        return False

  async def get(self, key: str) -> ProcessedRecord | None:
    async with self._session() as session:
      row = await session.get(ProcessedUnit, key)
      if row is None or row.state != STATE_DONE:
        return None
      return ProcessedRecord(
        key=row.key,
        source_id=row.source_id,
        group_label=row.group_label,
        locator=row.locator,
        sub_unit_label=row.sub_unit_label,
        word_count=row.word_count,
        questions_generated=row.questions_generated,
        processed_at=_aware(row.processed_at) or _aware(row.claimed_at),
      )

  async def stats(self, source_id: str) -> LedgerStats:
    stmt = (
      select(ProcessedUnit.group_label, func.count(), func.sum(ProcessedUnit.questions_generated), func.min(ProcessedUnit.processed_at), func.max(ProcessedUnit.processed_at))
      .where(ProcessedUnit.source_id == source_id, ProcessedUnit.state == STATE_DONE)
      .group_by(ProcessedUnit.group_label)
    )
    async with self._session() as session:
      rows = (await session.execute(stmt)).all()

    by_group = {group: int(count) for group, count, _, _, _ in rows}
    firsts = [_aware(first) for _, _, _, first, _ in rows if first is not None]
    lasts = [_aware(last) for _, _, _, _, last in rows if last is not None]
    return LedgerStats(
      source_id=source_id,
      total_done=sum(by_group.values()),
      total_questions=sum(int(total or 0) for _, _, total, _, _ in rows),
      by_group=by_group,
      first_processed_at=min(firsts) if firsts else None,
      last_processed_at=max(lasts) if lasts else None,
    )

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wikiquiz.core.database import Base


class ProcessedUnit(Base):
  """Ledger row for one work unit key; `state` moves from claimed to done exactly once."""

  __tablename__ = "processed_units"
  __table_args__ = (Index("ix_processed_units_source_state", "source_id", "state"),)

  key: Mapped[str] = mapped_column(String(64), primary_key=True)
  source_id: Mapped[str] = mapped_column(String, nullable=False)
  group_label: Mapped[str] = mapped_column(String, nullable=False)
  locator: Mapped[str] = mapped_column(String, nullable=False)
  sub_unit_label: Mapped[str] = mapped_column(String, nullable=False, default="")
  word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  questions_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  state: Mapped[str] = mapped_column(String(16), nullable=False)
  job_id: Mapped[str | None] = mapped_column(String, nullable=True)
  claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

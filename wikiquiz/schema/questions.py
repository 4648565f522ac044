from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wikiquiz.core.database import Base


class GeneratedQuestionRow(Base):
  __tablename__ = "generated_questions"

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  unit_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
  source_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
  canonical_title: Mapped[str | None] = mapped_column(String, nullable=True)
  group_label: Mapped[str] = mapped_column(String, nullable=False)
  locator: Mapped[str] = mapped_column(String, nullable=False)
  sub_unit_label: Mapped[str] = mapped_column(String, nullable=False, default="")
  model_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  prompt_template: Mapped[str | None] = mapped_column(Text, nullable=True)
  job_id: Mapped[str] = mapped_column(String, nullable=False)
  question_text: Mapped[str] = mapped_column(Text, nullable=False)
  options: Mapped[list[str]] = mapped_column(JSON, nullable=False)
  correct_answer_index: Mapped[int] = mapped_column(Integer, nullable=False)
  repaired: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
  review_score: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
  reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wikiquiz.ai.normalizer import GeneratedQuestion
from wikiquiz.core.database import Base
from wikiquiz.storage.memory import InMemoryQuestionsRepository
from wikiquiz.storage.postgres_questions_repo import PostgresQuestionsRepository
from wikiquiz.storage.questions_repo import QuestionFilters, QuestionMetadata


def _metadata(**overrides: object) -> QuestionMetadata:
  fields: dict[str, object] = {
    "job_id": "job-1",
    "unit_key": "a" * 64,
    "source_id": "naruto",
    "group_label": "Characters",
    "locator": "Naruto Uzumaki",
    "sub_unit_label": "Background",
    "model_id": "gpt-4o-mini",
  }
  fields.update(overrides)
  return QuestionMetadata(**fields)  # type: ignore[arg-type]


QUESTIONS = [
  GeneratedQuestion("Who is the Nine-Tails host?", ("Naruto", "Sasuke", "Sakura", "Kakashi"), 0),
  GeneratedQuestion("Which clan is Sasuke from?", ("Hyuga", "Uchiha", "Nara", "Aburame"), 1, repaired=True),
]


@pytest.fixture(params=["memory", "sql"])
async def repository(request: pytest.FixtureRequest, tmp_path: Path) -> AsyncIterator[object]:
  if request.param == "memory":
    yield InMemoryQuestionsRepository()
    return

  import wikiquiz.schema  # noqa: F401

  engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'questions.db'}")
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
  try:
    yield PostgresQuestionsRepository(async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession))
  finally:
    await engine.dispose()


@pytest.mark.anyio
async def test_write_then_query_round_trips_provenance(repository) -> None:
  written = await repository.write(QUESTIONS, _metadata(title_id=20, canonical_title="NARUTO", prompt_template="Be tricky."))

  stored = await repository.query(QuestionFilters(source_id="naruto"))

  assert written == 2
  assert len(stored) == 2
  by_text = {question.question_text: question for question in stored}
  repaired = by_text["Which clan is Sasuke from?"]
  assert repaired.options == ("Hyuga", "Uchiha", "Nara", "Aburame")
  assert repaired.correct_answer_index == 1
  assert repaired.repaired is True
  assert repaired.metadata.canonical_title == "NARUTO"
  payload = repaired.as_dict()
  assert payload["titleId"] == 20
  assert payload["promptTemplate"] == "Be tricky."
  assert payload["subUnitLabel"] == "Background"


@pytest.mark.anyio
async def test_query_filters_and_limits(repository) -> None:
  await repository.write(QUESTIONS, _metadata())
  await repository.write(QUESTIONS, _metadata(job_id="job-2", group_label="Villages", model_id="gemini-2.5-flash"))
  await repository.write(QUESTIONS[:1], _metadata(job_id="job-3", source_id="bleach"))

  assert len(await repository.query(QuestionFilters(source_id="naruto"))) == 4
  assert len(await repository.query(QuestionFilters(group_label="Villages"))) == 2
  assert len(await repository.query(QuestionFilters(model_id="gemini-2.5-flash"))) == 2
  assert len(await repository.query(QuestionFilters(limit=3))) == 3
  newest = await repository.query(QuestionFilters(limit=1))
  assert newest[0].metadata.source_id == "bleach"


@pytest.mark.anyio
async def test_unreviewed_returns_oldest_first_and_skips_scored(repository) -> None:
  await repository.write(QUESTIONS, _metadata())
  await repository.write(QUESTIONS[:1], _metadata(source_id="bleach"))
  first, second = await repository.unreviewed("naruto")

  assert first.question_text == "Who is the Nine-Tails host?"
  assert second.question_text == "Which clan is Sasuke from?"
  assert await repository.record_scores({first.id: 4}) == 1
  remaining = await repository.unreviewed("naruto")
  assert [question.id for question in remaining] == [second.id]
  assert len(await repository.unreviewed("naruto", limit=0)) == 0


@pytest.mark.anyio
async def test_record_scores_ignores_missing_ids_and_is_queryable(repository) -> None:
  await repository.write(QUESTIONS, _metadata())
  first, second = await repository.unreviewed("naruto")

  changed = await repository.record_scores({first.id: 5, second.id: 2, 9999: 3})

  assert changed == 2
  low = await repository.query(QuestionFilters(source_id="naruto", review_scores=(1, 2)))
  assert [question.id for question in low] == [second.id]
  assert low[0].review_score == 2
  assert low[0].reviewed_at is not None
  assert low[0].as_dict()["reviewScore"] == 2


@pytest.mark.anyio
async def test_delete_counts_only_existing_rows(repository) -> None:
  await repository.write(QUESTIONS, _metadata())
  first, second = await repository.unreviewed("naruto")

  assert await repository.delete([first.id, 9999]) == 1
  assert await repository.delete([first.id]) == 0
  remaining = await repository.query(QuestionFilters())
  assert [question.id for question in remaining] == [second.id]


@pytest.mark.anyio
async def test_stats_break_down_by_provenance(repository) -> None:
  await repository.write(QUESTIONS, _metadata(canonical_title="NARUTO"))
  await repository.write(QUESTIONS[:1], _metadata(group_label="Villages", sub_unit_label="History", model_id="gemini-2.5-flash"))
  await repository.write(QUESTIONS[:1], _metadata(source_id="bleach", sub_unit_label=""))

  everything = await repository.stats()
  naruto = await repository.stats("naruto")

  assert everything.total == 4
  assert everything.by_source == {"naruto": 3, "bleach": 1}
  assert naruto.total == 3
  assert naruto.by_group == {"Characters": 2, "Villages": 1}
  assert naruto.by_section == {"Background": 2, "History": 1}
  assert naruto.by_model == {"gpt-4o-mini": 2, "gemini-2.5-flash": 1}
  assert naruto.by_title == {"NARUTO": 2}
  assert naruto.repaired == 1
  assert everything.as_dict()["bySection"] == {"Background": 2, "History": 1}


@pytest.mark.anyio
async def test_review_stats_report_distribution_and_average(repository) -> None:
  await repository.write(QUESTIONS + QUESTIONS, _metadata())
  rows = await repository.unreviewed("naruto")
  await repository.record_scores({rows[0].id: 5, rows[1].id: 4, rows[2].id: 4})

  stats = await repository.review_stats("naruto")

  assert stats.total == 4
  assert stats.reviewed == 3
  assert stats.unreviewed == 1
  assert stats.score_distribution == {1: 0, 2: 0, 3: 0, 4: 2, 5: 1}
  assert stats.average_score == 4.33
  assert stats.as_dict()["scoreDistribution"]["4"] == 2
  empty = await repository.review_stats("bleach")
  assert empty.total == 0
  assert empty.average_score == 0.0

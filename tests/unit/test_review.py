from __future__ import annotations

import pytest

from wikiquiz.ai.normalizer import GeneratedQuestion
from wikiquiz.ai.review import REVIEW_SYSTEM_PROMPT, build_review_prompt, parse_scores
from wikiquiz.errors import ProviderInvalidOutput, ProviderUnavailable, StorageError, ValidationError
from wikiquiz.jobs.events import job_channel
from wikiquiz.jobs.review import REVIEW_TEMPERATURE, ReviewSettings
from wikiquiz.storage.memory import InMemoryQuestionsRepository
from wikiquiz.storage.questions_repo import QuestionMetadata


def _metadata(source_id: str = "naruto", canonical_title: str | None = None) -> QuestionMetadata:
  return QuestionMetadata(
    job_id="job-1",
    unit_key="a" * 64,
    source_id=source_id,
    group_label="Characters",
    locator="Naruto Uzumaki",
    sub_unit_label="Background",
    model_id="gpt-4o-mini",
    canonical_title=canonical_title,
  )


async def _seed(repository: InMemoryQuestionsRepository, count: int, **metadata: object) -> None:
  questions = [GeneratedQuestion(f"Question {number}?", ("Naruto", "Sasuke", "Sakura", "Kakashi"), number % 4) for number in range(count)]
  await repository.write(questions, _metadata(**metadata))  # type: ignore[arg-type]


async def _run(reviewer, **fields):
  spec = reviewer.build_spec(source_id=fields.pop("source_id", "naruto"), **fields)
  review_id = await reviewer.submit(spec)
  return await reviewer.wait(review_id)


def test_parse_scores_finds_the_array_in_chatty_output() -> None:
  assert parse_scores("Sure! Here you go:\n```json\n[4, 5, 3,]\n```", 3) == [4, 5, 3]


def test_parse_scores_clamps_and_truncates() -> None:
  assert parse_scores("[0, 9, 3, 4]", 3) == [1, 5, 3]


def test_parse_scores_returns_a_short_array_as_is() -> None:
  assert parse_scores("[2]", 3) == [2]


@pytest.mark.parametrize("raw", ["", "I think they are all great.", "[]", "[\"four\", \"five\"]"])
def test_parse_scores_rejects_answers_without_scores(raw: str) -> None:
  with pytest.raises(ProviderInvalidOutput):
    parse_scores(raw, 2)


@pytest.mark.anyio
async def test_build_review_prompt_lists_questions_with_lettered_answers() -> None:
  repository = InMemoryQuestionsRepository()
  await _seed(repository, 2)
  batch = await repository.unreviewed("naruto")

  prompt = build_review_prompt(batch, subject="NARUTO")

  assert 'Rate these 2 quiz questions about "NARUTO"' in prompt
  assert "Question 1:\nQuestion 0?\nA. Naruto\nB. Sasuke\nC. Sakura\nD. Kakashi\nCorrect Answer: A" in prompt
  assert "Question 2:\nQuestion 1?" in prompt
  assert "Correct Answer: B" in prompt
  assert "ARRAY OF 2 INTEGER SCORES" in prompt


@pytest.mark.anyio
async def test_custom_review_template_keeps_literal_braces() -> None:
  repository = InMemoryQuestionsRepository()
  await _seed(repository, 1)
  batch = await repository.unreviewed("naruto")

  prompt = build_review_prompt(batch, subject="naruto", template='Score {count} about {subject}: {questions} as {"scores": []}')

  assert prompt.startswith("Score 1 about naruto: Question 1:")
  assert prompt.endswith('as {"scores": []}')


def test_build_spec_applies_defaults_and_validates(reviewer) -> None:
  spec = reviewer.build_spec(source_id=" naruto ", prompt_template="  ")
  assert spec.source_id == "naruto"
  assert spec.batch_size == 10
  assert spec.model_id == "gemini-2.5-flash"
  assert spec.prompt_template is None

  with pytest.raises(ValidationError, match="sourceId is required"):
    reviewer.build_spec(source_id=" ")
  with pytest.raises(ValidationError, match="batchSize must be between 1 and 50"):
    reviewer.build_spec(source_id="naruto", batch_size=51)
  with pytest.raises(ValidationError, match="maxQuestions"):
    reviewer.build_spec(source_id="naruto", max_questions=0)
  with pytest.raises(ValidationError, match="Unknown model: gpt-2"):
    reviewer.build_spec(source_id="naruto", model_id="gpt-2")


def test_review_settings_follow_configuration(make_reviewer) -> None:
  reviewer = make_reviewer(settings=ReviewSettings(default_model="gpt-4.1-mini", default_batch_size=5, max_batch_size=5))
  assert reviewer.build_spec(source_id="naruto").batch_size == 5
  assert reviewer.build_spec(source_id="naruto").model_id == "gpt-4.1-mini"


@pytest.mark.anyio
async def test_review_scores_every_batch(reviewer, gateway, questions_repo, events) -> None:
  await _seed(questions_repo, 5, canonical_title="NARUTO")
  await _seed(questions_repo, 2, source_id="bleach")
  gateway.text_outcomes = ["[5, 4]", "[3, 3]", "[1]"]

  run = await _run(reviewer, batch_size=2)

  assert run.status == "completed"
  assert run.batches_total == 3
  assert run.batches_done == 3
  assert run.calls_made == 3
  assert run.questions_scored == 5
  assert run.progress_percent == 100
  assert run.snapshot()["scoreDistribution"] == {"1": 1, "2": 0, "3": 2, "4": 1, "5": 1}
  prompt, model_id, system, options = gateway.text_calls[0]
  assert 'about "NARUTO"' in prompt
  assert model_id == "gemini-2.5-flash"
  assert system == REVIEW_SYSTEM_PROMPT
  assert options is not None and options.temperature == REVIEW_TEMPERATURE
  stats = await questions_repo.review_stats("naruto")
  assert stats.reviewed == 5
  assert (await questions_repo.review_stats("bleach")).reviewed == 0
  assert run.log[-1].message == "Review completed! Scored 5 of 5 questions."
  assert events.payloads(job_channel(run.id, "completed", "review"))[0]["questionsScored"] == 5
  assert len(events.payloads(job_channel(run.id, "progress", "review"))) == 3


@pytest.mark.anyio
async def test_short_score_array_leaves_the_rest_unreviewed(reviewer, gateway, questions_repo) -> None:
  await _seed(questions_repo, 3)
  gateway.text_outcomes = ["[4, 2]"]

  run = await _run(reviewer)

  assert run.questions_scored == 2
  assert any("only 2 of 3 questions were scored" in entry.message for entry in run.log)
  remaining = await questions_repo.unreviewed("naruto")
  assert [question.question_text for question in remaining] == ["Question 2?"]


@pytest.mark.anyio
async def test_failed_batch_is_left_unreviewed_and_the_run_continues(reviewer, gateway, questions_repo) -> None:
  await _seed(questions_repo, 4)
  gateway.text_outcomes = [ProviderUnavailable("Gemini API key is not configured."), "[5, 5]"]

  run = await _run(reviewer, batch_size=2, max_questions=4)

  assert run.status == "completed"
  assert run.batches_failed == 1
  assert run.batches_done == 1
  assert run.questions_scored == 2
  assert len(await questions_repo.unreviewed("naruto")) == 2
  assert any(entry.severity == "error" and "Batch 1 was not scored" in entry.message for entry in run.log)

  gateway.text_outcomes = ["no scores here"]
  retry = await _run(reviewer, batch_size=2)
  assert retry.questions_total == 2
  assert retry.questions_scored == 0
  assert retry.batches_failed == 1


@pytest.mark.anyio
async def test_nothing_to_review_completes_without_calls(reviewer, gateway) -> None:
  run = await _run(reviewer)

  assert run.status == "completed"
  assert gateway.text_calls == []
  assert run.log[0].message == "No unreviewed questions found."


@pytest.mark.anyio
async def test_stop_is_honored_between_batches(reviewer, gateway, questions_repo) -> None:
  await _seed(questions_repo, 6)
  holder: dict[str, str] = {}
  gateway.on_call = lambda number: reviewer.request_stop(holder["id"]) if number == 1 else None

  spec = reviewer.build_spec(source_id="naruto", batch_size=2)
  holder["id"] = await reviewer.submit(spec)
  run = await reviewer.wait(holder["id"])

  assert run.status == "completed"
  assert run.cancel_requested is True
  assert len(gateway.text_calls) == 1
  assert run.questions_scored == 2
  assert "Review stopped by user." in [entry.message for entry in run.log]


@pytest.mark.anyio
async def test_storage_failure_ends_the_review(make_reviewer, gateway, events) -> None:
  class BrokenRepository(InMemoryQuestionsRepository):
    async def record_scores(self, scores):
      raise StorageError("Could not store review scores: connection refused")

  repository = BrokenRepository()
  await _seed(repository, 2)
  reviewer = make_reviewer(questions=repository)

  run = await _run(reviewer)

  assert run.status == "error"
  assert run.error == "Could not store review scores: connection refused"
  assert run.finished_at is not None
  assert events.payloads(job_channel(run.id, "error", "review")) == [{"reviewId": run.id, "message": run.error}]


@pytest.mark.anyio
async def test_recent_reviews_are_newest_first(reviewer, questions_repo) -> None:
  first = await _run(reviewer)
  second = await _run(reviewer)

  assert [run.id for run in reviewer.recent(5)] == [second.id, first.id]
  assert reviewer.request_stop(first.id) is first
  assert reviewer.request_stop("missing") is None

"""Background scoring of stored questions by an LLM reviewer."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from wikiquiz.ai.catalog import MODEL_CATALOG
from wikiquiz.ai.gateway import GenerateOptions
from wikiquiz.ai.review import MAX_SCORE, MIN_SCORE, REVIEW_SYSTEM_PROMPT, build_review_prompt, parse_scores
from wikiquiz.config import Settings
from wikiquiz.errors import GenerationError, ProviderError, ValidationError
from wikiquiz.jobs.events import EventSink, JobEventEmitter
from wikiquiz.jobs.models import TERMINAL_STATUSES, JobStatus, LogEntry, LogSeverity
from wikiquiz.jobs.registry import JobRegistry
from wikiquiz.storage.questions_repo import QuestionsRepository, StoredQuestion

REVIEW_TEMPERATURE = 0.3

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"info": logging.INFO, "success": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


def _now() -> datetime:
  return datetime.now(UTC)


class TextCompleter(Protocol):
  async def complete_text(self, prompt: str, model_id: str, *, system: str, options: GenerateOptions | None = None) -> str:
    """Return the model's plain-text answer to a prompt."""


@dataclass(frozen=True)
class ReviewSettings:
  default_model: str = "gemini-2.5-flash"
  default_batch_size: int = 10
  max_batch_size: int = 50

  @classmethod
  def from_settings(cls, settings: Settings) -> ReviewSettings:
    return cls(default_model=settings.review_model, default_batch_size=settings.review_batch_size, max_batch_size=settings.max_review_batch_size)


@dataclass(frozen=True)
class ReviewSpec:
  """Validated inputs for a review run."""

  source_id: str
  batch_size: int
  model_id: str
  prompt_template: str | None = None
  max_questions: int | None = None


@dataclass
class ReviewRun:
  """In-memory state of one review run."""

  id: str
  spec: ReviewSpec
  status: JobStatus = "running"
  progress_percent: int = 0
  calls_made: int = 0
  batches_total: int = 0
  batches_done: int = 0
  batches_failed: int = 0
  questions_total: int = 0
  questions_scored: int = 0
  score_distribution: Counter[int] = field(default_factory=Counter)
  started_at: datetime = field(default_factory=_now)
  finished_at: datetime | None = None
  cancel_requested: bool = False
  error: str | None = None
  log: list[LogEntry] = field(default_factory=list)

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  @property
  def duration_ms(self) -> int | None:
    if self.finished_at is None:
      return None
    return int((self.finished_at - self.started_at).total_seconds() * 1000)

  def append_log(self, message: str, severity: LogSeverity = "info") -> LogEntry:
    entry = LogEntry(timestamp=_now(), message=message, severity=severity)
    self.log.append(entry)
    return entry

  def snapshot(self) -> dict[str, Any]:
    return {
      "id": self.id,
      "status": self.status,
      "progressPercent": self.progress_percent,
      "callsMade": self.calls_made,
      "batchSize": self.spec.batch_size,
      "batchesTotal": self.batches_total,
      "batchesDone": self.batches_done,
      "batchesFailed": self.batches_failed,
      "questionsTotal": self.questions_total,
      "questionsScored": self.questions_scored,
      "scoreDistribution": {str(score): self.score_distribution.get(score, 0) for score in range(MIN_SCORE, MAX_SCORE + 1)},
      "startedAt": self.started_at.isoformat(),
      "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
      "durationMs": self.duration_ms,
      "cancelRequested": self.cancel_requested,
      "sourceId": self.spec.source_id,
      "modelId": self.spec.model_id,
      "error": self.error,
      "log": [entry.as_dict() for entry in self.log],
    }


def _batches(questions: Sequence[StoredQuestion], size: int) -> list[list[StoredQuestion]]:
  return [list(questions[start : start + size]) for start in range(0, len(questions), size)]


def _subject(batch: Sequence[StoredQuestion], source_id: str) -> str:
  for question in batch:
    if question.metadata.canonical_title:
      return question.metadata.canonical_title
  return source_id


class ReviewRunner:
  """Scores unreviewed questions of one source in batches.

  A batch whose answer cannot be parsed, or whose provider call fails, stays
  unreviewed and the run moves on. Storage failures end the run.
  """

  def __init__(
    self,
    *,
    gateway: TextCompleter,
    questions: QuestionsRepository,
    events: EventSink,
    registry: JobRegistry[ReviewRun] | None = None,
    settings: ReviewSettings | None = None,
  ) -> None:
    self._gateway = gateway
    self._questions = questions
    self._events = events
    self._registry: JobRegistry[ReviewRun] = registry or JobRegistry()
    self._settings = settings or ReviewSettings()
    self._tasks: dict[str, asyncio.Task[None]] = {}

  @property
  def settings(self) -> ReviewSettings:
    return self._settings

  def build_spec(
    self,
    *,
    source_id: str | None,
    batch_size: int | None = None,
    model_id: str | None = None,
    prompt_template: str | None = None,
    max_questions: int | None = None,
  ) -> ReviewSpec:
    source = (source_id or "").strip()
    if not source:
      raise ValidationError("sourceId is required.")

    size = self._settings.default_batch_size if batch_size is None else batch_size
    if size < 1 or size > self._settings.max_batch_size:
      raise ValidationError(f"batchSize must be between 1 and {self._settings.max_batch_size}.")

    if max_questions is not None and max_questions < 1:
      raise ValidationError("maxQuestions must be a positive number.")

    model = (model_id or "").strip() or self._settings.default_model
    if model not in MODEL_CATALOG:
      raise ValidationError(f"Unknown model: {model}")

    return ReviewSpec(
      source_id=source,
      batch_size=size,
      model_id=model,
      prompt_template=(prompt_template or "").strip() or None,
      max_questions=max_questions,
    )

  async def submit(self, spec: ReviewSpec) -> str:
    run = ReviewRun(id=str(uuid.uuid4()), spec=spec)
    self._registry.add(run)
    task = asyncio.create_task(self._run(run), name=f"review-run-{run.id}")
    self._tasks[run.id] = task
    task.add_done_callback(lambda _task: self._tasks.pop(run.id, None))
    logger.info("Submitted review %s for %s with model %s (batch size %d)", run.id, spec.source_id, spec.model_id, spec.batch_size)
    return run.id

  def get(self, review_id: str) -> ReviewRun | None:
    return self._registry.get(review_id)

  def recent(self, limit: int) -> list[ReviewRun]:
    return self._registry.recent(limit)

  def request_stop(self, review_id: str) -> ReviewRun | None:
    """Ask a run to stop after its current batch; returns None for unknown ids."""
    run = self._registry.get(review_id)
    if run is None:
      return None
    if run.is_terminal or run.cancel_requested:
      return run
    run.cancel_requested = True
    run.status = "stopping"
    self._log(run, self._emitter(run), "Stop requested; finishing the current batch.", "warning")
    return run

  async def wait(self, review_id: str) -> ReviewRun | None:
    task = self._tasks.get(review_id)
    if task is not None:
      await asyncio.shield(task)
    return self._registry.get(review_id)

  async def shutdown(self) -> None:
    for run in self._registry.active():
      self.request_stop(run.id)
    tasks = list(self._tasks.values())
    if tasks:
      await asyncio.gather(*tasks, return_exceptions=True)

  def _emitter(self, run: ReviewRun) -> JobEventEmitter:
    return JobEventEmitter(self._events, run.id, kind="review")

  def _log(self, run: ReviewRun, emitter: JobEventEmitter, message: str, severity: LogSeverity = "info") -> None:
    entry = run.append_log(message, severity)
    logger.log(_LOG_LEVELS[severity], "[review %s] %s", run.id, message)
    emitter.emit("log", entry.as_dict())

  async def _run(self, run: ReviewRun) -> None:
    emitter = self._emitter(run)
    spec = run.spec
    try:
      pending = await self._questions.unreviewed(spec.source_id, spec.max_questions)
      if not pending:
        self._log(run, emitter, "No unreviewed questions found.")
      else:
        batches = _batches(pending, spec.batch_size)
        run.questions_total = len(pending)
        run.batches_total = len(batches)
        self._log(run, emitter, f"Reviewing {len(pending)} questions in {len(batches)} batches.")
        for number, batch in enumerate(batches, start=1):
          if run.cancel_requested:
            self._log(run, emitter, "Review stopped by user.", "warning")
            break
          await self._review_batch(run, batch, number, emitter)
          run.progress_percent = int(number * 100 / len(batches) + 0.5)
          emitter.emit("progress", {"reviewId": run.id, "progressPercent": run.progress_percent, "batchesProcessed": number, "batchesTotal": len(batches)})
    except GenerationError as exc:
      self._fail(run, emitter, str(exc))
      return
    except Exception as exc:  # noqa: BLE001
      logger.exception("Review %s crashed", run.id)
      self._fail(run, emitter, f"Unexpected error: {exc.__class__.__name__}")
      return

    run.status = "completed"
    run.finished_at = _now()
    self._log(run, emitter, f"Review completed! Scored {run.questions_scored} of {run.questions_total} questions.", "success")
    emitter.emit("completed", run.snapshot())

  def _fail(self, run: ReviewRun, emitter: JobEventEmitter, message: str) -> None:
    run.status = "error"
    run.error = message
    run.finished_at = _now()
    self._log(run, emitter, f"Fatal error: {message}", "error")
    emitter.emit("error", {"reviewId": run.id, "message": message})

  async def _review_batch(self, run: ReviewRun, batch: list[StoredQuestion], number: int, emitter: JobEventEmitter) -> None:
    spec = run.spec
    prompt = build_review_prompt(batch, subject=_subject(batch, spec.source_id), template=spec.prompt_template)
    self._log(run, emitter, f"Reviewing batch {number}/{run.batches_total} ({len(batch)} questions)...")
    run.calls_made += 1
    try:
      answer = await self._gateway.complete_text(prompt, spec.model_id, system=REVIEW_SYSTEM_PROMPT, options=GenerateOptions(temperature=REVIEW_TEMPERATURE))
      scores = parse_scores(answer, len(batch))
    except ProviderError as exc:
      run.batches_failed += 1
      self._log(run, emitter, f"Batch {number} was not scored: {exc}", "error")
      return

    recorded = await self._questions.record_scores({question.id: score for question, score in zip(batch, scores, strict=False)})
    run.batches_done += 1
    run.questions_scored += recorded
    run.score_distribution.update(scores[:recorded])
    if len(scores) < len(batch):
      self._log(run, emitter, f"Batch {number}: only {len(scores)} of {len(batch)} questions were scored.", "warning")
    self._log(run, emitter, f"Batch {number}: recorded {recorded} scores.", "success")
    emitter.emit("questionsScored", {"reviewId": run.id, "count": recorded, "total": run.questions_scored})

"""Job orchestration: drive one generation run across its work units."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from wikiquiz.ai.catalog import MODEL_CATALOG
from wikiquiz.ai.gateway import GenerateOptions
from wikiquiz.ai.normalizer import GeneratedQuestion
from wikiquiz.ai.prompts import build_prompt
from wikiquiz.config import Settings
from wikiquiz.content.base import ContentSource, Section, TitleResolver
from wikiquiz.errors import ContentAcquisitionError, GenerationError, LedgerUnavailable, ProviderError, ProviderTimeout, TitleResolutionError, ValidationError
from wikiquiz.jobs.events import EventSink, JobEventEmitter
from wikiquiz.jobs.models import Job, JobSpec, LogSeverity
from wikiquiz.jobs.registry import JobRegistry
from wikiquiz.jobs.units import INDIVIDUAL_GROUP, WorkUnit, count_words, split_words, target_question_count
from wikiquiz.storage.ledger_repo import ProcessedUnitLedger
from wikiquiz.storage.questions_repo import QuestionMetadata, QuestionsRepository

NO_CONTENT_MESSAGE = "No content to process. Select groups that contain pages or add individual locators."

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"info": logging.INFO, "success": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


class QuestionGenerator(Protocol):
  async def generate(self, prompt: str, model_id: str, options: GenerateOptions | None = None) -> list[GeneratedQuestion]:
    """Generate validated questions for a prompt."""


@dataclass(frozen=True)
class OrchestratorSettings:
  """Limits and defaults applied to every job."""

  default_model: str = "gpt-4o-mini"
  default_call_budget: int = 10
  max_call_budget: int = 500
  question_density_words: int = 125
  min_questions_per_unit: int = 1
  max_questions_per_unit: int = 10
  max_unit_words: int = 500
  min_unit_words: int = 200
  max_prompt_chars: int = 15000
  ledger_fail_open: bool = False

  @classmethod
  def from_settings(cls, settings: Settings) -> OrchestratorSettings:
    return cls(
      default_model=settings.default_model,
      default_call_budget=settings.default_call_budget,
      max_call_budget=settings.max_call_budget,
      question_density_words=settings.question_density_words,
      min_questions_per_unit=settings.min_questions_per_unit,
      max_questions_per_unit=settings.max_questions_per_unit,
      max_unit_words=settings.max_unit_words,
      min_unit_words=settings.min_unit_words,
      max_prompt_chars=settings.max_prompt_chars,
      ledger_fail_open=settings.ledger_fail_open,
    )


def _clean_list(values: Sequence[str] | None) -> tuple[str, ...]:
  seen: list[str] = []
  for value in values or ():
    stripped = (value or "").strip()
    if stripped and stripped not in seen:
      seen.append(stripped)
  return tuple(seen)


def _percent(done: int, total: int) -> int:
  return int(done * 100 / total + 0.5) if total else 0


class JobOrchestrator:
  """Owns the lifecycle of generation jobs.

  Each job runs as its own asyncio task. Units are processed strictly in enumeration
  order and each provider call is awaited before the next unit starts, so a stop
  request is honored at the next unit boundary. Jobs share only the ledger and the
  event sink.
  """

  def __init__(
    self,
    *,
    content: ContentSource,
    gateway: QuestionGenerator,
    ledger: ProcessedUnitLedger,
    questions: QuestionsRepository,
    events: EventSink,
    registry: JobRegistry[Job] | None = None,
    title_resolver: TitleResolver | None = None,
    settings: OrchestratorSettings | None = None,
  ) -> None:
    self._content = content
    self._gateway = gateway
    self._ledger = ledger
    self._questions = questions
    self._events = events
    self._registry: JobRegistry[Job] = registry or JobRegistry()
    self._title_resolver = title_resolver
    self._settings = settings or OrchestratorSettings()
    self._tasks: dict[str, asyncio.Task[None]] = {}

  @property
  def registry(self) -> JobRegistry[Job]:
    return self._registry

  @property
  def settings(self) -> OrchestratorSettings:
    return self._settings

  def build_spec(
    self,
    *,
    source_id: str | None,
    group_selectors: Sequence[str] | None = None,
    individual_locators: Sequence[str] | None = None,
    call_budget: int | None = None,
    target_question_density: int | None = None,
    model_id: str | None = None,
    prompt_template: str | None = None,
    title_name: str | None = None,
    temperature: float | None = None,
  ) -> JobSpec:
    """Validate raw submission fields into a JobSpec, raising ValidationError."""
    source = (source_id or "").strip()
    if not source:
      raise ValidationError("sourceId is required.")

    groups = _clean_list(group_selectors)
    locators = _clean_list(individual_locators)
    if not groups and not locators:
      raise ValidationError("Select at least one group or individual locator.")

    budget = self._settings.default_call_budget if call_budget is None else call_budget
    if budget < 1 or budget > self._settings.max_call_budget:
      raise ValidationError(f"callBudget must be between 1 and {self._settings.max_call_budget}.")

    density = self._settings.question_density_words if target_question_density is None else target_question_density
    if density < 1:
      raise ValidationError("targetQuestionDensity must be a positive number of words per question.")

    model = (model_id or "").strip() or self._settings.default_model
    if model not in MODEL_CATALOG:
      raise ValidationError(f"Unknown model: {model}")

    if temperature is not None and not 0 <= temperature <= 2:
      raise ValidationError("temperature must be between 0 and 2.")

    return JobSpec(
      source_id=source,
      group_selectors=groups,
      individual_locators=locators,
      call_budget=budget,
      target_question_density=density,
      model_id=model,
      prompt_template=(prompt_template or "").strip() or None,
      title_name=(title_name or "").strip() or None,
      temperature=temperature,
    )

  async def submit(self, spec: JobSpec) -> str:
    """Register a running job and start processing it in the background."""
    job = Job(id=str(uuid.uuid4()), spec=spec)
    self._registry.add(job)
    task = asyncio.create_task(self._run(job), name=f"generation-job-{job.id}")
    self._tasks[job.id] = task
    task.add_done_callback(lambda _task: self._tasks.pop(job.id, None))
    logger.info("Submitted job %s for %s with model %s (budget %d)", job.id, spec.source_id, spec.model_id, spec.call_budget)
    return job.id

  def get(self, job_id: str) -> Job | None:
    return self._registry.get(job_id)

  def recent(self, limit: int) -> list[Job]:
    return self._registry.recent(limit)

  def request_stop(self, job_id: str) -> Job | None:
    """Ask a job to stop after its current unit; returns None for unknown ids."""
    job = self._registry.get(job_id)
    if job is None:
      return None
    if job.is_terminal or job.cancel_requested:
      return job
    job.cancel_requested = True
    job.status = "stopping"
    self._log(job, JobEventEmitter(self._events, job.id), "Stop requested; finishing the current unit.", "warning")
    return job

  async def wait(self, job_id: str) -> Job | None:
    """Wait for a job's background task to finish."""
    task = self._tasks.get(job_id)
    if task is not None:
      await asyncio.shield(task)
    return self._registry.get(job_id)

  async def shutdown(self) -> None:
    """Request every active job to stop and wait for their tasks."""
    for job in self._registry.active():
      self.request_stop(job.id)
    tasks = list(self._tasks.values())
    if tasks:
      await asyncio.gather(*tasks, return_exceptions=True)

  def _log(self, job: Job, emitter: JobEventEmitter, message: str, severity: LogSeverity = "info") -> None:
    entry = job.append_log(message, severity)
    logger.log(_LOG_LEVELS[severity], "[job %s] %s", job.id, message)
    emitter.emit("log", entry.as_dict())

  async def _run(self, job: Job) -> None:
    emitter = JobEventEmitter(self._events, job.id)
    spec = job.spec
    try:
      subject = await self._resolve_subject(job, emitter)
      units = await self._enumerate_units(job, emitter)
      if not units and not job.cancel_requested:
        raise ContentAcquisitionError(NO_CONTENT_MESSAGE)

      job.units_total = len(units)
      self._log(job, emitter, f"Found {len(units)} work units to process.")
      if not units:
        self._log(job, emitter, "Generation stopped by user.", "warning")

      for position, unit in enumerate(units, start=1):
        if job.cancel_requested:
          self._log(job, emitter, "Generation stopped by user.", "warning")
          break
        if job.calls_made >= job.call_budget:
          self._log(job, emitter, f"API call limit of {spec.call_budget} reached.", "warning")
          break
        await self._process_unit(job, unit, subject, emitter)
        self._advance_progress(job, emitter, position)
    except GenerationError as exc:
      self._fail(job, emitter, str(exc))
      return
    except Exception as exc:  # noqa: BLE001
      logger.exception("Job %s crashed", job.id)
      self._fail(job, emitter, f"Unexpected error: {exc.__class__.__name__}")
      return

    job.status = "completed"
    job.finished_at = datetime.now(UTC)
    self._log(job, emitter, f"Generation completed! Generated a total of {job.questions_generated} questions.", "success")
    emitter.emit("completed", job.snapshot())

  def _fail(self, job: Job, emitter: JobEventEmitter, message: str) -> None:
    job.status = "error"
    job.error = message
    job.finished_at = datetime.now(UTC)
    self._log(job, emitter, f"Fatal error: {message}", "error")
    emitter.emit("error", {"jobId": job.id, "message": message})

  def _advance_progress(self, job: Job, emitter: JobEventEmitter, units_processed: int) -> None:
    job.progress_percent = max(job.progress_percent, _percent(units_processed, job.units_total))
    emitter.emit("progress", {"jobId": job.id, "progressPercent": job.progress_percent, "unitsProcessed": units_processed, "unitsTotal": job.units_total})

  async def _resolve_subject(self, job: Job, emitter: JobEventEmitter) -> str:
    name = job.spec.title_name
    if not name:
      return job.spec.source_id
    if self._title_resolver is None:
      raise TitleResolutionError("Title resolution is not configured.")
    self._log(job, emitter, f"Fetching AniList ID for {name}...")
    title = await self._title_resolver.resolve(name)
    job.title_id = title.id
    job.canonical_title = title.canonical_title
    self._log(job, emitter, f"Found anime: {title.canonical_title} (ID: {title.id})", "success")
    return title.canonical_title or name

  async def _enumerate_units(self, job: Job, emitter: JobEventEmitter) -> list[WorkUnit]:
    spec = job.spec
    pages: list[tuple[str, str]] = []
    for group in spec.group_selectors:
      self._log(job, emitter, f"Fetching pages for category: {group}...")
      members = await self._content.list_group_pages(spec.source_id, group)
      self._log(job, emitter, f"Found {len(members)} pages in category {group}.")
      pages.extend((group, member) for member in members)
    pages.extend((INDIVIDUAL_GROUP, locator) for locator in spec.individual_locators)

    units: list[WorkUnit] = []
    for group, locator in dict.fromkeys(pages):
      if job.cancel_requested:
        break
      sections = await self._content.fetch_sections(spec.source_id, locator)
      if sections is None:
        self._log(job, emitter, f"No content for page: {locator}", "warning")
        continue
      page_units = [unit for section in sections for unit in self._units_for_section(spec, group, locator, section)]
      self._log(job, emitter, f"Page {locator}: {len(sections)} sections, {len(page_units)} units.")
      units.extend(page_units)
    return units

  def _units_for_section(self, spec: JobSpec, group: str, locator: str, section: Section) -> list[WorkUnit]:
    limits = self._settings
    if not section.text.strip():
      chunks = [""]
    elif section.word_count > limits.max_unit_words:
      chunks = split_words(section.text, max_words=limits.max_unit_words, min_words=limits.min_unit_words)
    else:
      chunks = [section.text]

    units = []
    for number, chunk in enumerate(chunks, start=1):
      label = section.title if len(chunks) == 1 else f"{section.title} (part {number})"
      words = count_words(chunk)
      units.append(
        WorkUnit(
          source_id=spec.source_id,
          group_label=group,
          locator=locator,
          sub_unit_label=label,
          text=chunk,
          word_count=words,
          target_question_count=target_question_count(words, density_words=spec.target_question_density, minimum=limits.min_questions_per_unit, maximum=limits.max_questions_per_unit),
        )
      )
    return units

  async def _process_unit(self, job: Job, unit: WorkUnit, subject: str, emitter: JobEventEmitter) -> None:
    label = f"{unit.locator} / {unit.sub_unit_label}" if unit.sub_unit_label else unit.locator
    if unit.is_empty:
      job.units_skipped += 1
      self._log(job, emitter, f"Skipping {label} (no text).")
      return

    claimed: bool | None
    try:
      if await self._ledger.contains(unit.key):
        job.units_skipped += 1
        self._log(job, emitter, f"Skipping {label} (already processed).")
        return
      claimed = await self._ledger.claim(unit, job_id=job.id)
    except LedgerUnavailable as exc:
      if not self._settings.ledger_fail_open:
        raise
      claimed = None
      self._log(job, emitter, f"Ledger unavailable ({exc}); processing {label} without deduplication.", "warning")

    if claimed is False:
      job.units_skipped += 1
      self._log(job, emitter, f"Skipping {label} (claimed by another job).")
      return

    prompt = build_prompt(unit, subject=subject, instructions=job.spec.prompt_template, max_chars=self._settings.max_prompt_chars)
    self._log(job, emitter, f"Generating {unit.target_question_count} questions for {label}...")
    try:
      questions = await self._generate(job, unit, prompt, emitter)
    except ProviderError as exc:
      job.units_failed += 1
      if claimed:
        await self._release(job, unit)
      self._log(job, emitter, f"Failed to generate questions for {label}: {exc}", "error")
      return

    metadata = QuestionMetadata(
      job_id=job.id,
      unit_key=unit.key,
      source_id=unit.source_id,
      group_label=unit.group_label,
      locator=unit.locator,
      sub_unit_label=unit.sub_unit_label,
      model_id=job.spec.model_id,
      prompt_template=job.spec.prompt_template,
      title_id=job.title_id,
      canonical_title=job.canonical_title,
    )
    try:
      count = await self._questions.write(questions, metadata)
    except GenerationError:
      if claimed:
        await self._release(job, unit)
      raise

    try:
      if not await self._ledger.mark_done(unit, questions_generated=count, job_id=job.id):
        self._log(job, emitter, f"{label} was already recorded by another job.", "warning")
    except LedgerUnavailable as exc:
      if not self._settings.ledger_fail_open:
        raise
      self._log(job, emitter, f"Could not record {label} as processed ({exc}).", "warning")

    job.units_done += 1
    job.questions_generated += count
    self._log(job, emitter, f"Generated {count} questions for {label}.", "success")
    repaired = sum(1 for question in questions if question.repaired)
    if repaired:
      self._log(job, emitter, f"Repaired the answer index of {repaired} questions for {label}.", "warning")
    emitter.emit("questionsGenerated", {"jobId": job.id, "count": count, "total": job.questions_generated, "unitKey": unit.key, "locator": unit.locator, "subUnitLabel": unit.sub_unit_label})

  async def _generate(self, job: Job, unit: WorkUnit, prompt: str, emitter: JobEventEmitter) -> list[GeneratedQuestion]:
    """Call the gateway, retrying once on timeout while the budget allows."""
    options = GenerateOptions(temperature=job.spec.temperature)
    attempt = 0
    while True:
      attempt += 1
      job.calls_made += 1
      try:
        return await self._gateway.generate(prompt, job.spec.model_id, options)
      except ProviderTimeout as exc:
        if attempt > 1 or job.calls_made >= job.call_budget or job.cancel_requested:
          raise
        self._log(job, emitter, f"{exc}; retrying {unit.locator} once.", "warning")

  async def _release(self, job: Job, unit: WorkUnit) -> None:
    try:
      await self._ledger.release(unit.key, job_id=job.id)
    except LedgerUnavailable:
      # The claim expires after its TTL.
      logger.warning("Could not release claim on %s for job %s", unit.key, job.id)

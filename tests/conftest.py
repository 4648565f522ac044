"""Shared fakes and fixtures for the wikiquiz test suite."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from typing import Any

import pytest

# Ensure required settings are available before importing the app.
os.environ.setdefault("WIKIQUIZ_ALLOWED_ORIGINS", "http://localhost")

from wikiquiz.ai.gateway import GenerateOptions  # noqa: E402
from wikiquiz.ai.normalizer import GeneratedQuestion  # noqa: E402
from wikiquiz.content.base import ResolvedTitle, Section  # noqa: E402
from wikiquiz.errors import TitleResolutionError  # noqa: E402
from wikiquiz.jobs.events import RecordingEventSink  # noqa: E402
from wikiquiz.jobs.orchestrator import JobOrchestrator, OrchestratorSettings  # noqa: E402
from wikiquiz.jobs.review import ReviewRunner  # noqa: E402
from wikiquiz.jobs.units import count_words  # noqa: E402
from wikiquiz.storage.memory import InMemoryLedger, InMemoryQuestionsRepository  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


def make_section(title: str, words: int = 60, word: str = "chakra") -> Section:
  text = " ".join(f"{word}{index}" for index in range(words))
  return Section(title=title, text=text, word_count=count_words(text))


def make_question(text: str = "Who leads the village?", index: int = 0, repaired: bool = False) -> GeneratedQuestion:
  return GeneratedQuestion(question_text=text, options=("Naruto", "Sasuke", "Sakura", "Kakashi"), correct_answer_index=index, repaired=repaired)


class FakeContentSource:
  """Content source backed by dictionaries; records every page fetch."""

  def __init__(self) -> None:
    self.groups: dict[str, list[str]] = {}
    self.pages: dict[str, list[Section] | None] = {}
    self.error: Exception | None = None
    self.fetched: list[str] = []

  async def list_group_pages(self, source_id: str, group: str) -> list[str]:
    if self.error is not None:
      raise self.error
    return list(self.groups.get(group, []))

  async def fetch_sections(self, source_id: str, page: str) -> list[Section] | None:
    if self.error is not None:
      raise self.error
    self.fetched.append(page)
    return self.pages.get(page)

  async def list_groups(self, source_id: str, prefix: str = "", limit: int = 500) -> list[str]:
    return [group for group in self.groups if group.startswith(prefix)][:limit]

  async def search_pages(self, source_id: str, prefix: str, limit: int = 10) -> list[str]:
    return [page for page in self.pages if page.startswith(prefix)][:limit]


class FakeGateway:
  """Question generator returning canned questions.

  `outcomes` is consumed one entry per call; an exception entry is raised and a list entry
  is returned. When exhausted, every call returns `default`. `on_call` runs before each
  call with the 1-based call number. `complete_text` works the same way over
  `text_outcomes` and `default_text`.
  """

  def __init__(self) -> None:
    self.calls: list[tuple[str, str, GenerateOptions | None]] = []
    self.outcomes: list[Any] = []
    self.text_calls: list[tuple[str, str, str, GenerateOptions | None]] = []
    self.text_outcomes: list[Any] = []
    self.default_text = "[4, 5, 3]"
    self.default: list[GeneratedQuestion] = [make_question("First?"), make_question("Second?", index=2)]
    self.on_call: Callable[[int], Any] | None = None
    self.delay: float = 0.0

  async def generate(self, prompt: str, model_id: str, options: GenerateOptions | None = None) -> list[GeneratedQuestion]:
    self.calls.append((prompt, model_id, options))
    if self.on_call is not None:
      self.on_call(len(self.calls))
    if self.delay:
      await asyncio.sleep(self.delay)
    if self.outcomes:
      outcome = self.outcomes.pop(0)
      if isinstance(outcome, BaseException):
        raise outcome
      return outcome
    return list(self.default)

  async def complete_text(self, prompt: str, model_id: str, *, system: str, options: GenerateOptions | None = None) -> str:
    self.text_calls.append((prompt, model_id, system, options))
    if self.on_call is not None:
      self.on_call(len(self.text_calls))
    if self.text_outcomes:
      outcome = self.text_outcomes.pop(0)
      if isinstance(outcome, BaseException):
        raise outcome
      return outcome
    return self.default_text


class FakeTitleResolver:
  def __init__(self, titles: dict[str, ResolvedTitle] | None = None) -> None:
    self.titles = titles or {}

  async def resolve(self, name: str) -> ResolvedTitle:
    title = self.titles.get(name)
    if title is None:
      raise TitleResolutionError(f"Could not find AniList ID for {name}")
    return title

  async def search(self, name: str, limit: int = 10) -> list[ResolvedTitle]:
    return [title for key, title in self.titles.items() if name.lower() in key.lower()][:limit]


@pytest.fixture
def content() -> FakeContentSource:
  return FakeContentSource()


@pytest.fixture
def gateway() -> FakeGateway:
  return FakeGateway()


@pytest.fixture
def ledger() -> InMemoryLedger:
  return InMemoryLedger()


@pytest.fixture
def questions_repo() -> InMemoryQuestionsRepository:
  return InMemoryQuestionsRepository()


@pytest.fixture
def events() -> RecordingEventSink:
  return RecordingEventSink()


@pytest.fixture
def title_resolver() -> FakeTitleResolver:
  return FakeTitleResolver({"Naruto": ResolvedTitle(id=20, canonical_title="NARUTO", english_title="Naruto")})


@pytest.fixture
def make_orchestrator(content, gateway, ledger, questions_repo, events, title_resolver) -> Callable[..., JobOrchestrator]:
  """Build an orchestrator over the shared fakes, with optional overrides."""

  def _build(**overrides: Any) -> JobOrchestrator:
    settings = overrides.pop("settings", OrchestratorSettings())
    params: dict[str, Any] = {
      "content": content,
      "gateway": gateway,
      "ledger": ledger,
      "questions": questions_repo,
      "events": events,
      "title_resolver": title_resolver,
      "settings": settings,
    }
    params.update(overrides)
    return JobOrchestrator(**params)

  return _build


@pytest.fixture
def orchestrator(make_orchestrator) -> JobOrchestrator:
  return make_orchestrator()


@pytest.fixture
def section_factory() -> Callable[..., Section]:
  return make_section


@pytest.fixture
def question_factory() -> Callable[..., GeneratedQuestion]:
  return make_question


@pytest.fixture
def make_reviewer(gateway, questions_repo, events) -> Callable[..., ReviewRunner]:
  def _build(**overrides: Any) -> ReviewRunner:
    params: dict[str, Any] = {"gateway": gateway, "questions": questions_repo, "events": events}
    params.update(overrides)
    return ReviewRunner(**params)

  return _build


@pytest.fixture
def reviewer(make_reviewer) -> ReviewRunner:
  return make_reviewer()

"""Wiring of the generation pipeline's collaborators."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from wikiquiz.ai.gateway import ProviderGateway
from wikiquiz.ai.providers import build_providers
from wikiquiz.config import Settings
from wikiquiz.content.anilist import AniListTitleResolver
from wikiquiz.content.base import ContentSource, TitleResolver
from wikiquiz.content.fandom import FandomContentSource
from wikiquiz.jobs.events import BroadcastEventSink
from wikiquiz.jobs.orchestrator import JobOrchestrator, OrchestratorSettings
from wikiquiz.jobs.review import ReviewRunner, ReviewSettings
from wikiquiz.storage.factory import build_ledger, build_questions_repository
from wikiquiz.storage.ledger_repo import ProcessedUnitLedger
from wikiquiz.storage.questions_repo import QuestionsRepository


@dataclass
class Services:
  """Process-wide collaborators shared by every request and job."""

  orchestrator: JobOrchestrator
  reviewer: ReviewRunner
  gateway: ProviderGateway
  content: ContentSource
  title_resolver: TitleResolver | None
  ledger: ProcessedUnitLedger
  questions: QuestionsRepository
  events: BroadcastEventSink
  job_history_limit: int = 20


def build_services(settings: Settings, http_client: httpx.AsyncClient) -> Services:
  gateway = ProviderGateway(build_providers(settings), timeout_seconds=settings.provider_timeout_seconds)
  content = FandomContentSource(http_client, api_template=settings.fandom_api_template)
  title_resolver = AniListTitleResolver(http_client, url=settings.anilist_url)
  ledger = build_ledger(settings)
  questions = build_questions_repository(settings)
  events = BroadcastEventSink()
  orchestrator = JobOrchestrator(
    content=content,
    gateway=gateway,
    ledger=ledger,
    questions=questions,
    events=events,
    title_resolver=title_resolver,
    settings=OrchestratorSettings.from_settings(settings),
  )
  reviewer = ReviewRunner(gateway=gateway, questions=questions, events=events, settings=ReviewSettings.from_settings(settings))
  return Services(
    orchestrator=orchestrator,
    reviewer=reviewer,
    gateway=gateway,
    content=content,
    title_resolver=title_resolver,
    ledger=ledger,
    questions=questions,
    events=events,
    job_history_limit=settings.job_history_limit,
  )

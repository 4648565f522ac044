"""Factory helpers for ledger and question stores."""

from __future__ import annotations

from wikiquiz.config import Settings
from wikiquiz.storage.ledger_repo import ProcessedUnitLedger
from wikiquiz.storage.memory import InMemoryLedger, InMemoryQuestionsRepository
from wikiquiz.storage.questions_repo import QuestionsRepository


def build_ledger(settings: Settings) -> ProcessedUnitLedger:
  """Use Postgres when a DSN is configured, otherwise keep the ledger in memory."""
  if settings.pg_dsn:
    from wikiquiz.storage.postgres_ledger_repo import PostgresProcessedUnitLedger

    return PostgresProcessedUnitLedger(claim_ttl_seconds=settings.ledger_claim_ttl_seconds)
  return InMemoryLedger(claim_ttl_seconds=settings.ledger_claim_ttl_seconds)


def build_questions_repository(settings: Settings) -> QuestionsRepository:
  if settings.pg_dsn:
    from wikiquiz.storage.postgres_questions_repo import PostgresQuestionsRepository

    return PostgresQuestionsRepository()
  return InMemoryQuestionsRepository()

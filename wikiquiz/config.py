"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
  """Typed settings for the question generation service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  pg_dsn: str | None
  pg_connect_timeout: int
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  openai_api_key: str | None
  gemini_api_key: str | None
  default_model: str
  provider_timeout_seconds: float
  default_call_budget: int
  max_call_budget: int
  question_density_words: int
  min_questions_per_unit: int
  max_questions_per_unit: int
  max_unit_words: int
  min_unit_words: int
  max_prompt_chars: int
  ledger_fail_open: bool
  ledger_claim_ttl_seconds: int
  job_history_limit: int
  review_model: str
  review_batch_size: int
  max_review_batch_size: int
  fandom_api_template: str
  anilist_url: str
  http_timeout_seconds: float


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:3000",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("WIKIQUIZ_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("WIKIQUIZ_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("WIKIQUIZ_ENV", "development").lower()

  # Toggle SQL echo and verbose diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("WIKIQUIZ_DEBUG"))

  log_backup_count = int(os.getenv("WIKIQUIZ_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("WIKIQUIZ_LOG_BACKUP_COUNT must be zero or a positive integer.")

  default_call_budget = _positive_int("WIKIQUIZ_DEFAULT_CALL_BUDGET", "10")
  max_call_budget = _positive_int("WIKIQUIZ_MAX_CALL_BUDGET", "500")
  if default_call_budget > max_call_budget:
    raise ValueError("WIKIQUIZ_DEFAULT_CALL_BUDGET must not exceed WIKIQUIZ_MAX_CALL_BUDGET.")

  min_questions = _positive_int("WIKIQUIZ_MIN_QUESTIONS_PER_UNIT", "1")
  max_questions = _positive_int("WIKIQUIZ_MAX_QUESTIONS_PER_UNIT", "10")
  if min_questions > max_questions:
    raise ValueError("WIKIQUIZ_MIN_QUESTIONS_PER_UNIT must not exceed WIKIQUIZ_MAX_QUESTIONS_PER_UNIT.")

  max_unit_words = _positive_int("WIKIQUIZ_MAX_UNIT_WORDS", "500")
  min_unit_words = _positive_int("WIKIQUIZ_MIN_UNIT_WORDS", "200")
  if min_unit_words > max_unit_words:
    raise ValueError("WIKIQUIZ_MIN_UNIT_WORDS must not exceed WIKIQUIZ_MAX_UNIT_WORDS.")

  review_batch_size = _positive_int("WIKIQUIZ_REVIEW_BATCH_SIZE", "10")
  max_review_batch_size = _positive_int("WIKIQUIZ_MAX_REVIEW_BATCH_SIZE", "50")
  if review_batch_size > max_review_batch_size:
    raise ValueError("WIKIQUIZ_REVIEW_BATCH_SIZE must not exceed WIKIQUIZ_MAX_REVIEW_BATCH_SIZE.")

  fandom_api_template = (os.getenv("WIKIQUIZ_FANDOM_API_TEMPLATE") or "https://{source}.fandom.com/api.php").strip()
  if "{source}" not in fandom_api_template:
    raise ValueError("WIKIQUIZ_FANDOM_API_TEMPLATE must contain a '{source}' placeholder.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("WIKIQUIZ_ALLOWED_ORIGINS")),
    pg_dsn=_optional_str(os.getenv("WIKIQUIZ_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")),
    pg_connect_timeout=_positive_int("WIKIQUIZ_PG_CONNECT_TIMEOUT", "5"),
    log_dir=(os.getenv("WIKIQUIZ_LOG_DIR") or "./logs").strip(),
    log_max_bytes=_positive_int("WIKIQUIZ_LOG_MAX_BYTES", "5242880"),
    log_backup_count=log_backup_count,
    openai_api_key=_optional_str(os.getenv("OPENAI_API_KEY")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    default_model=(os.getenv("WIKIQUIZ_DEFAULT_MODEL") or "gpt-4o-mini").strip(),
    provider_timeout_seconds=_positive_float("WIKIQUIZ_PROVIDER_TIMEOUT_SECONDS", "60"),
    default_call_budget=default_call_budget,
    max_call_budget=max_call_budget,
    question_density_words=_positive_int("WIKIQUIZ_QUESTION_DENSITY_WORDS", "125"),
    min_questions_per_unit=min_questions,
    max_questions_per_unit=max_questions,
    max_unit_words=max_unit_words,
    min_unit_words=min_unit_words,
    max_prompt_chars=_positive_int("WIKIQUIZ_MAX_PROMPT_CHARS", "15000"),
    # At-least-once processing is an explicit opt-in; ledger outages abort jobs by default.
    ledger_fail_open=_parse_bool(os.getenv("WIKIQUIZ_LEDGER_FAIL_OPEN")),
    ledger_claim_ttl_seconds=_positive_int("WIKIQUIZ_LEDGER_CLAIM_TTL_SECONDS", "900"),
    job_history_limit=_positive_int("WIKIQUIZ_JOB_HISTORY_LIMIT", "20"),
    review_model=(os.getenv("WIKIQUIZ_REVIEW_MODEL") or "gemini-2.5-flash").strip(),
    review_batch_size=review_batch_size,
    max_review_batch_size=max_review_batch_size,
    fandom_api_template=fandom_api_template,
    anilist_url=(os.getenv("WIKIQUIZ_ANILIST_URL") or "https://graphql.anilist.co").strip(),
    http_timeout_seconds=_positive_float("WIKIQUIZ_HTTP_TIMEOUT_SECONDS", "20"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration."""
  debug = _parse_bool(os.getenv("WIKIQUIZ_DEBUG"))
  pg_connect_timeout = _positive_int("WIKIQUIZ_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = _optional_str(os.getenv("WIKIQUIZ_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)

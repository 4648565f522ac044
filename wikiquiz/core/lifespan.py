import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

import httpx
from fastapi import FastAPI

from wikiquiz.config import get_settings
from wikiquiz.core.database import create_tables, dispose_engine, get_db_engine
from wikiquiz.core.logging import initialize_logging
from wikiquiz.services.container import build_services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, storage and the job orchestrator for the app's lifetime."""
  settings = get_settings()
  logger = logging.getLogger("wikiquiz.core.lifespan")

  try:
    initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except RuntimeError:
    # Keep serving with whatever handlers are already attached.
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  engine = get_db_engine()
  if engine is not None:
    logger.info("Using Postgres storage at %s", _redact_dsn(settings.pg_dsn))
    await create_tables(engine)
  else:
    logger.info("No database configured; ledger and questions are kept in memory.")

  http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds, headers={"User-Agent": "wikiquiz-engine/0.1"}, follow_redirects=True)
  services = build_services(settings, http_client)
  app.state.services = services
  try:
    yield
  finally:
    await services.orchestrator.shutdown()
    await services.reviewer.shutdown()
    await http_client.aclose()
    await dispose_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"

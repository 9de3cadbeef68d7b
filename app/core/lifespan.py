import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from app.core.database import create_tables, dispose_engine
from app.core.firebase import initialize_firebase
from app.core.logging import _initialize_logging
from app.services.pipeline import build_pipeline


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging, storage and the worker pool; drain workers on shutdown."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  _initialize_logging(settings)
  logger.info("Starting generation engine env=%s provider=%s", settings.environment, settings.default_ai_provider)

  # Workers are built after Firebase so the dispatcher picks the FCM sender.
  if settings.push_notifications_enabled and not initialize_firebase(settings):
    logger.warning("Push notifications enabled but Firebase is unavailable; using the null sender.")

  if settings.pg_dsn:
    logger.info("Ensuring database tables; GIGAFIT_PG_DSN=%s", _redact_dsn(settings.pg_dsn))
    await create_tables()

  pipeline = getattr(app.state, "pipeline", None) or build_pipeline(settings)
  app.state.pipeline = pipeline
  await pipeline.start()

  try:
    yield
  finally:
    await pipeline.stop()
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

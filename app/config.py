"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_PROVIDER_NAMES = {"openai", "gemini"}
_LANGUAGES = {"en", "vi"}


@dataclass(frozen=True)
class ProviderRetrySettings:
  """Backoff tuning applied around each provider SDK call."""

  max_attempts: int
  base_delay_seconds: float
  max_delay_seconds: float
  multiplier: float


@dataclass(frozen=True)
class Settings:
  """Typed settings for the GigaFit generation engine."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  default_ai_provider: str
  openai_api_key: str | None
  openai_model: str
  gemini_api_key: str | None
  gemini_model: str
  provider_retry: ProviderRetrySettings
  provider_timeout_seconds: float
  job_max_attempts: int
  job_backoff_base_seconds: float
  job_poll_interval_seconds: float
  workout_concurrency: int
  meal_concurrency: int
  inbody_scan_concurrency: int
  body_photo_concurrency: int
  quota_period_days: int
  default_language: str
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  push_notifications_enabled: bool

  def concurrency_for(self, category: str) -> int:
    """Return the worker pool size configured for a generation category."""
    limits = {"workout": self.workout_concurrency, "meal": self.meal_concurrency, "inbody-scan": self.inbody_scan_concurrency, "body-photo": self.body_photo_concurrency}
    return limits[category]


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
    raise ValueError("GIGAFIT_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("GIGAFIT_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


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


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("GIGAFIT_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("GIGAFIT_DEBUG"))

  log_max_bytes = _positive_int("GIGAFIT_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("GIGAFIT_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("GIGAFIT_LOG_BACKUP_COUNT must be zero or a positive integer.")

  default_ai_provider = (os.getenv("GIGAFIT_AI_PROVIDER") or "openai").strip().lower()
  if default_ai_provider not in _PROVIDER_NAMES:
    raise ValueError("GIGAFIT_AI_PROVIDER must be 'openai' or 'gemini'.")

  provider_retry = ProviderRetrySettings(
    max_attempts=_positive_int("GIGAFIT_PROVIDER_MAX_ATTEMPTS", "5"),
    base_delay_seconds=_positive_float("GIGAFIT_PROVIDER_BASE_DELAY_SECONDS", "20"),
    max_delay_seconds=_positive_float("GIGAFIT_PROVIDER_MAX_DELAY_SECONDS", "120"),
    multiplier=_positive_float("GIGAFIT_PROVIDER_BACKOFF_MULTIPLIER", "2"),
  )
  if provider_retry.max_delay_seconds < provider_retry.base_delay_seconds:
    raise ValueError("GIGAFIT_PROVIDER_MAX_DELAY_SECONDS must not be below the base delay.")

  default_language = (os.getenv("GIGAFIT_DEFAULT_LANGUAGE") or "vi").strip().lower()
  if default_language not in _LANGUAGES:
    raise ValueError("GIGAFIT_DEFAULT_LANGUAGE must be 'en' or 'vi'.")

  push_notifications_enabled = _parse_bool(os.getenv("GIGAFIT_PUSH_NOTIFICATIONS_ENABLED"))
  firebase_project_id = _optional_str(os.getenv("FIREBASE_PROJECT_ID"))
  # Validate push configuration only when push notifications are enabled.
  if push_notifications_enabled and not firebase_project_id:
    raise ValueError("FIREBASE_PROJECT_ID must be set when push notifications are enabled.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("GIGAFIT_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("GIGAFIT_LOG_HTTP_4XX")),
    pg_dsn=_optional_str(os.getenv("GIGAFIT_PG_DSN") or os.getenv("DATABASE_URL")),
    pg_connect_timeout=_positive_int("GIGAFIT_PG_CONNECT_TIMEOUT", "5"),
    default_ai_provider=default_ai_provider,
    openai_api_key=_optional_str(os.getenv("OPENAI_API_KEY")),
    openai_model=(os.getenv("GIGAFIT_OPENAI_MODEL") or "gpt-4o").strip(),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    gemini_model=(os.getenv("GIGAFIT_GEMINI_MODEL") or "gemini-2.0-flash-exp").strip(),
    provider_retry=provider_retry,
    provider_timeout_seconds=_positive_float("GIGAFIT_PROVIDER_TIMEOUT_SECONDS", "90"),
    job_max_attempts=_positive_int("GIGAFIT_JOB_MAX_ATTEMPTS", "3"),
    job_backoff_base_seconds=_positive_float("GIGAFIT_JOB_BACKOFF_BASE_SECONDS", "2"),
    job_poll_interval_seconds=_positive_float("GIGAFIT_JOB_POLL_INTERVAL_SECONDS", "1"),
    workout_concurrency=_positive_int("GIGAFIT_WORKOUT_CONCURRENCY", "3"),
    meal_concurrency=_positive_int("GIGAFIT_MEAL_CONCURRENCY", "3"),
    inbody_scan_concurrency=_positive_int("GIGAFIT_INBODY_SCAN_CONCURRENCY", "5"),
    body_photo_concurrency=_positive_int("GIGAFIT_BODY_PHOTO_CONCURRENCY", "5"),
    quota_period_days=_positive_int("GIGAFIT_QUOTA_PERIOD_DAYS", "30"),
    default_language=default_language,
    firebase_project_id=firebase_project_id,
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    push_notifications_enabled=push_notifications_enabled,
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring provider or queue configuration."""
  debug = _parse_bool(os.getenv("GIGAFIT_DEBUG"))
  pg_connect_timeout = _positive_int("GIGAFIT_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = _optional_str(os.getenv("GIGAFIT_PG_DSN") or os.getenv("DATABASE_URL"))
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)

"""Storage selection: Postgres when a DSN is configured, in-memory otherwise."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.config import Settings
from app.notifications.device_token_repo import DeviceTokenRepository
from app.notifications.factory import build_device_token_repo
from app.storage.artifacts_repo import ArtifactRepository, InMemoryArtifactRepository, PostgresArtifactRepository
from app.storage.jobs_repo import InMemoryJobsRepository, JobsRepository
from app.storage.postgres_jobs_repo import PostgresJobsRepository
from app.storage.postgres_quota_repo import PostgresQuotaRepository
from app.storage.profiles_repo import InMemoryUserProfileRepository, PostgresUserProfileRepository, UserProfileRepository
from app.storage.quota_repo import InMemoryQuotaRepository, QuotaRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Repositories:
  jobs: JobsRepository
  quotas: QuotaRepository
  artifacts: ArtifactRepository
  profiles: UserProfileRepository
  device_tokens: DeviceTokenRepository


def build_repositories(settings: Settings) -> Repositories:
  if settings.pg_dsn:
    return Repositories(
      jobs=PostgresJobsRepository(),
      quotas=PostgresQuotaRepository(),
      artifacts=PostgresArtifactRepository(),
      profiles=PostgresUserProfileRepository(),
      device_tokens=build_device_token_repo(settings),
    )

  # Without a database everything lives in process memory and is lost on restart.
  logger.warning("GIGAFIT_PG_DSN is not set; using in-memory storage.")
  return Repositories(
    jobs=InMemoryJobsRepository(),
    quotas=InMemoryQuotaRepository(),
    artifacts=InMemoryArtifactRepository(),
    profiles=InMemoryUserProfileRepository(),
    device_tokens=build_device_token_repo(settings),
  )

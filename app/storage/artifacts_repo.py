"""Storage for validated generation artifacts."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from app.core.database import get_session_factory
from app.schema.sql import GenerationArtifact


@dataclass(frozen=True)
class ArtifactEntry:
  """A stored artifact; `content` is the serialized category result."""

  artifact_id: str
  job_id: str
  user_id: str
  category: str
  provider: str
  fallback_used: bool
  content: dict[str, Any]
  created_at: datetime


class ArtifactRepository(Protocol):
  async def save(self, entry: ArtifactEntry) -> str:
    """Persist an artifact and return its reference; saving the same job twice keeps the first."""

  async def get(self, artifact_id: str) -> ArtifactEntry | None:
    """Fetch an artifact by reference."""


class InMemoryArtifactRepository:
  def __init__(self) -> None:
    self._entries: dict[str, ArtifactEntry] = {}
    self._by_job: dict[str, str] = {}

  async def save(self, entry: ArtifactEntry) -> str:
    existing = self._by_job.get(entry.job_id)
    if existing is not None:
      return existing
    self._entries[entry.artifact_id] = dataclasses.replace(entry)
    self._by_job[entry.job_id] = entry.artifact_id
    return entry.artifact_id

  async def get(self, artifact_id: str) -> ArtifactEntry | None:
    return self._entries.get(artifact_id)


class PostgresArtifactRepository:
  """Persist artifacts in Postgres, one row per job."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def save(self, entry: ArtifactEntry) -> str:
    values = {
      "artifact_id": entry.artifact_id,
      "job_id": entry.job_id,
      "user_id": entry.user_id,
      "category": entry.category,
      "provider": entry.provider,
      "fallback_used": entry.fallback_used,
      "content": entry.content,
      "created_at": entry.created_at,
    }
    # Redelivered jobs keep the artifact written by the first run.
    stmt = insert(GenerationArtifact).values(**values).on_conflict_do_nothing(index_elements=["job_id"]).returning(GenerationArtifact.artifact_id)
    async with self._session_factory() as session:
      inserted = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
      if inserted is not None:
        return inserted
      existing = await session.scalar(select(GenerationArtifact.artifact_id).where(GenerationArtifact.job_id == entry.job_id))
      return str(existing)

  async def get(self, artifact_id: str) -> ArtifactEntry | None:
    async with self._session_factory() as session:
      row = await session.get(GenerationArtifact, artifact_id)
      if row is None:
        return None
      return ArtifactEntry(
        artifact_id=row.artifact_id, job_id=row.job_id, user_id=row.user_id, category=row.category, provider=row.provider, fallback_used=row.fallback_used, content=dict(row.content), created_at=row.created_at
      )

"""User profile lookups needed by the pipeline (notification language, plan)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.dialects.postgresql import insert

from app.core.database import get_session_factory
from app.schema.sql import UserProfile


@dataclass(frozen=True)
class UserProfileEntry:
  user_id: str
  language: str
  plan: str


class UserProfileRepository(Protocol):
  async def get(self, user_id: str) -> UserProfileEntry | None:
    """Fetch a user's profile."""

  async def upsert(self, entry: UserProfileEntry) -> None:
    """Create or replace a user's profile."""


class InMemoryUserProfileRepository:
  def __init__(self) -> None:
    self._profiles: dict[str, UserProfileEntry] = {}

  async def get(self, user_id: str) -> UserProfileEntry | None:
    return self._profiles.get(user_id)

  async def upsert(self, entry: UserProfileEntry) -> None:
    self._profiles[entry.user_id] = entry


class PostgresUserProfileRepository:
  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get(self, user_id: str) -> UserProfileEntry | None:
    async with self._session_factory() as session:
      row = await session.get(UserProfile, user_id)
      return None if row is None else UserProfileEntry(user_id=row.user_id, language=row.language, plan=row.plan)

  async def upsert(self, entry: UserProfileEntry) -> None:
    stmt = insert(UserProfile).values(user_id=entry.user_id, language=entry.language, plan=entry.plan)
    stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_={"language": entry.language, "plan": entry.plan})
    async with self._session_factory() as session:
      await session.execute(stmt)
      await session.commit()

"""Repository helpers for mobile push device tokens."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert

from app.core.database import get_session_factory
from app.schema.sql import DeviceToken


@dataclass(frozen=True)
class DeviceTokenEntry:
  """A registered FCM token for one of the user's devices."""

  user_id: str
  token: str
  platform: str = "android"


class DeviceTokenRepository(Protocol):
  async def upsert(self, entry: DeviceTokenEntry) -> None:
    """Register a token; a token moves to the latest user that registers it."""

  async def list_for_user(self, user_id: str) -> list[DeviceTokenEntry]:
    """List all tokens registered for a user."""

  async def delete_tokens(self, tokens: list[str]) -> None:
    """Drop tokens that the push provider reported as invalid."""


class InMemoryDeviceTokenRepository:
  def __init__(self) -> None:
    self._entries: dict[str, DeviceTokenEntry] = {}

  async def upsert(self, entry: DeviceTokenEntry) -> None:
    self._entries[entry.token] = entry

  async def list_for_user(self, user_id: str) -> list[DeviceTokenEntry]:
    return [entry for entry in self._entries.values() if entry.user_id == user_id]

  async def delete_tokens(self, tokens: list[str]) -> None:
    for token in tokens:
      self._entries.pop(token, None)


class PostgresDeviceTokenRepository:
  """Persist device tokens in Postgres."""

  async def upsert(self, entry: DeviceTokenEntry) -> None:
    session_factory = get_session_factory()
    if session_factory is None:
      return

    # Upsert by token so reinstalling the app re-binds the device cleanly.
    stmt = insert(DeviceToken).values(user_id=entry.user_id, token=entry.token, platform=entry.platform)
    stmt = stmt.on_conflict_do_update(index_elements=["token"], set_={"user_id": entry.user_id, "platform": entry.platform})
    async with session_factory() as session:
      await session.execute(stmt)
      await session.commit()

  async def list_for_user(self, user_id: str) -> list[DeviceTokenEntry]:
    session_factory = get_session_factory()
    if session_factory is None:
      return []

    async with session_factory() as session:
      rows = (await session.execute(select(DeviceToken).where(DeviceToken.user_id == user_id))).scalars().all()
      return [DeviceTokenEntry(user_id=row.user_id, token=row.token, platform=row.platform) for row in rows]

  async def delete_tokens(self, tokens: list[str]) -> None:
    session_factory = get_session_factory()
    if session_factory is None or not tokens:
      return

    async with session_factory() as session:
      await session.execute(delete(DeviceToken).where(DeviceToken.token.in_(tokens)))
      await session.commit()

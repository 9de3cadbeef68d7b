"""Storage interfaces for per-user, per-category generation quotas."""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

UNLIMITED = -1


@dataclass(frozen=True)
class QuotaRecord:
  """Usage counter for one (user, category) pair within the current period."""

  user_id: str
  category: str
  period_start: datetime
  used: int
  limit: int

  @property
  def unlimited(self) -> bool:
    return self.limit == UNLIMITED

  @property
  def remaining(self) -> int:
    if self.unlimited:
      return UNLIMITED
    return max(0, self.limit - self.used)


class QuotaRecordNotFoundError(LookupError):
  """No quota record exists for the user/category."""

  def __init__(self, user_id: str, category: str | None = None) -> None:
    target = f"user_id={user_id}" if category is None else f"user_id={user_id} category={category}"
    super().__init__(f"Quota record not found {target}")
    self.user_id = user_id
    self.category = category


QuotaMutation = Callable[[QuotaRecord], QuotaRecord]


class QuotaRepository(Protocol):
  """Repository contract for quota persistence."""

  async def get(self, user_id: str, category: str) -> QuotaRecord | None:
    """Fetch a quota record."""

  async def list_for_user(self, user_id: str) -> list[QuotaRecord]:
    """Return every quota record owned by a user."""

  async def upsert(self, record: QuotaRecord) -> None:
    """Insert or overwrite a quota record."""

  async def update(self, user_id: str, category: str, mutate: QuotaMutation) -> QuotaRecord:
    """Apply `mutate` as one atomic read-modify-write and return the stored record.

    Raises QuotaRecordNotFoundError when the record does not exist.
    """


class InMemoryQuotaRepository:
  """Process-local quota storage for development and tests.

  One lock guards every record, so memory stays flat as users accumulate.
  """

  def __init__(self) -> None:
    self._records: dict[tuple[str, str], QuotaRecord] = {}
    self._lock = asyncio.Lock()

  async def get(self, user_id: str, category: str) -> QuotaRecord | None:
    return self._records.get((user_id, category))

  async def list_for_user(self, user_id: str) -> list[QuotaRecord]:
    return [record for (owner, _), record in self._records.items() if owner == user_id]

  async def upsert(self, record: QuotaRecord) -> None:
    key = (record.user_id, record.category)
    async with self._lock:
      self._records[key] = dataclasses.replace(record)

  async def update(self, user_id: str, category: str, mutate: QuotaMutation) -> QuotaRecord:
    key = (user_id, category)
    async with self._lock:
      current = self._records.get(key)
      if current is None:
        raise QuotaRecordNotFoundError(user_id, category)
      updated = mutate(current)
      self._records[key] = updated
      return updated

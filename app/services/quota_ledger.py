"""Per-user, per-category generation quotas with lazy period rollover."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from app.schema.generation import GenerationCategory, SubscriptionPlan
from app.storage.quota_repo import UNLIMITED, QuotaRecord, QuotaRecordNotFoundError, QuotaRepository

logger = logging.getLogger(__name__)

PLAN_LIMITS: dict[SubscriptionPlan, int] = {SubscriptionPlan.FREE: 2, SubscriptionPlan.PREMIUM: 10, SubscriptionPlan.ENTERPRISE: UNLIMITED}

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
  return datetime.now(UTC)


def _category_key(category: GenerationCategory | str) -> str:
  return category.value if isinstance(category, GenerationCategory) else GenerationCategory(category).value


class QuotaLedger:
  """Admission checks and usage accounting for generation requests.

  Every operation is a single atomic read-modify-write on one record. Checking and
  charging are separate operations, so concurrent workers of one user can overrun
  a limit by at most (concurrency - 1).
  """

  def __init__(self, repo: QuotaRepository, *, period_days: int = 30, clock: Clock = _utcnow) -> None:
    self._repo = repo
    self._period = timedelta(days=period_days)
    self._clock = clock

  def _rolled(self, record: QuotaRecord) -> QuotaRecord:
    now = self._clock()
    if now - record.period_start >= self._period:
      logger.info("Quota period rolled over user_id=%s category=%s used=%d", record.user_id, record.category, record.used)
      return dataclasses.replace(record, used=0, period_start=now)
    return record

  async def _current(self, user_id: str, category: GenerationCategory | str) -> QuotaRecord:
    return await self._repo.update(user_id, _category_key(category), self._rolled)

  async def has_available(self, user_id: str, category: GenerationCategory | str) -> bool:
    record = await self._current(user_id, category)
    return record.unlimited or record.used < record.limit

  async def increment(self, user_id: str, category: GenerationCategory | str) -> QuotaRecord:
    """Charge one generation; usage is tracked for unlimited plans too."""

    def _charge(current: QuotaRecord) -> QuotaRecord:
      rolled = self._rolled(current)
      return dataclasses.replace(rolled, used=rolled.used + 1)

    record = await self._repo.update(user_id, _category_key(category), _charge)
    logger.debug("Quota incremented user_id=%s category=%s used=%d limit=%d", user_id, record.category, record.used, record.limit)
    return record

  async def decrement(self, user_id: str, category: GenerationCategory | str) -> QuotaRecord:
    """Refund one generation; never drops below zero."""

    def _refund(current: QuotaRecord) -> QuotaRecord:
      rolled = self._rolled(current)
      return dataclasses.replace(rolled, used=max(0, rolled.used - 1))

    record = await self._repo.update(user_id, _category_key(category), _refund)
    logger.debug("Quota decremented user_id=%s category=%s used=%d", user_id, record.category, record.used)
    return record

  async def remaining(self, user_id: str, category: GenerationCategory | str) -> dict[str, int]:
    record = await self._current(user_id, category)
    return {"used": record.used, "limit": record.limit, "remaining": record.remaining}

  async def stats(self, user_id: str) -> dict[str, dict[str, int]]:
    """Usage for every category the user has a record for."""
    records = await self._repo.list_for_user(user_id)
    if not records:
      raise QuotaRecordNotFoundError(user_id)
    snapshot: dict[str, dict[str, int]] = {}
    for record in records:
      snapshot[record.category] = await self.remaining(user_id, record.category)
    return snapshot

  async def open_account(self, user_id: str, plan: SubscriptionPlan = SubscriptionPlan.FREE) -> None:
    """Create any missing quota records for a user from their plan limits."""
    now = self._clock()
    for category in GenerationCategory:
      if await self._repo.get(user_id, category.value) is None:
        await self._repo.upsert(QuotaRecord(user_id=user_id, category=category.value, period_start=now, used=0, limit=PLAN_LIMITS[plan]))

  async def change_plan(self, user_id: str, plan: SubscriptionPlan) -> None:
    """Apply a plan's limits to every category, keeping usage in the current period."""
    limit = PLAN_LIMITS[plan]
    await self.open_account(user_id, plan)
    for category in GenerationCategory:
      await self._repo.update(user_id, category.value, lambda current: dataclasses.replace(self._rolled(current), limit=limit))
    logger.info("Quota plan changed user_id=%s plan=%s", user_id, plan.value)

  async def reset_period(self, user_id: str) -> None:
    """Start a fresh period now for every category."""
    records = await self._repo.list_for_user(user_id)
    if not records:
      raise QuotaRecordNotFoundError(user_id)
    now = self._clock()
    for record in records:
      await self._repo.update(user_id, record.category, lambda current: dataclasses.replace(current, used=0, period_start=now))

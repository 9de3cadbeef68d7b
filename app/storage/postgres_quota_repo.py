"""Postgres-backed quota repository using SQLAlchemy."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from app.core.database import get_session_factory
from app.schema.quotas import QuotaRecordRow
from app.storage.quota_repo import QuotaMutation, QuotaRecord, QuotaRecordNotFoundError


class PostgresQuotaRepository:
  """Persist quota records; updates hold a row lock for the whole read-modify-write."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get(self, user_id: str, category: str) -> QuotaRecord | None:
    async with self._session_factory() as session:
      row = await session.get(QuotaRecordRow, (user_id, category))
      return None if row is None else _to_record(row)

  async def list_for_user(self, user_id: str) -> list[QuotaRecord]:
    async with self._session_factory() as session:
      stmt = select(QuotaRecordRow).where(QuotaRecordRow.user_id == user_id).order_by(QuotaRecordRow.category)
      rows = (await session.execute(stmt)).scalars().all()
      return [_to_record(row) for row in rows]

  async def upsert(self, record: QuotaRecord) -> None:
    values = {"user_id": record.user_id, "category": record.category, "period_start": record.period_start, "used": record.used, "quota_limit": record.limit}
    stmt = insert(QuotaRecordRow).values(**values)
    stmt = stmt.on_conflict_do_update(index_elements=["user_id", "category"], set_={"period_start": stmt.excluded.period_start, "used": stmt.excluded.used, "quota_limit": stmt.excluded.quota_limit})
    async with self._session_factory() as session:
      await session.execute(stmt)
      await session.commit()

  async def update(self, user_id: str, category: str, mutate: QuotaMutation) -> QuotaRecord:
    async with self._session_factory() as session:
      async with session.begin():
        stmt = select(QuotaRecordRow).where(QuotaRecordRow.user_id == user_id, QuotaRecordRow.category == category).with_for_update()
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
          raise QuotaRecordNotFoundError(user_id, category)
        updated = mutate(_to_record(row))
        row.period_start = updated.period_start
        row.used = updated.used
        row.limit = updated.limit
      return updated


def _to_record(row: QuotaRecordRow) -> QuotaRecord:
  return QuotaRecord(user_id=row.user_id, category=row.category, period_start=row.period_start, used=row.used, limit=row.limit)

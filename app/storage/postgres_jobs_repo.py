"""Postgres-backed repository for generation jobs using SQLAlchemy."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session_factory
from app.jobs.errors import JobNotFoundError, TerminalJobError
from app.jobs.models import TERMINAL_STATES, GenerationJobRecord
from app.jobs.progress import COMPLETED, clamp_progress
from app.schema.jobs import GenerationJob


def _now() -> datetime:
  return datetime.now(UTC)


class PostgresJobsRepository:
  """Persist generation jobs to Postgres; claims use SKIP LOCKED so workers never share a job."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: GenerationJobRecord) -> None:
    async with self._session_factory() as session:
      session.add(
        GenerationJob(
          job_id=record.job_id,
          user_id=record.user_id,
          category=record.category,
          payload=record.payload,
          state=record.state,
          attempt=record.attempt,
          max_attempts=record.max_attempts,
          progress=record.progress,
          quota_charged=record.quota_charged,
          created_at=record.created_at,
          updated_at=record.updated_at,
        )
      )
      await session.commit()

  async def get_job(self, job_id: str) -> GenerationJobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(GenerationJob, job_id)
      return None if row is None else _to_record(row)

  async def claim_next(self, category: str) -> GenerationJobRecord | None:
    async with self._session_factory() as session:
      stmt = select(GenerationJob).where(GenerationJob.category == category, GenerationJob.state == "queued").order_by(GenerationJob.created_at.asc()).with_for_update(skip_locked=True).limit(1)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      now = _now()
      row.state = "active"
      row.started_at = row.started_at or now
      row.updated_at = now
      await session.commit()
      return _to_record(row)

  async def update_job(self, job_id: str, *, attempt: int | None = None, progress: int | None = None, quota_charged: bool | None = None) -> GenerationJobRecord:
    async with self._session_factory() as session:
      row = await self._locked(session, job_id)
      if row.state not in TERMINAL_STATES:
        if attempt is not None:
          row.attempt = attempt
        if progress is not None:
          row.progress = clamp_progress(row.progress, progress)
        if quota_charged is not None:
          row.quota_charged = quota_charged
        row.updated_at = _now()
      await session.commit()
      return _to_record(row)

  async def complete_job(self, job_id: str, *, result: str) -> GenerationJobRecord:
    async with self._session_factory() as session:
      row = await self._locked_open(session, job_id)
      now = _now()
      row.state = "completed"
      row.progress = COMPLETED
      row.result = result
      row.completed_at = now
      row.updated_at = now
      await session.commit()
      return _to_record(row)

  async def fail_job(self, job_id: str, *, failure_reason: str) -> GenerationJobRecord:
    async with self._session_factory() as session:
      row = await self._locked_open(session, job_id)
      now = _now()
      row.state = "failed"
      row.progress = min(row.progress, COMPLETED - 1)
      row.failure_reason = failure_reason
      row.completed_at = now
      row.updated_at = now
      await session.commit()
      return _to_record(row)

  async def list_active_for_user(self, user_id: str) -> list[GenerationJobRecord]:
    async with self._session_factory() as session:
      stmt = select(GenerationJob).where(GenerationJob.user_id == user_id, GenerationJob.state.in_(("queued", "active"))).order_by(GenerationJob.created_at.asc())
      rows = (await session.execute(stmt)).scalars().all()
      return [_to_record(row) for row in rows]

  async def requeue_active(self) -> int:
    async with self._session_factory() as session:
      result = await session.execute(update(GenerationJob).where(GenerationJob.state == "active").values(state="queued", updated_at=_now()))
      await session.commit()
      return int(result.rowcount or 0)

  async def _locked(self, session: AsyncSession, job_id: str) -> GenerationJob:
    stmt = select(GenerationJob).where(GenerationJob.job_id == job_id).with_for_update()
    row = (await session.execute(stmt)).scalar_one_or_none()
    if row is None:
      raise JobNotFoundError(job_id)
    return row

  async def _locked_open(self, session: AsyncSession, job_id: str) -> GenerationJob:
    row = await self._locked(session, job_id)
    if row.state in TERMINAL_STATES:
      raise TerminalJobError(f"Job {job_id} is already {row.state}")
    return row


def _to_record(row: GenerationJob) -> GenerationJobRecord:
  return GenerationJobRecord(
    job_id=row.job_id,
    user_id=row.user_id,
    category=row.category,
    payload=dict(row.payload or {}),
    state=row.state,  # type: ignore[arg-type]
    created_at=row.created_at,
    updated_at=row.updated_at,
    max_attempts=row.max_attempts,
    attempt=row.attempt,
    progress=row.progress,
    result=row.result,
    failure_reason=row.failure_reason,
    quota_charged=row.quota_charged,
    started_at=row.started_at,
    completed_at=row.completed_at,
  )

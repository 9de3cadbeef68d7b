"""Storage interfaces for generation jobs."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import UTC, datetime
from typing import Any, Protocol

from app.jobs.errors import JobNotFoundError, TerminalJobError
from app.jobs.models import GenerationJobRecord
from app.jobs.progress import COMPLETED, clamp_progress


def _now() -> datetime:
  return datetime.now(UTC)


class JobsRepository(Protocol):
  """Repository contract for job persistence."""

  async def create_job(self, record: GenerationJobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> GenerationJobRecord | None:
    """Fetch a job by identifier."""

  async def claim_next(self, category: str) -> GenerationJobRecord | None:
    """Move the oldest queued job of a category to active and return it."""

  async def update_job(self, job_id: str, *, attempt: int | None = None, progress: int | None = None, quota_charged: bool | None = None) -> GenerationJobRecord:
    """Apply bookkeeping updates to an active job; progress never moves backwards."""

  async def complete_job(self, job_id: str, *, result: str) -> GenerationJobRecord:
    """Mark a job completed at 100% with its artifact reference."""

  async def fail_job(self, job_id: str, *, failure_reason: str) -> GenerationJobRecord:
    """Mark a job failed, leaving progress below 100."""

  async def list_active_for_user(self, user_id: str) -> list[GenerationJobRecord]:
    """Return the user's queued and active jobs, oldest first."""

  async def requeue_active(self) -> int:
    """Return active jobs to the queue after a restart; yields the count."""


class InMemoryJobsRepository:
  """Process-local job storage used without a database and in tests."""

  def __init__(self) -> None:
    self._jobs: dict[str, GenerationJobRecord] = {}
    self._lock = asyncio.Lock()

  async def create_job(self, record: GenerationJobRecord) -> None:
    async with self._lock:
      self._jobs[record.job_id] = dataclasses.replace(record)

  async def get_job(self, job_id: str) -> GenerationJobRecord | None:
    record = self._jobs.get(job_id)
    return None if record is None else dataclasses.replace(record)

  async def claim_next(self, category: str) -> GenerationJobRecord | None:
    async with self._lock:
      queued = [job for job in self._jobs.values() if job.category == category and job.state == "queued"]
      if not queued:
        return None
      job = min(queued, key=lambda item: item.created_at)
      now = _now()
      job.state = "active"
      job.started_at = job.started_at or now
      job.updated_at = now
      return dataclasses.replace(job)

  async def update_job(self, job_id: str, *, attempt: int | None = None, progress: int | None = None, quota_charged: bool | None = None) -> GenerationJobRecord:
    async with self._lock:
      job = self._require(job_id)
      if job.terminal:
        return dataclasses.replace(job)
      changes: dict[str, Any] = {}
      if attempt is not None:
        changes["attempt"] = attempt
      if progress is not None:
        changes["progress"] = clamp_progress(job.progress, progress)
      if quota_charged is not None:
        changes["quota_charged"] = quota_charged
      return self._apply(job, changes)

  async def complete_job(self, job_id: str, *, result: str) -> GenerationJobRecord:
    async with self._lock:
      job = self._require_open(job_id)
      now = _now()
      return self._apply(job, {"state": "completed", "progress": COMPLETED, "result": result, "completed_at": now})

  async def fail_job(self, job_id: str, *, failure_reason: str) -> GenerationJobRecord:
    async with self._lock:
      job = self._require_open(job_id)
      progress = min(job.progress, COMPLETED - 1)
      return self._apply(job, {"state": "failed", "progress": progress, "failure_reason": failure_reason, "completed_at": _now()})

  async def list_active_for_user(self, user_id: str) -> list[GenerationJobRecord]:
    jobs = [job for job in self._jobs.values() if job.user_id == user_id and job.state in {"queued", "active"}]
    return [dataclasses.replace(job) for job in sorted(jobs, key=lambda item: item.created_at)]

  async def requeue_active(self) -> int:
    async with self._lock:
      stale = [job for job in self._jobs.values() if job.state == "active"]
      for job in stale:
        job.state = "queued"
        job.updated_at = _now()
      return len(stale)

  def _require(self, job_id: str) -> GenerationJobRecord:
    job = self._jobs.get(job_id)
    if job is None:
      raise JobNotFoundError(job_id)
    return job

  def _require_open(self, job_id: str) -> GenerationJobRecord:
    job = self._require(job_id)
    if job.terminal:
      raise TerminalJobError(f"Job {job_id} is already {job.state}")
    return job

  def _apply(self, job: GenerationJobRecord, changes: dict[str, Any]) -> GenerationJobRecord:
    for key, value in changes.items():
      setattr(job, key, value)
    job.updated_at = _now()
    return dataclasses.replace(job)

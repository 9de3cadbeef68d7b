"""Durable per-category job queue with a fixed-size asyncio worker pool."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from app.jobs.errors import JobNotFoundError
from app.jobs.models import GenerationJobRecord
from app.jobs.worker import JobProcessor
from app.schema.generation import GenerationCategory
from app.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


class JobQueue:
  """Accepts jobs and runs them on `concurrency[category]` workers per category.

  Jobs are persisted before workers see them. Workers claim the oldest queued job of
  their category, so a restart only needs to return stale active jobs to the queue.
  """

  def __init__(self, *, jobs_repo: JobsRepository, processor: JobProcessor, concurrency: dict[str, int], max_attempts: int = 3, poll_interval_seconds: float = 1.0) -> None:
    self._jobs_repo = jobs_repo
    self._processor = processor
    self._concurrency = {GenerationCategory(name).value: count for name, count in concurrency.items()}
    self._max_attempts = max_attempts
    self._poll_interval = poll_interval_seconds
    self._wakeups: dict[str, asyncio.Event] = {category: asyncio.Event() for category in self._concurrency}
    self._tasks: list[asyncio.Task[None]] = []
    self._stopping = False

  @property
  def running(self) -> bool:
    return bool(self._tasks) and not self._stopping

  async def enqueue(self, user_id: str, category: GenerationCategory | str, payload: dict[str, Any]) -> str:
    category_value = GenerationCategory(category).value
    now = datetime.now(UTC)
    record = GenerationJobRecord(
      job_id=str(uuid.uuid4()),
      user_id=user_id,
      category=category_value,
      payload=dict(payload),
      state="queued",
      created_at=now,
      updated_at=now,
      max_attempts=self._max_attempts,
    )
    await self._jobs_repo.create_job(record)
    wakeup = self._wakeups.get(category_value)
    if wakeup is not None:
      wakeup.set()
    logger.info("Job enqueued job_id=%s user_id=%s category=%s", record.job_id, user_id, category_value)
    return record.job_id

  async def get_status(self, job_id: str) -> GenerationJobRecord:
    record = await self._jobs_repo.get_job(job_id)
    if record is None:
      raise JobNotFoundError(job_id)
    return record

  async def list_active_for_user(self, user_id: str) -> list[GenerationJobRecord]:
    return await self._jobs_repo.list_active_for_user(user_id)

  async def run_once(self, category: GenerationCategory | str) -> GenerationJobRecord | None:
    """Claim and process the next queued job of a category, if any."""
    job = await self._jobs_repo.claim_next(GenerationCategory(category).value)
    if job is None:
      return None
    logger.info("Job claimed job_id=%s category=%s attempt=%d", job.job_id, job.category, job.attempt)
    return await self._processor.process_job(job)

  async def start(self) -> None:
    if self._tasks:
      return
    self._stopping = False
    # Jobs left active by a previous process are redelivered; their quota charge is kept.
    requeued = await self._jobs_repo.requeue_active()
    if requeued:
      logger.warning("Requeued %d stale active jobs", requeued)
    for category, count in self._concurrency.items():
      for index in range(count):
        task = asyncio.create_task(self._worker_loop(category), name=f"generation-worker-{category}-{index}")
        task.add_done_callback(self._log_task_error)
        self._tasks.append(task)
    logger.info("Job queue started workers=%s", self._concurrency)

  async def stop(self, *, drain_timeout: float = 30.0) -> None:
    """Let workers finish their current job, then cancel whatever is still running."""
    if not self._tasks:
      return
    self._stopping = True
    for wakeup in self._wakeups.values():
      wakeup.set()
    _, pending = await asyncio.wait(self._tasks, timeout=drain_timeout)
    for task in pending:
      task.cancel()
    for task in pending:
      with contextlib.suppress(asyncio.CancelledError):
        await task
    if pending:
      logger.warning("Cancelled %d workers that did not drain in %.1fs", len(pending), drain_timeout)
    self._tasks = []
    logger.info("Job queue stopped")

  async def _worker_loop(self, category: str) -> None:
    wakeup = self._wakeups[category]
    while not self._stopping:
      # Cleared before claiming so an enqueue racing the claim still wakes this worker.
      wakeup.clear()
      try:
        processed = await self.run_once(category)
      except Exception as exc:  # noqa: BLE001
        logger.error("Worker loop error category=%s: %s", category, exc, exc_info=True)
        processed = None
      if processed is not None:
        continue
      with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(wakeup.wait(), timeout=self._poll_interval)

  @staticmethod
  def _log_task_error(task: asyncio.Task[None]) -> None:
    """Log worker task exceptions to avoid silent worker death."""
    if task.cancelled():
      return
    try:
      _ = task.result()
    except Exception as exc:  # noqa: BLE001
      logger.error("Background worker task failed: %s", exc, exc_info=True)

"""Background processor for claimed generation jobs."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from app.ai.errors import error_summary, is_retryable
from app.ai.orchestrator import GenerationOrchestrator, OrchestrationResult
from app.jobs.errors import FatalJobError, TerminalJobError
from app.jobs.events import EventChannel, GenerationCompleted, GenerationFailed
from app.jobs.models import GenerationJobRecord
from app.jobs.progress import FINALIZING, GENERATING, STARTED
from app.notifications.dispatcher import NotificationDispatcher
from app.schema.generation import GenerationCategory, GenerationRequest, InvalidPayloadError, parse_payload
from app.services.quota_ledger import QuotaLedger
from app.storage.artifacts_repo import ArtifactEntry, ArtifactRepository
from app.storage.jobs_repo import JobsRepository
from app.storage.quota_repo import QuotaRecordNotFoundError

Sleeper = Callable[[float], Awaitable[None]]


def job_retry_delay(attempt: int, base_seconds: float) -> float:
  """Delay before the next job attempt: base, 2x base, 4x base..."""
  return base_seconds * (2 ** (attempt - 1))


class JobProcessor:
  """Runs one claimed job to a terminal state.

  Quota is charged once at dispatch and refunded once on terminal failure. A job is
  retried in place (it stays active) for retryable errors up to its max_attempts.
  """

  def __init__(
    self,
    *,
    jobs_repo: JobsRepository,
    quota_ledger: QuotaLedger,
    orchestrator: GenerationOrchestrator,
    artifacts: ArtifactRepository,
    notifier: NotificationDispatcher,
    events: EventChannel | None = None,
    backoff_base_seconds: float = 2.0,
    sleep: Sleeper = asyncio.sleep,
  ) -> None:
    self._jobs_repo = jobs_repo
    self._quota = quota_ledger
    self._orchestrator = orchestrator
    self._artifacts = artifacts
    self._notifier = notifier
    self._events = events or EventChannel()
    self._backoff_base_seconds = backoff_base_seconds
    self._sleep = sleep
    self._logger = logging.getLogger(__name__)

  async def process_job(self, job: GenerationJobRecord) -> GenerationJobRecord:
    """Execute a single active job; never raises for job-level failures."""
    if job.terminal:
      return job
    try:
      return await self._run(job)
    except TerminalJobError:
      self._logger.warning("Job %s reached a terminal state concurrently", job.job_id)
      return await self._reload(job)
    except Exception as exc:  # noqa: BLE001
      self._logger.error("Job processor failed unexpectedly for job %s", job.job_id, exc_info=True)
      return await self._fail(job, "internal_error", attempts=job.attempt, cause=exc)

  async def _run(self, job: GenerationJobRecord) -> GenerationJobRecord:
    job = await self._jobs_repo.update_job(job.job_id, progress=STARTED)
    try:
      request = self._parse(job)
      job = await self._charge(job)
    except FatalJobError as exc:
      self._logger.warning("Job %s failed before generation reason=%s", job.job_id, exc.reason)
      return await self._fail(job, exc.reason, attempts=job.attempt, cause=exc)

    category = GenerationCategory(job.category)
    last_error: BaseException | None = None
    for attempt in range(job.attempt + 1, job.max_attempts + 1):
      job = await self._jobs_repo.update_job(job.job_id, attempt=attempt, progress=GENERATING)
      try:
        outcome = await self._orchestrator.generate(category, request)
      except Exception as exc:  # noqa: BLE001
        last_error = exc
        if not is_retryable(exc):
          self._logger.error("Job %s attempt %d failed with fatal error: %s", job.job_id, attempt, exc)
          break
        if attempt >= job.max_attempts:
          self._logger.error("Job %s attempt %d failed; attempts exhausted: %s", job.job_id, attempt, exc)
          break
        delay = job_retry_delay(attempt, self._backoff_base_seconds)
        self._logger.warning("Job %s attempt %d/%d failed: %s. Retrying in %.1fs", job.job_id, attempt, job.max_attempts, exc, delay)
        await self._sleep(delay)
        continue
      return await self._complete(job, outcome)

    reason = error_summary(last_error) if last_error is not None else "attempts_exhausted"
    return await self._fail(job, reason, attempts=job.attempt, cause=last_error)

  def _parse(self, job: GenerationJobRecord) -> GenerationRequest:
    try:
      return parse_payload(GenerationCategory(job.category), job.payload)
    except InvalidPayloadError as exc:
      raise FatalJobError("invalid_payload", str(exc)) from exc
    except ValueError as exc:
      raise FatalJobError("unknown_category", str(exc)) from exc

  async def _charge(self, job: GenerationJobRecord) -> GenerationJobRecord:
    """Re-check availability and charge once; redelivered jobs keep their earlier charge."""
    if job.quota_charged:
      return job
    try:
      if not await self._quota.has_available(job.user_id, job.category):
        raise FatalJobError("quota_exceeded")
      # Check and charge are separate atomic steps; overrun is bounded by worker concurrency.
      await self._quota.increment(job.user_id, job.category)
    except QuotaRecordNotFoundError as exc:
      raise FatalJobError("quota_record_not_found", str(exc)) from exc
    return await self._jobs_repo.update_job(job.job_id, quota_charged=True)

  async def _complete(self, job: GenerationJobRecord, outcome: OrchestrationResult) -> GenerationJobRecord:
    job = await self._jobs_repo.update_job(job.job_id, progress=FINALIZING)
    result = outcome.result
    entry = ArtifactEntry(
      artifact_id=str(uuid.uuid4()),
      job_id=job.job_id,
      user_id=job.user_id,
      category=job.category,
      provider=result.provider,
      fallback_used=result.fallback_used,
      content=result.model_dump(mode="json", by_alias=True),
      created_at=datetime.now(UTC),
    )
    try:
      artifact_ref = await self._artifacts.save(entry)
    except Exception as exc:  # noqa: BLE001
      self._logger.error("Artifact persistence failed for job %s", job.job_id, exc_info=True)
      return await self._fail(job, "persistence_failed", attempts=job.attempt, cause=exc)

    job = await self._jobs_repo.complete_job(job.job_id, result=artifact_ref)
    self._logger.info("Job %s completed category=%s provider=%s fallback=%s attempts=%d", job.job_id, job.category, result.provider, result.fallback_used, job.attempt)
    await self._notifier.notify_complete(user_id=job.user_id, job_id=job.job_id, category=job.category, artifact_ref=artifact_ref)
    await self._events.publish(GenerationCompleted(job_id=job.job_id, user_id=job.user_id, category=job.category, artifact_ref=artifact_ref, provider=result.provider, fallback_used=result.fallback_used))
    return job

  async def _fail(self, job: GenerationJobRecord, reason: str, *, attempts: int, cause: BaseException | None) -> GenerationJobRecord:
    current = await self._reload(job)
    if current.terminal:
      return current

    if current.quota_charged:
      try:
        await self._quota.decrement(current.user_id, current.category)
        current = await self._jobs_repo.update_job(current.job_id, quota_charged=False)
      except Exception as exc:  # noqa: BLE001
        self._logger.error("Quota refund failed for job %s: %s", current.job_id, exc, exc_info=True)

    failed = await self._jobs_repo.fail_job(current.job_id, failure_reason=reason)
    self._logger.error("Job %s failed category=%s reason=%s attempts=%d cause=%s", failed.job_id, failed.category, reason, attempts, cause)
    await self._notifier.notify_error(user_id=failed.user_id, job_id=failed.job_id, category=failed.category, error_summary=reason)
    await self._events.publish(GenerationFailed(job_id=failed.job_id, user_id=failed.user_id, category=failed.category, failure_reason=reason, attempts=attempts))
    return failed

  async def _reload(self, job: GenerationJobRecord) -> GenerationJobRecord:
    current = await self._jobs_repo.get_job(job.job_id)
    return current if current is not None else job

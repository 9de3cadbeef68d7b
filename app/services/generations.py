"""Submission, status and account operations behind the HTTP routes."""

from __future__ import annotations

import logging
from typing import Any

from app.ai.schemas import BodyPhotoResult, InbodyScanResult, MealResult, WorkoutResult, load_result
from app.jobs.errors import QuotaExceededError
from app.jobs.models import GenerationJobRecord
from app.jobs.queue import JobQueue
from app.schema.generation import GenerationCategory, SubscriptionPlan, parse_payload
from app.services.quota_ledger import QuotaLedger
from app.storage.artifacts_repo import ArtifactRepository
from app.storage.profiles_repo import UserProfileEntry, UserProfileRepository

logger = logging.getLogger(__name__)


class UserNotFoundError(LookupError):
  """No profile exists for the user."""

  def __init__(self, user_id: str) -> None:
    super().__init__(f"User not found user_id={user_id}")
    self.user_id = user_id


class ArtifactUnavailableError(LookupError):
  """The job has no stored artifact: it is unfinished, failed or the artifact is gone."""

  def __init__(self, job_id: str) -> None:
    super().__init__(f"Artifact not available job_id={job_id}")
    self.job_id = job_id


class GenerationService:
  def __init__(self, *, queue: JobQueue, quota_ledger: QuotaLedger, profiles: UserProfileRepository, artifacts: ArtifactRepository) -> None:
    self._queue = queue
    self._quota = quota_ledger
    self._profiles = profiles
    self._artifacts = artifacts

  async def submit(self, user_id: str, category: GenerationCategory, payload: dict[str, Any]) -> str:
    """Admit a request against the user's quota and enqueue it.

    Admission does not charge quota; the worker charges at dispatch. A rejected
    request creates no job.
    """
    if await self._profiles.get(user_id) is None:
      raise UserNotFoundError(user_id)

    # Reject malformed payloads before they take a queue slot.
    parse_payload(category, payload)

    if not await self._quota.has_available(user_id, category):
      logger.info("Generation rejected by quota user_id=%s category=%s", user_id, category.value)
      raise QuotaExceededError(user_id, category.value)

    return await self._queue.enqueue(user_id, category, payload)

  async def status(self, job_id: str) -> GenerationJobRecord:
    return await self._queue.get_status(job_id)

  async def artifact(self, job_id: str) -> WorkoutResult | MealResult | InbodyScanResult | BodyPhotoResult:
    """Load a completed job's artifact as its category result type."""
    job = await self._queue.get_status(job_id)
    if job.state != "completed" or not job.result:
      raise ArtifactUnavailableError(job_id)
    entry = await self._artifacts.get(job.result)
    if entry is None:
      logger.error("Artifact missing for completed job job_id=%s artifact_id=%s", job_id, job.result)
      raise ArtifactUnavailableError(job_id)
    # Stored content carries the category tag, so it rebuilds into the matching result model.
    return load_result(entry.content)

  async def active_jobs(self, user_id: str) -> list[GenerationJobRecord]:
    return await self._queue.list_active_for_user(user_id)

  async def quota_stats(self, user_id: str) -> dict[str, dict[str, int]]:
    return await self._quota.stats(user_id)

  async def register_user(self, user_id: str, *, language: str, plan: SubscriptionPlan) -> UserProfileEntry:
    """Create or update a profile and align the user's quota limits with the plan."""
    entry = UserProfileEntry(user_id=user_id, language=language, plan=plan.value)
    await self._profiles.upsert(entry)
    await self._quota.change_plan(user_id, plan)
    logger.info("User registered user_id=%s plan=%s language=%s", user_id, plan.value, language)
    return entry

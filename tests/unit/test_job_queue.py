from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import anyio
import pytest

from app.ai.orchestrator import GenerationOrchestrator
from app.ai.schemas import InbodyScanResult
from app.jobs.errors import JobNotFoundError, QuotaExceededError
from app.jobs.queue import JobQueue
from app.jobs.worker import JobProcessor
from app.schema.generation import GenerationCategory, InvalidPayloadError
from app.services.generations import ArtifactUnavailableError, GenerationService, UserNotFoundError
from app.services.quota_ledger import QuotaLedger
from app.storage.jobs_repo import InMemoryJobsRepository
from app.storage.quota_repo import QuotaRecord

_SCAN = {"imageUrl": "https://cdn.example.com/scan.jpg"}


async def _no_sleep(_: float) -> None:
  return None


def _service(repositories, quota_ledger, notifier, provider, *, concurrency: int = 1, poll_interval: float = 1.0) -> tuple[GenerationService, JobQueue]:
  orchestrator = GenerationOrchestrator(providers={"openai": provider}, default_provider="openai")
  processor = JobProcessor(jobs_repo=repositories.jobs, quota_ledger=quota_ledger, orchestrator=orchestrator, artifacts=repositories.artifacts, notifier=notifier, sleep=_no_sleep)
  queue = JobQueue(jobs_repo=repositories.jobs, processor=processor, concurrency={"inbody-scan": concurrency}, poll_interval_seconds=poll_interval)
  return GenerationService(queue=queue, quota_ledger=quota_ledger, profiles=repositories.profiles, artifacts=repositories.artifacts), queue


async def _set_usage(repositories, user_id: str, *, used: int, limit: int) -> None:
  await repositories.quotas.upsert(QuotaRecord(user_id=user_id, category="inbody-scan", period_start=datetime.now(UTC), used=used, limit=limit))


@pytest.mark.anyio
async def test_admission_rejects_exhausted_quota_before_enqueue(repositories, quota_ledger, notifier, provider_factory, user):
  service, queue = _service(repositories, quota_ledger, notifier, provider_factory("openai"))
  await _set_usage(repositories, user, used=5, limit=5)

  with pytest.raises(QuotaExceededError):
    await service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN)

  assert await queue.list_active_for_user(user) == []
  assert await repositories.jobs.claim_next("inbody-scan") is None


@pytest.mark.anyio
async def test_admission_does_not_charge(repositories, quota_ledger, notifier, provider_factory, user):
  service, queue = _service(repositories, quota_ledger, notifier, provider_factory("openai"))

  job_id = await service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN)

  assert (await queue.get_status(job_id)).state == "queued"
  assert (await quota_ledger.remaining(user, "inbody-scan"))["used"] == 0


@pytest.mark.anyio
async def test_submit_validates_user_and_payload(repositories, quota_ledger, notifier, provider_factory, user):
  service, _ = _service(repositories, quota_ledger, notifier, provider_factory("openai"))

  with pytest.raises(UserNotFoundError):
    await service.submit("ghost", GenerationCategory.INBODY_SCAN, _SCAN)
  with pytest.raises(InvalidPayloadError):
    await service.submit(user, GenerationCategory.INBODY_SCAN, {"imageUrl": "x", "unexpected": 1})


@pytest.mark.anyio
async def test_concurrent_dispatch_without_interleaving_stays_within_limit(repositories, quota_ledger, notifier, provider_factory, inbody_metrics, user):
  concurrency = 2
  provider = provider_factory("openai", vision=[inbody_metrics, inbody_metrics])
  service, queue = _service(repositories, quota_ledger, notifier, provider, concurrency=concurrency)
  await _set_usage(repositories, user, used=4, limit=5)

  # Both requests see used=4 at admission; neither charges yet.
  job_ids = await asyncio.gather(service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN), service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN))
  assert len(set(job_ids)) == 2

  jobs = await asyncio.gather(*(queue.run_once("inbody-scan") for _ in range(concurrency)))

  used = (await quota_ledger.remaining(user, "inbody-scan"))["used"]
  # Check and charge run back to back when the store never suspends.
  assert sorted(job.state for job in jobs) == ["completed", "failed"]
  assert used == 5
  assert [job.failure_reason for job in jobs if job.state == "failed"] == ["quota_exceeded"]


@pytest.mark.anyio
async def test_interleaved_dispatch_overruns_by_at_most_concurrency_minus_one(repositories, yielding_quota_repo, notifier, provider_factory, inbody_metrics, user):
  concurrency = 2
  limit = 5
  quota_ledger = QuotaLedger(yielding_quota_repo)
  await yielding_quota_repo.upsert(QuotaRecord(user_id=user, category="inbody-scan", period_start=datetime.now(UTC), used=4, limit=limit))
  provider = provider_factory("openai", vision=[inbody_metrics, inbody_metrics])
  service, queue = _service(repositories, quota_ledger, notifier, provider, concurrency=concurrency)
  await service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN)
  await service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN)

  # Both workers pass the dispatch check before either charge lands.
  jobs = await asyncio.gather(*(queue.run_once("inbody-scan") for _ in range(concurrency)))

  used = (await quota_ledger.remaining(user, "inbody-scan"))["used"]
  assert [job.state for job in jobs] == ["completed", "completed"]
  assert used == limit + 1
  assert used <= limit + (concurrency - 1)


@pytest.mark.anyio
async def test_serial_dispatch_enforces_limit_exactly(repositories, quota_ledger, notifier, provider_factory, inbody_metrics, user):
  service, queue = _service(repositories, quota_ledger, notifier, provider_factory("openai", vision=[inbody_metrics]))
  await _set_usage(repositories, user, used=4, limit=5)
  await service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN)
  await service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN)

  first = await queue.run_once("inbody-scan")
  second = await queue.run_once("inbody-scan")

  assert (first.state, second.state) == ("completed", "failed")
  assert second.failure_reason == "quota_exceeded"
  assert (await quota_ledger.remaining(user, "inbody-scan"))["used"] == 5


@pytest.mark.anyio
async def test_get_status_unknown_job(repositories, quota_ledger, notifier, provider_factory):
  _, queue = _service(repositories, quota_ledger, notifier, provider_factory("openai"))

  with pytest.raises(JobNotFoundError):
    await queue.get_status("missing")


@pytest.mark.anyio
async def test_workers_process_enqueued_jobs_until_stopped(repositories, quota_ledger, notifier, provider_factory, inbody_metrics, user):
  service, queue = _service(repositories, quota_ledger, notifier, provider_factory("openai", vision=[inbody_metrics]), poll_interval=0.01)
  await queue.start()
  try:
    job_id = await service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN)
    with anyio.fail_after(5):
      while not (await queue.get_status(job_id)).terminal:
        await asyncio.sleep(0.01)
  finally:
    await queue.stop(drain_timeout=1)

  assert (await queue.get_status(job_id)).state == "completed"
  assert not queue.running


@pytest.mark.anyio
async def test_start_requeues_stale_active_jobs(repositories, quota_ledger, notifier, provider_factory, user):
  # Zero workers: only the recovery step runs.
  _, queue = _service(repositories, quota_ledger, notifier, provider_factory("openai"), concurrency=0)
  job_id = await queue.enqueue(user, "inbody-scan", _SCAN)
  await repositories.jobs.claim_next("inbody-scan")
  assert (await queue.get_status(job_id)).state == "active"

  await queue.start()
  await queue.stop()

  assert (await queue.get_status(job_id)).state == "queued"


class _EnqueueOnEmptyClaimRepository(InMemoryJobsRepository):
  """Submits one job while the worker's first claim finds the queue empty."""

  def __init__(self) -> None:
    super().__init__()
    self.submit = None

  async def claim_next(self, category):
    job = await super().claim_next(category)
    if job is None and self.submit is not None:
      submit, self.submit = self.submit, None
      await submit()
    return job


@pytest.mark.anyio
async def test_enqueue_during_empty_claim_wakes_worker_without_polling(repositories, quota_ledger, notifier, provider_factory, inbody_metrics, user):
  jobs_repo = _EnqueueOnEmptyClaimRepository()
  orchestrator = GenerationOrchestrator(providers={"openai": provider_factory("openai", vision=[inbody_metrics])}, default_provider="openai")
  processor = JobProcessor(jobs_repo=jobs_repo, quota_ledger=quota_ledger, orchestrator=orchestrator, artifacts=repositories.artifacts, notifier=notifier, sleep=_no_sleep)
  queue = JobQueue(jobs_repo=jobs_repo, processor=processor, concurrency={"inbody-scan": 1}, poll_interval_seconds=60.0)
  job_ids: list[str] = []

  async def _submit() -> None:
    job_ids.append(await queue.enqueue(user, "inbody-scan", _SCAN))

  jobs_repo.submit = _submit
  await queue.start()
  try:
    with anyio.fail_after(5):
      while not job_ids or not (await queue.get_status(job_ids[0])).terminal:
        await asyncio.sleep(0.01)
  finally:
    await queue.stop(drain_timeout=1)

  assert (await queue.get_status(job_ids[0])).state == "completed"


@pytest.mark.anyio
async def test_completed_artifact_loads_as_its_category_result(repositories, quota_ledger, notifier, provider_factory, inbody_metrics, user):
  service, queue = _service(repositories, quota_ledger, notifier, provider_factory("openai", vision=[inbody_metrics]))
  job_id = await service.submit(user, GenerationCategory.INBODY_SCAN, _SCAN)

  with pytest.raises(ArtifactUnavailableError):
    await service.artifact(job_id)

  await queue.run_once("inbody-scan")
  result = await service.artifact(job_id)

  assert isinstance(result, InbodyScanResult)
  assert result.provider == "openai"
  assert result.content == inbody_metrics

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from app.ai.errors import MalformedResponseError, ProviderQuotaExhaustedError, ProviderTimeoutError
from app.ai.orchestrator import GenerationOrchestrator
from app.jobs.events import EventChannel, GenerationCompleted, GenerationFailed
from app.jobs.queue import JobQueue
from app.jobs.worker import JobProcessor, job_retry_delay
from app.storage.jobs_repo import InMemoryJobsRepository

_SCAN = {"imageUrl": "https://cdn.example.com/scan.jpg"}


class _Sleeps:
  def __init__(self) -> None:
    self.delays: list[float] = []

  async def __call__(self, delay: float) -> None:
    self.delays.append(delay)


class _ProgressRecordingJobsRepository(InMemoryJobsRepository):
  def __init__(self) -> None:
    super().__init__()
    self.observed: list[int] = []

  async def update_job(self, job_id, **changes):
    record = await super().update_job(job_id, **changes)
    self.observed.append(record.progress)
    return record

  async def complete_job(self, job_id, *, result):
    record = await super().complete_job(job_id, result=result)
    self.observed.append(record.progress)
    return record

  async def fail_job(self, job_id, *, failure_reason):
    record = await super().fail_job(job_id, failure_reason=failure_reason)
    self.observed.append(record.progress)
    return record


def _build(repositories, quota_ledger, notifier, provider, *, sleeps=None, events=None, jobs_repo=None):
  jobs = jobs_repo or repositories.jobs
  orchestrator = GenerationOrchestrator(providers={provider.provider_name(): provider}, default_provider=provider.provider_name())
  processor = JobProcessor(jobs_repo=jobs, quota_ledger=quota_ledger, orchestrator=orchestrator, artifacts=repositories.artifacts, notifier=notifier, events=events, backoff_base_seconds=2.0, sleep=sleeps or _Sleeps())
  return JobQueue(jobs_repo=jobs, processor=processor, concurrency={"inbody-scan": 1}, max_attempts=3)


def test_job_retry_delay_doubles():
  assert [job_retry_delay(attempt, 2.0) for attempt in (1, 2, 3)] == [2.0, 4.0, 8.0]


@pytest.mark.anyio
async def test_transient_failures_exhaust_attempts_and_refund_quota(repositories, quota_ledger, notifier, push_sender, provider_factory, user):
  sleeps = _Sleeps()
  events = EventChannel()
  received = []

  async def _collect(event):
    received.append(event)

  events.subscribe(_collect)
  provider = provider_factory("openai", vision=ProviderTimeoutError("slow", provider="openai"))
  queue = _build(repositories, quota_ledger, notifier, provider, sleeps=sleeps, events=events)
  job_id = await queue.enqueue(user, "inbody-scan", _SCAN)

  job = await queue.run_once("inbody-scan")

  assert job.job_id == job_id
  assert job.state == "failed"
  assert job.failure_reason == "provider_timeout"
  assert job.attempt == 3
  assert job.progress < 100
  assert provider.generate_vision.await_count == 3
  assert sleeps.delays == [2.0, 4.0]
  assert (await quota_ledger.remaining(user, "inbody-scan"))["used"] == 0
  assert len(push_sender.messages) == 1
  assert push_sender.messages[0].data["notificationCategory"] == "generation_error"
  assert push_sender.messages[0].title == "InBody scan failed"
  assert [type(event) for event in received] == [GenerationFailed]


@pytest.mark.anyio
async def test_successful_job_persists_artifact_and_notifies(repositories, quota_ledger, notifier, push_sender, provider_factory, inbody_metrics, user):
  events = EventChannel()
  received = []

  async def _collect(event):
    received.append(event)

  events.subscribe(_collect)
  provider = provider_factory("openai", vision=[inbody_metrics])
  queue = _build(repositories, quota_ledger, notifier, provider, events=events)
  await queue.enqueue(user, "inbody-scan", _SCAN)

  job = await queue.run_once("inbody-scan")

  assert job.state == "completed"
  assert job.progress == 100
  artifact = await repositories.artifacts.get(job.result)
  assert artifact.provider == "openai"
  assert artifact.content["content"]["skeletalMuscleMass"] == 31.2
  assert (await quota_ledger.remaining(user, "inbody-scan"))["used"] == 1
  assert push_sender.messages[0].data["planId"] == job.result
  assert isinstance(received[0], GenerationCompleted)
  assert received[0].artifact_ref == job.result


@pytest.mark.anyio
async def test_fatal_errors_are_not_retried(repositories, quota_ledger, notifier, provider_factory, user):
  sleeps = _Sleeps()
  provider = provider_factory("openai", vision=MalformedResponseError("refused", provider="openai"))
  queue = _build(repositories, quota_ledger, notifier, provider, sleeps=sleeps)
  await queue.enqueue(user, "inbody-scan", _SCAN)

  job = await queue.run_once("inbody-scan")

  assert job.state == "failed"
  assert job.failure_reason == "malformed_response"
  assert job.attempt == 1
  assert sleeps.delays == []


@pytest.mark.anyio
async def test_dispatch_recheck_fails_without_charging(repositories, quota_ledger, notifier, push_sender, provider_factory, user):
  provider = provider_factory("openai")
  queue = _build(repositories, quota_ledger, notifier, provider)
  await queue.enqueue(user, "inbody-scan", _SCAN)
  # Usage filled up between admission and dispatch.
  await quota_ledger.increment(user, "inbody-scan")
  await quota_ledger.increment(user, "inbody-scan")

  job = await queue.run_once("inbody-scan")

  assert job.state == "failed"
  assert job.failure_reason == "quota_exceeded"
  assert job.quota_charged is False
  assert (await quota_ledger.remaining(user, "inbody-scan"))["used"] == 2
  provider.generate_vision.assert_not_awaited()
  assert len(push_sender.messages) == 1


@pytest.mark.anyio
async def test_notification_failure_does_not_fail_job(repositories, quota_ledger, provider_factory, inbody_metrics, user):
  from app.notifications.dispatcher import NotificationDispatcher

  broken_sender = MagicMock()
  broken_sender.send.side_effect = RuntimeError("fcm down")
  notifier = NotificationDispatcher(push_sender=broken_sender, device_tokens=repositories.device_tokens, profiles=repositories.profiles)
  queue = _build(repositories, quota_ledger, notifier, provider_factory("openai", vision=[inbody_metrics]))
  await queue.enqueue(user, "inbody-scan", _SCAN)

  job = await queue.run_once("inbody-scan")

  assert job.state == "completed"
  broken_sender.send.assert_called_once()


@pytest.mark.anyio
async def test_progress_is_monotonic(repositories, quota_ledger, notifier, provider_factory, inbody_metrics, user):
  jobs_repo = _ProgressRecordingJobsRepository()
  queue = _build(repositories, quota_ledger, notifier, provider_factory("openai", vision=[ProviderTimeoutError("slow"), inbody_metrics]), jobs_repo=jobs_repo)
  await queue.enqueue(user, "inbody-scan", _SCAN)

  await queue.run_once("inbody-scan")

  assert jobs_repo.observed == sorted(jobs_repo.observed)
  assert jobs_repo.observed[-1] == 100


@pytest.mark.anyio
async def test_invalid_payload_fails_without_charge(repositories, quota_ledger, notifier, provider_factory, user):
  queue = _build(repositories, quota_ledger, notifier, provider_factory("openai"))
  await queue.enqueue(user, "inbody-scan", {"imageUrl": ""})

  job = await queue.run_once("inbody-scan")

  assert job.state == "failed"
  assert job.failure_reason == "invalid_payload"
  assert (await quota_ledger.remaining(user, "inbody-scan"))["used"] == 0


@pytest.mark.anyio
async def test_redelivered_job_is_not_charged_twice(repositories, quota_ledger, notifier, provider_factory, inbody_metrics, user):
  queue = _build(repositories, quota_ledger, notifier, provider_factory("openai", vision=[inbody_metrics]))
  job_id = await queue.enqueue(user, "inbody-scan", _SCAN)
  # Simulate a crash after the dispatch charge: the job is active and already charged.
  claimed = await repositories.jobs.claim_next("inbody-scan")
  await quota_ledger.increment(user, "inbody-scan")
  await repositories.jobs.update_job(claimed.job_id, quota_charged=True)
  assert await repositories.jobs.requeue_active() == 1

  job = await queue.run_once("inbody-scan")

  assert job.job_id == job_id
  assert job.state == "completed"
  assert (await quota_ledger.remaining(user, "inbody-scan"))["used"] == 1


@pytest.mark.anyio
async def test_primary_quota_exhaustion_completes_job_on_fallback_provider(repositories, quota_ledger, notifier, provider_factory, inbody_metrics, user):
  primary = provider_factory("openai", vision=ProviderQuotaExhaustedError("You exceeded your current quota", provider="openai", status_code=429))
  fallback = provider_factory("gemini", vision=[inbody_metrics])
  orchestrator = GenerationOrchestrator(providers={"openai": primary, "gemini": fallback}, default_provider="openai")
  processor = JobProcessor(jobs_repo=repositories.jobs, quota_ledger=quota_ledger, orchestrator=orchestrator, artifacts=repositories.artifacts, notifier=notifier, sleep=_Sleeps())
  queue = JobQueue(jobs_repo=repositories.jobs, processor=processor, concurrency={"inbody-scan": 1})
  await queue.enqueue(user, "inbody-scan", _SCAN)

  job = await queue.run_once("inbody-scan")

  assert job.state == "completed"
  assert job.attempt == 1
  artifact = await repositories.artifacts.get(job.result)
  assert artifact.provider == "gemini"
  assert artifact.fallback_used is False
  assert orchestrator.get_current_provider() == "openai"
  assert (await quota_ledger.remaining(user, "inbody-scan"))["used"] == 1

"""Wires repositories, providers, the orchestrator and the job queue into one pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.ai.orchestrator import GenerationOrchestrator
from app.ai.providers.base import AIProvider
from app.ai.router import build_providers
from app.config import Settings
from app.jobs.events import EventChannel
from app.jobs.queue import JobQueue
from app.jobs.worker import JobProcessor
from app.notifications.dispatcher import NotificationDispatcher
from app.notifications.factory import build_notification_dispatcher
from app.schema.generation import GenerationCategory
from app.services.generations import GenerationService
from app.services.quota_ledger import QuotaLedger
from app.storage.factory import Repositories, build_repositories

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
  repositories: Repositories
  orchestrator: GenerationOrchestrator
  quota_ledger: QuotaLedger
  notifier: NotificationDispatcher
  events: EventChannel
  queue: JobQueue
  service: GenerationService

  async def start(self) -> None:
    await self.queue.start()

  async def stop(self) -> None:
    await self.queue.stop()


def build_pipeline(settings: Settings, *, repositories: Repositories | None = None, providers: dict[str, AIProvider] | None = None, notifier: NotificationDispatcher | None = None) -> Pipeline:
  """Build the generation pipeline; collaborators can be injected for tests."""
  repos = repositories or build_repositories(settings)
  available = providers if providers is not None else build_providers(settings)
  if not available:
    logger.warning("No AI provider is configured; every generation job will fail.")

  default_provider = settings.default_ai_provider
  if available and default_provider not in available:
    default_provider = next(iter(available))
    logger.warning("Default provider %s is not configured; using %s", settings.default_ai_provider, default_provider)

  orchestrator = GenerationOrchestrator(providers=available, default_provider=default_provider)
  quota_ledger = QuotaLedger(repos.quotas, period_days=settings.quota_period_days)
  dispatcher = notifier or build_notification_dispatcher(settings, profiles=repos.profiles, device_tokens=repos.device_tokens)
  events = EventChannel()
  processor = JobProcessor(
    jobs_repo=repos.jobs,
    quota_ledger=quota_ledger,
    orchestrator=orchestrator,
    artifacts=repos.artifacts,
    notifier=dispatcher,
    events=events,
    backoff_base_seconds=settings.job_backoff_base_seconds,
  )
  concurrency = {category.value: settings.concurrency_for(category.value) for category in GenerationCategory}
  queue = JobQueue(jobs_repo=repos.jobs, processor=processor, concurrency=concurrency, max_attempts=settings.job_max_attempts, poll_interval_seconds=settings.job_poll_interval_seconds)
  service = GenerationService(queue=queue, quota_ledger=quota_ledger, profiles=repos.profiles, artifacts=repos.artifacts)
  return Pipeline(repositories=repos, orchestrator=orchestrator, quota_ledger=quota_ledger, notifier=dispatcher, events=events, queue=queue, service=service)

"""Shared fixtures: in-memory storage, recording push sender and result builders."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.ai.schemas import InbodyMetrics, InbodyScanResult
from app.notifications.contracts import PushMessage, PushResult
from app.notifications.device_token_repo import DeviceTokenEntry, InMemoryDeviceTokenRepository
from app.notifications.dispatcher import NotificationDispatcher
from app.schema.generation import SubscriptionPlan
from app.services.quota_ledger import QuotaLedger
from app.storage.artifacts_repo import InMemoryArtifactRepository
from app.storage.factory import Repositories
from app.storage.jobs_repo import InMemoryJobsRepository
from app.storage.profiles_repo import InMemoryUserProfileRepository, UserProfileEntry
from app.storage.quota_repo import InMemoryQuotaRepository


@pytest.fixture
def anyio_backend():
  return "asyncio"


class RecordingPushSender:
  def __init__(self) -> None:
    self.messages: list[PushMessage] = []

  def send(self, message: PushMessage) -> PushResult:
    self.messages.append(message)
    return PushResult(success_count=len(message.tokens))


@pytest.fixture
def repositories() -> Repositories:
  return Repositories(
    jobs=InMemoryJobsRepository(),
    quotas=InMemoryQuotaRepository(),
    artifacts=InMemoryArtifactRepository(),
    profiles=InMemoryUserProfileRepository(),
    device_tokens=InMemoryDeviceTokenRepository(),
  )


class YieldingQuotaRepository(InMemoryQuotaRepository):
  """Suspends before every read-modify-write so concurrent callers interleave."""

  async def update(self, user_id, category, mutate):
    await asyncio.sleep(0)
    return await super().update(user_id, category, mutate)


@pytest.fixture
def yielding_quota_repo() -> YieldingQuotaRepository:
  return YieldingQuotaRepository()


@pytest.fixture
def quota_ledger(repositories) -> QuotaLedger:
  return QuotaLedger(repositories.quotas)


@pytest.fixture
def push_sender() -> RecordingPushSender:
  return RecordingPushSender()


@pytest.fixture
def notifier(repositories, push_sender) -> NotificationDispatcher:
  return NotificationDispatcher(push_sender=push_sender, device_tokens=repositories.device_tokens, profiles=repositories.profiles, default_language="vi")


@pytest.fixture
async def user(repositories, quota_ledger) -> str:
  """A free-plan English user with one registered device."""
  user_id = "user-1"
  await repositories.profiles.upsert(UserProfileEntry(user_id=user_id, language="en", plan="free"))
  await quota_ledger.open_account(user_id, SubscriptionPlan.FREE)
  await repositories.device_tokens.upsert(DeviceTokenEntry(user_id=user_id, token="device-token-1"))
  return user_id


@pytest.fixture
def inbody_metrics() -> InbodyMetrics:
  return InbodyMetrics(
    weight=70.5,
    skeletal_muscle_mass=31.2,
    body_fat_mass=14.1,
    body_fat_percent=20.0,
    bmi=22.4,
    visceral_fat_level=6,
    basal_metabolic_rate=1580,
    total_body_water=40.3,
    protein=10.9,
    minerals=3.8,
  )


@pytest.fixture
def inbody_result(inbody_metrics) -> InbodyScanResult:
  return InbodyScanResult(provider="openai", content=inbody_metrics)


@pytest.fixture
def provider_factory():
  """Build provider doubles exposing only what the gateway and orchestrator use."""

  def _build(name: str, *, text=None, vision=None) -> MagicMock:
    provider = MagicMock()
    provider.provider_name.return_value = name
    provider.generate_text = AsyncMock(side_effect=text)
    provider.generate_vision = AsyncMock(side_effect=vision)
    return provider

  return _build

"""Provider selection and quota-driven failover for generation requests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from app.ai.errors import ProviderError, is_quota_error, is_retryable
from app.ai.gateway import CategoryResult, GenerationGateway
from app.ai.providers.base import AIProvider
from app.schema.generation import GenerationCategory, GenerationRequest

logger = logging.getLogger(__name__)

AttemptOutcome = Literal["success", "retryable-failure", "fatal-failure"]


@dataclass(frozen=True)
class ProviderAttemptRecord:
  """One provider invocation made while serving a single orchestrator call."""

  provider_id: str
  attempt_number: int
  started_at: datetime
  outcome: AttemptOutcome


@dataclass(frozen=True)
class OrchestrationResult:
  """Output from one orchestrator call."""

  result: CategoryResult
  attempts: list[ProviderAttemptRecord] = field(default_factory=list)

  @property
  def provider_id(self) -> str:
    return self.attempts[-1].provider_id


class OrchestrationError(ProviderError):
  """Raised when no provider is available to serve a request."""

  retryable = False


class GenerationOrchestrator:
  """Calls the default provider and fails over once on quota or billing errors.

  The default provider is instance state that only `set_default_provider` changes.
  A failover picks the other provider for that call alone, so concurrent and later
  calls still start from the configured default.
  """

  def __init__(self, *, providers: dict[str, AIProvider], default_provider: str, gateway: GenerationGateway | None = None) -> None:
    self._providers = dict(providers)
    self._default_provider = default_provider
    self._gateway = gateway or GenerationGateway()
    self._lock = asyncio.Lock()

  def get_current_provider(self) -> str:
    return self._default_provider

  async def set_default_provider(self, name: str) -> None:
    if name not in self._providers:
      raise ValueError(f"Provider '{name}' is not configured.")
    async with self._lock:
      self._default_provider = name
    logger.info("Default AI provider set to %s", name)

  def fallback_for(self, name: str) -> str | None:
    for candidate in self._providers:
      if candidate != name:
        return candidate
    return None

  async def generate(self, category: GenerationCategory, request: GenerationRequest) -> OrchestrationResult:
    primary_name = self._default_provider
    primary = self._providers.get(primary_name)
    if primary is None:
      raise OrchestrationError(f"Provider '{primary_name}' is not configured.", provider=primary_name)

    attempts: list[ProviderAttemptRecord] = []
    try:
      result = await self._call(primary, category, request, attempts)
    except Exception as exc:
      if not is_quota_error(exc):
        raise
      fallback_name = self.fallback_for(primary_name)
      if fallback_name is None:
        logger.error("Provider %s quota exhausted and no fallback is configured category=%s", primary_name, category.value)
        raise
      logger.warning("Provider %s quota exhausted; failing over to %s category=%s", primary_name, fallback_name, category.value)
      # A failure on the fallback propagates; there is no third provider.
      result = await self._call(self._providers[fallback_name], category, request, attempts)

    return OrchestrationResult(result=result, attempts=attempts)

  async def _call(self, provider: AIProvider, category: GenerationCategory, request: GenerationRequest, attempts: list[ProviderAttemptRecord]) -> CategoryResult:
    started_at = datetime.now(UTC)
    attempt_number = len(attempts) + 1
    try:
      result = await self._gateway.generate(provider, category, request)
    except Exception as exc:
      outcome: AttemptOutcome = "retryable-failure" if is_retryable(exc) else "fatal-failure"
      attempts.append(ProviderAttemptRecord(provider_id=provider.provider_name(), attempt_number=attempt_number, started_at=started_at, outcome=outcome))
      raise
    attempts.append(ProviderAttemptRecord(provider_id=provider.provider_name(), attempt_number=attempt_number, started_at=started_at, outcome="success"))
    return result

from __future__ import annotations

import pytest

from app.ai.errors import ProviderQuotaExhaustedError, ProviderTimeoutError, RateLimitError
from app.ai.orchestrator import GenerationOrchestrator, OrchestrationError
from app.schema.generation import GenerationCategory, InbodyScanRequest

_REQUEST = InbodyScanRequest(image_url="https://cdn.example.com/scan.jpg")


def _quota_error(name: str) -> ProviderQuotaExhaustedError:
  return ProviderQuotaExhaustedError("You exceeded your current quota", provider=name, status_code=429)


@pytest.mark.anyio
async def test_quota_error_fails_over_and_default_is_kept(provider_factory, inbody_metrics):
  primary = provider_factory("openai", vision=[_quota_error("openai"), inbody_metrics])
  fallback = provider_factory("gemini", vision=[inbody_metrics])
  orchestrator = GenerationOrchestrator(providers={"openai": primary, "gemini": fallback}, default_provider="openai")

  outcome = await orchestrator.generate(GenerationCategory.INBODY_SCAN, _REQUEST)

  assert outcome.provider_id == "gemini"
  assert outcome.result.provider == "gemini"
  assert [(attempt.provider_id, attempt.outcome) for attempt in outcome.attempts] == [("openai", "fatal-failure"), ("gemini", "success")]
  assert orchestrator.get_current_provider() == "openai"

  # The next call starts from the default again.
  second = await orchestrator.generate(GenerationCategory.INBODY_SCAN, _REQUEST)
  assert second.provider_id == "openai"
  assert primary.generate_vision.await_count == 2


@pytest.mark.anyio
async def test_default_is_restored_when_fallback_also_fails(provider_factory):
  primary = provider_factory("openai", vision=_quota_error("openai"))
  fallback = provider_factory("gemini", vision=ProviderTimeoutError("slow", provider="gemini"))
  orchestrator = GenerationOrchestrator(providers={"openai": primary, "gemini": fallback}, default_provider="openai")

  with pytest.raises(ProviderTimeoutError):
    await orchestrator.generate(GenerationCategory.INBODY_SCAN, _REQUEST)

  assert orchestrator.get_current_provider() == "openai"


@pytest.mark.anyio
async def test_non_quota_errors_do_not_fail_over(provider_factory):
  primary = provider_factory("openai", vision=RateLimitError("429", provider="openai", status_code=429))
  fallback = provider_factory("gemini")
  orchestrator = GenerationOrchestrator(providers={"openai": primary, "gemini": fallback}, default_provider="openai")

  with pytest.raises(RateLimitError):
    await orchestrator.generate(GenerationCategory.INBODY_SCAN, _REQUEST)

  fallback.generate_vision.assert_not_awaited()


@pytest.mark.anyio
async def test_quota_error_without_fallback_propagates(provider_factory):
  primary = provider_factory("openai", vision=_quota_error("openai"))
  orchestrator = GenerationOrchestrator(providers={"openai": primary}, default_provider="openai")

  with pytest.raises(ProviderQuotaExhaustedError):
    await orchestrator.generate(GenerationCategory.INBODY_SCAN, _REQUEST)


@pytest.mark.anyio
async def test_set_default_provider(provider_factory, inbody_metrics):
  orchestrator = GenerationOrchestrator(providers={"openai": provider_factory("openai"), "gemini": provider_factory("gemini", vision=[inbody_metrics])}, default_provider="openai")

  await orchestrator.set_default_provider("gemini")
  outcome = await orchestrator.generate(GenerationCategory.INBODY_SCAN, _REQUEST)

  assert orchestrator.get_current_provider() == "gemini"
  assert outcome.provider_id == "gemini"
  with pytest.raises(ValueError):
    await orchestrator.set_default_provider("anthropic")


@pytest.mark.anyio
async def test_unconfigured_default_provider_is_fatal():
  orchestrator = GenerationOrchestrator(providers={}, default_provider="openai")

  with pytest.raises(OrchestrationError) as exc_info:
    await orchestrator.generate(GenerationCategory.INBODY_SCAN, _REQUEST)

  assert exc_info.value.retryable is False

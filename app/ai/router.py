"""Routing utilities for provider selection."""

from __future__ import annotations

import logging
from enum import Enum

from app.ai.backoff import BackoffPolicy
from app.ai.providers.base import AIProvider
from app.ai.providers.gemini import GeminiProvider
from app.ai.providers.openai import OpenAIProvider
from app.config import Settings

logger = logging.getLogger(__name__)


class ProviderMode(str, Enum):
  """Supported provider modes."""

  OPENAI = "openai"
  GEMINI = "gemini"


def provider_retry_policy(settings: Settings) -> BackoffPolicy:
  """Rate-limit-only policy wrapped around every provider SDK call."""
  retry = settings.provider_retry
  return BackoffPolicy(max_attempts=retry.max_attempts, base_delay=retry.base_delay_seconds, max_delay=retry.max_delay_seconds, multiplier=retry.multiplier, rate_limit_only=True)


def get_provider_for_mode(mode: str | ProviderMode, settings: Settings) -> AIProvider:
  """Return a provider instance for the given mode."""
  key = ProviderMode(mode.value if isinstance(mode, ProviderMode) else mode)
  policy = provider_retry_policy(settings)
  if key is ProviderMode.OPENAI:
    return OpenAIProvider(api_key=settings.openai_api_key, model=settings.openai_model, retry_policy=policy, timeout_seconds=settings.provider_timeout_seconds)
  return GeminiProvider(api_key=settings.gemini_api_key, model=settings.gemini_model, retry_policy=policy, timeout_seconds=settings.provider_timeout_seconds)


def build_providers(settings: Settings) -> dict[str, AIProvider]:
  """Build every provider that has credentials configured."""
  keys = {ProviderMode.OPENAI: settings.openai_api_key, ProviderMode.GEMINI: settings.gemini_api_key}
  providers: dict[str, AIProvider] = {}
  for mode, api_key in keys.items():
    if not api_key:
      logger.warning("Provider %s has no API key configured; skipping.", mode.value)
      continue
    providers[mode.value] = get_provider_for_mode(mode, settings)
  return providers

"""OpenAI provider implementation using the openai SDK."""

from __future__ import annotations

import logging
from typing import Any

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from app.ai.backoff import BackoffPolicy, Sleeper
from app.ai.errors import ProviderError, ProviderQuotaExhaustedError, ProviderTimeoutError, RateLimitError
from app.ai.providers.base import AIProvider, RawCompletion
from app.ai.schemas import response_schema

logger = logging.getLogger(__name__)

_QUOTA_CODES = {"insufficient_quota", "billing_hard_limit_reached", "billing_not_active"}


class OpenAIProvider(AIProvider):
  """Chat-completions backed provider with JSON schema response formatting."""

  name = "openai"
  _MALFORMED_FINISH_REASONS = frozenset({"length", "content_filter"})

  def __init__(self, *, api_key: str | None, model: str, retry_policy: BackoffPolicy, timeout_seconds: float, sleep: Sleeper | None = None, client: AsyncOpenAI | None = None) -> None:
    if client is None and not api_key:
      raise ValueError("OPENAI_API_KEY environment variable is required")
    kwargs: dict[str, Any] = {"retry_policy": retry_policy, "timeout_seconds": timeout_seconds}
    if sleep is not None:
      kwargs["sleep"] = sleep
    super().__init__(**kwargs)
    self.model = model
    # SDK-level retries are disabled; the backoff policy owns retrying.
    self._client = client or AsyncOpenAI(api_key=api_key, max_retries=0)

  async def _complete_text(self, prompt: str, schema: type[BaseModel], system: str | None) -> RawCompletion:
    messages: list[dict[str, Any]] = []
    if system:
      messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return await self._create(messages, schema)

  async def _complete_vision(self, prompt: str, image_ref: str, schema: type[BaseModel]) -> RawCompletion:
    content = [{"type": "text", "text": prompt}, {"type": "image_url", "image_url": {"url": image_ref}}]
    return await self._create([{"role": "user", "content": content}], schema)

  async def _create(self, messages: list[dict[str, Any]], schema: type[BaseModel]) -> RawCompletion:
    response = await self._client.chat.completions.create(
      model=self.model,
      messages=messages,
      response_format={"type": "json_schema", "json_schema": {"name": schema.__name__, "schema": response_schema(schema), "strict": False}},
    )

    choice = response.choices[0]
    usage = None
    if response.usage:
      usage = {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}
    logger.debug("OpenAI response model=%s finish_reason=%s usage=%s", self.model, choice.finish_reason, usage)
    return RawCompletion(text=choice.message.content or "", finish_reason=choice.finish_reason, refusal=getattr(choice.message, "refusal", None), usage=usage)

  def _translate_error(self, exc: Exception) -> ProviderError:
    if isinstance(exc, openai.APITimeoutError):
      return ProviderTimeoutError(f"OpenAI request timed out: {exc}", provider=self.name)

    if isinstance(exc, openai.APIStatusError):
      headers = dict(exc.response.headers) if exc.response is not None else {}
      code = getattr(exc, "code", None)
      if code in _QUOTA_CODES:
        return ProviderQuotaExhaustedError(f"OpenAI quota exhausted: {exc.message}", provider=self.name, status_code=exc.status_code)
      if exc.status_code == 429:
        return RateLimitError(f"OpenAI rate limited: {exc.message}", provider=self.name, status_code=429, headers=headers)
      # Client errors other than timeouts and conflicts will not succeed on retry.
      retryable = exc.status_code >= 500 or exc.status_code in {408, 409}
      return ProviderError(f"OpenAI request failed status={exc.status_code}: {exc.message}", provider=self.name, status_code=exc.status_code, headers=headers, retryable=retryable)

    return ProviderError(f"OpenAI request failed: {exc}", provider=self.name)

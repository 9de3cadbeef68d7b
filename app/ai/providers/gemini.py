"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import logging
import mimetypes
import warnings
from typing import Any

import httpx
from pydantic import BaseModel
from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import errors as genai_errors
  from google.genai import types

from app.ai.backoff import BackoffPolicy, Sleeper
from app.ai.errors import ProviderError, ProviderQuotaExhaustedError, ProviderTimeoutError, RateLimitError
from app.ai.providers.base import AIProvider, RawCompletion
from app.ai.schemas import response_schema

logger = logging.getLogger(__name__)

_BILLING_MARKERS = ("billing", "exceeded your current quota")


class GeminiProvider(AIProvider):
  """Gemini provider using JSON mode with a response schema."""

  name = "gemini"
  _MALFORMED_FINISH_REASONS = frozenset({"max_tokens", "safety", "recitation", "blocklist", "prohibited_content", "spii"})

  def __init__(
    self, *, api_key: str | None, model: str, retry_policy: BackoffPolicy, timeout_seconds: float, sleep: Sleeper | None = None, client: genai.Client | None = None, http_client: httpx.AsyncClient | None = None
  ) -> None:
    if client is None and not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")
    kwargs: dict[str, Any] = {"retry_policy": retry_policy, "timeout_seconds": timeout_seconds}
    if sleep is not None:
      kwargs["sleep"] = sleep
    super().__init__(**kwargs)
    self.model = model
    self._client = client or genai.Client(api_key=api_key)
    self._http_client = http_client

  async def _complete_text(self, prompt: str, schema: type[BaseModel], system: str | None) -> RawCompletion:
    config: dict[str, Any] = {"response_mime_type": "application/json", "response_schema": response_schema(schema)}
    if system:
      config["system_instruction"] = system
    # Use the async client to avoid blocking the asyncio event loop.
    response = await self._client.aio.models.generate_content(model=self.model, contents=prompt, config=config)
    return self._to_completion(response)

  async def _complete_vision(self, prompt: str, image_ref: str, schema: type[BaseModel]) -> RawCompletion:
    image_part = await self._image_part(image_ref)
    config = {"response_mime_type": "application/json", "response_schema": response_schema(schema)}
    response = await self._client.aio.models.generate_content(model=self.model, contents=[image_part, prompt], config=config)
    return self._to_completion(response)

  async def _image_part(self, image_ref: str) -> types.Part:
    mime_type = mimetypes.guess_type(image_ref)[0] or "image/jpeg"
    # Cloud storage URIs are fetched by Gemini itself; HTTP images are downloaded here.
    if image_ref.startswith("gs://"):
      return types.Part.from_uri(file_uri=image_ref, mime_type=mime_type)

    if self._http_client is not None:
      response = await self._http_client.get(image_ref)
    else:
      async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
        response = await client.get(image_ref)
    response.raise_for_status()
    mime_type = response.headers.get("content-type", mime_type).split(";")[0]
    return types.Part.from_bytes(data=response.content, mime_type=mime_type)

  def _to_completion(self, response: Any) -> RawCompletion:
    usage = None
    if response.usage_metadata:
      usage = {"prompt_tokens": response.usage_metadata.prompt_token_count, "completion_tokens": response.usage_metadata.candidates_token_count, "total_tokens": response.usage_metadata.total_token_count}

    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback else None
    if block_reason:
      return RawCompletion(text="", refusal=f"prompt blocked ({_enum_name(block_reason)})", usage=usage)

    finish_reason = None
    if response.candidates:
      finish_reason = _enum_name(response.candidates[0].finish_reason)
    logger.debug("Gemini response model=%s finish_reason=%s usage=%s", self.model, finish_reason, usage)
    return RawCompletion(text=response.text or "", finish_reason=finish_reason, usage=usage)

  def _translate_error(self, exc: Exception) -> ProviderError:
    if isinstance(exc, httpx.TimeoutException):
      return ProviderTimeoutError(f"Gemini image download timed out: {exc}", provider=self.name)

    if isinstance(exc, httpx.HTTPStatusError):
      # An unreachable image will not become reachable by retrying.
      return ProviderError(f"Image download failed status={exc.response.status_code}", provider=self.name, status_code=exc.response.status_code, retryable=exc.response.status_code >= 500)

    if isinstance(exc, genai_errors.APIError):
      message = exc.message or str(exc)
      if exc.code == 429:
        if any(marker in message.lower() for marker in _BILLING_MARKERS):
          return ProviderQuotaExhaustedError(f"Gemini quota exhausted: {message}", provider=self.name, status_code=429)
        return RateLimitError(f"Gemini rate limited: {message}", provider=self.name, status_code=429)
      retryable = exc.code is None or exc.code >= 500 or exc.code == 408
      return ProviderError(f"Gemini request failed status={exc.code}: {message}", provider=self.name, status_code=exc.code, retryable=retryable)

    return ProviderError(f"Gemini request failed: {exc}", provider=self.name)


def _enum_name(value: Any) -> str | None:
  if value is None:
    return None
  return str(getattr(value, "name", value))

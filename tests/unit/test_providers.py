from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from app.ai.backoff import BackoffPolicy
from app.ai.errors import MalformedResponseError, ProviderError, ProviderQuotaExhaustedError, ProviderTimeoutError, RateLimitError, SchemaValidationError
from app.ai.providers.gemini import GeminiProvider
from app.ai.providers.openai import OpenAIProvider
from app.ai.schemas import InbodyMetrics

_METRICS_JSON = (
  '{"weight": 70.5, "skeletalMuscleMass": 31.2, "bodyFatMass": 14.1, "bodyFatPercent": 20, "bmi": 22.4,'
  ' "visceralFatLevel": 6, "basalMetabolicRate": 1580, "totalBodyWater": 40.3, "protein": 10.9, "minerals": 3.8}'
)


def _completion(content: str, finish_reason: str = "stop") -> SimpleNamespace:
  message = SimpleNamespace(content=content, refusal=None)
  return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)], usage=None)


def _status_error(error_cls: type[openai.APIStatusError], status: int, code: str, headers: dict[str, str] | None = None) -> openai.APIStatusError:
  request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
  response = httpx.Response(status, request=request, headers=headers or {})
  return error_cls(f"error {code}", response=response, body={"code": code, "message": f"error {code}"})


def _openai(create: AsyncMock, *, sleep=None, timeout: float = 5.0) -> OpenAIProvider:
  client = MagicMock()
  client.chat.completions.create = create
  policy = BackoffPolicy(max_attempts=3, base_delay=0.5, max_delay=5.0, rate_limit_only=True)
  return OpenAIProvider(api_key=None, model="gpt-4o", retry_policy=policy, timeout_seconds=timeout, sleep=sleep or AsyncMock(), client=client)


@pytest.mark.anyio
async def test_openai_returns_validated_artifact():
  provider = _openai(AsyncMock(return_value=_completion(f"```json\n{_METRICS_JSON}\n```")))

  metrics = await provider.generate_vision("read the scan", "https://cdn.example.com/scan.jpg", InbodyMetrics)

  assert metrics.skeletal_muscle_mass == 31.2
  assert metrics.body_fat_percent == 20


@pytest.mark.anyio
async def test_openai_truncated_output_is_malformed_and_not_retried():
  create = AsyncMock(return_value=_completion('{"weight": 70', finish_reason="length"))
  provider = _openai(create)

  with pytest.raises(MalformedResponseError):
    await provider.generate_vision("read", "https://cdn.example.com/scan.jpg", InbodyMetrics)

  assert create.await_count == 1


@pytest.mark.anyio
async def test_openai_schema_mismatch_raises_schema_validation_error():
  provider = _openai(AsyncMock(return_value=_completion('{"weight": "heavy"}')))

  with pytest.raises(SchemaValidationError):
    await provider.generate_vision("read", "https://cdn.example.com/scan.jpg", InbodyMetrics)


@pytest.mark.anyio
async def test_openai_rate_limit_is_retried_with_retry_after():
  sleep = AsyncMock()
  rate_limited = _status_error(openai.RateLimitError, 429, "rate_limit_exceeded", headers={"retry-after": "2"})
  create = AsyncMock(side_effect=[rate_limited, _completion(_METRICS_JSON)])
  provider = _openai(create, sleep=sleep)

  metrics = await provider.generate_vision("read", "https://cdn.example.com/scan.jpg", InbodyMetrics)

  assert metrics.weight == 70.5
  assert create.await_count == 2
  delay = sleep.await_args.args[0]
  assert 2.0 <= delay <= 2.2


@pytest.mark.anyio
async def test_openai_insufficient_quota_fails_fast():
  create = AsyncMock(side_effect=_status_error(openai.RateLimitError, 429, "insufficient_quota"))
  provider = _openai(create)

  with pytest.raises(ProviderQuotaExhaustedError):
    await provider.generate_vision("read", "https://cdn.example.com/scan.jpg", InbodyMetrics)

  assert create.await_count == 1


@pytest.mark.anyio
async def test_openai_server_errors_are_retryable_at_job_level_only():
  create = AsyncMock(side_effect=_status_error(openai.InternalServerError, 503, "server_error"))
  provider = _openai(create)

  with pytest.raises(ProviderError) as exc_info:
    await provider.generate_vision("read", "https://cdn.example.com/scan.jpg", InbodyMetrics)

  assert exc_info.value.retryable is True
  assert exc_info.value.status_code == 503
  assert create.await_count == 1


@pytest.mark.anyio
async def test_provider_call_has_hard_timeout():
  async def _slow(**_: object) -> SimpleNamespace:
    await asyncio.sleep(1)
    return _completion(_METRICS_JSON)

  provider = _openai(AsyncMock(side_effect=_slow), timeout=0.01)

  with pytest.raises(ProviderTimeoutError):
    await provider.generate_vision("read", "https://cdn.example.com/scan.jpg", InbodyMetrics)


def test_openai_requires_key_without_client():
  with pytest.raises(ValueError):
    OpenAIProvider(api_key=None, model="gpt-4o", retry_policy=BackoffPolicy(), timeout_seconds=1)


def _gemini() -> GeminiProvider:
  return GeminiProvider(api_key=None, model="gemini-2.0-flash-exp", retry_policy=BackoffPolicy(rate_limit_only=True), timeout_seconds=5, client=MagicMock())


def test_gemini_billing_429_is_quota_exhaustion():
  error = genai_errors.ClientError(429, {"error": {"code": 429, "message": "You exceeded your current quota, please check your plan and billing details.", "status": "RESOURCE_EXHAUSTED"}})

  translated = _gemini()._translate_error(error)

  assert isinstance(translated, ProviderQuotaExhaustedError)


def test_gemini_plain_429_is_rate_limit():
  error = genai_errors.ClientError(429, {"error": {"code": 429, "message": "Resource has been exhausted (e.g. check quota).", "status": "RESOURCE_EXHAUSTED"}})

  translated = _gemini()._translate_error(error)

  assert isinstance(translated, RateLimitError)


def test_gemini_bad_request_is_not_retryable():
  error = genai_errors.ClientError(400, {"error": {"code": 400, "message": "Invalid argument", "status": "INVALID_ARGUMENT"}})

  translated = _gemini()._translate_error(error)

  assert translated.retryable is False
  assert translated.status_code == 400

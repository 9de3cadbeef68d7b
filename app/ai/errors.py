"""Provider error taxonomy shared by the gateway, orchestrator and job workers."""

from __future__ import annotations

from typing import Any

_QUOTA_MARKERS = ("quota", "billing", "insufficient_quota", "exceeded your current quota")


class ProviderError(Exception):
  """Base class for failures raised while calling an AI provider."""

  retryable = True

  def __init__(self, message: str, *, provider: str | None = None, status_code: int | None = None, headers: dict[str, Any] | None = None, retryable: bool | None = None) -> None:
    super().__init__(message)
    if retryable is not None:
      self.retryable = retryable
    self.provider = provider
    self.status_code = status_code
    self.headers = headers or {}


class RateLimitError(ProviderError):
  """Provider answered with a too-many-requests signal."""

  code = "rate_limit_exceeded"


class ProviderQuotaExhaustedError(ProviderError):
  """Account-level quota or billing exhaustion; only another provider can help."""

  retryable = False


class ProviderTimeoutError(ProviderError):
  """The provider call exceeded the hard per-call timeout."""


class MalformedResponseError(ProviderError):
  """The provider flagged its own output as unusable (truncated, refused, blocked)."""

  retryable = False


class SchemaValidationError(ProviderError):
  """Output parsed as JSON but does not match the expected artifact schema."""


def is_quota_error(error: BaseException) -> bool:
  """Return True for account quota or billing failures that warrant provider failover."""
  if isinstance(error, ProviderQuotaExhaustedError):
    return True
  # Rate limits are transient; their messages often mention quotas too.
  if isinstance(error, RateLimitError):
    return False
  message = str(error).lower()
  return any(marker in message for marker in _QUOTA_MARKERS)


def is_retryable(error: BaseException) -> bool:
  """Classify an error for the job-level retry loop."""
  if isinstance(error, ProviderError):
    return error.retryable
  # Unknown SDK/network errors are assumed transient.
  return not isinstance(error, ValueError | TypeError | KeyError)


def error_summary(error: BaseException) -> str:
  """Short, user-safe failure code for job records."""
  if isinstance(error, ProviderQuotaExhaustedError):
    return "provider_quota_exhausted"
  if isinstance(error, RateLimitError):
    return "provider_rate_limited"
  if isinstance(error, ProviderTimeoutError):
    return "provider_timeout"
  if isinstance(error, MalformedResponseError):
    return "malformed_response"
  if isinstance(error, SchemaValidationError):
    return "schema_validation_failed"
  if isinstance(error, ProviderError):
    return "provider_error"
  return type(error).__name__

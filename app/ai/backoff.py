"""Exponential backoff with jitter for provider calls."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from app.ai.errors import ProviderQuotaExhaustedError

T = TypeVar("T")
logger = logging.getLogger(__name__)

GENERIC_JITTER_RATIO = 0.25
RATE_LIMIT_JITTER_RATIO = 0.10

Sleeper = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class AttemptSuccess(Generic[T]):
  attempt: int
  value: T


@dataclass(frozen=True)
class RetryableFailure:
  attempt: int
  error: Exception
  delay: float


@dataclass(frozen=True)
class FatalFailure:
  attempt: int
  error: Exception


AttemptResult = AttemptSuccess[T] | RetryableFailure | FatalFailure


def next_delay(attempt: int, base_delay: float, max_delay: float, multiplier: float, *, jitter_ratio: float = GENERIC_JITTER_RATIO, rand: Callable[[], float] = random.random) -> float:
  """Return the wait before retrying after `attempt` (1-based) failed.

  The exponential part is capped at `max_delay`; jitter of up to `jitter_ratio`
  of that value is added on top.
  """
  if attempt < 1:
    raise ValueError("attempt must be >= 1")
  delay = min(base_delay * (multiplier ** (attempt - 1)), max_delay)
  return delay + delay * jitter_ratio * rand()


def is_rate_limit_error(error: BaseException) -> bool:
  """Detect a too-many-requests signal on SDK or HTTP errors."""
  # Quota exhaustion also arrives as 429 but waiting does not help.
  if isinstance(error, ProviderQuotaExhaustedError):
    return False
  for attr in ("status_code", "status", "code"):
    value = getattr(error, attr, None)
    if value == 429 or value == "rate_limit_exceeded":
      return True

  response = getattr(error, "response", None)
  if response is not None and getattr(response, "status_code", None) == 429:
    return True

  return False


def retry_after(error: BaseException) -> float | None:
  """Return the server-suggested wait in seconds, if the error carries one."""
  headers = getattr(error, "headers", None)
  if not headers:
    headers = getattr(getattr(error, "response", None), "headers", None)
  if not headers:
    return None

  raw_ms = _header(headers, "retry-after-ms")
  if raw_ms is not None:
    try:
      return max(float(raw_ms) / 1000.0, 0.0)
    except ValueError:
      pass

  raw_seconds = _header(headers, "retry-after")
  if raw_seconds is not None:
    # HTTP-date values are ignored; the exponential delay applies instead.
    try:
      return max(float(raw_seconds), 0.0)
    except ValueError:
      return None

  return None


def _header(headers: Mapping[str, Any], name: str) -> str | None:
  value = headers.get(name)
  if value is None:
    lowered = name.lower()
    for key, candidate in headers.items():
      if str(key).lower() == lowered:
        value = candidate
        break
  if value is None:
    return None
  return str(value)


@dataclass(frozen=True)
class BackoffPolicy:
  """Bounded retry policy.

  With `rate_limit_only` set, only errors carrying a rate-limit signal are retried,
  the jitter band shrinks to 10% and `retry-after` headers replace the computed delay.
  """

  max_attempts: int = 5
  base_delay: float = 1.0
  max_delay: float = 60.0
  multiplier: float = 2.0
  rate_limit_only: bool = False

  @property
  def jitter_ratio(self) -> float:
    return RATE_LIMIT_JITTER_RATIO if self.rate_limit_only else GENERIC_JITTER_RATIO

  def should_retry(self, error: BaseException, attempt: int) -> bool:
    if attempt >= self.max_attempts:
      return False
    if self.rate_limit_only:
      return is_rate_limit_error(error)
    return True

  def delay_for(self, attempt: int, error: BaseException | None = None, *, rand: Callable[[], float] = random.random) -> float:
    if self.rate_limit_only and error is not None:
      suggested = retry_after(error)
      if suggested is not None:
        return suggested + suggested * self.jitter_ratio * rand()
    return next_delay(attempt, self.base_delay, self.max_delay, self.multiplier, jitter_ratio=self.jitter_ratio, rand=rand)

  def classify(self, error: Exception, attempt: int) -> RetryableFailure | FatalFailure:
    if self.should_retry(error, attempt):
      return RetryableFailure(attempt=attempt, error=error, delay=self.delay_for(attempt, error))
    return FatalFailure(attempt=attempt, error=error)

  async def attempt(self, operation: Callable[[], Awaitable[T]], attempt: int) -> AttemptResult[T]:
    """Run one attempt and fold its outcome into an explicit result."""
    try:
      return AttemptSuccess(attempt=attempt, value=await operation())
    except Exception as exc:  # noqa: BLE001
      return self.classify(exc, attempt)

  async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "operation", sleep: Sleeper = asyncio.sleep) -> T:
    """Drive `operation` until success, a fatal failure, or attempts run out.

    The error of the last attempt is re-raised unchanged.
    """
    last_error: Exception | None = None
    for attempt_number in range(1, self.max_attempts + 1):
      result = await self.attempt(operation, attempt_number)
      if isinstance(result, AttemptSuccess):
        return result.value

      last_error = result.error
      if isinstance(result, FatalFailure):
        break

      logger.warning("Retrying %s attempt=%d/%d delay=%.2fs error=%s", label, attempt_number, self.max_attempts, result.delay, type(result.error).__name__)
      await sleep(result.delay)

    if last_error is None:
      raise RuntimeError(f"{label} made no attempts")
    raise last_error


async def retry_with_backoff(operation: Callable[[], Awaitable[T]], *, policy: BackoffPolicy | None = None, label: str = "operation", sleep: Sleeper = asyncio.sleep) -> T:
  """Execute `operation` under the generic retry-everything policy."""
  return await (policy or BackoffPolicy()).run(operation, label=label, sleep=sleep)

"""Base interface shared by AI providers."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from app.ai.backoff import BackoffPolicy, Sleeper
from app.ai.errors import MalformedResponseError, ProviderError, ProviderTimeoutError, SchemaValidationError
from app.ai.json_parser import parse_json_with_fallback

M = TypeVar("M", bound=BaseModel)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawCompletion:
  """Provider output before validation."""

  text: str
  finish_reason: str | None = None
  refusal: str | None = None
  usage: dict[str, int] | None = None


class AIProvider(ABC):
  """A model backend able to produce schema-validated text and vision results.

  Every SDK call runs under a rate-limit-only backoff policy and a hard timeout.
  Subclasses translate SDK exceptions into the provider error taxonomy.
  """

  name: str
  _MALFORMED_FINISH_REASONS: frozenset[str] = frozenset()

  def __init__(self, *, retry_policy: BackoffPolicy, timeout_seconds: float, sleep: Sleeper = asyncio.sleep) -> None:
    self._retry_policy = retry_policy
    self._timeout_seconds = timeout_seconds
    self._sleep = sleep

  def provider_name(self) -> str:
    return self.name

  async def generate_text(self, prompt: str, schema: type[M], *, system: str | None = None) -> M:
    """Generate a structured artifact from a text prompt."""
    return await self._invoke(lambda: self._complete_text(prompt, schema, system), schema, label="text")

  async def generate_vision(self, prompt: str, image_ref: str, schema: type[M]) -> M:
    """Generate a structured artifact from a prompt plus one image."""
    return await self._invoke(lambda: self._complete_vision(prompt, image_ref, schema), schema, label="vision")

  @abstractmethod
  async def _complete_text(self, prompt: str, schema: type[BaseModel], system: str | None) -> RawCompletion:
    """Issue one text completion request."""

  @abstractmethod
  async def _complete_vision(self, prompt: str, image_ref: str, schema: type[BaseModel]) -> RawCompletion:
    """Issue one vision completion request."""

  @abstractmethod
  def _translate_error(self, exc: Exception) -> ProviderError:
    """Map an SDK exception onto the provider error taxonomy."""

  async def _invoke(self, call: Callable[[], Awaitable[RawCompletion]], schema: type[M], *, label: str) -> M:
    async def _once() -> M:
      try:
        raw = await asyncio.wait_for(call(), timeout=self._timeout_seconds)
      except TimeoutError as exc:
        raise ProviderTimeoutError(f"{self.name} {label} call timed out after {self._timeout_seconds}s", provider=self.name) from exc
      except ProviderError:
        raise
      except Exception as exc:  # noqa: BLE001
        raise self._translate_error(exc) from exc
      return self._validate(raw, schema)

    return await self._retry_policy.run(_once, label=f"{self.name}.{label}", sleep=self._sleep)

  def _validate(self, raw: RawCompletion, schema: type[M]) -> M:
    if raw.refusal:
      raise MalformedResponseError(f"{self.name} refused the request: {raw.refusal}", provider=self.name)
    if raw.finish_reason and raw.finish_reason.lower() in self._MALFORMED_FINISH_REASONS:
      raise MalformedResponseError(f"{self.name} stopped with finish_reason={raw.finish_reason}", provider=self.name)

    try:
      data = parse_json_with_fallback(raw.text)
    except json.JSONDecodeError as exc:
      raise MalformedResponseError(f"{self.name} returned non-JSON output: {exc}", provider=self.name) from exc

    try:
      return schema.model_validate(data)
    except ValidationError as exc:
      logger.warning("Schema validation failed provider=%s schema=%s errors=%d", self.name, schema.__name__, exc.error_count())
      raise SchemaValidationError(f"{self.name} output does not match {schema.__name__}", provider=self.name) from exc

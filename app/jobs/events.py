"""Typed job lifecycle events delivered to explicit subscribers."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationCompleted:
  job_id: str
  user_id: str
  category: str
  artifact_ref: str
  provider: str
  fallback_used: bool = False
  occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class GenerationFailed:
  job_id: str
  user_id: str
  category: str
  failure_reason: str
  attempts: int
  occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


JobEvent = GenerationCompleted | GenerationFailed
Subscriber = Callable[[JobEvent], Awaitable[None]]


class EventChannel:
  """Fan-out of job events; a failing subscriber never affects the job or other subscribers."""

  def __init__(self) -> None:
    self._subscribers: list[Subscriber] = []

  def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
    """Register a subscriber and return a callable that removes it."""
    self._subscribers.append(subscriber)

    def _unsubscribe() -> None:
      if subscriber in self._subscribers:
        self._subscribers.remove(subscriber)

    return _unsubscribe

  async def publish(self, event: JobEvent) -> None:
    for subscriber in list(self._subscribers):
      try:
        await subscriber(event)
      except Exception as exc:  # noqa: BLE001
        logger.error("Event subscriber failed event=%s job_id=%s error=%s", type(event).__name__, event.job_id, exc, exc_info=True)

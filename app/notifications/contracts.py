"""Contracts for user notification delivery channels."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol

NotificationOutcome = Literal["complete", "error"]


@dataclass(frozen=True)
class GenerationNotification:
  """User-facing event emitted when a generation job reaches a terminal state."""

  user_id: str
  category: str
  outcome: NotificationOutcome
  job_id: str
  title: str
  body: str
  artifact_ref: str | None = None
  error_summary: str | None = None

  def data(self) -> dict[str, str]:
    """Flat string payload attached to the push message."""
    payload = {"notificationCategory": f"generation_{self.outcome}", "generationType": self.category, "jobId": self.job_id}
    if self.artifact_ref:
      payload["planId"] = self.artifact_ref
    if self.error_summary:
      payload["error"] = self.error_summary
    return payload


@dataclass(frozen=True)
class PushMessage:
  """Represents a multicast push payload."""

  tokens: list[str]
  title: str
  body: str
  data: dict[str, str]


@dataclass(frozen=True)
class PushResult:
  success_count: int = 0
  failure_count: int = 0
  invalid_tokens: list[str] = field(default_factory=list)


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class NotificationProviderError(NotificationError):
  """Exception raised when the push provider rejects a delivery."""


class PushSender(Protocol):
  """Delivery contract for sending push notifications."""

  def send(self, message: PushMessage) -> PushResult:
    """Send a push notification synchronously."""

"""Errors raised by the job queue and admission path."""

from __future__ import annotations


class QuotaExceededError(Exception):
  """The user has no generations left in the current period for this category."""

  def __init__(self, user_id: str, category: str) -> None:
    super().__init__(f"Quota exceeded user_id={user_id} category={category}")
    self.user_id = user_id
    self.category = category


class JobNotFoundError(LookupError):
  """No job exists with the given identifier."""


class TerminalJobError(RuntimeError):
  """A terminal job was asked to change state."""


class FatalJobError(Exception):
  """A job failure that must not be retried; `reason` becomes the job's failure_reason."""

  def __init__(self, reason: str, message: str | None = None) -> None:
    super().__init__(message or reason)
    self.reason = reason

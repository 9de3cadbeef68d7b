"""Domain models for asynchronous generation jobs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

JobState = Literal["queued", "active", "completed", "failed"]
TERMINAL_STATES: frozenset[str] = frozenset({"completed", "failed"})


@dataclass
class GenerationJobRecord:
  """Represents one queued generation request and its lifecycle."""

  job_id: str
  user_id: str
  category: str
  payload: dict[str, Any]
  state: JobState
  created_at: datetime
  updated_at: datetime
  max_attempts: int
  attempt: int = 0
  progress: int = 0
  result: str | None = None
  failure_reason: str | None = None
  quota_charged: bool = False
  started_at: datetime | None = None
  completed_at: datetime | None = None

  @property
  def terminal(self) -> bool:
    return self.state in TERMINAL_STATES

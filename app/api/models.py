from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from app.jobs.models import GenerationJobRecord, JobState
from app.jobs.progress import progress_message
from app.schema.generation import GenerationCategory, SubscriptionPlan


class GenerationSubmitRequest(BaseModel):
  """Request payload for a new generation job."""

  user_id: StrictStr = Field(min_length=1, max_length=128)
  category: GenerationCategory
  payload: dict[str, Any]
  model_config = ConfigDict(extra="forbid")


class JobCreateResponse(BaseModel):
  """Response payload for job creation."""

  job_id: StrictStr


class JobStatusResponse(BaseModel):
  """Status payload for a generation job."""

  job_id: StrictStr
  category: GenerationCategory
  state: JobState
  progress: StrictInt = Field(ge=0, le=100)
  attempt: StrictInt = 0
  result: StrictStr | None = None
  failure_reason: StrictStr | None = None

  @classmethod
  def from_record(cls, record: GenerationJobRecord) -> JobStatusResponse:
    return cls(
      job_id=record.job_id,
      category=GenerationCategory(record.category),
      state=record.state,
      progress=record.progress,
      attempt=record.attempt,
      result=record.result if record.state == "completed" else None,
      failure_reason=record.failure_reason if record.state == "failed" else None,
    )


class ActiveJobResponse(JobStatusResponse):
  """Active job summary with a human readable progress message."""

  message: StrictStr

  @classmethod
  def from_record(cls, record: GenerationJobRecord) -> ActiveJobResponse:
    base = JobStatusResponse.from_record(record)
    return cls(**base.model_dump(), message=progress_message(record.progress))


class QuotaUsage(BaseModel):
  used: StrictInt
  limit: StrictInt
  remaining: StrictInt


class DeviceRegisterRequest(BaseModel):
  """Register an FCM token for push delivery."""

  user_id: StrictStr = Field(min_length=1, max_length=128)
  token: StrictStr = Field(min_length=1, max_length=4096)
  platform: Literal["android", "ios", "web"] = "android"
  model_config = ConfigDict(extra="forbid")


class UserUpsertRequest(BaseModel):
  """Create or update a user's profile and subscription plan."""

  language: Literal["en", "vi"] = "vi"
  plan: SubscriptionPlan = SubscriptionPlan.FREE
  model_config = ConfigDict(extra="forbid")


class UserResponse(BaseModel):
  user_id: StrictStr
  language: StrictStr
  plan: SubscriptionPlan

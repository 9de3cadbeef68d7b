"""Generation categories, plans and per-category request payloads."""

from __future__ import annotations

import enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator
from pydantic.alias_generators import to_camel


class GenerationCategory(str, enum.Enum):
  WORKOUT = "workout"
  MEAL = "meal"
  INBODY_SCAN = "inbody-scan"
  BODY_PHOTO = "body-photo"


class SubscriptionPlan(str, enum.Enum):
  FREE = "free"
  PREMIUM = "premium"
  ENTERPRISE = "enterprise"


class DayOfWeek(str, enum.Enum):
  MONDAY = "monday"
  TUESDAY = "tuesday"
  WEDNESDAY = "wednesday"
  THURSDAY = "thursday"
  FRIDAY = "friday"
  SATURDAY = "saturday"
  SUNDAY = "sunday"


Goal = Literal["weight_loss", "muscle_gain", "maintenance"]
ExperienceLevel = Literal["beginner", "intermediate", "advanced"]
Gender = Literal["male", "female", "other"]
ActivityLevel = Literal["sedentary", "lightly_active", "moderately_active", "very_active", "extremely_active"]


class _Payload(BaseModel):
  model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class WorkoutRequest(_Payload):
  """Inputs for a weekly workout plan."""

  goal: Goal
  experience_level: ExperienceLevel = "beginner"
  schedule_days: list[DayOfWeek] = Field(min_length=1, max_length=7)
  weight: float | None = Field(default=None, gt=0)
  height: float | None = Field(default=None, gt=0)
  target_weight: float | None = Field(default=None, gt=0)

  @field_validator("schedule_days")
  @classmethod
  def _unique_days(cls, value: list[DayOfWeek]) -> list[DayOfWeek]:
    # Keep the caller's order while dropping repeats.
    return list(dict.fromkeys(value))


class MealRequest(_Payload):
  """Inputs for a meal plan; body metrics drive the TDEE targets."""

  goal: Goal
  weight: float = Field(gt=0)
  height: float = Field(gt=0)
  age: int = Field(gt=0, lt=120)
  gender: Gender
  activity_level: ActivityLevel = "moderately_active"
  schedule_days: list[DayOfWeek] | None = None
  full_week: bool = False
  notes: StrictStr | None = Field(default=None, max_length=500)

  def days(self) -> list[DayOfWeek]:
    if self.full_week or not self.schedule_days:
      return list(DayOfWeek)
    return list(dict.fromkeys(self.schedule_days))


class InbodyScanRequest(_Payload):
  """An uploaded InBody report image."""

  image_url: StrictStr = Field(min_length=1)


class BodyPhotoRequest(_Payload):
  """A full-body photo plus optional known measurements."""

  image_url: StrictStr = Field(min_length=1)
  height: float | None = Field(default=None, gt=0)
  gender: Gender | None = None


PAYLOAD_MODELS: dict[GenerationCategory, type[_Payload]] = {
  GenerationCategory.WORKOUT: WorkoutRequest,
  GenerationCategory.MEAL: MealRequest,
  GenerationCategory.INBODY_SCAN: InbodyScanRequest,
  GenerationCategory.BODY_PHOTO: BodyPhotoRequest,
}

GenerationRequest = WorkoutRequest | MealRequest | InbodyScanRequest | BodyPhotoRequest


class InvalidPayloadError(ValueError):
  """The payload does not match the schema of its category."""

  def __init__(self, category: GenerationCategory, errors: list[dict[str, Any]]) -> None:
    super().__init__(f"Invalid {category.value} payload")
    self.category = category
    self.errors = errors


def parse_payload(category: GenerationCategory, payload: dict[str, Any]) -> GenerationRequest:
  """Validate a raw payload against the model registered for its category."""
  try:
    return PAYLOAD_MODELS[category].model_validate(payload)
  except ValidationError as exc:
    errors = [{key: value for key, value in error.items() if key != "input"} for error in exc.errors(include_url=False)]
    raise InvalidPayloadError(category, errors) from exc

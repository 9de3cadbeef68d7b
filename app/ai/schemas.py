"""Validated artifact shapes returned by providers, one per generation category."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from app.schema.generation import DayOfWeek


class _Model(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Translatable(_Model):
  en: str
  vi: str


class Exercise(_Model):
  name: Translatable
  description: Translatable
  sets: int = Field(ge=1, le=10)
  reps: str
  video_url: str = ""


class WorkoutDay(_Model):
  day_of_week: DayOfWeek
  focus: Translatable
  exercises: list[Exercise] = Field(min_length=4, max_length=8)


class WorkoutPlan(_Model):
  schedule: list[WorkoutDay] = Field(min_length=1)


class Macros(_Model):
  calories: float = Field(ge=0)
  protein: float = Field(ge=0)
  carbs: float = Field(ge=0)
  fat: float = Field(ge=0)


class MealItem(_Model):
  name: Translatable
  description: Translatable | None = None
  quantity: str
  macros: Macros


class Meal(_Model):
  type: Literal["breakfast", "lunch", "dinner", "snack"]
  items: list[MealItem] = Field(min_length=1)
  total_macros: Macros


class DailyMealPlan(_Model):
  day_of_week: DayOfWeek
  meals: list[Meal] = Field(min_length=3, max_length=6)
  daily_totals: Macros


class MealPlan(_Model):
  schedule: list[DailyMealPlan] = Field(min_length=1)


class InbodyMetrics(_Model):
  """Metrics read off an InBody report; 0 marks a value the scan did not show."""

  weight: float = Field(ge=0)
  skeletal_muscle_mass: float = Field(ge=0)
  body_fat_mass: float = Field(ge=0)
  body_fat_percent: float = Field(ge=0, le=100)
  bmi: float = Field(ge=0)
  visceral_fat_level: float = Field(ge=0)
  basal_metabolic_rate: float = Field(ge=0)
  total_body_water: float = Field(ge=0)
  protein: float = Field(ge=0)
  minerals: float = Field(ge=0)
  ocr_text: str = ""


class BodyPhotoEstimate(_Model):
  """Body composition estimated from a photo; 0 marks an unestimated value."""

  weight: float = Field(ge=0)
  body_fat_percent: float = Field(ge=0, le=100)
  skeletal_muscle_mass: float = Field(ge=0)
  bmi: float = Field(ge=0)
  estimated_height: float = Field(ge=0)
  body_fat_mass: float = Field(ge=0)
  visceral_fat_level: float = Field(ge=0)
  basal_metabolic_rate: float = Field(ge=0)
  total_body_water: float = Field(ge=0)
  protein: float = Field(ge=0)
  minerals: float = Field(ge=0)
  confidence: float = Field(ge=0, le=100)


class _Result(BaseModel):
  provider: str
  fallback_used: bool = False


class WorkoutResult(_Result):
  category: Literal["workout"] = "workout"
  content: WorkoutPlan


class MealResult(_Result):
  category: Literal["meal"] = "meal"
  content: MealPlan


class InbodyScanResult(_Result):
  category: Literal["inbody-scan"] = "inbody-scan"
  content: InbodyMetrics


class BodyPhotoResult(_Result):
  category: Literal["body-photo"] = "body-photo"
  content: BodyPhotoEstimate


GenerationResult = Annotated[WorkoutResult | MealResult | InbodyScanResult | BodyPhotoResult, Field(discriminator="category")]

_RESULT_ADAPTER: TypeAdapter[Any] = TypeAdapter(GenerationResult)


def load_result(data: dict[str, Any]) -> WorkoutResult | MealResult | InbodyScanResult | BodyPhotoResult:
  """Rebuild a stored artifact into its category-specific result type."""
  return _RESULT_ADAPTER.validate_python(data)


def response_schema(model: type[BaseModel]) -> dict[str, Any]:
  """JSON schema sent to providers that accept one, using wire (camelCase) names."""
  return model.model_json_schema(by_alias=True)

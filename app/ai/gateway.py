"""Category-level generation operations on top of a single provider."""

from __future__ import annotations

import logging

from app.ai import prompts
from app.ai.errors import is_quota_error
from app.ai.providers.base import AIProvider
from app.ai.schemas import BodyPhotoEstimate, BodyPhotoResult, InbodyMetrics, InbodyScanResult, MealPlan, MealResult, WorkoutPlan, WorkoutResult
from app.ai.templates import fallback_meal_plan, fallback_workout_plan, fill_missing_days
from app.schema.generation import BodyPhotoRequest, GenerationCategory, GenerationRequest, InbodyScanRequest, MealRequest, WorkoutRequest

logger = logging.getLogger(__name__)

CategoryResult = WorkoutResult | MealResult | InbodyScanResult | BodyPhotoResult


class GenerationGateway:
  """Turns a category request into a validated artifact.

  Plans degrade to deterministic templates when the provider cannot deliver, except for
  quota or billing exhaustion, which is left for the caller to fail over on. Vision
  categories have no safe default and always propagate provider errors.
  """

  async def generate(self, provider: AIProvider, category: GenerationCategory, request: GenerationRequest) -> CategoryResult:
    if category is GenerationCategory.WORKOUT and isinstance(request, WorkoutRequest):
      return await self.workout_plan(provider, request)
    if category is GenerationCategory.MEAL and isinstance(request, MealRequest):
      return await self.meal_plan(provider, request)
    if category is GenerationCategory.INBODY_SCAN and isinstance(request, InbodyScanRequest):
      return await self.inbody_metrics(provider, request)
    if category is GenerationCategory.BODY_PHOTO and isinstance(request, BodyPhotoRequest):
      return await self.body_photo_estimate(provider, request)
    raise TypeError(f"{type(request).__name__} is not a {category.value} request")

  async def workout_plan(self, provider: AIProvider, request: WorkoutRequest) -> WorkoutResult:
    try:
      plan = await provider.generate_text(prompts.workout_prompt(request), WorkoutPlan, system=prompts.WORKOUT_SYSTEM)
    except Exception as exc:
      if is_quota_error(exc):
        raise
      logger.warning("Workout generation failed on %s; using template plan. error=%s", provider.provider_name(), exc)
      return WorkoutResult(provider=provider.provider_name(), fallback_used=True, content=fallback_workout_plan(request))
    return WorkoutResult(provider=provider.provider_name(), content=fill_missing_days(plan, request))

  async def meal_plan(self, provider: AIProvider, request: MealRequest) -> MealResult:
    try:
      plan = await provider.generate_text(prompts.meal_prompt(request), MealPlan, system=prompts.MEAL_SYSTEM)
    except Exception as exc:
      if is_quota_error(exc):
        raise
      logger.warning("Meal generation failed on %s; using template plan. error=%s", provider.provider_name(), exc)
      return MealResult(provider=provider.provider_name(), fallback_used=True, content=fallback_meal_plan(request))
    return MealResult(provider=provider.provider_name(), content=plan)

  async def inbody_metrics(self, provider: AIProvider, request: InbodyScanRequest) -> InbodyScanResult:
    metrics = await provider.generate_vision(prompts.inbody_prompt(), request.image_url, InbodyMetrics)
    return InbodyScanResult(provider=provider.provider_name(), content=metrics)

  async def body_photo_estimate(self, provider: AIProvider, request: BodyPhotoRequest) -> BodyPhotoResult:
    estimate = await provider.generate_vision(prompts.body_photo_prompt(request), request.image_url, BodyPhotoEstimate)
    return BodyPhotoResult(provider=provider.provider_name(), content=estimate)

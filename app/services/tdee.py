"""Daily energy and macro targets (Mifflin-St Jeor)."""

from __future__ import annotations

from dataclasses import dataclass

_ACTIVITY_MULTIPLIERS = {"sedentary": 1.2, "lightly_active": 1.375, "moderately_active": 1.55, "very_active": 1.725, "extremely_active": 1.9}
_GOAL_ADJUSTMENTS = {"weight_loss": -500, "muscle_gain": 300, "maintenance": 0}
_GENDER_OFFSETS = {"male": 5, "female": -161, "other": -78}


@dataclass(frozen=True)
class EnergyTargets:
  bmr: float
  tdee: int
  target_calories: int
  protein: int
  carbs: int
  fat: int


def basal_metabolic_rate(*, weight: float, height: float, age: int, gender: str) -> float:
  return 10 * weight + 6.25 * height - 5 * age + _GENDER_OFFSETS[gender]


def energy_targets(*, weight: float, height: float, age: int, gender: str, activity_level: str, goal: str) -> EnergyTargets:
  """Compute calorie and gram targets for a day of eating."""
  bmr = basal_metabolic_rate(weight=weight, height=height, age=age, gender=gender)
  tdee = round(bmr * _ACTIVITY_MULTIPLIERS[activity_level])
  target = round(tdee + _GOAL_ADJUSTMENTS[goal])

  protein_grams = weight * (1.6 if goal == "maintenance" else 2.0)
  fat_calories = target * 0.25
  # Carbs take whatever energy protein and fat leave; never negative.
  carb_calories = max(target - protein_grams * 4 - fat_calories, 0)
  return EnergyTargets(bmr=bmr, tdee=tdee, target_calories=target, protein=round(protein_grams), carbs=round(carb_calories / 4), fat=round(fat_calories / 9))

"""Prompt builders for each generation category."""

from __future__ import annotations

from app.schema.generation import BodyPhotoRequest, MealRequest, WorkoutRequest
from app.services.tdee import energy_targets

WORKOUT_SYSTEM = "You are a professional fitness trainer. Generate workout plans as JSON with English (en) and Vietnamese (vi) text."
MEAL_SYSTEM = "You are a professional nutritionist and meal planner. Generate detailed, nutritionally accurate meal plans as JSON with English (en) and Vietnamese (vi) names and precise macro calculations."

_EXERCISE_HINTS = """Common exercises to choose from:
- Chest: Bench Press, Incline Press, Dumbbell Fly, Push-ups
- Back: Deadlift, Pull-ups, Barbell Row, Lat Pulldown
- Legs: Squat, Leg Press, Lunges, Leg Curl
- Shoulders: Overhead Press, Lateral Raise, Front Raise
- Arms: Bicep Curl, Tricep Extension, Hammer Curl, Dips"""


def workout_prompt(request: WorkoutRequest) -> str:
  lines = [
    "Generate a workout plan for these requirements:",
    f"- Goal: {request.goal.replace('_', ' ')}",
    f"- Experience level: {request.experience_level}",
    f"- Training days: {', '.join(day.value for day in request.schedule_days)}",
  ]
  if request.weight:
    lines.append(f"- Current weight: {request.weight}kg")
  if request.target_weight:
    lines.append(f"- Target weight: {request.target_weight}kg")
  if request.height:
    lines.append(f"- Height: {request.height}cm")
  lines += [
    "",
    "Rules:",
    "- One schedule entry per training day, using the lowercase day name as dayOfWeek",
    "- Include 4-6 exercises per day with proper muscle group distribution and recovery",
    '- Use common exercise names (e.g. "Bench Press", "Squat", "Deadlift")',
    '- videoUrl must be an empty string ""',
    "",
    _EXERCISE_HINTS,
  ]
  return "\n".join(lines)


def meal_prompt(request: MealRequest) -> str:
  targets = energy_targets(weight=request.weight, height=request.height, age=request.age, gender=request.gender, activity_level=request.activity_level, goal=request.goal)
  lines = [
    "Create a meal plan with these daily targets:",
    f"- Calories: {targets.target_calories} kcal",
    f"- Protein: {targets.protein}g, Carbs: {targets.carbs}g, Fat: {targets.fat}g",
    f"- Goal: {request.goal.replace('_', ' ')}",
    f"- Days: {', '.join(day.value for day in request.days())}",
  ]
  if request.notes:
    lines.append(f"- Notes from the user: {request.notes}")
  lines += [
    "",
    "Each day has 3-6 meals (breakfast, lunch, dinner, snack). Every item lists a quantity and macros;",
    "totalMacros and dailyTotals must add up. Prefer ingredients available in Vietnam.",
  ]
  return "\n".join(lines)


def inbody_prompt() -> str:
  return (
    "Read this InBody body composition report. Extract weight, skeletal muscle mass, body fat mass, body fat percent, BMI, "
    "visceral fat level, basal metabolic rate, total body water, protein and minerals. Use 0 for any value you cannot find. "
    "Put all raw text you can read into ocrText."
  )


def body_photo_prompt(request: BodyPhotoRequest) -> str:
  hints = []
  if request.height:
    hints.append(f"The person's height is {request.height}cm.")
  if request.gender:
    hints.append(f"Gender: {request.gender}.")
  return " ".join(
    [
      "Estimate body composition from this full-body photo: weight, body fat percent, skeletal muscle mass, BMI, height,",
      "body fat mass, visceral fat level, basal metabolic rate, total body water, protein and minerals.",
      "Use 0 for anything you cannot estimate and give an overall confidence from 0 to 100.",
      *hints,
    ]
  )

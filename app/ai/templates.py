"""Deterministic artifacts used when AI generation of a plan is unavailable."""

from __future__ import annotations

from app.ai.schemas import DailyMealPlan, Exercise, Macros, Meal, MealItem, MealPlan, Translatable, WorkoutDay, WorkoutPlan
from app.schema.generation import DayOfWeek, MealRequest, WorkoutRequest
from app.services.tdee import energy_targets


def _yt(video_id: str) -> str:
  return f"https://www.youtube.com/watch?v={video_id}"


def _exercise(en: str, vi: str, desc_en: str, desc_vi: str, sets: int, reps: str, video_id: str) -> Exercise:
  return Exercise(name=Translatable(en=en, vi=vi), description=Translatable(en=desc_en, vi=desc_vi), sets=sets, reps=reps, video_url=_yt(video_id))


_WORKOUT_TEMPLATES: dict[DayOfWeek, tuple[Translatable, list[Exercise]]] = {
  DayOfWeek.MONDAY: (
    Translatable(en="Chest & Triceps", vi="Ngực & Tay sau"),
    [
      _exercise("Bench Press", "Đẩy ngực", "A compound chest exercise", "Bài tập compound phát triển cơ ngực", 4, "8-10", "rT7DgCr-3pg"),
      _exercise("Incline Dumbbell Press", "Đẩy tạ đơn dốc", "Targets upper chest", "Tập trung vào ngực trên", 4, "10-12", "8iPEnn-ltC8"),
      _exercise("Cable Fly", "Đưa tay cáp", "Isolation chest exercise", "Bài tập cô lập ngực", 3, "12-15", "Iwe6AmxVf7o"),
      _exercise("Tricep Dips", "Chống đẩy xà kép", "Compound tricep exercise", "Bài tập compound tay sau", 3, "10-12", "6kALZikXxLc"),
    ],
  ),
  DayOfWeek.TUESDAY: (
    Translatable(en="Back & Biceps", vi="Lưng & Tay trước"),
    [
      _exercise("Deadlift", "Nâng tạ đòn", "Compound back exercise", "Bài tập compound cho lưng", 4, "6-8", "ytGaGIn3SjE"),
      _exercise("Pull-ups", "Kéo xà", "Compound upper body exercise", "Bài tập compound thân trên", 4, "8-12", "eGo4IYlbE5g"),
      _exercise("Barbell Row", "Chèo tạ đòn", "Compound back exercise", "Bài tập compound lưng", 4, "8-10", "9efgcAjQe7E"),
      _exercise("Bicep Curls", "Cuốn tay trước", "Isolation bicep exercise", "Bài tập cô lập tay trước", 3, "12-15", "ykJmrZ5v0Oo"),
    ],
  ),
  DayOfWeek.WEDNESDAY: (
    Translatable(en="Legs", vi="Chân"),
    [
      _exercise("Squat", "Squat", "Compound leg exercise", "Bài tập compound cho chân", 4, "8-10", "ultWZbUMPL8"),
      _exercise("Leg Press", "Đạp chân", "Compound leg exercise", "Bài tập compound chân", 4, "10-12", "IZxyjW7MPJQ"),
      _exercise("Lunges", "Chùng chân", "Single leg exercise", "Bài tập một chân", 3, "12-15 each leg", "QOVaHwm-Q6U"),
      _exercise("Leg Curl", "Gập chân", "Hamstring isolation", "Bài tập cô lập gân kheo", 3, "12-15", "1Tq3QdYUuHs"),
    ],
  ),
  DayOfWeek.THURSDAY: (
    Translatable(en="Shoulders", vi="Vai"),
    [
      _exercise("Overhead Press", "Đẩy vai", "Shoulder press exercise", "Bài tập đẩy vai", 4, "8-10", "2yjwXTZQDDI"),
      _exercise("Lateral Raise", "Nâng tạ sang ngang", "Side deltoid isolation", "Bài tập cô lập vai giữa", 4, "12-15", "3VcKaXpzqRo"),
      _exercise("Front Raise", "Nâng tạ trước mặt", "Front deltoid isolation", "Bài tập cô lập vai trước", 3, "12-15", "SVT4XMvnvJo"),
      _exercise("Shrugs", "Nhún vai", "Trap exercise", "Bài tập cơ cầu vai", 3, "15-20", "g6qbq4Lf1FI"),
    ],
  ),
  DayOfWeek.FRIDAY: (
    Translatable(en="Arms", vi="Tay"),
    [
      _exercise("Bicep Curls", "Cuốn tay trước", "Isolation bicep exercise", "Bài tập cô lập tay trước", 3, "12-15", "ykJmrZ5v0Oo"),
      _exercise("Hammer Curl", "Cuốn tạ búa", "Bicep and forearm exercise", "Bài tập tay trước và cẳng tay", 3, "12-15", "zC3nLlEvin4"),
      _exercise("Tricep Extension", "Duỗi tay sau", "Isolation tricep exercise", "Bài tập cô lập tay sau", 3, "12-15", "YbX7Wd8jQ-Q"),
      _exercise("Dips", "Chống đẩy xà kép", "Compound tricep exercise", "Bài tập compound tay sau", 3, "10-12", "6kALZikXxLc"),
    ],
  ),
  DayOfWeek.SATURDAY: (
    Translatable(en="Full Body", vi="Toàn thân"),
    [
      _exercise("Pull-ups", "Kéo xà", "Compound upper body exercise", "Bài tập compound thân trên", 4, "8-12", "eGo4IYlbE5g"),
      _exercise("Push-ups", "Chống đẩy", "Compound chest and tricep exercise", "Bài tập compound ngực và tay sau", 4, "15-20", "IODxDxX7oi4"),
      _exercise("Bodyweight Squats", "Squat trọng lượng cơ thể", "Bodyweight leg exercise", "Bài tập chân trọng lượng cơ thể", 4, "20-25", "aclHkVaku9U"),
      _exercise("Plank", "Plank", "Core stability exercise", "Bài tập ổn định core", 3, "30-60 seconds", "ASdvN_XEl_c"),
    ],
  ),
  DayOfWeek.SUNDAY: (
    Translatable(en="Active Recovery", vi="Hồi phục tích cực"),
    [
      _exercise("Light Cardio", "Cardio nhẹ", "Low intensity recovery", "Hồi phục cường độ thấp", 1, "20-30min", "gC_L9qAHVJ8"),
      _exercise("Stretching", "Giãn cơ", "Full body stretching", "Giãn cơ toàn thân", 1, "15-20min", "g_tea8ZNk5A"),
      _exercise("Yoga", "Yoga", "Flexibility and mobility", "Tính linh hoạt và vận động", 1, "20-30min", "v7AYKMP6rOE"),
      _exercise("Foam Rolling", "Lăn massage", "Myofascial release", "Giải phóng cân mạc", 1, "10-15min", "wAkg0trclFM"),
    ],
  ),
}


def workout_day_template(day: DayOfWeek) -> WorkoutDay:
  focus, exercises = _WORKOUT_TEMPLATES[day]
  return WorkoutDay(day_of_week=day, focus=focus.model_copy(), exercises=[exercise.model_copy(deep=True) for exercise in exercises])


def fallback_workout_plan(request: WorkoutRequest) -> WorkoutPlan:
  """One template day per requested training day, in request order."""
  return WorkoutPlan(schedule=[workout_day_template(day) for day in request.schedule_days])


def fill_missing_days(plan: WorkoutPlan, request: WorkoutRequest) -> WorkoutPlan:
  """Append template days for requested days the model left out."""
  present = {day.day_of_week for day in plan.schedule}
  missing = [workout_day_template(day) for day in request.schedule_days if day not in present]
  if not missing:
    return plan
  return plan.model_copy(update={"schedule": [*plan.schedule, *missing]})


# Share of daily targets per meal, plus one staple item standing in for the meal.
_MEAL_SLOTS: tuple[tuple[str, float, Translatable, str], ...] = (
  ("breakfast", 0.25, Translatable(en="Oatmeal with eggs and banana", vi="Yến mạch với trứng và chuối"), "1 bowl"),
  ("lunch", 0.35, Translatable(en="Brown rice with grilled chicken and vegetables", vi="Cơm gạo lứt với ức gà nướng và rau"), "1 plate"),
  ("dinner", 0.30, Translatable(en="Steamed fish with sweet potato and greens", vi="Cá hấp với khoai lang và rau xanh"), "1 plate"),
  ("snack", 0.10, Translatable(en="Greek yogurt with nuts", vi="Sữa chua Hy Lạp với các loại hạt"), "1 cup"),
)


def fallback_meal_plan(request: MealRequest) -> MealPlan:
  """Template meals scaled to the user's TDEE targets."""
  targets = energy_targets(weight=request.weight, height=request.height, age=request.age, gender=request.gender, activity_level=request.activity_level, goal=request.goal)
  daily = Macros(calories=targets.target_calories, protein=targets.protein, carbs=targets.carbs, fat=targets.fat)

  meals: list[Meal] = []
  for meal_type, share, name, quantity in _MEAL_SLOTS:
    macros = Macros(calories=round(daily.calories * share), protein=round(daily.protein * share), carbs=round(daily.carbs * share), fat=round(daily.fat * share))
    meals.append(Meal(type=meal_type, items=[MealItem(name=name, quantity=quantity, macros=macros)], total_macros=macros))

  totals = Macros(
    calories=sum(meal.total_macros.calories for meal in meals),
    protein=sum(meal.total_macros.protein for meal in meals),
    carbs=sum(meal.total_macros.carbs for meal in meals),
    fat=sum(meal.total_macros.fat for meal in meals),
  )
  return MealPlan(schedule=[DailyMealPlan(day_of_week=day, meals=[meal.model_copy(deep=True) for meal in meals], daily_totals=totals) for day in request.days()])

"""
Reminder catalogue: which reminders a settings document asks for, with their
notification payloads and routing targets.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from .recurrence_models import WORKING_DAYS, ReminderType, RecurrenceSpec
from .schemas import UserReminderSettings


@dataclass(frozen=True)
class PlannedReminder:
    key: str
    type: ReminderType
    spec: RecurrenceSpec
    title: str
    body: str
    tag: str
    target_reference: Dict[str, Any] = field(default_factory=dict)


# (settings field, key suffix, title, body)
MEAL_SLOTS = (
    ("breakfast", "breakfast", "Breakfast Time! 🍳", "Time to log your breakfast and start your day right."),
    ("lunch", "lunch", "Lunch Time! 🥗", "Don't forget to log your lunch."),
    ("dinner", "dinner", "Dinner Time! 🍽️", "Time to log your dinner."),
    ("morning_snack", "morning-snack", "Morning Snack Time! 🍎", "Time for your morning snack."),
    ("evening_snack", "evening-snack", "Evening Snack Time! 🍪", "Time for your evening snack."),
)


def _or_default(value: Optional[Any], default: Any) -> Any:
    return default if value is None else value


def plan_reminders(settings: UserReminderSettings, local_today: date) -> List[PlannedReminder]:
    """Reminders requested by the type-level enabled flags.

    The global flag is not consulted here; the reconciler handles it.
    Patterns are not validated either, so a malformed field only fails its
    own key later on.
    """
    planned: List[PlannedReminder] = []

    meals = settings.meal_reminders
    if meals.enabled:
        for attr, suffix, title, body in MEAL_SLOTS:
            time_of_day = getattr(meals, attr)
            if not time_of_day:
                continue
            planned.append(PlannedReminder(
                key=f"meal-{suffix}",
                type=ReminderType.MEAL,
                spec=RecurrenceSpec.daily(time_of_day),
                title=title,
                body=body,
                tag=f"meal-{suffix}",
                target_reference={"url": "/meals", "time": time_of_day},
            ))

    water = settings.water_reminders
    if water.enabled:
        interval = _or_default(water.interval_minutes, 60)
        planned.append(PlannedReminder(
            key="water",
            type=ReminderType.WATER,
            spec=RecurrenceSpec.recurring(
                _or_default(water.start_time, "08:00"),
                _or_default(water.end_time, "22:00"),
                interval,
            ),
            title="Stay Hydrated! 💧",
            body=f"It's been {interval} minutes. Time for some water!",
            tag="water",
            target_reference={"url": "/water"},
        ))

    workout = settings.workout_reminders
    if workout.enabled:
        time_of_day = _or_default(workout.time, "18:00")
        planned.append(PlannedReminder(
            key="workout",
            type=ReminderType.WORKOUT,
            spec=RecurrenceSpec.daily_or_weekly(time_of_day, _or_default(workout.days, WORKING_DAYS)),
            title="Workout Time! 💪",
            body="Don't forget to log your workout.",
            tag="workout",
            target_reference={"url": "/workouts", "time": time_of_day},
        ))

    goal = settings.goal_reminders
    if goal.enabled:
        time_of_day = _or_default(goal.check_progress_time, "20:00")
        planned.append(PlannedReminder(
            key="goal",
            type=ReminderType.GOAL,
            spec=RecurrenceSpec.daily(time_of_day),
            title="Goal Check-in! 🎯",
            body="Check your progress toward your daily goals.",
            tag="goal",
            target_reference={"url": "/dashboard", "time": time_of_day},
        ))

    weight = settings.weight_reminders
    if weight.enabled:
        time_of_day = _or_default(weight.time, "08:00")
        planned.append(PlannedReminder(
            key="weight",
            type=ReminderType.WEIGHT,
            spec=RecurrenceSpec.daily_or_weekly(time_of_day, _or_default(weight.days, range(7))),
            title="Log Your Weight! ⚖️",
            body="Don't forget to track your weight today.",
            tag="weight",
            target_reference={"url": "/dashboard", "time": time_of_day},
        ))

    streak = settings.streak_reminders
    if streak.enabled:
        time_of_day = _or_default(streak.time, "19:00")
        planned.append(PlannedReminder(
            key="streak",
            type=ReminderType.STREAK,
            spec=RecurrenceSpec.weekly(time_of_day, _or_default(streak.check_days, WORKING_DAYS)),
            title="Maintain Your Streak! 🔥",
            body="Log something today to keep your streak going!",
            tag="streak",
            target_reference={"url": "/dashboard", "time": time_of_day},
        ))

    summary = settings.summary_reminders
    if summary.enabled:
        time_of_day = _or_default(summary.time, "20:00")
        planned.append(PlannedReminder(
            key="summary",
            type=ReminderType.SUMMARY,
            spec=RecurrenceSpec.daily(time_of_day),
            title="Daily Summary 📊",
            body="View your daily progress summary and insights.",
            tag="summary",
            target_reference={"url": f"/summary/{local_today.isoformat()}", "time": time_of_day},
        ))

    return planned

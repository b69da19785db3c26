"""
Reminder types and recurrence patterns
"""
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import FrozenSet, Iterable, Optional, Tuple


class ReminderType(str, Enum):
    MEAL = "meal"
    WATER = "water"
    WORKOUT = "workout"
    GOAL = "goal"
    STREAK = "streak"
    WEIGHT = "weight"
    SUMMARY = "summary"


class RecurrenceKind(str, Enum):
    """Types of recurrence patterns"""
    DAILY = "daily"
    WEEKLY = "weekly"
    RECURRING = "recurring"  # every N minutes inside a daily window


class Weekday(IntEnum):
    """Days of the week, Sunday first (as stored in days_of_week)"""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_python_weekday(cls, weekday: int) -> "Weekday":
        # datetime.weekday() counts from Monday = 0
        return cls((weekday + 1) % 7)


ALL_WEEKDAYS: FrozenSet[int] = frozenset(int(day) for day in Weekday)
WORKING_DAYS: Tuple[int, ...] = (1, 2, 3, 4, 5)


@dataclass(frozen=True)
class RecurrenceSpec:
    """Recurrence fields of one reminder; which ones are set depends on kind."""
    kind: RecurrenceKind
    time_of_day: Optional[str] = None
    days_of_week: Optional[Tuple[int, ...]] = None
    interval_minutes: Optional[int] = None
    window_start: Optional[str] = None
    window_end: Optional[str] = None

    @classmethod
    def daily(cls, time_of_day: str) -> "RecurrenceSpec":
        return cls(kind=RecurrenceKind.DAILY, time_of_day=time_of_day)

    @classmethod
    def weekly(cls, time_of_day: str, days: Iterable[int]) -> "RecurrenceSpec":
        return cls(kind=RecurrenceKind.WEEKLY, time_of_day=time_of_day, days_of_week=tuple(days))

    @classmethod
    def recurring(cls, window_start: str, window_end: str, interval_minutes: int) -> "RecurrenceSpec":
        return cls(
            kind=RecurrenceKind.RECURRING,
            window_start=window_start,
            window_end=window_end,
            interval_minutes=interval_minutes,
        )

    @classmethod
    def daily_or_weekly(cls, time_of_day: str, days: Iterable[int]) -> "RecurrenceSpec":
        """Weekly pattern, collapsed to daily when every weekday is selected."""
        days = tuple(days)
        if set(days) == ALL_WEEKDAYS:
            return cls.daily(time_of_day)
        return cls.weekly(time_of_day, days)

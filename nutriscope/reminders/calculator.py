"""
Next-trigger calculation for daily, weekly and recurring-window reminders.

Every function is pure: given a well-formed pattern and ``now`` it returns a
datetime carrying the same tzinfo as ``now`` that is strictly later than
``now`` as an absolute instant, also inside a repeated fall-back hour.
Wall-clock fields ("HH:MM") are combined with calendar dates as seen in
``now``'s zone, so callers pass ``now`` already converted to the user's
timezone. Malformed input raises ConfigError.
"""
import re
from datetime import date, datetime, time, timedelta, tzinfo
from datetime import timezone as dt_timezone
from typing import FrozenSet, Iterable, Optional, Union

from .errors import ConfigError
from .recurrence_models import ALL_WEEKDAYS, RecurrenceKind, RecurrenceSpec, Weekday

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?")

TimeLike = Union[str, time]


def parse_time_of_day(value: TimeLike, field: str = "time_of_day") -> time:
    """Parse "HH:MM" (or "HH:MM:SS") into a time."""
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    if not isinstance(value, str):
        raise ConfigError(f"{field} must be an HH:MM string, got {value!r}", field=field)
    match = _TIME_RE.fullmatch(value.strip())
    if not match:
        raise ConfigError(f"{field} must be in HH:MM format, got {value!r}", field=field)
    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ConfigError(f"{field} is out of range: {value!r}", field=field)
    return time(hours, minutes, seconds)


def normalize_days(days: Optional[Iterable[int]]) -> FrozenSet[int]:
    """Validate a day-of-week selection (0 = Sunday .. 6 = Saturday)."""
    if days is None:
        raise ConfigError("days_of_week is required for weekly reminders", field="days_of_week")
    selected = set()
    for day in days:
        if isinstance(day, bool) or not isinstance(day, int) or day not in ALL_WEEKDAYS:
            raise ConfigError(f"days_of_week entries must be 0-6, got {day!r}", field="days_of_week")
        selected.add(day)
    if not selected:
        raise ConfigError("days_of_week cannot be empty", field="days_of_week")
    return frozenset(selected)


def validate_interval(interval_minutes) -> int:
    if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int):
        raise ConfigError(
            f"interval_minutes must be a whole number of minutes, got {interval_minutes!r}",
            field="interval_minutes",
        )
    if interval_minutes <= 0:
        raise ConfigError("interval_minutes must be positive", field="interval_minutes")
    return interval_minutes


def _at(day: date, time_of_day: time, tz: Optional[tzinfo]) -> datetime:
    return datetime.combine(day, time_of_day, tzinfo=tz)


def _instant(dt: datetime) -> datetime:
    if dt.utcoffset() is None:
        return dt
    return dt.astimezone(dt_timezone.utc)


def _after(candidate: datetime, now: datetime) -> bool:
    # Aware datetimes sharing a tzinfo compare on wall time, which is wrong
    # inside a repeated fall-back hour
    return _instant(candidate) > _instant(now)


def _wall(dt: datetime) -> datetime:
    return dt.replace(tzinfo=None)


def compute_daily(time_of_day: TimeLike, now: datetime) -> datetime:
    t = parse_time_of_day(time_of_day)
    candidate = _at(now.date(), t, now.tzinfo)
    if not _after(candidate, now):
        # Time has passed today, schedule for tomorrow
        candidate = _at(now.date() + timedelta(days=1), t, now.tzinfo)
    return candidate


def compute_weekly(time_of_day: TimeLike, days: Iterable[int], now: datetime) -> datetime:
    selected = normalize_days(days)
    if selected == ALL_WEEKDAYS:
        return compute_daily(time_of_day, now)

    t = parse_time_of_day(time_of_day)
    today = now.date()
    current = Weekday.from_python_weekday(today.weekday())
    # Offset 7 covers a single selected day whose slot already passed today
    for offset in range(8):
        if (current + offset) % 7 not in selected:
            continue
        candidate = _at(today + timedelta(days=offset), t, now.tzinfo)
        if _after(candidate, now):
            return candidate
    raise AssertionError(f"no weekly slot found for days={sorted(selected)} now={now.isoformat()}")


def compute_recurring(
    window_start: TimeLike,
    window_end: TimeLike,
    interval_minutes: int,
    now: datetime,
) -> datetime:
    start = parse_time_of_day(window_start, field="window_start")
    end = parse_time_of_day(window_end, field="window_end")
    step = timedelta(minutes=validate_interval(interval_minutes))
    if end < start:
        raise ConfigError("window_end must not be earlier than window_start", field="window_end")

    today = now.date()
    start_today = _at(today, start, now.tzinfo)
    if _after(start_today, now):
        return start_today

    # Slots sit on the wall clock; each one is taken at its first occurrence
    end_today = _wall(_at(today, end, now.tzinfo))
    slots_passed = max((_wall(now) - _wall(start_today)) // step, 0)
    candidate = start_today + slots_passed * step
    while _wall(candidate) <= end_today:
        if _after(candidate, now):
            return candidate
        candidate += step
    # Window exhausted for today, roll over to tomorrow's start
    return _at(today + timedelta(days=1), start, now.tzinfo)


def validate_spec(spec: RecurrenceSpec) -> None:
    """Raise ConfigError if the pattern cannot produce a trigger time."""
    if spec.kind == RecurrenceKind.DAILY:
        parse_time_of_day(spec.time_of_day)
    elif spec.kind == RecurrenceKind.WEEKLY:
        parse_time_of_day(spec.time_of_day)
        normalize_days(spec.days_of_week)
    elif spec.kind == RecurrenceKind.RECURRING:
        start = parse_time_of_day(spec.window_start, field="window_start")
        end = parse_time_of_day(spec.window_end, field="window_end")
        validate_interval(spec.interval_minutes)
        if end < start:
            raise ConfigError("window_end must not be earlier than window_start", field="window_end")
    else:
        raise ConfigError(f"Unsupported recurrence kind: {spec.kind!r}", field="recurrence_kind")


def compute_next_trigger(spec: RecurrenceSpec, now: datetime) -> datetime:
    """Next trigger for any recurrence kind."""
    if spec.kind == RecurrenceKind.DAILY:
        return compute_daily(spec.time_of_day, now)
    if spec.kind == RecurrenceKind.WEEKLY:
        return compute_weekly(spec.time_of_day, spec.days_of_week, now)
    if spec.kind == RecurrenceKind.RECURRING:
        return compute_recurring(spec.window_start, spec.window_end, spec.interval_minutes, now)
    raise ConfigError(f"Unsupported recurrence kind: {spec.kind!r}", field="recurrence_kind")

"""Shared builders for reminder tests."""

from datetime import datetime, timezone

from nutriscope.reminders.models import Reminder


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def make_reminder(
    reminder_id="water-u1",
    user_id="u1",
    next_trigger_time=None,
    kind="daily",
    time_of_day="08:00",
    **overrides,
) -> Reminder:
    values = dict(
        id=reminder_id,
        user_id=user_id,
        type=reminder_id.split("-")[0],
        recurrence_kind=kind,
        next_trigger_time=next_trigger_time or utc(2024, 1, 1, 8, 0),
        time_of_day=time_of_day if kind != "recurring" else None,
        timezone="UTC",
        title=f"Reminder {reminder_id}",
        body="body",
        tag=reminder_id,
        target_reference={"url": "/dashboard"},
        enabled=True,
        trigger_count=0,
    )
    if kind == "recurring":
        values.update(window_start="08:00", window_end="22:00", interval_minutes=60)
    if kind == "weekly":
        values.setdefault("days_of_week", [1, 3, 5])
    values.update(overrides)
    return Reminder(**values)

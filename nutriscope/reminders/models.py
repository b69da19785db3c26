"""
Reminder tables: materialized reminders and per-user reminder settings
"""
from sqlalchemy import Boolean, Column, Index, Integer, String

from nutriscope.db.base import Base
from nutriscope.db.types import JSONType, UTCDateTime
from nutriscope.utils.timezone import now_utc

from .recurrence_models import RecurrenceKind, RecurrenceSpec


def reminder_id_for(key: str, user_id: str) -> str:
    """Deterministic primary key, e.g. ``water-42`` or ``meal-breakfast-42``."""
    return f"{key}-{user_id}"


class Reminder(Base):
    """One row per (user, reminder key); advanced in place after each delivery"""
    __tablename__ = "reminders"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    recurrence_kind = Column(String, nullable=False)
    next_trigger_time = Column(UTCDateTime(), nullable=False, index=True)

    # Recurrence fields (which are set depends on recurrence_kind)
    time_of_day = Column(String, nullable=True)  # HH:MM, daily and weekly
    days_of_week = Column(JSONType, nullable=True)  # 0-6, Sunday-Saturday
    interval_minutes = Column(Integer, nullable=True)
    window_start = Column(String, nullable=True)  # HH:MM
    window_end = Column(String, nullable=True)  # HH:MM
    timezone = Column(String, nullable=True)

    # Notification payload
    title = Column(String, nullable=False)
    body = Column(String, nullable=False)
    tag = Column(String, nullable=True)
    target_reference = Column(JSONType, nullable=False, default=dict)

    # Runtime state
    enabled = Column(Boolean, nullable=False, default=True)
    last_triggered = Column(UTCDateTime(), nullable=True)
    trigger_count = Column(Integer, nullable=False, default=0)

    scheduled_time = Column(UTCDateTime(), nullable=False, default=now_utc)
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=False, default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index("ix_reminders_user_enabled_trigger", "user_id", "enabled", "next_trigger_time"),
    )

    def recurrence_spec(self) -> RecurrenceSpec:
        return RecurrenceSpec(
            kind=RecurrenceKind(self.recurrence_kind),
            time_of_day=self.time_of_day,
            days_of_week=tuple(self.days_of_week) if self.days_of_week is not None else None,
            interval_minutes=self.interval_minutes,
            window_start=self.window_start,
            window_end=self.window_end,
        )

    def copy(self) -> "Reminder":
        """Transient copy carrying every column value."""
        # Unset columns are left out so insert-time defaults still apply
        values = {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns
            if getattr(self, column.key) is not None
        }
        if values.get("days_of_week") is not None:
            values["days_of_week"] = list(values["days_of_week"])
        if values.get("target_reference") is not None:
            values["target_reference"] = dict(values["target_reference"])
        return Reminder(**values)

    def __repr__(self) -> str:
        return f"<Reminder {self.id} next={self.next_trigger_time} count={self.trigger_count}>"


class UserReminderSettingsRecord(Base):
    """Persisted settings document as saved by the foreground app"""
    __tablename__ = "user_reminder_settings"

    user_id = Column(String, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=False, index=True)
    settings_json = Column(JSONType, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=False, default=now_utc, onupdate=now_utc)

"""
Schemas for reminder settings, reminder rows and API payloads
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .recurrence_models import WORKING_DAYS


# Settings document, one per user. Values are kept as entered; malformed
# times or day sets are rejected per reminder key at reconciliation time.

class MealReminderSettings(BaseModel):
    enabled: bool = False
    breakfast: Optional[str] = None  # HH:MM
    lunch: Optional[str] = None
    dinner: Optional[str] = None
    morning_snack: Optional[str] = None
    evening_snack: Optional[str] = None


class WaterReminderSettings(BaseModel):
    enabled: bool = False
    interval_minutes: Optional[int] = 60
    start_time: Optional[str] = "08:00"
    end_time: Optional[str] = "22:00"


class WorkoutReminderSettings(BaseModel):
    enabled: bool = False
    time: Optional[str] = "18:00"
    days: Optional[List[int]] = Field(default_factory=lambda: list(WORKING_DAYS))  # 0-6, Sunday-Saturday


class GoalReminderSettings(BaseModel):
    enabled: bool = False
    check_progress_time: Optional[str] = "20:00"


class WeightReminderSettings(BaseModel):
    enabled: bool = False
    time: Optional[str] = "08:00"
    days: Optional[List[int]] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 0])


class StreakReminderSettings(BaseModel):
    enabled: bool = False
    time: Optional[str] = "19:00"
    check_days: Optional[List[int]] = Field(default_factory=lambda: list(WORKING_DAYS))


class SummaryReminderSettings(BaseModel):
    enabled: bool = False
    time: Optional[str] = "20:00"


class UserReminderSettings(BaseModel):
    """Global flag plus one block per reminder type"""
    enabled: bool = False
    timezone: Optional[str] = None  # IANA name; service default when unset
    meal_reminders: MealReminderSettings = Field(default_factory=MealReminderSettings)
    water_reminders: WaterReminderSettings = Field(default_factory=WaterReminderSettings)
    workout_reminders: WorkoutReminderSettings = Field(default_factory=WorkoutReminderSettings)
    goal_reminders: GoalReminderSettings = Field(default_factory=GoalReminderSettings)
    weight_reminders: WeightReminderSettings = Field(default_factory=WeightReminderSettings)
    streak_reminders: StreakReminderSettings = Field(default_factory=StreakReminderSettings)
    summary_reminders: SummaryReminderSettings = Field(default_factory=SummaryReminderSettings)


class ReminderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: str
    recurrence_kind: str
    next_trigger_time: datetime
    time_of_day: Optional[str] = None
    days_of_week: Optional[List[int]] = None
    interval_minutes: Optional[int] = None
    window_start: Optional[str] = None
    window_end: Optional[str] = None
    timezone: Optional[str] = None
    title: str
    body: str
    tag: Optional[str] = None
    target_reference: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool
    last_triggered: Optional[datetime] = None
    trigger_count: int
    scheduled_time: Optional[datetime] = None


class ReconcileResponse(BaseModel):
    user_id: str
    disabled: bool
    reminders: List[ReminderRead]
    errors: Dict[str, str] = Field(default_factory=dict)


class ReconcileAllResponse(BaseModel):
    users: int
    reminders: int
    errors: Dict[str, Dict[str, str]] = Field(default_factory=dict)


class AgentIdentityPayload(BaseModel):
    """Identity handshake pushed by the foreground app"""
    user_id: str = Field(..., min_length=1)
    push_token: Optional[str] = None
    credentials: Dict[str, Any] = Field(default_factory=dict)


class AgentStatus(BaseModel):
    user_id: Optional[str] = None
    running: bool


class DeliveredEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reminder_id: str
    user_id: str
    type: str
    title: str
    body: str
    tag: Optional[str] = None
    target_reference: Dict[str, Any] = Field(default_factory=dict)
    delivered_at: datetime
    read: bool

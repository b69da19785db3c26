import json
from datetime import timedelta
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReminderServiceSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REMINDER_", extra="ignore")

    # Server
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./nutriscope_reminders.db"
    AUTO_CREATE_TABLES: bool = True

    # Wall-clock fields of a reminder are interpreted in this zone unless
    # the user's settings name their own
    DEFAULT_TIMEZONE: str = "UTC"

    # Delivery agent
    AGENT_TICK_SECONDS: int = 60
    LOOKAHEAD_MINUTES: int = 5
    CATCHUP_WINDOW_MINUTES: int = 30
    USE_CAS_GUARD: bool = False
    RUN_AGENT_IN_API: bool = False
    HISTORY_MAX_ENTRIES: int = 100

    # Celery configuration
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    RECONCILE_ALL_INTERVAL_SECONDS: int = 3600

    # FCM
    FCM_PROJECT_ID: Optional[str] = None
    FCM_CREDENTIALS_JSON: Optional[str] = None  # path or inline JSON via env

    # API Security
    REQUIRE_API_KEY: bool = False
    VALID_API_KEYS: str = ""  # JSON list or comma-separated

    # Metrics
    METRICS_ENABLED: bool = False

    @field_validator("AGENT_TICK_SECONDS")
    @classmethod
    def tick_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("AGENT_TICK_SECONDS must be positive")
        return v

    @field_validator("LOOKAHEAD_MINUTES", "CATCHUP_WINDOW_MINUTES")
    @classmethod
    def window_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("window sizes cannot be negative")
        return v

    @property
    def tick_interval(self) -> timedelta:
        return timedelta(seconds=self.AGENT_TICK_SECONDS)

    @property
    def lookahead(self) -> timedelta:
        return timedelta(minutes=self.LOOKAHEAD_MINUTES)

    @property
    def catchup_window(self) -> timedelta:
        return timedelta(minutes=self.CATCHUP_WINDOW_MINUTES)

    @property
    def api_keys(self) -> List[str]:
        raw = (self.VALID_API_KEYS or "").strip()
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            # Fallback: treat as comma-separated string
            return [key.strip() for key in raw.split(",") if key.strip()]
        if isinstance(parsed, str):
            return [parsed]
        return [str(key) for key in parsed]


settings = ReminderServiceSettings()

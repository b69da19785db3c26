"""
Per-user reminder settings, as saved by the foreground app.
"""
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from nutriscope.utils.timezone import now_utc

from .models import UserReminderSettingsRecord
from .schemas import UserReminderSettings


class SettingsStore(ABC):

    @abstractmethod
    def get(self, user_id: str) -> Optional[UserReminderSettings]:
        ...

    @abstractmethod
    def save(self, user_id: str, settings: UserReminderSettings) -> UserReminderSettings:
        ...

    @abstractmethod
    def list_enabled_user_ids(self) -> List[str]:
        """Users whose global reminder flag is on."""


class SqlSettingsStore(SettingsStore):

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, user_id: str) -> Optional[UserReminderSettings]:
        db = self._session_factory()
        try:
            record = db.get(UserReminderSettingsRecord, user_id)
            if record is None:
                return None
            return UserReminderSettings.model_validate(record.settings_json or {})
        finally:
            db.close()

    def save(self, user_id: str, settings: UserReminderSettings) -> UserReminderSettings:
        db = self._session_factory()
        try:
            record = db.get(UserReminderSettingsRecord, user_id)
            if record is None:
                record = UserReminderSettingsRecord(user_id=user_id)
                db.add(record)
            record.enabled = settings.enabled
            record.settings_json = settings.model_dump(mode="json")
            record.updated_at = now_utc()
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        return settings

    def list_enabled_user_ids(self) -> List[str]:
        db = self._session_factory()
        try:
            stmt = (
                select(UserReminderSettingsRecord.user_id)
                .where(UserReminderSettingsRecord.enabled.is_(True))
                .order_by(UserReminderSettingsRecord.user_id.asc())
            )
            return list(db.execute(stmt).scalars())
        finally:
            db.close()


class InMemorySettingsStore(SettingsStore):

    def __init__(self, initial: Optional[Dict[str, UserReminderSettings]] = None):
        self._items: Dict[str, UserReminderSettings] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[UserReminderSettings]:
        with self._lock:
            settings = self._items.get(user_id)
            return settings.model_copy(deep=True) if settings is not None else None

    def save(self, user_id: str, settings: UserReminderSettings) -> UserReminderSettings:
        with self._lock:
            self._items[user_id] = settings.model_copy(deep=True)
        return settings

    def list_enabled_user_ids(self) -> List[str]:
        with self._lock:
            return sorted(uid for uid, s in self._items.items() if s.enabled)

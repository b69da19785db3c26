"""
In-app notification history.

The delivery agent announces each delivered reminder here so the app can show
a notification centre. Announcing is best effort: nothing here may interfere
with delivery.
"""
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from nutriscope.utils.timezone import now_utc


@dataclass
class DeliveredEvent:
    reminder_id: str
    user_id: str
    type: str
    title: str
    body: str
    tag: Optional[str] = None
    target_reference: Dict[str, Any] = field(default_factory=dict)
    delivered_at: datetime = field(default_factory=now_utc)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    read: bool = False

    @property
    def dedup_key(self) -> str:
        return self.tag or self.title


class NotificationHistory(ABC):

    @abstractmethod
    def announce(self, event: DeliveredEvent) -> bool:
        """Record a delivery; returns False when dropped as a duplicate."""

    @abstractmethod
    def entries(self, user_id: Optional[str] = None, unread_only: bool = False) -> List[DeliveredEvent]:
        ...

    @abstractmethod
    def mark_read(self, event_id: str) -> bool:
        ...

    @abstractmethod
    def mark_all_read(self, user_id: Optional[str] = None) -> int:
        ...

    @abstractmethod
    def unread_count(self, user_id: Optional[str] = None) -> int:
        ...

    @abstractmethod
    def clear(self, user_id: Optional[str] = None) -> None:
        ...


class InMemoryNotificationHistory(NotificationHistory):
    """Keeps the most recent ``max_entries`` events, newest first."""

    def __init__(self, max_entries: int = 100, dedup_window: timedelta = timedelta(seconds=10)):
        self.max_entries = max_entries
        self.dedup_window = dedup_window
        self._events: List[DeliveredEvent] = []
        self._lock = threading.Lock()

    def announce(self, event: DeliveredEvent) -> bool:
        with self._lock:
            for existing in self._events:
                if existing.user_id != event.user_id or existing.dedup_key != event.dedup_key:
                    continue
                if abs(event.delivered_at - existing.delivered_at) < self.dedup_window:
                    return False
                break
            self._events.insert(0, event)
            del self._events[self.max_entries:]
            return True

    def _matching(self, user_id: Optional[str]) -> List[DeliveredEvent]:
        return [e for e in self._events if user_id is None or e.user_id == user_id]

    def entries(self, user_id: Optional[str] = None, unread_only: bool = False) -> List[DeliveredEvent]:
        with self._lock:
            return [e for e in self._matching(user_id) if not (unread_only and e.read)]

    def mark_read(self, event_id: str) -> bool:
        with self._lock:
            for event in self._events:
                if event.id == event_id:
                    event.read = True
                    return True
            return False

    def mark_all_read(self, user_id: Optional[str] = None) -> int:
        with self._lock:
            changed = 0
            for event in self._matching(user_id):
                if not event.read:
                    event.read = True
                    changed += 1
            return changed

    def unread_count(self, user_id: Optional[str] = None) -> int:
        with self._lock:
            return sum(1 for e in self._matching(user_id) if not e.read)

    def clear(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            if user_id is None:
                self._events.clear()
            else:
                self._events = [e for e in self._events if e.user_id != user_id]

"""
Reminder persistence.

``ReminderRepository`` is the interface the reconciler and the delivery agent
depend on. ``SqlReminderRepository`` stores rows through SQLAlchemy;
``InMemoryReminderRepository`` backs a client-side agent and the tests.
Every write is a single transaction: upsert and replace are delete-then-insert,
advance is a read-modify-write of one row.
"""
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from nutriscope.utils.timezone import get_zoneinfo, now_utc, to_utc_aware

from .calculator import compute_next_trigger
from .errors import ConfigError
from .models import Reminder

logger = logging.getLogger(__name__)


def next_trigger_after(reminder: Reminder, now: datetime) -> datetime:
    """Recompute a row's trigger from its own recurrence fields, as UTC."""
    local_now = to_utc_aware(now).astimezone(get_zoneinfo(reminder.timezone))
    return to_utc_aware(compute_next_trigger(reminder.recurrence_spec(), local_now))


def apply_advance(reminder: Reminder, now: datetime) -> Reminder:
    """Move a delivered (or skipped) reminder to its next slot in place."""
    now = to_utc_aware(now)
    try:
        reminder.next_trigger_time = next_trigger_after(reminder, now)
    except ConfigError as exc:
        # Rows are validated when reconciled; a row that no longer parses
        # would otherwise be picked up again on every tick
        logger.error(f"❌ [Repository] Disabling reminder {reminder.id}, recurrence no longer valid: {exc}")
        reminder.enabled = False
    reminder.trigger_count = (reminder.trigger_count or 0) + 1
    reminder.last_triggered = now
    reminder.updated_at = now
    return reminder


class ReminderRepository(ABC):

    @abstractmethod
    def upsert(self, reminder: Reminder) -> Reminder:
        """Replace any row with the same id (never a partial merge)."""

    @abstractmethod
    def replace_all_for_user(self, user_id: str, reminders: Iterable[Reminder]) -> List[Reminder]:
        """Delete all of the user's rows and insert ``reminders`` atomically."""

    @abstractmethod
    def list_due(
        self,
        user_id: str,
        lookahead: timedelta,
        catchup_window: timedelta,
        now: Optional[datetime] = None,
    ) -> List[Reminder]:
        """Enabled rows with next_trigger_time in [now - catchup_window, now + lookahead], ascending."""

    @abstractmethod
    def list_stale(
        self,
        user_id: str,
        catchup_window: timedelta,
        now: Optional[datetime] = None,
    ) -> List[Reminder]:
        """Enabled rows older than the catch-up window."""

    @abstractmethod
    def advance(
        self,
        reminder_id: str,
        now: Optional[datetime] = None,
        expected_trigger_count: Optional[int] = None,
    ) -> Optional[Reminder]:
        """Recompute next_trigger_time, bump trigger_count and set last_triggered.

        With ``expected_trigger_count`` the write only happens when the stored
        count still matches; None is returned otherwise, and for unknown ids.
        """

    @abstractmethod
    def delete_all_for_user(self, user_id: str) -> int:
        """Remove every reminder of the user; returns the number deleted."""

    @abstractmethod
    def get(self, reminder_id: str) -> Optional[Reminder]:
        ...

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[Reminder]:
        ...


class SqlReminderRepository(ReminderRepository):
    # Rows are returned detached, so sessions must not expire on commit
    # (SessionLocal is configured that way).

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def upsert(self, reminder: Reminder) -> Reminder:
        row = reminder.copy()
        with self._session() as db:
            db.execute(delete(Reminder).where(Reminder.id == row.id))
            db.add(row)
        return row

    def replace_all_for_user(self, user_id: str, reminders: Iterable[Reminder]) -> List[Reminder]:
        rows = [r.copy() for r in reminders]
        for row in rows:
            if row.user_id != user_id:
                raise ValueError(f"Reminder {row.id} belongs to {row.user_id}, not {user_id}")
        with self._session() as db:
            deleted = db.execute(delete(Reminder).where(Reminder.user_id == user_id)).rowcount
            db.add_all(rows)
        logger.debug(f"[Repository] Replaced {deleted} reminders with {len(rows)} for user {user_id}")
        return rows

    def list_due(
        self,
        user_id: str,
        lookahead: timedelta,
        catchup_window: timedelta,
        now: Optional[datetime] = None,
    ) -> List[Reminder]:
        now = to_utc_aware(now or now_utc())
        stmt = (
            select(Reminder)
            .where(Reminder.user_id == user_id)
            .where(Reminder.enabled.is_(True))
            .where(Reminder.next_trigger_time >= now - catchup_window)
            .where(Reminder.next_trigger_time <= now + lookahead)
            .order_by(Reminder.next_trigger_time.asc(), Reminder.id.asc())
        )
        with self._session() as db:
            return list(db.execute(stmt).scalars())

    def list_stale(
        self,
        user_id: str,
        catchup_window: timedelta,
        now: Optional[datetime] = None,
    ) -> List[Reminder]:
        now = to_utc_aware(now or now_utc())
        stmt = (
            select(Reminder)
            .where(Reminder.user_id == user_id)
            .where(Reminder.enabled.is_(True))
            .where(Reminder.next_trigger_time < now - catchup_window)
            .order_by(Reminder.next_trigger_time.asc(), Reminder.id.asc())
        )
        with self._session() as db:
            return list(db.execute(stmt).scalars())

    def advance(
        self,
        reminder_id: str,
        now: Optional[datetime] = None,
        expected_trigger_count: Optional[int] = None,
    ) -> Optional[Reminder]:
        now = to_utc_aware(now or now_utc())
        with self._session() as db:
            stmt = select(Reminder).where(Reminder.id == reminder_id)
            if db.get_bind().dialect.name == "postgresql":
                stmt = stmt.with_for_update()
            reminder = db.execute(stmt).scalar_one_or_none()
            if reminder is None:
                return None
            if expected_trigger_count is not None and reminder.trigger_count != expected_trigger_count:
                logger.info(
                    f"⏭️ [Repository] {reminder_id} already advanced "
                    f"(count={reminder.trigger_count}, expected={expected_trigger_count})"
                )
                return None
            apply_advance(reminder, now)
            return reminder

    def delete_all_for_user(self, user_id: str) -> int:
        with self._session() as db:
            return db.execute(delete(Reminder).where(Reminder.user_id == user_id)).rowcount or 0

    def get(self, reminder_id: str) -> Optional[Reminder]:
        with self._session() as db:
            return db.get(Reminder, reminder_id)

    def list_for_user(self, user_id: str) -> List[Reminder]:
        stmt = (
            select(Reminder)
            .where(Reminder.user_id == user_id)
            .order_by(Reminder.next_trigger_time.asc(), Reminder.id.asc())
        )
        with self._session() as db:
            return list(db.execute(stmt).scalars())


class InMemoryReminderRepository(ReminderRepository):
    """Thread-safe dict-backed repository; hands out copies only."""

    def __init__(self):
        self._rows: Dict[str, Reminder] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _sorted(rows: Iterable[Reminder]) -> List[Reminder]:
        return [r.copy() for r in sorted(rows, key=lambda r: (r.next_trigger_time, r.id))]

    def _user_rows(self, user_id: str) -> List[Reminder]:
        return [r for r in self._rows.values() if r.user_id == user_id]

    def upsert(self, reminder: Reminder) -> Reminder:
        row = reminder.copy()
        row.next_trigger_time = to_utc_aware(row.next_trigger_time)
        with self._lock:
            self._rows.pop(row.id, None)
            self._rows[row.id] = row
        return row.copy()

    def replace_all_for_user(self, user_id: str, reminders: Iterable[Reminder]) -> List[Reminder]:
        rows = [r.copy() for r in reminders]
        for row in rows:
            if row.user_id != user_id:
                raise ValueError(f"Reminder {row.id} belongs to {row.user_id}, not {user_id}")
            row.next_trigger_time = to_utc_aware(row.next_trigger_time)
        with self._lock:
            for existing in self._user_rows(user_id):
                del self._rows[existing.id]
            for row in rows:
                self._rows[row.id] = row
        return [r.copy() for r in rows]

    def list_due(
        self,
        user_id: str,
        lookahead: timedelta,
        catchup_window: timedelta,
        now: Optional[datetime] = None,
    ) -> List[Reminder]:
        now = to_utc_aware(now or now_utc())
        lower, upper = now - catchup_window, now + lookahead
        with self._lock:
            return self._sorted(
                r for r in self._user_rows(user_id)
                if r.enabled and lower <= r.next_trigger_time <= upper
            )

    def list_stale(
        self,
        user_id: str,
        catchup_window: timedelta,
        now: Optional[datetime] = None,
    ) -> List[Reminder]:
        now = to_utc_aware(now or now_utc())
        lower = now - catchup_window
        with self._lock:
            return self._sorted(
                r for r in self._user_rows(user_id)
                if r.enabled and r.next_trigger_time < lower
            )

    def advance(
        self,
        reminder_id: str,
        now: Optional[datetime] = None,
        expected_trigger_count: Optional[int] = None,
    ) -> Optional[Reminder]:
        now = to_utc_aware(now or now_utc())
        with self._lock:
            stored = self._rows.get(reminder_id)
            if stored is None:
                return None
            if expected_trigger_count is not None and stored.trigger_count != expected_trigger_count:
                logger.info(
                    f"⏭️ [Repository] {reminder_id} already advanced "
                    f"(count={stored.trigger_count}, expected={expected_trigger_count})"
                )
                return None
            row = apply_advance(stored.copy(), now)
            self._rows[reminder_id] = row
            return row.copy()

    def delete_all_for_user(self, user_id: str) -> int:
        with self._lock:
            rows = self._user_rows(user_id)
            for row in rows:
                del self._rows[row.id]
            return len(rows)

    def get(self, reminder_id: str) -> Optional[Reminder]:
        with self._lock:
            row = self._rows.get(reminder_id)
            return row.copy() if row is not None else None

    def list_for_user(self, user_id: str) -> List[Reminder]:
        with self._lock:
            return self._sorted(self._user_rows(user_id))

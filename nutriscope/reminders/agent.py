"""
Client-side delivery agent.

The agent polls the repository for one user's due reminders, hands each to a
NotificationSink and advances it to its next slot. It holds no schedule of its
own: everything it needs is read from the repository on each tick, so a
restarted agent simply picks up where the rows say it should.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from nutriscope.utils.timezone import now_utc, to_utc_aware

from .config import settings as service_settings
from .errors import DeliveryError
from .history import DeliveredEvent, NotificationHistory
from .metrics import (
    agent_ticks_total,
    reminders_cas_conflicts_total,
    reminders_delivered_total,
    reminders_delivery_failed_total,
    reminders_stale_skipped_total,
)
from .models import Reminder
from .repository import ReminderRepository
from .settings_store import SettingsStore
from .sinks import NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class AgentIdentity:
    user_id: str
    push_token: Optional[str] = None
    credentials: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TickReport:
    user_id: Optional[str] = None
    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped_stale: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)
    claimed_elsewhere: List[str] = field(default_factory=list)


class DeliveryAgent:

    def __init__(
        self,
        repository: ReminderRepository,
        sink: NotificationSink,
        settings_store: Optional[SettingsStore] = None,
        history: Optional[NotificationHistory] = None,
        reconciler=None,
        tick_interval: Optional[timedelta] = None,
        lookahead: Optional[timedelta] = None,
        catchup_window: Optional[timedelta] = None,
        use_cas_guard: Optional[bool] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.repository = repository
        self.sink = sink
        self.settings_store = settings_store
        self.history = history
        self.reconciler = reconciler
        self.tick_interval = tick_interval if tick_interval is not None else service_settings.tick_interval
        self.lookahead = lookahead if lookahead is not None else service_settings.lookahead
        self.catchup_window = catchup_window if catchup_window is not None else service_settings.catchup_window
        self.use_cas_guard = service_settings.USE_CAS_GUARD if use_cas_guard is None else use_cas_guard
        self._clock = clock

        self._identity: Optional[AgentIdentity] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self.running = False

    @property
    def identity(self) -> Optional[AgentIdentity]:
        return self._identity

    def set_identity(self, identity: AgentIdentity) -> None:
        """Identity handshake: start serving ``identity.user_id``.

        When the user has stored settings but no rows yet (first launch on
        this device), the set is reconciled once so delivery can begin.
        """
        self._identity = identity
        self.sink.on_identity(identity)
        logger.info(f"🔑 [DeliveryAgent] Identity set for user {identity.user_id}")

        if self.reconciler is None or self.settings_store is None:
            return
        if self.repository.list_for_user(identity.user_id):
            return
        try:
            result = self.reconciler.reconcile_from_store(identity.user_id, now=self._clock())
        except Exception as e:
            logger.error(f"❌ [DeliveryAgent] Initial reconciliation failed for {identity.user_id}: {e!r}")
            return
        if result is not None:
            logger.info(f"✅ [DeliveryAgent] Initial reconciliation produced {len(result.reminders)} reminders")

    def clear_identity(self) -> None:
        if self._identity is not None:
            logger.info(f"🔒 [DeliveryAgent] Identity cleared for user {self._identity.user_id}")
        self._identity = None
        self.sink.on_identity(None)

    def _globally_enabled(self, user_id: str) -> bool:
        if self.settings_store is None:
            return True
        # No stored document means the flag was never turned off on this store
        user_settings = self.settings_store.get(user_id)
        return user_settings is None or user_settings.enabled

    def tick(self, now: Optional[datetime] = None) -> TickReport:
        """Run one polling iteration and report what happened to each reminder."""
        identity = self._identity
        report = TickReport(user_id=identity.user_id if identity else None)
        if identity is None:
            return report

        agent_ticks_total.inc()
        now = to_utc_aware(now or self._clock())
        user_id = identity.user_id

        if not self._globally_enabled(user_id):
            logger.debug(f"[DeliveryAgent] Reminders disabled for user {user_id}, idle")
            return report

        for reminder in self.repository.list_stale(user_id, self.catchup_window, now=now):
            try:
                advanced = self.repository.advance(
                    reminder.id,
                    now=now,
                    expected_trigger_count=reminder.trigger_count if self.use_cas_guard else None,
                )
            except Exception as e:
                logger.error(f"❌ [DeliveryAgent] Could not advance stale reminder {reminder.id}: {e!r}")
                continue
            if advanced is not None:
                logger.info(
                    f"⏭️ [DeliveryAgent] Skipped stale {reminder.id} "
                    f"(was due {reminder.next_trigger_time.isoformat()})"
                )
                reminders_stale_skipped_total.inc()
                report.skipped_stale.append(reminder.id)

        for reminder in self.repository.list_due(user_id, self.lookahead, self.catchup_window, now=now):
            if reminder.next_trigger_time > now:
                report.deferred.append(reminder.id)
                continue
            try:
                self._deliver(reminder, now, report)
            except Exception as e:
                logger.error(f"❌ [DeliveryAgent] Delivery of {reminder.id} aborted: {e!r}")
                if reminder.id not in report.failed:
                    report.failed.append(reminder.id)

        if report.delivered or report.failed or report.skipped_stale:
            logger.info(
                f"📊 [DeliveryAgent] Tick for {user_id}: delivered={len(report.delivered)} "
                f"failed={len(report.failed)} stale={len(report.skipped_stale)} deferred={len(report.deferred)}"
            )
        return report

    def _deliver(self, reminder: Reminder, now: datetime, report: TickReport) -> None:
        if self.use_cas_guard:
            claimed = self.repository.advance(reminder.id, now=now, expected_trigger_count=reminder.trigger_count)
            if claimed is None:
                reminders_cas_conflicts_total.inc()
                report.claimed_elsewhere.append(reminder.id)
                return
            sent = self._notify(reminder)
        else:
            sent = self._notify(reminder)
            # Advanced even when the sink failed, so a broken sink cannot cause a retry storm
            self.repository.advance(reminder.id, now=now)

        if not sent:
            report.failed.append(reminder.id)
            return
        report.delivered.append(reminder.id)
        self._announce(reminder, now)

    def _notify(self, reminder: Reminder) -> bool:
        try:
            self.sink.notify(reminder.title, reminder.body, reminder.tag, dict(reminder.target_reference or {}))
        except DeliveryError as e:
            logger.warning(f"⚠️ [DeliveryAgent] Sink rejected {reminder.id}: {e}")
            reminders_delivery_failed_total.inc()
            return False
        except Exception as e:
            logger.error(f"❌ [DeliveryAgent] Sink error for {reminder.id}: {e!r}")
            reminders_delivery_failed_total.inc()
            return False
        logger.info(f"🔔 [DeliveryAgent] Delivered {reminder.id}: {reminder.title}")
        reminders_delivered_total.inc()
        return True

    def _announce(self, reminder: Reminder, now: datetime) -> None:
        if self.history is None:
            return
        try:
            self.history.announce(DeliveredEvent(
                reminder_id=reminder.id,
                user_id=reminder.user_id,
                type=reminder.type,
                title=reminder.title,
                body=reminder.body,
                tag=reminder.tag,
                target_reference=dict(reminder.target_reference or {}),
                delivered_at=now,
            ))
        except Exception as e:
            logger.warning(f"⚠️ [DeliveryAgent] History announce failed for {reminder.id}: {e!r}")

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Tick, then sleep ``tick_interval`` or until stopped."""
        self._stop_event = stop_event or asyncio.Event()
        self.running = True
        logger.info(f"🚀 [DeliveryAgent] Started, tick every {self.tick_interval.total_seconds():.0f}s")
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.to_thread(self.tick)
                except Exception as e:
                    logger.error(f"❌ [DeliveryAgent] Tick failed: {e!r}")
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.tick_interval.total_seconds())
                except asyncio.TimeoutError:
                    pass
        finally:
            self.running = False
            logger.info("🛑 [DeliveryAgent] Stopped")

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def start(self) -> asyncio.Task:
        """Run the loop as a background task on the current event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def shutdown(self) -> None:
        self.stop()
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

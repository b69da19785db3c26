"""
Regenerates a user's reminder set from their settings.

Reconciliation always rebuilds the whole set: the new rows are computed in
memory, then the user's existing rows are deleted and the new ones inserted in
one transaction. Replaying the same settings with the same ``now`` yields the
same rows.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from nutriscope.utils.timezone import get_zoneinfo, now_utc, to_utc_aware

from .calculator import compute_next_trigger, validate_spec
from .catalog import plan_reminders
from .config import settings as service_settings
from .errors import ConfigError
from .metrics import reminder_config_errors_total, reminders_reconciled_total
from .models import Reminder, reminder_id_for
from .repository import ReminderRepository
from .schemas import UserReminderSettings
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    user_id: str
    reminders: List[Reminder] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)  # reminder key -> message
    disabled: bool = False


class Reconciler:

    def __init__(
        self,
        repository: ReminderRepository,
        settings_store: Optional[SettingsStore] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.repository = repository
        self.settings_store = settings_store
        self._clock = clock

    def build_reminders(
        self,
        user_id: str,
        settings: UserReminderSettings,
        now: datetime,
    ) -> Tuple[List[Reminder], Dict[str, str]]:
        """Materialize rows for every enabled reminder key.

        A ConfigError only drops its own key; the message is returned in the
        errors map for the settings UI.
        """
        errors: Dict[str, str] = {}
        zone_name = settings.timezone or service_settings.DEFAULT_TIMEZONE
        try:
            tz = get_zoneinfo(zone_name)
        except ConfigError as exc:
            errors["timezone"] = str(exc)
            zone_name = service_settings.DEFAULT_TIMEZONE
            tz = get_zoneinfo(zone_name)

        now = to_utc_aware(now)
        local_now = now.astimezone(tz)
        rows: List[Reminder] = []
        for planned in plan_reminders(settings, local_now.date()):
            try:
                validate_spec(planned.spec)
                next_trigger = compute_next_trigger(planned.spec, local_now)
            except ConfigError as exc:
                logger.warning(f"⚠️ [Reconciler] Skipping {planned.key} for user {user_id}: {exc}")
                reminder_config_errors_total.inc()
                errors[planned.key] = str(exc)
                continue

            spec = planned.spec
            rows.append(Reminder(
                id=reminder_id_for(planned.key, user_id),
                user_id=user_id,
                type=planned.type.value,
                recurrence_kind=spec.kind.value,
                next_trigger_time=to_utc_aware(next_trigger),
                time_of_day=spec.time_of_day,
                days_of_week=sorted(set(spec.days_of_week)) if spec.days_of_week is not None else None,
                interval_minutes=spec.interval_minutes,
                window_start=spec.window_start,
                window_end=spec.window_end,
                timezone=zone_name,
                title=planned.title,
                body=planned.body,
                tag=planned.tag,
                target_reference=dict(planned.target_reference),
                enabled=True,
                last_triggered=None,
                trigger_count=0,
                scheduled_time=now,
                created_at=now,
                updated_at=now,
            ))
        return rows, errors

    def on_settings_change(
        self,
        user_id: str,
        settings: UserReminderSettings,
        now: Optional[datetime] = None,
    ) -> ReconcileResult:
        now = to_utc_aware(now or self._clock())
        if not settings.enabled:
            deleted = self.repository.delete_all_for_user(user_id)
            logger.info(f"🔕 [Reconciler] Reminders disabled for user {user_id}, removed {deleted}")
            reminders_reconciled_total.inc()
            return ReconcileResult(user_id=user_id, disabled=True)

        rows, errors = self.build_reminders(user_id, settings, now)
        saved = self.repository.replace_all_for_user(user_id, rows)
        reminders_reconciled_total.inc()
        logger.info(
            f"✅ [Reconciler] User {user_id}: {len(saved)} reminders scheduled"
            + (f", rejected {sorted(errors)}" if errors else "")
        )
        for r in saved:
            logger.debug(f"[Reconciler] - {r.id}: {r.title} at {r.next_trigger_time.isoformat()}")
        return ReconcileResult(user_id=user_id, reminders=saved, errors=errors)

    def save_and_reconcile(
        self,
        user_id: str,
        settings: UserReminderSettings,
        now: Optional[datetime] = None,
    ) -> ReconcileResult:
        """Explicit save from the settings screen: persist, then rebuild."""
        if self.settings_store is None:
            raise RuntimeError("Reconciler has no settings store configured")
        self.settings_store.save(user_id, settings)
        return self.on_settings_change(user_id, settings, now=now)

    def reconcile_from_store(self, user_id: str, now: Optional[datetime] = None) -> Optional[ReconcileResult]:
        """Rebuild from stored settings; None when the user never saved any."""
        if self.settings_store is None:
            raise RuntimeError("Reconciler has no settings store configured")
        settings = self.settings_store.get(user_id)
        if settings is None:
            return None
        return self.on_settings_change(user_id, settings, now=now)

    def reconcile_all(self, now: Optional[datetime] = None) -> Dict[str, ReconcileResult]:
        """Rebuild every user with the global flag on (drift repair).

        One user's failure is logged and does not stop the batch.
        """
        if self.settings_store is None:
            raise RuntimeError("Reconciler has no settings store configured")
        now = to_utc_aware(now or self._clock())
        results: Dict[str, ReconcileResult] = {}
        user_ids = self.settings_store.list_enabled_user_ids()
        logger.info(f"🔄 [Reconciler] Batch reconciliation for {len(user_ids)} users")
        for user_id in user_ids:
            try:
                result = self.reconcile_from_store(user_id, now=now)
            except Exception as exc:
                logger.error(f"❌ [Reconciler] Failed to reconcile user {user_id}: {exc!r}")
                continue
            if result is not None:
                results[user_id] = result
        return results

import logging
from typing import Dict

from nutriscope.db.session import SessionLocal

from .celery_app import celery_app
from .reconciler import Reconciler
from .repository import SqlReminderRepository
from .settings_store import SqlSettingsStore

logger = logging.getLogger(__name__)


def _reconciler() -> Reconciler:
    return Reconciler(SqlReminderRepository(SessionLocal), SqlSettingsStore(SessionLocal))


@celery_app.task(name="reminders.reconcile_all")
def reconcile_all_task() -> Dict[str, int]:
    """Rebuild every enabled user's reminders. Returns per-user row counts."""
    results = _reconciler().reconcile_all()
    summary = {user_id: len(result.reminders) for user_id, result in results.items()}
    logger.info(f"✅ [Reminders] reconcile_all rebuilt {len(summary)} users")
    return summary


@celery_app.task(name="reminders.reconcile_user")
def reconcile_user_task(user_id: str) -> int:
    """Rebuild one user's reminders from stored settings; -1 when none are stored."""
    result = _reconciler().reconcile_from_store(str(user_id))
    if result is None:
        logger.info(f"🔍 [Reminders] No stored settings for user {user_id}")
        return -1
    return len(result.reminders)

from celery import Celery

from .config import settings


broker_url = settings.CELERY_BROKER_URL or "memory://"
result_backend = settings.CELERY_RESULT_BACKEND or None

celery_app = Celery(
    "reminders",
    broker=broker_url,
    backend=result_backend,
)

celery_app.conf.update(
    task_acks_late=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    worker_prefetch_multiplier=1,
    timezone="UTC",
    enable_utc=True,
    include=["nutriscope.reminders.tasks"],
)

# Celery Beat schedule: periodic rebuild of every enabled user's reminder set,
# so rows computed by older calculation logic are repaired
celery_app.conf.beat_schedule = {
    "reconcile-all-users": {
        "task": "reminders.reconcile_all",
        "schedule": settings.RECONCILE_ALL_INTERVAL_SECONDS,
    },
}

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from nutriscope.db.session import SessionLocal, init_db

from .agent import DeliveryAgent
from .api import router as reminders_router
from .config import settings
from .errors import ConfigError, ReminderNotFound
from .history import InMemoryNotificationHistory, NotificationHistory
from .reconciler import Reconciler
from .repository import ReminderRepository, SqlReminderRepository
from .settings_store import SettingsStore, SqlSettingsStore
from .sinks import LoggingNotificationSink, NotificationSink


def create_app(
    repository: Optional[ReminderRepository] = None,
    settings_store: Optional[SettingsStore] = None,
    sink: Optional[NotificationSink] = None,
    history: Optional[NotificationHistory] = None,
) -> FastAPI:
    """Build the reminder service; collaborators default to the SQL-backed ones."""
    uses_default_db = repository is None or settings_store is None
    repository = repository or SqlReminderRepository(SessionLocal)
    settings_store = settings_store or SqlSettingsStore(SessionLocal)
    history = history or InMemoryNotificationHistory(max_entries=settings.HISTORY_MAX_ENTRIES)
    reconciler = Reconciler(repository, settings_store)
    agent = DeliveryAgent(
        repository,
        sink or LoggingNotificationSink(),
        settings_store=settings_store,
        history=history,
        reconciler=reconciler,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if uses_default_db and settings.AUTO_CREATE_TABLES:
            init_db()
        if settings.RUN_AGENT_IN_API:
            agent.start()
        yield
        await agent.shutdown()

    app = FastAPI(title="Reminder Service", lifespan=lifespan)
    app.state.repository = repository
    app.state.settings_store = settings_store
    app.state.history = history
    app.state.reconciler = reconciler
    app.state.agent = agent

    @app.exception_handler(ReminderNotFound)
    async def reminder_not_found_handler(request: Request, exc: ReminderNotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError):
        return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field})

    app.include_router(reminders_router, prefix="/api/v1/reminders", tags=["reminders"])
    if settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")
    return app


app = create_app()


def main() -> None:
    uvicorn.run(app, host=settings.SERVER_HOST, port=settings.SERVER_PORT)


if __name__ == "__main__":
    main()

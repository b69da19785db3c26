"""Pytest configuration and fixtures."""

import os

# Keep the module-level engine away from any developer database
os.environ.setdefault("REMINDER_DATABASE_URL", "sqlite://")
os.environ.setdefault("REMINDER_AUTO_CREATE_TABLES", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nutriscope.db.session import init_db
from nutriscope.reminders.repository import InMemoryReminderRepository, SqlReminderRepository
from nutriscope.reminders.settings_store import InMemorySettingsStore
from nutriscope.reminders.sinks import LoggingNotificationSink


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(params=["sql", "memory"])
def repository(request):
    if request.param == "memory":
        return InMemoryReminderRepository()
    return SqlReminderRepository(request.getfixturevalue("session_factory"))


@pytest.fixture
def memory_repository():
    return InMemoryReminderRepository()


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def sink():
    return LoggingNotificationSink()

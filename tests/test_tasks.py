"""Tests for the Celery jobs and service configuration."""

import pytest
from pydantic import ValidationError

from nutriscope.reminders import tasks
from nutriscope.reminders.celery_app import celery_app
from nutriscope.reminders.config import ReminderServiceSettings
from nutriscope.reminders.repository import SqlReminderRepository
from nutriscope.reminders.schemas import UserReminderSettings
from nutriscope.reminders.settings_store import SqlSettingsStore
from nutriscope.reminders.worker import parse_args


@pytest.fixture
def sql_session(monkeypatch, session_factory):
    monkeypatch.setattr(tasks, "SessionLocal", session_factory)
    return session_factory


def test_reconcile_all_task_rebuilds_enabled_users(sql_session):
    store = SqlSettingsStore(sql_session)
    store.save("u1", UserReminderSettings(enabled=True, goal_reminders={"enabled": True}))
    store.save("u2", UserReminderSettings(enabled=False, goal_reminders={"enabled": True}))

    assert tasks.reconcile_all_task() == {"u1": 1}
    assert [r.id for r in SqlReminderRepository(sql_session).list_for_user("u1")] == ["goal-u1"]


def test_reconcile_user_task(sql_session):
    SqlSettingsStore(sql_session).save("u1", UserReminderSettings(
        enabled=True, water_reminders={"enabled": True}, summary_reminders={"enabled": True},
    ))
    assert tasks.reconcile_user_task("u1") == 2
    assert tasks.reconcile_user_task("nobody") == -1


def test_beat_schedule_runs_batch_reconciliation():
    entry = celery_app.conf.beat_schedule["reconcile-all-users"]
    assert entry["task"] == "reminders.reconcile_all"
    assert "reminders.reconcile_all" in celery_app.tasks


def test_settings_parse_api_keys():
    assert ReminderServiceSettings(VALID_API_KEYS='["a", "b"]').api_keys == ["a", "b"]
    assert ReminderServiceSettings(VALID_API_KEYS="a, b,").api_keys == ["a", "b"]
    assert ReminderServiceSettings(VALID_API_KEYS="").api_keys == []


def test_settings_reject_non_positive_tick():
    with pytest.raises(ValidationError):
        ReminderServiceSettings(AGENT_TICK_SECONDS=0)
    with pytest.raises(ValidationError):
        ReminderServiceSettings(CATCHUP_WINDOW_MINUTES=-1)


def test_settings_windows_as_timedeltas():
    config = ReminderServiceSettings(AGENT_TICK_SECONDS=15, LOOKAHEAD_MINUTES=2, CATCHUP_WINDOW_MINUTES=45)
    assert config.tick_interval.total_seconds() == 15
    assert config.lookahead.total_seconds() == 120
    assert config.catchup_window.total_seconds() == 45 * 60


def test_worker_arguments():
    args = parse_args(["--user-id", "u1", "--sink", "fcm", "--push-token", "tok"])
    assert (args.user_id, args.sink, args.push_token) == ("u1", "fcm", "tok")

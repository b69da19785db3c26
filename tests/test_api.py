"""Tests for the reminder HTTP API."""

import pytest
from fastapi.testclient import TestClient

from nutriscope.reminders.config import settings
from nutriscope.reminders.history import InMemoryNotificationHistory
from nutriscope.reminders import service
from nutriscope.reminders.service import create_app

from tests.helpers import make_reminder, utc

BASE = "/api/v1/reminders"


@pytest.fixture
def app(memory_repository, settings_store, sink):
    return create_app(
        repository=memory_repository,
        settings_store=settings_store,
        sink=sink,
        history=InMemoryNotificationHistory(),
    )


@pytest.fixture
def client(app):
    return TestClient(app)


def test_health(client):
    assert client.get(f"{BASE}/health").json() == {"status": "ok"}


def test_settings_default_when_unsaved(client):
    body = client.get(f"{BASE}/settings/u1").json()
    assert body["enabled"] is False
    assert body["water_reminders"]["interval_minutes"] == 60


def test_save_settings_schedules_reminders(client, memory_repository):
    response = client.put(f"{BASE}/settings/u1", json={
        "enabled": True,
        "water_reminders": {"enabled": True},
        "goal_reminders": {"enabled": True},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["disabled"] is False
    assert body["errors"] == {}
    assert {r["id"] for r in body["reminders"]} == {"water-u1", "goal-u1"}
    assert {r.id for r in memory_repository.list_for_user("u1")} == {"water-u1", "goal-u1"}
    assert client.get(f"{BASE}/settings/u1").json()["goal_reminders"]["enabled"] is True


def test_save_settings_reports_per_key_errors(client):
    response = client.put(f"{BASE}/settings/u1", json={
        "enabled": True,
        "water_reminders": {"enabled": True, "interval_minutes": 0},
        "summary_reminders": {"enabled": True},
    })
    assert response.status_code == 200
    body = response.json()
    assert "water" in body["errors"]
    assert [r["id"] for r in body["reminders"]] == ["summary-u1"]


def test_save_settings_rejects_malformed_document(client):
    response = client.put(f"{BASE}/settings/u1", json={"enabled": True, "water_reminders": "often"})
    assert response.status_code == 422


def test_global_disable_via_api(client, memory_repository):
    client.put(f"{BASE}/settings/u1", json={"enabled": True, "goal_reminders": {"enabled": True}})
    body = client.put(f"{BASE}/settings/u1", json={"enabled": False, "goal_reminders": {"enabled": True}}).json()
    assert body["disabled"] is True
    assert memory_repository.list_for_user("u1") == []


def test_list_and_due(client, memory_repository):
    memory_repository.upsert(make_reminder("goal-u1", next_trigger_time=utc(2024, 1, 1, 8, 0)))
    memory_repository.upsert(make_reminder("summary-u1", time_of_day="20:00", next_trigger_time=utc(2024, 1, 1, 20, 0)))

    listed = client.get(f"{BASE}/", params={"user_id": "u1"}).json()
    assert [r["id"] for r in listed] == ["goal-u1", "summary-u1"]

    due = client.get(f"{BASE}/due", params={
        "user_id": "u1",
        "now": "2024-01-01T08:10:00+00:00",
        "lookahead_minutes": 5,
        "catchup_minutes": 30,
    }).json()
    assert [r["id"] for r in due] == ["goal-u1"]


def test_get_unknown_reminder_is_404(client):
    response = client.get(f"{BASE}/nope-u1")
    assert response.status_code == 404


def test_advance_endpoint(client, memory_repository):
    memory_repository.upsert(make_reminder("goal-u1", next_trigger_time=utc(2024, 1, 1, 8, 0)))

    response = client.post(f"{BASE}/goal-u1/advance", params={"now": "2024-01-01T08:01:00+00:00"})

    assert response.status_code == 200
    body = response.json()
    assert body["trigger_count"] == 1
    assert body["next_trigger_time"].startswith("2024-01-02T08:00:00")

    conflict = client.post(f"{BASE}/goal-u1/advance", params={"expected_trigger_count": 0})
    assert conflict.status_code == 409
    assert client.post(f"{BASE}/missing/advance").status_code == 404


def test_delete_user_reminders(client, memory_repository):
    memory_repository.upsert(make_reminder("goal-u1"))
    memory_repository.upsert(make_reminder("water-u1"))
    assert client.delete(f"{BASE}/user/u1").json() == {"deleted": 2}
    assert memory_repository.list_for_user("u1") == []


def test_reconcile_all_endpoint(client, settings_store):
    client.put(f"{BASE}/settings/u1", json={"enabled": True, "goal_reminders": {"enabled": True}})
    client.put(f"{BASE}/settings/u2", json={"enabled": True, "water_reminders": {"enabled": True, "interval_minutes": -1}})

    body = client.post(f"{BASE}/reconcile-all").json()

    assert body["users"] == 2
    assert body["reminders"] == 1
    assert list(body["errors"]) == ["u2"]


def test_agent_identity_handshake(client, app, memory_repository, sink):
    memory_repository.upsert(make_reminder("goal-u1", next_trigger_time=utc(2024, 1, 1, 8, 0)))

    response = client.post(f"{BASE}/agent/identity", json={"user_id": "u1", "push_token": "tok"})
    assert response.status_code == 200
    assert response.json()["user_id"] == "u1"
    assert client.get(f"{BASE}/agent").json() == {"user_id": "u1", "running": False}

    app.state.agent.tick(utc(2024, 1, 1, 8, 1))
    assert len(sink.sent) == 1

    history = client.get(f"{BASE}/history", params={"user_id": "u1"}).json()
    assert [e["reminder_id"] for e in history] == ["goal-u1"]
    marked = client.post(f"{BASE}/history/read", params={"user_id": "u1"}).json()
    assert marked == {"marked": 1, "unread": 0}

    assert client.delete(f"{BASE}/agent/identity").status_code == 204
    assert client.get(f"{BASE}/agent").json()["user_id"] is None


def test_identity_requires_user_id(client):
    assert client.post(f"{BASE}/agent/identity", json={"user_id": ""}).status_code == 422


def test_api_key_enforced_when_required(client, monkeypatch):
    monkeypatch.setattr(settings, "REQUIRE_API_KEY", True)
    monkeypatch.setattr(settings, "VALID_API_KEYS", "key-one, key-two")

    assert client.get(f"{BASE}/health").status_code == 401
    assert client.get(f"{BASE}/health", headers={"X-API-Key": "wrong"}).status_code == 401
    assert client.get(f"{BASE}/health", headers={"X-API-Key": "key-two"}).status_code == 200
    assert client.get(f"{BASE}/health", headers={"Authorization": "Bearer key-one"}).status_code == 200


def test_main_serves_app_with_configured_address(monkeypatch):
    calls = []
    monkeypatch.setattr(service.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setattr(settings, "SERVER_PORT", 8123)

    service.main()

    assert calls == [(service.app, {"host": settings.SERVER_HOST, "port": 8123})]

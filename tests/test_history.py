"""Tests for the in-app notification history."""

from datetime import timedelta

from nutriscope.reminders.history import DeliveredEvent, InMemoryNotificationHistory

from tests.helpers import utc

T0 = utc(2024, 1, 1, 8, 0)


def _event(tag="goal", at=T0, user_id="u1", title="Goal Check-in!"):
    return DeliveredEvent(
        reminder_id=f"{tag}-{user_id}",
        user_id=user_id,
        type=tag,
        title=title,
        body="body",
        tag=tag,
        delivered_at=at,
    )


def test_newest_first():
    history = InMemoryNotificationHistory()
    history.announce(_event("goal", T0))
    history.announce(_event("water", T0 + timedelta(minutes=1)))
    assert [e.tag for e in history.entries()] == ["water", "goal"]


def test_repeated_tag_within_window_is_dropped():
    history = InMemoryNotificationHistory()
    assert history.announce(_event(at=T0)) is True
    assert history.announce(_event(at=T0 + timedelta(seconds=5))) is False
    assert history.announce(_event(at=T0 + timedelta(seconds=11))) is True
    assert len(history.entries()) == 2


def test_dedup_is_per_tag_and_user():
    history = InMemoryNotificationHistory()
    assert history.announce(_event("goal")) is True
    assert history.announce(_event("water")) is True
    assert history.announce(_event("goal", user_id="u2")) is True


def test_untagged_events_dedup_on_title():
    history = InMemoryNotificationHistory()
    first = _event(title="Hello")
    first.tag = None
    second = _event(title="Hello", at=T0 + timedelta(seconds=1))
    second.tag = None
    assert history.announce(first) is True
    assert history.announce(second) is False


def test_keeps_most_recent_entries_only():
    history = InMemoryNotificationHistory(max_entries=3)
    for i in range(5):
        history.announce(_event(f"tag{i}", T0 + timedelta(minutes=i)))
    assert [e.tag for e in history.entries()] == ["tag4", "tag3", "tag2"]


def test_read_tracking():
    history = InMemoryNotificationHistory()
    history.announce(_event("goal"))
    history.announce(_event("water"))
    history.announce(_event("water", user_id="u2"))

    goal = next(e for e in history.entries() if e.tag == "goal")
    assert history.mark_read(goal.id) is True
    assert history.mark_read("unknown") is False
    assert history.unread_count() == 2
    assert [e.tag for e in history.entries(user_id="u1", unread_only=True)] == ["water"]

    assert history.mark_all_read(user_id="u1") == 1
    assert history.unread_count(user_id="u1") == 0
    assert history.unread_count() == 1


def test_clear_per_user():
    history = InMemoryNotificationHistory()
    history.announce(_event("goal"))
    history.announce(_event("goal", user_id="u2"))
    history.clear(user_id="u1")
    assert [e.user_id for e in history.entries()] == ["u2"]
    history.clear()
    assert history.entries() == []

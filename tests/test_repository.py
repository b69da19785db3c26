"""Tests for the reminder repositories (SQL and in-memory share one suite)."""

from datetime import timedelta

import pytest

from tests.helpers import make_reminder, utc

NOW = utc(2024, 1, 1, 12, 0)
LOOKAHEAD = timedelta(minutes=5)
CATCHUP = timedelta(minutes=30)


def _ids(rows):
    return [r.id for r in rows]


def test_replace_all_for_user_swaps_whole_set(repository):
    repository.replace_all_for_user("u1", [make_reminder("water-u1"), make_reminder("goal-u1")])
    repository.replace_all_for_user("u2", [make_reminder("water-u2", user_id="u2")])

    repository.replace_all_for_user("u1", [make_reminder("summary-u1")])

    assert _ids(repository.list_for_user("u1")) == ["summary-u1"]
    assert _ids(repository.list_for_user("u2")) == ["water-u2"]


def test_replace_all_rejects_foreign_rows(repository):
    repository.replace_all_for_user("u1", [make_reminder("water-u1")])
    with pytest.raises(ValueError):
        repository.replace_all_for_user("u1", [make_reminder("water-u2", user_id="u2")])
    # Nothing was touched
    assert _ids(repository.list_for_user("u1")) == ["water-u1"]


def test_upsert_replaces_row_with_same_id(repository):
    repository.upsert(make_reminder("goal-u1", title="old"))
    repository.upsert(make_reminder("goal-u1", title="new"))
    rows = repository.list_for_user("u1")
    assert len(rows) == 1
    assert rows[0].title == "new"


def test_list_due_respects_lookahead_and_catchup(repository):
    repository.replace_all_for_user("u1", [
        make_reminder("stale-u1", next_trigger_time=NOW - timedelta(minutes=31)),
        make_reminder("late-u1", next_trigger_time=NOW - timedelta(minutes=10)),
        make_reminder("edge-u1", next_trigger_time=NOW - CATCHUP),
        make_reminder("soon-u1", next_trigger_time=NOW + timedelta(minutes=3)),
        make_reminder("later-u1", next_trigger_time=NOW + timedelta(minutes=10)),
        make_reminder("off-u1", next_trigger_time=NOW, enabled=False),
    ])
    repository.replace_all_for_user("u2", [make_reminder("late-u2", user_id="u2", next_trigger_time=NOW)])

    due = repository.list_due("u1", LOOKAHEAD, CATCHUP, now=NOW)

    assert _ids(due) == ["edge-u1", "late-u1", "soon-u1"]
    assert all(r.next_trigger_time >= NOW - CATCHUP for r in due)


def test_list_stale_returns_only_rows_older_than_catchup(repository):
    repository.replace_all_for_user("u1", [
        make_reminder("stale-u1", next_trigger_time=NOW - timedelta(hours=2)),
        make_reminder("late-u1", next_trigger_time=NOW - timedelta(minutes=10)),
        make_reminder("off-u1", next_trigger_time=NOW - timedelta(hours=2), enabled=False),
    ])
    assert _ids(repository.list_stale("u1", CATCHUP, now=NOW)) == ["stale-u1"]


def test_returned_times_are_utc_aware(repository):
    repository.upsert(make_reminder("goal-u1", next_trigger_time=utc(2024, 1, 1, 20, 0)))
    row = repository.get("goal-u1")
    assert row.next_trigger_time.tzinfo is not None
    assert row.next_trigger_time == utc(2024, 1, 1, 20, 0)


def test_advance_moves_to_next_slot(repository):
    repository.upsert(make_reminder("goal-u1", next_trigger_time=utc(2024, 1, 1, 8, 0), time_of_day="08:00"))

    advanced = repository.advance("goal-u1", now=utc(2024, 1, 1, 8, 0, 30))

    assert advanced.next_trigger_time == utc(2024, 1, 2, 8, 0)
    assert advanced.trigger_count == 1
    assert advanced.last_triggered == utc(2024, 1, 1, 8, 0, 30)
    stored = repository.get("goal-u1")
    assert stored.next_trigger_time == utc(2024, 1, 2, 8, 0)
    assert stored.trigger_count == 1


def test_advance_recurring_uses_window(repository):
    repository.upsert(make_reminder("water-u1", kind="recurring", next_trigger_time=utc(2024, 1, 1, 14, 0)))
    advanced = repository.advance("water-u1", now=utc(2024, 1, 1, 14, 20))
    assert advanced.next_trigger_time == utc(2024, 1, 1, 15, 0)


def test_advance_uses_row_timezone(repository):
    repository.upsert(make_reminder(
        "goal-u1",
        time_of_day="08:00",
        timezone="Asia/Kolkata",
        next_trigger_time=utc(2024, 1, 1, 2, 30),
    ))
    advanced = repository.advance("goal-u1", now=utc(2024, 1, 1, 2, 31))
    # 08:00 in Kolkata is 02:30 UTC
    assert advanced.next_trigger_time == utc(2024, 1, 2, 2, 30)


def test_advance_with_stale_expected_count_is_refused(repository):
    repository.upsert(make_reminder("goal-u1"))
    assert repository.advance("goal-u1", now=NOW, expected_trigger_count=0) is not None
    assert repository.advance("goal-u1", now=NOW, expected_trigger_count=0) is None
    assert repository.get("goal-u1").trigger_count == 1


def test_advance_unknown_id(repository):
    assert repository.advance("missing", now=NOW) is None


def test_advance_disables_row_with_unusable_recurrence(repository):
    repository.upsert(make_reminder("goal-u1", time_of_day="not-a-time"))
    advanced = repository.advance("goal-u1", now=NOW)
    assert advanced.enabled is False
    assert repository.list_due("u1", LOOKAHEAD, timedelta(days=365), now=NOW) == []


def test_delete_all_for_user(repository):
    repository.replace_all_for_user("u1", [make_reminder("water-u1"), make_reminder("goal-u1")])
    repository.upsert(make_reminder("water-u2", user_id="u2"))

    assert repository.delete_all_for_user("u1") == 2
    assert repository.list_for_user("u1") == []
    assert _ids(repository.list_for_user("u2")) == ["water-u2"]
    assert repository.delete_all_for_user("u1") == 0


def test_returned_rows_are_detached_copies(memory_repository):
    memory_repository.upsert(make_reminder("goal-u1"))
    row = memory_repository.get("goal-u1")
    row.title = "changed"
    assert memory_repository.get("goal-u1").title == "Reminder goal-u1"

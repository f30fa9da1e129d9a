# tests/test_event_log.py
from datetime import timedelta

import pytest

from vocab_core.errors import TransientPersistenceError
from vocab_core.fsrs.database import (
    batch_log_review_events,
    get_recent_events,
    has_grading_event,
    reset_db,
)


def make_event(now, position, vocabulary_id="v01", user_id="tester", session_id="s1"):
    return {
        "user_id": user_id,
        "vocabulary_id": vocabulary_id,
        "headword": f"word-{vocabulary_id}",
        "timestamp": now + timedelta(seconds=position),
        "grade": 3,
        "stability_before": None,
        "difficulty_before": None,
        "retrievability_before": None,
        "stability_after": 3.17,
        "difficulty_after": 5.3,
        "scheduled_days": 0,
        "session_id": session_id,
        "session_position": position,
        "session_mode": "learn",
    }


def test_log_and_read_back(event_db_url, now):
    batch_log_review_events([make_event(now, 0), make_event(now, 1, "v02")], event_db_url)

    events = get_recent_events("tester", database_url=event_db_url)
    assert [e["vocabulary_id"] for e in events] == ["v02", "v01"]
    assert events[0]["session_position"] == 1
    assert events[0]["stability_before"] is None


def test_events_scoped_by_user(event_db_url, now):
    batch_log_review_events([make_event(now, 0, user_id="other")], event_db_url)
    assert get_recent_events("tester", database_url=event_db_url) == []


def test_has_grading_event(event_db_url, now):
    batch_log_review_events([make_event(now, 0)], event_db_url)
    assert has_grading_event("s1", 0, "v01", event_db_url)
    assert not has_grading_event("s1", 1, "v01", event_db_url)
    assert not has_grading_event("s2", 0, "v01", event_db_url)


def test_retried_flush_does_not_duplicate(event_db_url, now):
    events = [make_event(now, 0), make_event(now, 1, "v02")]
    batch_log_review_events(events, event_db_url)
    batch_log_review_events(events + [make_event(now, 2, "v03")], event_db_url)

    assert len(get_recent_events("tester", limit=10, database_url=event_db_url)) == 3


def test_empty_batch_is_noop(event_db_url):
    batch_log_review_events([], event_db_url)
    assert get_recent_events("tester", database_url=event_db_url) == []


def test_failed_write_is_transient(event_db_url, now):
    reset_db(event_db_url)
    bad = make_event(now, 0)
    bad["stability_after"] = None  # NOT NULL column
    with pytest.raises(TransientPersistenceError):
        batch_log_review_events([bad], event_db_url)
    assert get_recent_events("tester", database_url=event_db_url) == []

# tests/test_session_queue.py
import random
from datetime import timedelta

import pytest

from vocab_core.daily_budget import end_of_day, remaining_today
from vocab_core.errors import SessionStateError
from vocab_core.fsrs import Grade, update
from vocab_core.review_store import learnable_vocabulary, record_grading
from vocab_core.session_builders import SessionMode, SessionQueueManager, SessionStatus

STUDY_TZ = "Asia/Ho_Chi_Minh"


@pytest.fixture
def manager():
    return SessionQueueManager(rng=random.Random(3), again_repeat_after=10, hard_repeat_after=20,
                               tz_name=STUDY_TZ)


@pytest.fixture
def review_state(with_reviews, make_record, catalog):
    """Every catalog item learned and due, last graded five days ago."""
    def _build(count, same_day=()):
        records = []
        for item in catalog[:count]:
            days_ago = 1 / 24 if item.id in same_day else 5.0
            records.append(make_record(item.id, days_ago=days_ago, due_in=-0.01))
        return with_reviews(*records)
    return _build


def grade_current(manager, state, grade, now):
    entry = manager.current
    outcome = manager.submit_grade(state, grade, now, vocabulary_id=entry.vocabulary_id)
    assert not outcome.duplicate
    return outcome.state


def ids(manager):
    return [e.vocabulary_id for e in manager.queue]


def test_zero_repeat_cadence_is_rejected():
    with pytest.raises(ValueError):
        SessionQueueManager(again_repeat_after=0)
    with pytest.raises(ValueError):
        SessionQueueManager(hard_repeat_after=0)


# ---- Learn Mode ----

def test_learn_queue_follows_catalog_and_budget(catalog, state, today, now):
    """Five items, three per day: the first three are learned and the session completes."""
    small = state.model_copy(update={"settings": state.settings.model_copy(update={"new_items_per_day": 3})})
    manager = SessionQueueManager()
    small = manager.start_learn(catalog[:5], small, today)

    assert manager.status == SessionStatus.ACTIVE
    assert ids(manager) == ["v01", "v02", "v03"]

    for grade in (Grade.AGAIN, Grade.GOOD, Grade.EASY):
        small = grade_current(manager, small, grade, now)

    assert small.today_learned_count == 3
    assert remaining_today(small, today) == 0
    assert manager.queue == []
    assert manager.status == SessionStatus.COMPLETE


def test_learn_never_reinserts(catalog, state, today, now, manager):
    state = manager.start_learn(catalog, state, today, limit=2)
    state = grade_current(manager, state, Grade.AGAIN, now)
    assert ids(manager) == ["v02"]
    state = grade_current(manager, state, Grade.AGAIN, now)
    assert manager.status == SessionStatus.COMPLETE
    assert state.difficult_today == ("v01", "v02")


def test_learn_duplicate_submission_is_ignored(catalog, state, today, now, manager):
    """Grading the same item twice leaves one record and one count."""
    state = manager.start_learn(catalog, state, today)
    outcome = manager.submit_grade(state, Grade.GOOD, now, vocabulary_id="v01", position=0)
    state = outcome.state

    repeat = manager.submit_grade(state, Grade.GOOD, now, vocabulary_id="v01", position=0)
    assert repeat.duplicate
    assert repeat.state is state
    assert state.today_learned_count == 1
    assert len(state.reviews) == 1
    assert len(state.reviews["v01"].history) == 1
    assert manager.current.vocabulary_id == "v02"


def test_learn_item_learned_elsewhere_is_dropped(catalog, state, today, now, manager):
    state = manager.start_learn(catalog, state, today)
    elsewhere = record_grading(state, "v01", Grade.GOOD, update(None, Grade.GOOD, 0.9, now), now)

    outcome = manager.submit_grade(elsewhere, Grade.EASY, now)
    assert outcome.duplicate
    assert outcome.state is elsewhere
    assert len(elsewhere.reviews["v01"].history) == 1
    assert manager.current.vocabulary_id == "v02"


def test_continue_learning_batch(catalog, state, today, now, manager):
    done = state.model_copy(update={"today_learned_count": 20})
    manager.start_learn(catalog, done, today)
    assert manager.status == SessionStatus.COMPLETE

    manager.start_learn(catalog, done, today, limit=done.settings.new_items_per_day)
    assert len(manager.queue) == 20


def test_learn_starts_with_reconciled_day(catalog, state, manager):
    yesterday = state.model_copy(update={"last_study_date": "2026-03-09", "today_learned_count": 20})
    reconciled = manager.start_learn(catalog, yesterday, "2026-03-10")
    assert reconciled.today_learned_count == 0
    assert len(manager.queue) == 20


# ---- Skip ----

def test_skipped_item_is_never_offered_again(catalog, state, today, manager):
    state = manager.start_learn(catalog, state, today, limit=3)
    state = manager.skip(state, "v01")

    assert "v01" in state.skipped_ids
    assert manager.current.vocabulary_id == "v02"
    assert "v01" not in [item.id for item in learnable_vocabulary(catalog, state)]

    fresh = SessionQueueManager()
    fresh.start_learn(catalog, state, today)
    assert "v01" not in ids(fresh)


def test_skip_item_later_in_queue(catalog, state, today, now, manager):
    state = manager.start_learn(catalog, state, today, limit=3)
    state = manager.skip(state, "v03")
    assert ids(manager) == ["v01", "v02"]
    assert manager.current.vocabulary_id == "v01"


def test_skip_last_item_completes(catalog, state, today, manager):
    state = manager.start_learn(catalog, state, today, limit=1)
    manager.skip(state, "v01")
    assert manager.status == SessionStatus.COMPLETE


def test_skip_outside_learn_mode(catalog, review_state, end_of_today, manager):
    state = manager.start_review(catalog, review_state(3), end_of_today)
    with pytest.raises(SessionStateError):
        manager.skip(state, "v01")


# ---- Review Mode ----

def test_review_queue_holds_due_items_shuffled(catalog, review_state, end_of_today):
    state = review_state(12)
    first = SessionQueueManager(rng=random.Random(5))
    second = SessionQueueManager(rng=random.Random(5))
    first.start_review(catalog, state, end_of_today)
    second.start_review(catalog, state, end_of_today)

    assert ids(first) == ids(second)
    assert sorted(ids(first)) == [item.id for item in catalog[:12]]


def test_again_reappears_eleven_positions_later(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(15), end_of_today)
    target = manager.current.vocabulary_id
    start = manager.current_index

    state = grade_current(manager, state, Grade.AGAIN, now)
    for _ in range(10):
        assert manager.current.vocabulary_id != target
        state = grade_current(manager, state, Grade.GOOD, now)

    assert manager.queue[start + 11].vocabulary_id == target
    assert manager.current_index == start + 11
    assert len(manager.queue) == 16


def test_good_clears_repeat(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(15), end_of_today)
    target = manager.current.vocabulary_id
    state = grade_current(manager, state, Grade.AGAIN, now)
    for _ in range(10):
        state = grade_current(manager, state, Grade.GOOD, now)

    # Reinserted copy is graded GOOD: no further repeats
    assert manager.current.vocabulary_id == target
    state = grade_current(manager, state, Grade.GOOD, now)
    assert target not in manager.buckets
    while manager.status == SessionStatus.ACTIVE:
        assert manager.current.vocabulary_id != target
        state = grade_current(manager, state, Grade.GOOD, now)
    assert ids(manager).count(target) == 2


def test_session_not_complete_while_bucket_pending(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(2), end_of_today)
    target = manager.current.vocabulary_id

    state = grade_current(manager, state, Grade.AGAIN, now)
    state = grade_current(manager, state, Grade.GOOD, now)

    assert manager.status == SessionStatus.ACTIVE
    assert manager.current.vocabulary_id == target

    state = grade_current(manager, state, Grade.AGAIN, now + timedelta(minutes=1))
    assert manager.status == SessionStatus.ACTIVE
    assert manager.current.vocabulary_id == target

    state = grade_current(manager, state, Grade.GOOD, now + timedelta(minutes=2))
    assert manager.status == SessionStatus.COMPLETE
    assert len(manager.buckets) == 0


def test_same_day_hard_repeats_at_session_end(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(1, same_day={"v01"}), end_of_today)

    outcome = manager.submit_grade(state, Grade.HARD, now, vocabulary_id="v01")
    assert outcome.memory_update.due_at <= end_of_today
    assert manager.status == SessionStatus.ACTIVE
    assert manager.current.vocabulary_id == "v01"

    outcome = manager.submit_grade(outcome.state, Grade.GOOD, now, vocabulary_id="v01")
    assert manager.status == SessionStatus.COMPLETE


def test_same_day_hard_repeats_after_twenty(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(25, same_day={"v01"}), end_of_today)
    manager.queue.sort(key=lambda e: e.vocabulary_id != "v01")

    state = grade_current(manager, state, Grade.HARD, now)
    for _ in range(20):
        assert manager.current.vocabulary_id != "v01"
        state = grade_current(manager, state, Grade.GOOD, now)

    assert manager.current.vocabulary_id == "v01"
    assert manager.current_index == 21


def test_same_day_hard_after_local_midnight(catalog, review_state, now, manager):
    """Started at 23:50 local, graded HARD at 00:05: the step is due on the new day."""
    start = now + timedelta(hours=11, minutes=50)
    state = manager.start_review(catalog, review_state(1, same_day={"v01"}), end_of_day(STUDY_TZ, start))

    graded_at = now + timedelta(hours=12, minutes=5)
    outcome = manager.submit_grade(state, Grade.HARD, graded_at, vocabulary_id="v01")

    assert outcome.memory_update.scheduled_days == 0
    assert outcome.memory_update.due_at > end_of_day(STUDY_TZ, start)
    assert "v01" in manager.buckets
    assert manager.status == SessionStatus.ACTIVE
    assert manager.current.vocabulary_id == "v01"


def test_inter_day_hard_is_not_repeated(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(1), end_of_today)
    outcome = manager.submit_grade(state, Grade.HARD, now, vocabulary_id="v01")
    assert outcome.memory_update.scheduled_days >= 1
    assert manager.status == SessionStatus.COMPLETE


def test_review_does_not_count_against_budget(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(3), end_of_today)
    while manager.status == SessionStatus.ACTIVE:
        state = grade_current(manager, state, Grade.GOOD, now)
    assert state.today_learned_count == 0
    assert all(len(r.history) == 1 for r in state.reviews.values())


def test_stale_position_is_duplicate(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(5), end_of_today)
    first = manager.current.vocabulary_id
    outcome = manager.submit_grade(state, Grade.GOOD, now, vocabulary_id=first, position=0)
    assert manager.graded_positions == {0}

    repeat = manager.submit_grade(outcome.state, Grade.AGAIN, now, vocabulary_id=first, position=0)
    assert repeat.duplicate
    assert repeat.state is outcome.state
    assert manager.session_position == 1
    assert len(manager.pending_events) == 1


def test_wrong_item_is_duplicate(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(5), end_of_today)
    current = manager.current.vocabulary_id
    other = next(i for i in ids(manager) if i != current)

    outcome = manager.submit_grade(state, Grade.GOOD, now, vocabulary_id=other)
    assert outcome.duplicate
    assert outcome.state is state
    assert manager.current.vocabulary_id == current


def test_grading_events_are_buffered(catalog, review_state, end_of_today, now, manager):
    state = manager.start_review(catalog, review_state(3), end_of_today)
    for _ in range(3):
        state = grade_current(manager, state, Grade.GOOD, now)

    events = manager.drain_events()
    assert [e["session_position"] for e in events] == [0, 1, 2]
    assert {e["session_id"] for e in events} == {manager.session_id}
    assert all(e["session_mode"] == "review" for e in events)
    assert all(e["stability_before"] == 5.0 for e in events)
    assert manager.pending_events == []


def test_empty_review_completes_immediately(catalog, state, end_of_today, manager):
    manager.start_review(catalog, state, end_of_today)
    assert manager.status == SessionStatus.COMPLETE
    assert manager.current is None


# ---- Difficult Practice ----

@pytest.fixture
def difficult_state(state, now):
    for vid, grade in (("v03", Grade.HARD), ("v01", Grade.AGAIN)):
        state = record_grading(state, vid, grade, update(None, grade, 0.9, now), now)
    return state


def test_difficult_practice_fifo(catalog, difficult_state, today, manager):
    manager.start_difficult(catalog, difficult_state, today)
    assert manager.mode == SessionMode.DIFFICULT
    assert ids(manager) == ["v03", "v01"]
    assert manager.current.last_grade == Grade.HARD

    manager.forget()
    assert ids(manager) == ["v01", "v03"]

    manager.remember()
    assert ids(manager) == ["v03"]
    assert manager.remember() == SessionStatus.COMPLETE
    assert manager.stats.practiced == 2
    assert manager.stats.forgot == 1


def test_difficult_mode_rejects_grades(catalog, difficult_state, today, now, manager):
    manager.start_difficult(catalog, difficult_state, today)
    with pytest.raises(SessionStateError):
        manager.submit_grade(difficult_state, Grade.GOOD, now)


def test_difficult_list_clears_on_new_day(catalog, difficult_state, manager):
    manager.start_difficult(catalog, difficult_state, "2026-03-11")
    assert manager.status == SessionStatus.COMPLETE

import random
from datetime import datetime, timedelta, timezone

import pytest

from vocab_core.fsrs.database import init_db
from vocab_core.schemas import CollectionSettings, CollectionState, ReviewRecord, VocabularyItem

STUDY_TZ = "Asia/Ho_Chi_Minh"


@pytest.fixture
def tz_name():
    return STUDY_TZ


@pytest.fixture
def now():
    """Noon in the study timezone (UTC+7)."""
    return datetime(2026, 3, 10, 5, 0, tzinfo=timezone.utc)


@pytest.fixture
def today():
    return "2026-03-10"


@pytest.fixture
def end_of_today():
    return datetime(2026, 3, 10, 16, 59, 59, 999999, tzinfo=timezone.utc)


@pytest.fixture
def catalog():
    """30 items in catalog order."""
    return [
        VocabularyItem(id=f"v{i:02d}", headword=f"word{i}", gloss=f"meaning {i}", position=i)
        for i in range(1, 31)
    ]


@pytest.fixture
def state(today):
    return CollectionState(
        user_id="tester",
        settings=CollectionSettings(new_items_per_day=20, requested_retention=0.9),
        last_study_date=today,
    )


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def make_record(now):
    """Factory for review records that were last graded `days_ago` and are due `due_in` days from now."""
    def _make(vocabulary_id, days_ago=5.0, due_in=-1.0, stability=5.0, difficulty=5.0, lapses=0):
        return ReviewRecord(
            vocabulary_id=vocabulary_id,
            stability=stability,
            difficulty=difficulty,
            current_interval_days=max(0, round(days_ago)),
            last_reviewed_at=now - timedelta(days=days_ago),
            next_due_at=now + timedelta(days=due_in),
            lapses=lapses,
        )
    return _make


@pytest.fixture
def with_reviews(state):
    """Add review records to the base state."""
    def _with(*records):
        return state.model_copy(update={
            "reviews": {**state.reviews, **{r.vocabulary_id: r for r in records}}
        })
    return _with


@pytest.fixture
def event_db_url(tmp_path):
    """Provide an initialized SQLite event log for tests."""
    url = f"sqlite:///{tmp_path / 'events.db'}"
    init_db(url)
    return url

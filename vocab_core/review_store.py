"""
Review Store - collection state transitions and queries.

Every function takes a CollectionState (or its records) and returns a new
value; nothing is mutated in place. Persistence is the caller's job.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from vocab_core.daily_budget import current_calendar_day
from vocab_core.errors import InvalidSettingsError
from vocab_core.fsrs.constants import Grade
from vocab_core.fsrs.memory_state import MemoryUpdate
from vocab_core.schemas import (
    CollectionSettings,
    CollectionState,
    ReviewHistoryEntry,
    ReviewRecord,
    VocabularyItem,
)

logger = logging.getLogger(__name__)

DIFFICULT_GRADES = (Grade.AGAIN, Grade.HARD)
DEFAULT_MAX_REVIEWS_PER_DAY = 50


# ---- Transitions ----

def record_grading(
    state: CollectionState,
    vocabulary_id: str,
    grade: Grade,
    memory_update: MemoryUpdate,
    now: datetime
) -> CollectionState:
    """
    Store the result of one grading.

    Creates the review record on first learning (and counts it against the
    daily budget) or updates the existing one. One history entry is appended
    per call.

    Args:
        state: Current collection state (already reconciled for today)
        vocabulary_id: Graded item
        grade: Learner's grade
        memory_update: Scheduler output for this grading
        now: Grading timestamp

    Returns:
        New collection state
    """
    grade = Grade(grade)
    existing = state.reviews.get(vocabulary_id)

    entry = ReviewHistoryEntry(
        timestamp=now,
        grade=grade,
        stability_before=existing.stability if existing else 0.0,
        stability_after=memory_update.stability,
        difficulty_before=existing.difficulty if existing else 0.0,
        difficulty_after=memory_update.difficulty,
        interval_before=existing.current_interval_days if existing else 0,
        interval_after=memory_update.scheduled_days,
        retrievability=memory_update.retrievability,
    )
    record = ReviewRecord(
        vocabulary_id=vocabulary_id,
        stability=memory_update.stability,
        difficulty=memory_update.difficulty,
        current_interval_days=memory_update.scheduled_days,
        last_reviewed_at=now,
        next_due_at=memory_update.due_at,
        lapses=memory_update.lapses,
        history=(existing.history if existing else ()) + (entry,),
    )

    changes = {"reviews": {**state.reviews, vocabulary_id: record}}
    if existing is None:
        changes["today_learned_count"] = state.today_learned_count + 1
    if grade in DIFFICULT_GRADES and vocabulary_id not in state.difficult_today:
        changes["difficult_today"] = state.difficult_today + (vocabulary_id,)

    return state.model_copy(update=changes)


def skip_item(state: CollectionState, vocabulary_id: str) -> CollectionState:
    """
    Permanently exclude an item from new-item selection.

    No-op if the item is already learned or already skipped.
    """
    if vocabulary_id in state.reviews or vocabulary_id in state.skipped_ids:
        logger.debug("Skip of %s ignored (already learned or skipped)", vocabulary_id)
        return state
    return state.model_copy(update={"skipped_ids": state.skipped_ids | {vocabulary_id}})


def apply_settings(
    state: CollectionState,
    new_items_per_day: Optional[int] = None,
    requested_retention: Optional[float] = None
) -> CollectionState:
    """
    Validate and apply new settings.

    Raises:
        InvalidSettingsError: new_items_per_day < 1 or requested_retention outside (0, 1)
    """
    current = state.settings
    if new_items_per_day is None:
        new_items_per_day = current.new_items_per_day
    if requested_retention is None:
        requested_retention = current.requested_retention

    if isinstance(new_items_per_day, bool) or not isinstance(new_items_per_day, int):
        raise InvalidSettingsError(f"new_items_per_day must be an integer, got {new_items_per_day!r}")
    if new_items_per_day < 1:
        raise InvalidSettingsError(f"new_items_per_day must be at least 1, got {new_items_per_day}")
    if not 0 < requested_retention < 1:
        raise InvalidSettingsError(
            f"requested_retention must be between 0 and 1 (exclusive), got {requested_retention}"
        )

    settings = CollectionSettings(
        new_items_per_day=new_items_per_day,
        requested_retention=float(requested_retention),
    )
    return state.model_copy(update={"settings": settings})


# ---- Queries ----

def learnable_vocabulary(
    catalog: Sequence[VocabularyItem],
    state: CollectionState
) -> list[VocabularyItem]:
    """Catalog items that are neither learned nor skipped, in catalog order."""
    return [
        item for item in catalog
        if item.id not in state.reviews and item.id not in state.skipped_ids
    ]


def due_reviews(
    catalog: Sequence[VocabularyItem],
    state: CollectionState,
    end_of_day: datetime
) -> list[tuple[VocabularyItem, ReviewRecord]]:
    """
    Learned items due by the end of the study day, in catalog order.

    Records without a catalog entry are ignored.
    """
    due = []
    for item in catalog:
        record = state.reviews.get(item.id)
        if record is not None and record.next_due_at <= end_of_day:
            due.append((item, record))
    return due


def difficult_vocabulary(
    catalog: Sequence[VocabularyItem],
    state: CollectionState
) -> list[VocabularyItem]:
    """Items graded Again or Hard today, in the order they were first marked."""
    by_id = {item.id: item for item in catalog}
    return [by_id[vid] for vid in state.difficult_today if vid in by_id]


def last_grade_today(
    state: CollectionState,
    vocabulary_id: str,
    today: str,
    tz_name: Optional[str] = None
) -> Optional[Grade]:
    """Most recent grade given to the item on the study day `today`, if any."""
    record = state.reviews.get(vocabulary_id)
    if record is None:
        return None
    for entry in reversed(record.history):
        if current_calendar_day(tz_name, entry.timestamp) == today:
            return entry.grade
    return None


# ---- Load Balancing ----

def balance_review_load(
    records: Iterable[ReviewRecord],
    max_per_day: int = DEFAULT_MAX_REVIEWS_PER_DAY,
    tz_name: Optional[str] = None
) -> list[ReviewRecord]:
    """
    Spread due dates so that no study day holds more than `max_per_day` reviews.

    Within a day the least stable records keep their date; the excess moves
    to the following day, repeatedly, until every day fits.

    Returns:
        Records ordered by (new) due day
    """
    if max_per_day < 1:
        raise ValueError(f"max_per_day must be at least 1, got {max_per_day}")

    by_day: dict[date, list[ReviewRecord]] = defaultdict(list)
    for record in records:
        day = date.fromisoformat(current_calendar_day(tz_name, record.next_due_at))
        by_day[day].append(record)
    if not by_day:
        return []

    result: list[ReviewRecord] = []
    overflow: list[ReviewRecord] = []
    day = min(by_day)
    last_day = max(by_day)
    moved = 0

    while day <= last_day or overflow:
        day_records = by_day.pop(day, []) + overflow
        day_records.sort(key=lambda r: r.stability)
        result.extend(day_records[:max_per_day])
        overflow = [
            r.model_copy(update={"next_due_at": r.next_due_at + timedelta(days=1)})
            for r in day_records[max_per_day:]
        ]
        moved += len(overflow)
        day += timedelta(days=1)

    if moved:
        logger.info("Rebalanced review load: %d postponements (max %d/day)", moved, max_per_day)
    return result

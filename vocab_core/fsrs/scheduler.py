"""
Scheduler - FSRS Algorithm Logic

Pure scheduling and state updates (no database calls).

Main workflow:
1. Build the memory state from a review record (caller's responsibility)
2. Determine whether this is a first exposure, a same-day or an inter-day review
3. Calculate retrievability
4. Apply the matching update rules
5. Return the new stability/difficulty and the next due date

Persistence is handled by the review store and the collection repository.
"""

from __future__ import annotations
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from vocab_core.fsrs import stability_updates
from vocab_core.fsrs.constants import (
    Grade,
    DEFAULT_PARAMETERS,
    DEFAULT_REQUESTED_RETENTION,
    LEARNING_STEPS,
    RELEARNING_STEP,
    LEGACY_STABILITY,
    LEGACY_DIFFICULTY,
)
from vocab_core.fsrs.memory_state import (
    MemoryState,
    MemoryUpdate,
    calculate_retrievability,
    get_elapsed_days,
)

if TYPE_CHECKING:
    from vocab_core.schemas import ReviewRecord


def update(
    state: Optional[MemoryState],
    grade: Grade,
    requested_retention: float = DEFAULT_REQUESTED_RETENTION,
    now: Optional[datetime] = None,
    parameters: Sequence[float] = DEFAULT_PARAMETERS
) -> MemoryUpdate:
    """
    Compute the memory state and due date that follow a grading.

    This is the core algorithm. No side effects; deterministic given `now`.

    Args:
        state: Current memory state, or None for a first exposure
        grade: Learner's grade (AGAIN, HARD, GOOD, EASY)
        requested_retention: Target recall probability at the due date, in (0, 1)
        now: Grading timestamp (defaults to now, UTC)
        parameters: FSRS model weights

    Returns:
        MemoryUpdate with new stability, difficulty, scheduled days and due date
    """
    if not 0 < requested_retention < 1:
        raise ValueError(f"requested_retention must be in (0, 1), got {requested_retention}")
    if now is None:
        now = datetime.now(timezone.utc)

    grade = Grade(grade)
    w = parameters

    if state is None:
        return _first_exposure(w, grade, requested_retention, now)

    retrievability = calculate_retrievability(state.stability, state.elapsed_days)
    difficulty = stability_updates.next_difficulty(w, state.difficulty, grade)
    lapses = state.lapses + (1 if grade == Grade.AGAIN else 0)

    if state.elapsed_days < 1:
        return _same_day_review(
            w, state, grade, difficulty, lapses, retrievability, requested_retention, now
        )

    if grade == Grade.AGAIN:
        stability = stability_updates.forget_stability(
            w, state.stability, state.difficulty, retrievability
        )
        return _stepped(stability, difficulty, lapses, retrievability, now, RELEARNING_STEP)

    # Inter-day success: compute all three outcomes so intervals stay ordered
    stabilities = {
        g: stability_updates.recall_stability(
            w, state.stability, state.difficulty, retrievability, g
        )
        for g in (Grade.HARD, Grade.GOOD, Grade.EASY)
    }
    hard, good, easy = stability_updates.order_intervals(
        *(stability_updates.next_interval(stabilities[g], requested_retention)
          for g in (Grade.HARD, Grade.GOOD, Grade.EASY))
    )
    days = {Grade.HARD: hard, Grade.GOOD: good, Grade.EASY: easy}[grade]
    return _scheduled(stabilities[grade], difficulty, lapses, retrievability, now, days)


def _first_exposure(
    w: Sequence[float],
    grade: Grade,
    requested_retention: float,
    now: datetime
) -> MemoryUpdate:
    stability = stability_updates.initial_stability(w, grade)
    difficulty = stability_updates.initial_difficulty(w, grade)
    lapses = 1 if grade == Grade.AGAIN else 0

    if grade == Grade.EASY:
        days = stability_updates.next_interval(stability, requested_retention)
        return _scheduled(stability, difficulty, lapses, 1.0, now, days)
    return _stepped(stability, difficulty, lapses, 1.0, now, LEARNING_STEPS[grade])


def _same_day_review(
    w: Sequence[float],
    state: MemoryState,
    grade: Grade,
    difficulty: float,
    lapses: int,
    retrievability: float,
    requested_retention: float,
    now: datetime
) -> MemoryUpdate:
    stability = stability_updates.short_term_stability(w, state.stability, grade)

    if grade in (Grade.AGAIN, Grade.HARD):
        return _stepped(stability, difficulty, lapses, retrievability, now, LEARNING_STEPS[grade])

    good_stability = stability_updates.short_term_stability(w, state.stability, Grade.GOOD)
    easy_stability = stability_updates.short_term_stability(w, state.stability, Grade.EASY)
    good_days = stability_updates.next_interval(good_stability, requested_retention)
    easy_days = stability_updates.next_interval(easy_stability, requested_retention)
    _, good_days, easy_days = stability_updates.order_intervals(good_days, good_days, easy_days)
    days = good_days if grade == Grade.GOOD else easy_days
    return _scheduled(stability, difficulty, lapses, retrievability, now, days)


def _stepped(
    stability: float,
    difficulty: float,
    lapses: int,
    retrievability: float,
    now: datetime,
    step: timedelta
) -> MemoryUpdate:
    return MemoryUpdate(
        stability=stability,
        difficulty=difficulty,
        scheduled_days=0,
        due_at=now + step,
        lapses=lapses,
        retrievability=retrievability,
    )


def _scheduled(
    stability: float,
    difficulty: float,
    lapses: int,
    retrievability: float,
    now: datetime,
    days: int
) -> MemoryUpdate:
    return MemoryUpdate(
        stability=stability,
        difficulty=difficulty,
        scheduled_days=days,
        due_at=now + timedelta(days=days),
        lapses=lapses,
        retrievability=retrievability,
    )


def memory_state_from_record(record: "ReviewRecord", now: datetime) -> MemoryState:
    """
    Build the scheduler input for an existing review record.

    Records saved before stability was tracked (stability 0) start from
    LEGACY_STABILITY / LEGACY_DIFFICULTY.
    """
    if record.stability > 0:
        stability = record.stability
        difficulty = record.difficulty or LEGACY_DIFFICULTY
    else:
        stability = LEGACY_STABILITY
        difficulty = LEGACY_DIFFICULTY

    if record.last_reviewed_at is not None:
        elapsed_days = get_elapsed_days(record.last_reviewed_at, now)
    else:
        elapsed_days = float(record.current_interval_days)

    return MemoryState(
        stability=stability,
        difficulty=difficulty,
        elapsed_days=elapsed_days,
        lapses=record.lapses,
    )

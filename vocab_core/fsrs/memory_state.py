"""
Memory State - Card State and Retrievability

Defines the memory state variables consumed and produced by the scheduler.

Key concepts:
- Stability (S): Interval in days at which recall probability is 90%
- Difficulty (D): How hard the item is to learn (1-10 scale)
- Retrievability (R): Probability of successful recall at time t
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from vocab_core.fsrs.constants import DECAY, FACTOR


SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class MemoryState:
    """
    Memory state of an item that has been graded at least once.
    """
    stability: float  # S, in days
    difficulty: float  # D, range 1-10
    elapsed_days: float  # Time since the last grading
    lapses: int = 0  # Number of AGAIN grades so far


@dataclass(frozen=True)
class MemoryUpdate:
    """
    Result of a single scheduler update.
    """
    stability: float
    difficulty: float
    scheduled_days: int  # 0 means re-review later the same day
    due_at: datetime
    lapses: int
    retrievability: float  # R at the moment of grading (1.0 for new items)


def calculate_retrievability(stability: float, elapsed_days: float) -> float:
    """
    Calculate retrievability using the FSRS power forgetting curve.

    Formula: R = (1 + FACTOR * t / S) ^ DECAY

    Args:
        stability: Current stability in days
        elapsed_days: Time since last review in days

    Returns:
        Retrievability between 0 and 1
    """
    if stability <= 0:
        return 0.0
    if elapsed_days <= 0:
        return 1.0
    return (1 + FACTOR * elapsed_days / stability) ** DECAY


def get_elapsed_days(last_reviewed_at: Optional[datetime], now: datetime) -> float:
    """
    Days between the last review and now (0 if never reviewed).
    """
    if last_reviewed_at is None:
        return 0.0
    delta = now - last_reviewed_at
    return max(0.0, delta.total_seconds() / SECONDS_PER_DAY)

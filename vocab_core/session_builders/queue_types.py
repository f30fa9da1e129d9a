"""
Typed session models shared across the queue manager and its helpers.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from vocab_core.fsrs.constants import Grade
from vocab_core.fsrs.memory_state import MemoryUpdate
from vocab_core.schemas import CollectionState, ReviewRecord, VocabularyItem


class SessionMode(str, Enum):
    LEARN = "learn"
    REVIEW = "review"
    DIFFICULT = "difficult"


class SessionStatus(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETE = "complete"


class RepeatKind(str, Enum):
    """Repeat bucket an item is drilled in during a review session."""
    AGAIN = "again"
    HARD = "hard"


class PracticeOutcome(str, Enum):
    """The only inputs of difficult-practice mode."""
    REMEMBER = "remember"
    FORGET = "forget"


@dataclass
class SessionQueueEntry:
    """
    One trial in the session queue. Never persisted.
    """
    item: VocabularyItem
    record: Optional[ReviewRecord] = None  # Review mode only
    pending_repeat: Optional[int] = None   # Countdown when re-inserted from a bucket
    bucket: Optional[RepeatKind] = None
    last_grade: Optional[Grade] = None     # Difficult mode: last grade given today

    @property
    def vocabulary_id(self) -> str:
        return self.item.id


@dataclass
class SessionStats:
    total: int = 0        # Gradings submitted
    correct: int = 0      # Multiple-choice answers
    incorrect: int = 0
    remembered: int = 0   # Review grades above AGAIN, REMEMBER in practice
    forgot: int = 0       # AGAIN grades, FORGET in practice
    practiced: int = 0    # Difficult items cleared


@dataclass(frozen=True)
class GradingOutcome:
    """
    Result of `SessionQueueManager.submit_grade`.

    Duplicates are not errors: `duplicate` is True and `state` is the input
    state, untouched.
    """
    state: CollectionState
    status: SessionStatus
    duplicate: bool = False
    vocabulary_id: Optional[str] = None
    grade: Optional[Grade] = None
    memory_update: Optional[MemoryUpdate] = None
    reinserted: tuple[str, ...] = ()

"""
FSRS - Free Spaced Repetition Scheduler

Memory model for the vocabulary collection.

This module implements the FSRS-5 algorithm with:
- Power forgetting curve: R = (1 + FACTOR * t / S) ^ DECAY
- Short learning steps for new and same-day items
- Intervals targeting the collection's requested retention
- Interpretable memory state (Stability, Difficulty, Retrievability)

Quick start:
    from vocab_core import fsrs

    # Initialize the grading event log
    fsrs.init_db()

    # Schedule a first exposure (algorithm only, no DB calls)
    result = fsrs.update(None, fsrs.Grade.GOOD, requested_retention=0.9)

    # Schedule an existing record
    state = fsrs.memory_state_from_record(record, now)
    result = fsrs.update(state, fsrs.Grade.HARD, now=now)
"""

# Core scheduler API (algorithm logic)
from vocab_core.fsrs.scheduler import update, memory_state_from_record

# Event log API
from vocab_core.fsrs.database import init_db, batch_log_review_events

# Constants and parameters
from vocab_core.fsrs.constants import (
    Grade,
    DEFAULT_PARAMETERS,
    DEFAULT_REQUESTED_RETENTION,
    S_MIN,
    D_MIN,
    D_MAX,
    MAXIMUM_INTERVAL,
)

# Memory state (for advanced usage)
from vocab_core.fsrs.memory_state import (
    MemoryState,
    MemoryUpdate,
    calculate_retrievability,
)


__all__ = [
    # Core algorithm
    "update",
    "memory_state_from_record",

    # Event log operations
    "init_db",
    "batch_log_review_events",

    # Enums
    "Grade",

    # Memory state
    "MemoryState",
    "MemoryUpdate",
    "calculate_retrievability",

    # Parameters
    "DEFAULT_PARAMETERS",
    "DEFAULT_REQUESTED_RETENTION",
    "S_MIN",
    "D_MIN",
    "D_MAX",
    "MAXIMUM_INTERVAL",
]

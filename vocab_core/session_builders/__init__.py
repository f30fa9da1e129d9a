"""Session queue modules: queue manager, repeat buckets and session types."""

from vocab_core.session_builders.queue_types import (
    GradingOutcome,
    PracticeOutcome,
    RepeatKind,
    SessionMode,
    SessionQueueEntry,
    SessionStats,
    SessionStatus,
)
from vocab_core.session_builders.repeat_buckets import RepeatBuckets
from vocab_core.session_builders.session_queue import SessionQueueManager

__all__ = [
    "GradingOutcome",
    "PracticeOutcome",
    "RepeatKind",
    "SessionMode",
    "SessionQueueEntry",
    "SessionStats",
    "SessionStatus",
    "RepeatBuckets",
    "SessionQueueManager",
]

"""
In-session repeat buckets.

Items graded AGAIN (or HARD with a same-day due date) during a review
session are drilled again after a number of further gradings. The buckets
are one ordered map keyed by vocabulary id, so an item is in at most one
bucket and lookups are O(1).

Rules:
- AGAIN: (re)enter the AGAIN bucket with the AGAIN cadence
- HARD due today: (re)enter the HARD bucket with the HARD cadence
- GOOD/EASY: leave the buckets
- Every other grading counts down the entries not already waiting in the queue
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Iterator, Optional

from vocab_core.config import DEFAULT_AGAIN_REPEAT_AFTER, DEFAULT_HARD_REPEAT_AFTER
from vocab_core.session_builders.queue_types import RepeatKind, SessionQueueEntry


@dataclass
class RepeatEntry:
    entry: SessionQueueEntry
    kind: RepeatKind
    countdown: int
    queued: bool = False  # Re-inserted and not yet answered again


class RepeatBuckets:
    """
    Ordered map of vocabulary id -> RepeatEntry.
    """

    def __init__(
        self,
        again_after: int = DEFAULT_AGAIN_REPEAT_AFTER,
        hard_after: int = DEFAULT_HARD_REPEAT_AFTER
    ):
        if again_after < 1 or hard_after < 1:
            raise ValueError("Repeat cadences must be at least 1")
        self._base = {RepeatKind.AGAIN: again_after, RepeatKind.HARD: hard_after}
        self._entries: dict[str, RepeatEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, vocabulary_id: str) -> bool:
        return vocabulary_id in self._entries

    def __iter__(self) -> Iterator[RepeatEntry]:
        return iter(list(self._entries.values()))

    def base(self, kind: RepeatKind) -> int:
        return self._base[kind]

    def get(self, vocabulary_id: str) -> Optional[RepeatEntry]:
        return self._entries.get(vocabulary_id)

    def add(self, entry: SessionQueueEntry, kind: RepeatKind) -> None:
        """Put an item in `kind`'s bucket, leaving any other bucket."""
        self._entries.pop(entry.vocabulary_id, None)
        self._entries[entry.vocabulary_id] = RepeatEntry(entry, kind, self._base[kind])

    def discard(self, vocabulary_id: str) -> None:
        self._entries.pop(vocabulary_id, None)

    def rearm(self, vocabulary_id: str) -> None:
        """Restart an entry's countdown after it was answered again."""
        repeat = self._entries.get(vocabulary_id)
        if repeat is not None:
            repeat.countdown = self._base[repeat.kind]
            repeat.queued = False

    def tick(self, answered_id: Optional[str] = None) -> list[SessionQueueEntry]:
        """
        Count down after a grading and collect the entries that are ready.

        The just-answered item and entries already waiting in the queue are
        not counted down.

        Returns:
            Queue entries to insert next, AGAIN entries first
        """
        ready = []
        for repeat in self._entries.values():
            if repeat.queued or repeat.entry.vocabulary_id == answered_id:
                continue
            repeat.countdown -= 1
            if repeat.countdown <= 0:
                ready.append(repeat)
        return self._release(ready)

    def drain(self) -> list[SessionQueueEntry]:
        """All entries not already in the queue, AGAIN entries first."""
        return self._release([r for r in self._entries.values() if not r.queued])

    def _release(self, repeats: list[RepeatEntry]) -> list[SessionQueueEntry]:
        repeats.sort(key=lambda r: r.kind != RepeatKind.AGAIN)
        released = []
        for repeat in repeats:
            repeat.countdown = self._base[repeat.kind]
            repeat.queued = True
            released.append(replace(
                repeat.entry,
                pending_repeat=repeat.countdown,
                bucket=repeat.kind,
            ))
        return released

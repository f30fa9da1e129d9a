"""
Session queue manager - the in-session state machine.

Status: IDLE -> ACTIVE -> COMPLETE

Modes:
- LEARN: the next new items of the catalog; each graded item leaves the queue
- REVIEW: every item due by the end of today, shuffled once; weak items are
  re-inserted by the repeat buckets until they are graded GOOD or EASY
- DIFFICULT: items graded AGAIN/HARD today; REMEMBER clears an item,
  FORGET sends it to the back of the queue

The manager never persists anything. Each grading returns the new
CollectionState and buffers a grading event in `pending_events`.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from vocab_core import config
from vocab_core.daily_budget import end_of_day, reconcile_day, remaining_today
from vocab_core.errors import SessionStateError
from vocab_core.fsrs import scheduler
from vocab_core.fsrs.constants import Grade
from vocab_core.review_store import (
    difficult_vocabulary,
    due_reviews,
    last_grade_today,
    learnable_vocabulary,
    record_grading,
    skip_item,
)
from vocab_core.schemas import CollectionState, VocabularyItem
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

logger = logging.getLogger(__name__)


class SessionQueueManager:
    """
    Owns the queue, the cursor and the repeat buckets of one session.

    Args:
        rng: Random source for the review-mode shuffle
        again_repeat_after: Gradings before an AGAIN item returns
        hard_repeat_after: Gradings before a same-day HARD item returns
        tz_name: Study timezone (for today's grades in difficult mode)
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        again_repeat_after: Optional[int] = None,
        hard_repeat_after: Optional[int] = None,
        tz_name: Optional[str] = None
    ):
        self.rng = rng or random.Random()
        if again_repeat_after is None:
            again_repeat_after = config.get_again_repeat_after()
        if hard_repeat_after is None:
            hard_repeat_after = config.get_hard_repeat_after()
        self.again_repeat_after = again_repeat_after
        self.hard_repeat_after = hard_repeat_after
        self.tz_name = tz_name or config.get_study_timezone()

        self.mode: Optional[SessionMode] = None
        self.status = SessionStatus.IDLE
        self.queue: list[SessionQueueEntry] = []
        self.current_index = 0
        self.session_id: Optional[str] = None
        self.session_position = 0
        self.graded_positions: set[int] = set()
        self.stats = SessionStats()
        self.buckets = RepeatBuckets(self.again_repeat_after, self.hard_repeat_after)
        self.pending_events: list[dict] = []

    # ---- Session Start ----

    def _begin(self, mode: SessionMode, entries: list[SessionQueueEntry]) -> None:
        if self.pending_events:
            logger.warning(
                "Starting a new session with %d unflushed grading events", len(self.pending_events)
            )
        self.mode = mode
        self.queue = entries
        self.current_index = 0
        self.session_id = str(uuid.uuid4())
        self.session_position = 0
        self.graded_positions = set()
        self.stats = SessionStats()
        self.buckets = RepeatBuckets(self.again_repeat_after, self.hard_repeat_after)
        self.status = SessionStatus.ACTIVE if entries else SessionStatus.COMPLETE
        logger.info("Started %s session %s with %d items", mode.value, self.session_id, len(entries))

    def start_learn(
        self,
        catalog: Sequence[VocabularyItem],
        state: CollectionState,
        today: str,
        limit: Optional[int] = None
    ) -> CollectionState:
        """
        Queue the next new items in catalog order.

        Args:
            limit: Batch size; defaults to what is left of today's budget

        Returns:
            The state reconciled for `today`
        """
        state = reconcile_day(state, today)
        if limit is None:
            limit = remaining_today(state, today)
        items = learnable_vocabulary(catalog, state)[:max(0, limit)]
        self._begin(SessionMode.LEARN, [SessionQueueEntry(item) for item in items])
        return state

    def start_review(
        self,
        catalog: Sequence[VocabularyItem],
        state: CollectionState,
        due_by: datetime
    ) -> CollectionState:
        """Queue every item due by `due_by` (the end of today), shuffled once."""
        entries = [
            SessionQueueEntry(item, record=record)
            for item, record in due_reviews(catalog, state, due_by)
        ]
        self.rng.shuffle(entries)
        self._begin(SessionMode.REVIEW, entries)
        return state

    def start_difficult(
        self,
        catalog: Sequence[VocabularyItem],
        state: CollectionState,
        today: str
    ) -> CollectionState:
        """Queue today's AGAIN/HARD items with the last grade they got today."""
        state = reconcile_day(state, today)
        entries = [
            SessionQueueEntry(
                item,
                record=state.reviews.get(item.id),
                last_grade=last_grade_today(state, item.id, today, self.tz_name),
            )
            for item in difficult_vocabulary(catalog, state)
        ]
        self._begin(SessionMode.DIFFICULT, entries)
        return state

    def resize_learn(
        self,
        catalog: Sequence[VocabularyItem],
        state: CollectionState,
        today: str
    ) -> None:
        """
        Rebuild an active learn queue after the daily budget changed.

        The session (id, position, stats) continues.
        """
        self._require_mode(SessionMode.LEARN)
        if self.status != SessionStatus.ACTIVE:
            return
        limit = remaining_today(state, today)
        items = learnable_vocabulary(catalog, state)[:limit]
        self.queue = [SessionQueueEntry(item) for item in items]
        self.current_index = 0
        self._complete_if_exhausted()
        logger.info("Learn queue resized to %d items", len(self.queue))

    # ---- Cursor ----

    @property
    def current(self) -> Optional[SessionQueueEntry]:
        if self.status != SessionStatus.ACTIVE or not self.queue:
            return None
        return self.queue[self.current_index]

    @property
    def remaining(self) -> int:
        """Entries from the cursor to the end of the queue."""
        if self.status != SessionStatus.ACTIVE:
            return 0
        return len(self.queue) - self.current_index

    def _require_mode(self, *modes: SessionMode) -> None:
        if self.mode not in modes:
            names = ", ".join(m.value for m in modes)
            current = self.mode.value if self.mode else "no session"
            raise SessionStateError(f"Operation needs a {names} session (current: {current})")

    def _complete_if_exhausted(self) -> None:
        if not self.queue:
            self.current_index = 0
            self.status = SessionStatus.COMPLETE
            logger.info("Session %s complete", self.session_id)
        else:
            self.current_index = min(self.current_index, len(self.queue) - 1)

    # ---- Grading ----

    def submit_grade(
        self,
        state: CollectionState,
        grade: Grade,
        now: Optional[datetime] = None,
        *,
        vocabulary_id: Optional[str] = None,
        position: Optional[int] = None
    ) -> GradingOutcome:
        """
        Grade the current item (learn or review mode).

        A submission for a session position that was already answered, or for
        an id that is not the current item, is a duplicate: nothing changes.
        In learn mode a current item that already has a review record is
        dropped from the queue without grading.

        Args:
            state: Latest collection state
            grade: Learner's grade
            now: Grading timestamp (defaults to now, UTC)
            vocabulary_id: Item the grade was given for, if known
            position: `session_position` when the item was shown, if known

        Returns:
            GradingOutcome with the new state

        Raises:
            SessionStateError: In difficult-practice mode
        """
        self._require_mode(SessionMode.LEARN, SessionMode.REVIEW)
        grade = Grade(grade)
        if now is None:
            now = datetime.now(timezone.utc)

        entry = self.current
        if entry is None:
            return self._duplicate(state, vocabulary_id, "no active item")
        if position is not None and (position in self.graded_positions or position != self.session_position):
            return self._duplicate(state, vocabulary_id, f"stale position {position}")
        if vocabulary_id is not None and vocabulary_id != entry.vocabulary_id:
            return self._duplicate(state, vocabulary_id, f"current item is {entry.vocabulary_id}")

        item_id = entry.vocabulary_id
        if self.mode == SessionMode.LEARN and item_id in state.reviews:
            self.queue.pop(self.current_index)
            self.session_position += 1
            self._complete_if_exhausted()
            return self._duplicate(state, item_id, "already learned")

        record = state.reviews.get(item_id)
        memory_state = scheduler.memory_state_from_record(record, now) if record else None
        memory_update = scheduler.update(
            memory_state, grade, state.settings.requested_retention, now
        )
        new_state = record_grading(state, item_id, grade, memory_update, now)

        self.pending_events.append({
            "user_id": state.user_id,
            "vocabulary_id": item_id,
            "headword": entry.item.headword,
            "timestamp": now,
            "grade": int(grade),
            "stability_before": memory_state.stability if memory_state else None,
            "difficulty_before": memory_state.difficulty if memory_state else None,
            "retrievability_before": memory_update.retrievability if memory_state else None,
            "stability_after": memory_update.stability,
            "difficulty_after": memory_update.difficulty,
            "scheduled_days": memory_update.scheduled_days,
            "session_id": self.session_id,
            "session_position": self.session_position,
            "session_mode": self.mode.value,
        })
        self.graded_positions.add(self.session_position)
        self.session_position += 1
        self.stats.total += 1

        reinserted: tuple[str, ...] = ()
        if self.mode == SessionMode.LEARN:
            self.queue.pop(self.current_index)
            self._complete_if_exhausted()
        else:
            if grade == Grade.AGAIN:
                self.stats.forgot += 1
            else:
                self.stats.remembered += 1
            reinserted = self._advance_review(entry, new_state, grade, memory_update.due_at, now)

        return GradingOutcome(
            state=new_state,
            status=self.status,
            vocabulary_id=item_id,
            grade=grade,
            memory_update=memory_update,
            reinserted=reinserted,
        )

    def _advance_review(
        self,
        entry: SessionQueueEntry,
        state: CollectionState,
        grade: Grade,
        due_at: datetime,
        now: datetime
    ) -> tuple[str, ...]:
        item_id = entry.vocabulary_id
        graded = SessionQueueEntry(entry.item, record=state.reviews[item_id])

        if grade == Grade.AGAIN:
            self.buckets.add(graded, RepeatKind.AGAIN)
        elif grade == Grade.HARD and due_at <= end_of_day(self.tz_name, now):
            self.buckets.add(graded, RepeatKind.HARD)
        elif grade in (Grade.GOOD, Grade.EASY):
            self.buckets.discard(item_id)
        else:
            self.buckets.rearm(item_id)

        ready = self.buckets.tick(answered_id=item_id)
        insert_at = self.current_index + 1
        self.queue[insert_at:insert_at] = ready
        self.current_index = insert_at

        if self.current_index >= len(self.queue):
            pending = self.buckets.drain()
            if pending:
                logger.debug("Queue exhausted, drilling %d bucket items", len(pending))
                self.queue.extend(pending)
                ready = ready + pending
            else:
                self.status = SessionStatus.COMPLETE
                logger.info("Session %s complete", self.session_id)

        return tuple(e.vocabulary_id for e in ready)

    def _duplicate(self, state: CollectionState, vocabulary_id: Optional[str], reason: str) -> GradingOutcome:
        logger.warning("Ignored duplicate grading for %s (%s)", vocabulary_id, reason)
        return GradingOutcome(
            state=state,
            status=self.status,
            duplicate=True,
            vocabulary_id=vocabulary_id,
        )

    def record_answer(self, correct: bool) -> None:
        """Count a multiple-choice answer in the session statistics."""
        if correct:
            self.stats.correct += 1
        else:
            self.stats.incorrect += 1

    # ---- Difficult Practice ----

    def practice(self, outcome: PracticeOutcome) -> SessionStatus:
        """
        Resolve the head of the difficult-practice queue.

        REMEMBER removes it for this pass; FORGET moves it to the end.
        """
        self._require_mode(SessionMode.DIFFICULT)
        if self.status != SessionStatus.ACTIVE:
            return self.status

        entry = self.queue.pop(0)
        if PracticeOutcome(outcome) == PracticeOutcome.REMEMBER:
            self.stats.practiced += 1
            self.stats.remembered += 1
        else:
            self.stats.forgot += 1
            self.queue.append(entry)
        self.session_position += 1
        self._complete_if_exhausted()
        return self.status

    def remember(self) -> SessionStatus:
        return self.practice(PracticeOutcome.REMEMBER)

    def forget(self) -> SessionStatus:
        return self.practice(PracticeOutcome.FORGET)

    # ---- Skip ----

    def skip(self, state: CollectionState, vocabulary_id: str) -> CollectionState:
        """
        Permanently skip an item during a learn session.

        Raises:
            SessionStateError: Outside learn mode
        """
        self._require_mode(SessionMode.LEARN)
        new_state = skip_item(state, vocabulary_id)

        for index, entry in enumerate(self.queue):
            if entry.vocabulary_id == vocabulary_id:
                self.queue.pop(index)
                if index == self.current_index:
                    self.session_position += 1
                elif index < self.current_index:
                    self.current_index -= 1
                if self.status == SessionStatus.ACTIVE:
                    self._complete_if_exhausted()
                break

        return new_state

    def end(self) -> None:
        """Abandon the queue and return to IDLE (buffered events are kept)."""
        self.mode = None
        self.status = SessionStatus.IDLE
        self.queue = []
        self.current_index = 0
        self.buckets = RepeatBuckets(self.again_repeat_after, self.hard_repeat_after)

    # ---- Events ----

    def drain_events(self) -> list[dict]:
        """Hand over the buffered grading events and clear the buffer."""
        events, self.pending_events = self.pending_events, []
        return events

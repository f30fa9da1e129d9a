"""
Session lifecycle for one learner.

The controller is the only place that loads and saves the collection. Each
user action refreshes the latest-known state, applies one pure transition
through the queue manager or the review store, and saves the whole document.
A failed save never stops the session: it is logged, surfaced in `warnings`
and retried on the next save and at the end of the session.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from vocab_core import config
from vocab_core import fsrs
from vocab_core.choices import generate_choices
from vocab_core.collection_repo import CollectionStore, MongoCollectionStore, load_vocabulary_catalog
from vocab_core.daily_budget import current_calendar_day, end_of_day, reconcile_day, remaining_today
from vocab_core.errors import PersistenceError, SessionStateError
from vocab_core.review_store import (
    DEFAULT_MAX_REVIEWS_PER_DAY,
    apply_settings,
    balance_review_load,
    learnable_vocabulary,
)
from vocab_core.schemas import CollectionState, VocabularyItem
from vocab_core.session_builders import (
    GradingOutcome,
    SessionMode,
    SessionQueueEntry,
    SessionQueueManager,
    SessionStatus,
)

logger = logging.getLogger(__name__)

SAVE_WARNING = "changes may not be saved"


class SessionController:
    """
    Orchestrates load, study sessions and saves for one learner.

    Args:
        store: Collection document store
        catalog_loader: Returns the ordered vocabulary catalog
        user_id: Learner (defaults to DEFAULT_USER_ID)
        event_logger: Persists buffered grading events (None disables the log)
        on_grading: Called with every non-duplicate GradingOutcome
        request_audio: Pronunciation hook, called with a headword
        clock: Returns the current time (UTC now by default)
    """

    def __init__(
        self,
        store: CollectionStore,
        catalog_loader: Callable[[], Sequence[VocabularyItem]],
        user_id: Optional[str] = None,
        tz_name: Optional[str] = None,
        rng: Optional[random.Random] = None,
        event_logger: Optional[Callable[[list[dict]], None]] = fsrs.batch_log_review_events,
        on_grading: Optional[Callable[[GradingOutcome], None]] = None,
        request_audio: Optional[Callable[[str], Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        again_repeat_after: Optional[int] = None,
        hard_repeat_after: Optional[int] = None,
    ):
        self.store = store
        self.catalog_loader = catalog_loader
        self.user_id = user_id or config.get_default_user_id()
        self.tz_name = tz_name or config.get_study_timezone()
        self.rng = rng or random.Random()
        self.event_logger = event_logger
        self.on_grading = on_grading
        self.request_audio = request_audio
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.manager = SessionQueueManager(
            rng=self.rng,
            again_repeat_after=again_repeat_after,
            hard_repeat_after=hard_repeat_after,
            tz_name=self.tz_name,
        )
        self.catalog: list[VocabularyItem] = []
        self.state: Optional[CollectionState] = None
        self.warnings: list[str] = []
        self._unsaved = False
        self._unflushed_events: list[dict] = []

    # ---- Loading ----

    def load(self) -> CollectionState:
        """
        Load the catalog and the learner's collection, reconciled for today.

        Raises:
            CatalogLoadError: The catalog is unavailable; call load() again to retry
            PersistenceError: The collection could not be read
        """
        self.catalog = list(self.catalog_loader())
        state = self.store.load(self.user_id)
        self.state = reconcile_day(state, self.today())
        self._unsaved = False
        logger.info(
            "Loaded collection for %s: %d reviews, %d skipped, %d catalog items",
            self.user_id, len(self.state.reviews), len(self.state.skipped_ids), len(self.catalog),
        )
        return self.state

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> str:
        return current_calendar_day(self.tz_name, self.now())

    def _latest_state(self) -> CollectionState:
        """Latest-known state, reconciled for the current day."""
        if self.state is None:
            raise SessionStateError("Collection not loaded; call load() first")
        self.state = reconcile_day(self.state, self.today())
        return self.state

    # ---- Overview ----

    def remaining_today(self) -> int:
        return remaining_today(self._latest_state(), self.today())

    def learnable_count(self) -> int:
        return len(learnable_vocabulary(self.catalog, self._latest_state()))

    @property
    def status(self) -> SessionStatus:
        return self.manager.status

    @property
    def current(self) -> Optional[SessionQueueEntry]:
        return self.manager.current

    @property
    def current_position(self) -> int:
        """Session position of the current item; pass it back with its grade."""
        return self.manager.session_position

    # ---- Session Lifecycle ----

    def start_session(self, mode: SessionMode | str) -> SessionStatus:
        """
        Start a learn, review or difficult-practice session.

        Returns:
            ACTIVE, or COMPLETE when there is nothing to study
        """
        state = self._latest_state()
        self._flush_events()
        mode = SessionMode(mode)

        if mode == SessionMode.LEARN:
            self.state = self.manager.start_learn(self.catalog, state, self.today())
        elif mode == SessionMode.REVIEW:
            self.state = self.manager.start_review(
                self.catalog, state, end_of_day(self.tz_name, self.now())
            )
        else:
            self.state = self.manager.start_difficult(self.catalog, state, self.today())
        return self.manager.status

    def continue_learning(self) -> SessionStatus:
        """Start another batch of new items after today's goal was reached."""
        state = self._latest_state()
        self._flush_events()
        self.state = self.manager.start_learn(
            self.catalog, state, self.today(), limit=state.settings.new_items_per_day
        )
        return self.manager.status

    def end_session(self) -> CollectionState:
        """
        Flush grading events and make sure the collection is saved.

        Raises:
            PersistenceError: The collection still cannot be saved
        """
        self._flush_events()
        if self._unsaved:
            self._save(raise_on_failure=True)
        logger.info("Session %s ended: %s", self.manager.session_id, self.manager.stats)
        self.manager.end()
        return self.state

    # ---- Trials ----

    def current_choices(self, n: int = 3) -> list[str]:
        """Multiple-choice options for the current item."""
        entry = self.manager.current
        if entry is None:
            return []
        return generate_choices(entry.item, self.catalog, n=n, rng=self.rng)

    def submit_answer(self, choice: str) -> bool:
        """Check a multiple-choice answer for the current item."""
        entry = self.manager.current
        if entry is None:
            raise SessionStateError("No active item to answer")
        correct = choice == entry.item.gloss
        self.manager.record_answer(correct)
        return correct

    def submit_grade(
        self,
        grade: fsrs.Grade,
        vocabulary_id: Optional[str] = None,
        position: Optional[int] = None
    ) -> GradingOutcome:
        """
        Grade the item that was shown and save the collection.

        The caller names what was shown with `vocabulary_id`, `position`
        (from `current_position`) or both. A second submission for the same
        shown item, or one for another item, is a duplicate: nothing changes
        and nothing is saved.

        Raises:
            ValueError: Neither `vocabulary_id` nor `position` was given
        """
        state = self._latest_state()
        if vocabulary_id is None and position is None:
            raise ValueError("submit_grade needs the vocabulary_id or position of the item shown")
        outcome = self.manager.submit_grade(
            state, grade, self.now(), vocabulary_id=vocabulary_id, position=position
        )
        if outcome.duplicate:
            return outcome

        self.state = outcome.state
        self._save()
        if self.on_grading is not None:
            self.on_grading(outcome)
        return outcome

    def remember(self) -> SessionStatus:
        return self.manager.remember()

    def forget(self) -> SessionStatus:
        return self.manager.forget()

    def skip(self, vocabulary_id: str) -> CollectionState:
        """Skip an item for good (learn sessions only)."""
        state = self._latest_state()
        new_state = self.manager.skip(state, vocabulary_id)
        if new_state is not state:
            self.state = new_state
            self._save()
        return self.state

    def play_audio(self) -> Any:
        """Ask the audio hook to pronounce the current headword."""
        entry = self.manager.current
        if self.request_audio is None or entry is None:
            return None
        return self.request_audio(entry.item.headword)

    # ---- Settings ----

    def change_settings(
        self,
        new_items_per_day: Optional[int] = None,
        requested_retention: Optional[float] = None
    ) -> CollectionState:
        """
        Validate, apply and save new settings.

        An active learn session is rebuilt with the new daily limit.

        Raises:
            InvalidSettingsError: Nothing is applied
        """
        state = apply_settings(self._latest_state(), new_items_per_day, requested_retention)
        self.state = state
        self._save()
        if self.manager.mode == SessionMode.LEARN and self.manager.status == SessionStatus.ACTIVE:
            self.manager.resize_learn(self.catalog, self.state, self.today())
        return self.state

    def balance_reviews(self, max_per_day: int = DEFAULT_MAX_REVIEWS_PER_DAY) -> CollectionState:
        """Spread upcoming reviews so no day exceeds `max_per_day`."""
        state = self._latest_state()
        records = balance_review_load(state.reviews.values(), max_per_day, self.tz_name)
        self.state = state.model_copy(update={
            "reviews": {record.vocabulary_id: record for record in records}
        })
        self._save()
        return self.state

    # ---- Persistence ----

    def _save(self, raise_on_failure: bool = False) -> None:
        try:
            self.state = self.store.save(self.state)
        except PersistenceError as exc:
            self._unsaved = True
            logger.error("Failed to save collection for %s: %s", self.user_id, exc)
            if SAVE_WARNING not in self.warnings:
                self.warnings.append(SAVE_WARNING)
            if raise_on_failure:
                raise
            return

        if self._unsaved:
            logger.info("Collection for %s saved after earlier failure", self.user_id)
        self._unsaved = False
        if SAVE_WARNING in self.warnings:
            self.warnings.remove(SAVE_WARNING)

    def _flush_events(self) -> None:
        """
        Flush buffered grading events to the event log.

        Failed flushes keep the events for the next attempt.
        """
        events = self._unflushed_events + self.manager.drain_events()
        self._unflushed_events = []
        if not events or self.event_logger is None:
            return
        try:
            self.event_logger(events)
        except PersistenceError as exc:
            logger.warning("Failed to log %d grading events: %s", len(events), exc)
            self._unflushed_events = events


def build_controller(user_id: Optional[str] = None, **kwargs) -> SessionController:
    """
    Controller wired to MongoDB and the SQL event log from the environment.
    """
    fsrs.init_db()
    return SessionController(
        store=MongoCollectionStore(),
        catalog_loader=load_vocabulary_catalog,
        user_id=user_id,
        **kwargs,
    )

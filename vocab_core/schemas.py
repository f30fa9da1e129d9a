"""
Pydantic models for the vocabulary collection.

These models define the structure of the MongoDB documents (one catalog
of vocabulary items, one collection document per learner). All models are
frozen: state transitions build new values with `model_copy`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from vocab_core import config
from vocab_core.fsrs.constants import Grade


# ---- Catalog ----

class VocabularyItem(BaseModel):
    """An immutable catalog entry."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable vocabulary identifier")
    headword: str = Field(..., description="Target-language word or phrase")
    gloss: str = Field(..., description="Native-language meaning")
    position: Optional[int] = Field(None, description="Catalog order, easy to hard")


# ---- Review Records ----

class ReviewHistoryEntry(BaseModel):
    """One grading of a vocabulary item."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    grade: Grade
    stability_before: float = 0.0
    stability_after: float
    difficulty_before: float = 0.0
    difficulty_after: float
    interval_before: int = 0
    interval_after: int = 0
    retrievability: Optional[float] = None

    @field_serializer("grade")
    def _serialize_grade(self, grade: Grade) -> int:
        return int(grade)


class ReviewRecord(BaseModel):
    """
    Memory state of a learned vocabulary item.

    Created on the first grading and updated on every later grading;
    `next_due_at` is always the output of the most recent scheduler update.
    """
    model_config = ConfigDict(frozen=True)

    vocabulary_id: str
    stability: float = Field(0.0, ge=0)
    difficulty: float = Field(0.0, ge=0, le=10)
    current_interval_days: int = Field(0, ge=0)
    last_reviewed_at: Optional[datetime] = None
    next_due_at: datetime
    lapses: int = Field(0, ge=0)
    history: tuple[ReviewHistoryEntry, ...] = ()


# ---- Collection ----

class CollectionSettings(BaseModel):
    """Per-learner settings. Use `review_store.apply_settings` to change them."""
    model_config = ConfigDict(frozen=True)

    new_items_per_day: int = Field(default_factory=config.get_new_items_per_day, ge=1)
    requested_retention: float = Field(
        default_factory=config.get_requested_retention, gt=0, lt=1
    )


class CollectionState(BaseModel):
    """
    Per-learner aggregate persisted as one document.

    `version` is an optimistic-concurrency token: it is bumped by the store on
    every successful save and checked against the stored document.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    settings: CollectionSettings = Field(default_factory=CollectionSettings)
    reviews: dict[str, ReviewRecord] = Field(default_factory=dict)
    skipped_ids: frozenset[str] = frozenset()
    last_study_date: Optional[str] = None  # YYYY-MM-DD in the study timezone
    today_learned_count: int = Field(0, ge=0)
    difficult_today: tuple[str, ...] = ()  # Insertion ordered, no duplicates
    version: int = Field(0, ge=0)

    @classmethod
    def new(cls, user_id: Optional[str] = None) -> "CollectionState":
        """Empty collection for a learner with default settings."""
        return cls(user_id=user_id or config.get_default_user_id())

    def to_document(self) -> dict:
        """MongoDB document for this state (keyed by user id)."""
        doc = self.model_dump(exclude={"skipped_ids", "difficult_today"})
        doc["_id"] = self.user_id
        doc["skipped_ids"] = sorted(self.skipped_ids)
        doc["difficult_today"] = list(self.difficult_today)
        for record in doc["reviews"].values():
            record["history"] = list(record["history"])
        return doc

    @classmethod
    def from_document(cls, doc: dict) -> "CollectionState":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data.setdefault("user_id", doc.get("_id"))
        return cls.model_validate(data)

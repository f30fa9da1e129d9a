"""
SQLAlchemy ORM Models for the Grading Event Log

Every grading is appended to `review_events` for analytics and auditing.
The collection document remains the source of truth for scheduling.
"""

from sqlalchemy import Column, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ReviewEvent(Base):
    """
    Log entry for a single grading of a vocabulary item.

    Captures the memory state before/after the grading and its session context.
    """
    __tablename__ = 'review_events'

    # Primary key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # User scope and item identifier
    user_id = Column(String(255), nullable=False)
    vocabulary_id = Column(String(255), nullable=False)
    headword = Column(String(255), nullable=False)

    # Timing and grade
    timestamp = Column(DateTime(timezone=True), nullable=False)
    grade = Column(Integer, nullable=False)  # 1=AGAIN, 2=HARD, 3=GOOD, 4=EASY

    # State before grading (None for first exposures)
    stability_before = Column(Float, nullable=True)
    difficulty_before = Column(Float, nullable=True)
    retrievability_before = Column(Float, nullable=True)

    # State after grading
    stability_after = Column(Float, nullable=False)
    difficulty_after = Column(Float, nullable=False)
    scheduled_days = Column(Integer, nullable=False)

    # Session context
    session_id = Column(String(255), nullable=True)
    session_position = Column(Integer, nullable=True)
    session_mode = Column(String(50), nullable=True)  # "learn" or "review"

    __table_args__ = (
        Index('idx_review_events_user_item', 'user_id', 'vocabulary_id'),
        Index('idx_review_events_session', 'session_id', 'session_position'),
    )

    def __repr__(self):
        return f"<ReviewEvent(id={self.id}, {self.vocabulary_id}, grade={self.grade})>"

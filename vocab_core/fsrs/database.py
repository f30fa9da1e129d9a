"""
Database - Grading Event Log I/O

Append-only log of grading events using the SQLAlchemy ORM.

This module handles ONLY database I/O.
Algorithm logic is handled by the scheduler module.
"""

from __future__ import annotations
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vocab_core.config import get_database_url
from vocab_core.errors import TransientPersistenceError
from vocab_core.fsrs.models import Base, ReviewEvent as ReviewEventModel

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Get the SQLAlchemy engine for the event log (one per URL per process).

    In-memory SQLite shares a single connection so the schema survives
    between sessions.
    """
    url = make_url(database_url or get_database_url())

    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url)

    return create_engine(
        url,
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=False
    )


def get_session(database_url: Optional[str] = None) -> Session:
    """
    Get a SQLAlchemy session for database operations.
    """
    SessionLocal = sessionmaker(bind=get_engine(database_url), expire_on_commit=False)
    return SessionLocal()


def init_db(database_url: Optional[str] = None) -> None:
    """
    Initialize the event log schema if the table doesn't exist.

    Safe to call multiple times.
    """
    engine = get_engine(database_url)
    if "review_events" not in inspect(engine).get_table_names():
        Base.metadata.create_all(engine)
        logger.info("Created review_events table")


def reset_db(database_url: Optional[str] = None) -> None:
    """
    DANGEROUS: Delete all logged events and recreate the table.
    """
    engine = get_engine(database_url)
    Base.metadata.drop_all(engine)
    logger.warning("Dropped review_events table")
    init_db(database_url)


def batch_log_review_events(events: list[dict], database_url: Optional[str] = None) -> None:
    """
    Log multiple grading events in a single transaction.

    Events already logged for the same session position are skipped, so a
    retried flush does not duplicate rows.

    Args:
        events: List of event dicts with keys:
            - user_id, vocabulary_id, headword, timestamp, grade
            - stability_before, difficulty_before, retrievability_before
            - stability_after, difficulty_after, scheduled_days
            - session_id, session_position, session_mode

    Raises:
        TransientPersistenceError: If the transaction fails
    """
    if not events:
        return

    skipped = 0
    session = get_session(database_url)
    try:
        for event in events:
            if event.get("session_id") is not None and _is_logged(
                session, event["session_id"], event.get("session_position"), event["vocabulary_id"]
            ):
                skipped += 1
                continue
            session.add(ReviewEventModel(
                user_id=event['user_id'],
                vocabulary_id=event['vocabulary_id'],
                headword=event['headword'],
                timestamp=event['timestamp'],
                grade=int(event['grade']),
                stability_before=event.get('stability_before'),
                difficulty_before=event.get('difficulty_before'),
                retrievability_before=event.get('retrievability_before'),
                stability_after=event['stability_after'],
                difficulty_after=event['difficulty_after'],
                scheduled_days=event['scheduled_days'],
                session_id=event.get('session_id'),
                session_position=event.get('session_position'),
                session_mode=event.get('session_mode'),
            ))
        session.commit()
        if skipped:
            logger.info("Skipped %d already logged review events", skipped)
    except SQLAlchemyError as exc:
        session.rollback()
        raise TransientPersistenceError(f"Failed to log {len(events)} review events: {exc}") from exc
    finally:
        session.close()


def get_recent_events(
    user_id: str,
    limit: int = 10,
    database_url: Optional[str] = None
) -> list[dict]:
    """
    Get recent grading events.

    Args:
        user_id: User identifier for scoping events
        limit: Maximum number of events to return

    Returns:
        List of recent events (newest first)
    """
    session = get_session(database_url)
    try:
        events = session.query(ReviewEventModel).filter(
            ReviewEventModel.user_id == user_id
        ).order_by(
            ReviewEventModel.timestamp.desc(),
            ReviewEventModel.id.desc()
        ).limit(limit).all()

        return [
            {
                "id": event.id,
                "user_id": event.user_id,
                "vocabulary_id": event.vocabulary_id,
                "headword": event.headword,
                "timestamp": event.timestamp,
                "grade": event.grade,
                "stability_before": event.stability_before,
                "difficulty_before": event.difficulty_before,
                "retrievability_before": event.retrievability_before,
                "stability_after": event.stability_after,
                "difficulty_after": event.difficulty_after,
                "scheduled_days": event.scheduled_days,
                "session_id": event.session_id,
                "session_position": event.session_position,
                "session_mode": event.session_mode,
            }
            for event in events
        ]
    finally:
        session.close()


def _is_logged(session: Session, session_id: str, session_position: int, vocabulary_id: str) -> bool:
    match = session.query(ReviewEventModel.id).filter(
        ReviewEventModel.session_id == session_id,
        ReviewEventModel.session_position == session_position,
        ReviewEventModel.vocabulary_id == vocabulary_id,
    ).first()
    return match is not None


def has_grading_event(
    session_id: str,
    session_position: int,
    vocabulary_id: str,
    database_url: Optional[str] = None
) -> bool:
    """
    Check whether a grading for this session position was already logged.
    """
    session = get_session(database_url)
    try:
        return _is_logged(session, session_id, session_position, vocabulary_id)
    finally:
        session.close()

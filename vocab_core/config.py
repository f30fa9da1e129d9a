"""
Environment configuration.

Values are read from environment variables (a local .env file is loaded on
import). Every helper has a default so the engine runs without any setup
except where a real backend is required (MONGO_URI, DATABASE_URL).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


# ---- Defaults ----

DEFAULT_TIMEZONE = "Asia/Ho_Chi_Minh"
DEFAULT_NEW_ITEMS_PER_DAY = 20
DEFAULT_REQUESTED_RETENTION = 0.9
DEFAULT_AGAIN_REPEAT_AFTER = 10  # Answered items before an AGAIN item returns
DEFAULT_HARD_REPEAT_AFTER = 20   # Answered items before a same-day HARD item returns
DB_NAME = "vocab_collection"


def is_test_mode() -> bool:
    """Check if running in test mode."""
    return os.getenv("TEST_MODE", "false").lower() == "true"


def get_default_user_id() -> str:
    """Get default user id for scoping collection data."""
    return os.getenv("DEFAULT_USER_ID", "learner")


def get_study_timezone() -> str:
    """IANA timezone used to decide where a study day starts and ends."""
    return os.getenv("STUDY_TIMEZONE", DEFAULT_TIMEZONE)


def get_mongo_uri() -> str:
    """
    Get the MongoDB connection string.

    Raises:
        ValueError: If MONGO_URI is not set
    """
    mongo_uri = os.getenv("MONGO_URI")
    if not mongo_uri:
        raise ValueError("MONGO_URI not found in environment variables")
    return mongo_uri


def get_db_name() -> str:
    """MongoDB database name (suffixed with _test in test mode)."""
    name = os.getenv("MONGO_DB_NAME", DB_NAME)
    return f"{name}_test" if is_test_mode() else name


def get_database_url() -> str:
    """
    Get the SQLAlchemy URL of the grading event log.

    Defaults to a local SQLite file; test mode uses an in-memory database.
    """
    if is_test_mode():
        return os.getenv("TEST_DATABASE_URL", "sqlite://")
    return os.getenv("DATABASE_URL", "sqlite:///logs/review_events.db")


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def get_new_items_per_day() -> int:
    """Default daily budget of new items for a fresh collection."""
    return _get_int("NEW_ITEMS_PER_DAY", DEFAULT_NEW_ITEMS_PER_DAY)


def get_requested_retention() -> float:
    """Default requested retention for a fresh collection."""
    return _get_float("REQUESTED_RETENTION", DEFAULT_REQUESTED_RETENTION)


def get_again_repeat_after() -> int:
    return _get_int("AGAIN_REPEAT_AFTER", DEFAULT_AGAIN_REPEAT_AFTER)


def get_hard_repeat_after() -> int:
    return _get_int("HARD_REPEAT_AFTER", DEFAULT_HARD_REPEAT_AFTER)

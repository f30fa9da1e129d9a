"""
Daily new-item budget.

The study day is a calendar day in a configurable timezone. Counters that
belong to a day (`today_learned_count`, `difficult_today`) are reset lazily:
callers reconcile the state once per load before any scheduling decision.
"""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from vocab_core.config import get_study_timezone
from vocab_core.schemas import CollectionState

logger = logging.getLogger(__name__)


def _local_now(tz_name: Optional[str], now: Optional[datetime]) -> datetime:
    tz = ZoneInfo(tz_name or get_study_timezone())
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz)


def current_calendar_day(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """
    Today's date in the study timezone as "YYYY-MM-DD".

    Args:
        tz_name: IANA timezone name (defaults to STUDY_TIMEZONE)
        now: Reference instant (defaults to the current time); naive values are UTC
    """
    return _local_now(tz_name, now).date().isoformat()


def end_of_day(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> datetime:
    """Last instant of the current study day, timezone-aware."""
    local = _local_now(tz_name, now)
    return datetime.combine(local.date(), time.max, tzinfo=local.tzinfo)


def reconcile_day(state: CollectionState, today: str) -> CollectionState:
    """
    Reset the per-day counters when the stored study date is not `today`.

    Idempotent: reconciling twice with the same day returns the state unchanged.
    """
    if state.last_study_date == today:
        return state

    logger.info(
        "New study day %s for %s (was %s); resetting daily counters",
        today, state.user_id, state.last_study_date,
    )
    return state.model_copy(update={
        "last_study_date": today,
        "today_learned_count": 0,
        "difficult_today": (),
    })


def remaining_today(state: CollectionState, today: Optional[str] = None) -> int:
    """
    Number of new items that may still be learned today.

    Returns:
        max(0, new_items_per_day - today_learned_count) after reconciling
    """
    if today is None:
        today = current_calendar_day()
    state = reconcile_day(state, today)
    return max(0, state.settings.new_items_per_day - state.today_learned_count)

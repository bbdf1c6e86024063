"""
Test window state machine and rank-reveal gate.

A test moves through three states as time passes:

    NOT_STARTED  --(now >= window_start)-->  ACTIVE  --(now > window_end)-->  ARCHIVED

Both boundaries are inclusive for ACTIVE: a request at exactly window_start
or exactly window_end sees the test as active, and a submission stamped at
exactly window_end is on-time.

The rank-reveal gate is independent of the window: ranks for a test become
visible at RANK_REVEAL_TIME (platform-local) on the test's scheduled date.
"""
import enum
from datetime import date, datetime, time, timedelta
from typing import Optional

from dailytest.core.config import settings
from dailytest.core.datetime_utils import (
    ensure_timezone_aware,
    platform_timezone,
    platform_today,
    to_utc,
)


class WindowState(str, enum.Enum):
    """Temporal state of a test relative to its window."""

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    ARCHIVED = "ended"


def classify_window(
    window_start: datetime, window_end: datetime, now: datetime
) -> WindowState:
    """
    Classify the current state of a test window.

    Args:
        window_start: Window opening instant
        window_end: Window closing instant
        now: Current instant

    Returns:
        NOT_STARTED, ACTIVE or ARCHIVED
    """
    start = ensure_timezone_aware(window_start)
    end = ensure_timezone_aware(window_end)
    current = ensure_timezone_aware(now)

    if current < start:
        return WindowState.NOT_STARTED
    if current > end:
        return WindowState.ARCHIVED
    return WindowState.ACTIVE


def window_state_of(test, now: datetime) -> WindowState:
    """Classify a Test model's window at ``now``."""
    return classify_window(test.window_start, test.window_end, now)


def is_late_submission(window_end: datetime, submitted_at: datetime) -> bool:
    """
    Decide whether a submission misses the window.

    Late means strictly after window_end; the flag is computed once at
    submit time and never recomputed.
    """
    return ensure_timezone_aware(submitted_at) > ensure_timezone_aware(window_end)


def rank_reveal_at(scheduled_date: date, reveal_time: Optional[time] = None) -> datetime:
    """
    Instant at which ranks for a test scheduled on ``scheduled_date`` open.

    Args:
        scheduled_date: Platform-local date the test is scheduled for
        reveal_time: Platform-local wall-clock cutoff (defaults to settings)

    Returns:
        The reveal instant in UTC
    """
    cutoff = reveal_time or settings.RANK_REVEAL_TIME
    local = datetime.combine(scheduled_date, cutoff, tzinfo=platform_timezone())
    return to_utc(local)


def is_rank_revealed(
    scheduled_date: date, now: datetime, reveal_time: Optional[time] = None
) -> bool:
    """Whether the rank-reveal gate for a test date is open at ``now``."""
    return ensure_timezone_aware(now) >= rank_reveal_at(scheduled_date, reveal_time)


def latest_revealed_date(now: datetime, reveal_time: Optional[time] = None) -> date:
    """
    Most recent scheduled date whose rank-reveal gate is open at ``now``.

    Tests scheduled after this date still have their ranks withheld.
    """
    today = platform_today(now)
    if is_rank_revealed(today, now, reveal_time):
        return today
    return today - timedelta(days=1)

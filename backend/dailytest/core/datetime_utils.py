"""
Datetime utility functions for handling timezone-aware datetimes.

All instants are stored and compared in UTC. The platform runs on a single
fixed regional offset (PLATFORM_UTC_OFFSET_MINUTES) which decides what
"today" means and where the daily rank-reveal cutoff falls.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dailytest.core.config import settings


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    This utility provides a consistent, mockable way to get the current UTC time
    throughout the codebase. Using this function instead of datetime.now(timezone.utc)
    directly enables easier testing through mocking.

    Returns:
        A timezone-aware datetime object representing the current time in UTC.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Args:
        dt: The datetime to ensure is timezone-aware

    Returns:
        A timezone-aware datetime object in UTC

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_utc(dt: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as UTC."""
    return ensure_timezone_aware(dt).astimezone(timezone.utc)


def platform_timezone() -> timezone:
    """Return the fixed-offset timezone the platform schedules tests in."""
    return timezone(timedelta(minutes=settings.PLATFORM_UTC_OFFSET_MINUTES))


def to_platform_time(dt: datetime) -> datetime:
    """
    Convert a datetime to the platform timezone.

    Naive datetimes are assumed to be UTC (as returned by SQLite).

    Args:
        dt: Datetime to convert

    Returns:
        The same instant expressed in the platform's fixed offset
    """
    return ensure_timezone_aware(dt).astimezone(platform_timezone())


def platform_today(now: Optional[datetime] = None) -> date:
    """
    Return the calendar date in the platform timezone.

    A test scheduled for a date becomes "today's test" at platform-local
    midnight, not UTC midnight.
    """
    return to_platform_time(now or utc_now()).date()


class Clock:
    """
    Source of the current time for request handlers.

    Routes receive a Clock through the ``get_clock`` dependency so that tests
    can substitute a frozen clock via ``app.dependency_overrides``.
    """

    def now(self) -> datetime:
        """Current instant in UTC."""
        return utc_now()

    def platform_now(self) -> datetime:
        """Current instant expressed in the platform timezone."""
        return to_platform_time(self.now())

    def today(self) -> date:
        """Current platform-local date."""
        return platform_today(self.now())


_system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency returning the wall clock."""
    return _system_clock

"""Datetime utilities for consistent timezone handling.

The database stores timestamps in `timestamp without timezone` columns (UTC).
This module provides helpers to ensure all datetime operations are consistent.
"""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

# Canonical wire format for bucket and reading times
ISO_UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure datetime is timezone-aware with UTC.

    Handles:
    - Naive datetimes: assumes UTC, adds tzinfo
    - Aware datetimes: converts to UTC if needed
    - None: returns None

    Use this when receiving datetimes from the database.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Database stores UTC in timestamp without timezone
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current time as timezone-aware UTC datetime."""
    return datetime.now(UTC)


def get_zone(name: str | None) -> ZoneInfo:
    """Return the ZoneInfo for a configured timezone name (default UTC)."""
    return ZoneInfo(name or "UTC")


def local_midnight(dt: datetime, tz: ZoneInfo) -> datetime:
    """Midnight of ``dt``'s calendar day in ``tz``, returned in UTC."""
    local = ensure_utc(dt).astimezone(tz)
    midnight = datetime(local.year, local.month, local.day, tzinfo=tz)
    return midnight.astimezone(UTC)


def local_end_of_day(dt: datetime, tz: ZoneInfo) -> datetime:
    """Last millisecond (23:59:59.999) of ``dt``'s calendar day in ``tz``, in UTC."""
    local = ensure_utc(dt).astimezone(tz)
    end = datetime(local.year, local.month, local.day, 23, 59, 59, 999000, tzinfo=tz)
    return end.astimezone(UTC)


def to_naive_utc(dt: datetime | None) -> datetime | None:
    """Convert datetime to naive UTC for database queries.

    Database columns use `timestamp without timezone` and store UTC.
    This function ensures datetimes are stripped of timezone info
    before being passed to queries, avoiding any asyncpg edge cases.

    Args:
        dt: Datetime to convert (can be naive or aware)

    Returns:
        Naive datetime in UTC, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        # Convert to UTC and strip timezone
        utc_dt = dt.astimezone(UTC)
        return utc_dt.replace(tzinfo=None)
    # Already naive, assume it's UTC
    return dt


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime string, accepting a trailing ``Z``.

    Raises:
        ValueError: If the string is not ISO-8601
    """
    return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))


def format_utc(dt: datetime) -> str:
    """Format a datetime (naive = UTC) as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return ensure_utc(dt).strftime(ISO_UTC_FORMAT)


def safe_datetime_diff(dt1: datetime, dt2: datetime) -> timedelta:
    """Safely subtract two datetimes, handling mixed timezone awareness.

    Args:
        dt1: First datetime (will be subtracted from dt2)
        dt2: Second datetime

    Returns:
        timedelta representing dt2 - dt1
    """
    # Ensure both are aware with UTC
    dt1_utc = ensure_utc(dt1)
    dt2_utc = ensure_utc(dt2)
    return dt2_utc - dt1_utc

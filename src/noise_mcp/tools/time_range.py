"""Time range resolution - symbolic range selectors to concrete UTC bounds.

Calendar boundaries ("today", "this_week", ...) are computed in an explicit
timezone passed by the caller, defaulting to UTC. The server passes
``settings.range_timezone``; it never falls back to the host's local time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from noise_mcp.errors import InvalidRangeError
from noise_mcp.tools.datetime_utils import (
    ensure_utc,
    local_end_of_day,
    local_midnight,
    parse_iso,
    safe_datetime_diff,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_SELECTOR = "last_hour"

# Selectors whose window is a whole calendar day
DAY_SELECTORS = {"today", "yesterday", "single_date", "date"}

RANGE_SELECTORS = {
    "last_hour",
    "today",
    "yesterday",
    "this_week",
    "this_month",
    "single_date",
    "date",
    "date_range",
}


@dataclass(frozen=True)
class ResolvedRange:
    """Concrete [start, end] bounds in UTC for one request."""

    start: datetime
    end: datetime
    selector: str = DEFAULT_SELECTOR

    @property
    def span(self) -> timedelta:
        return safe_datetime_diff(self.start, self.end)


def _parse_explicit(value: str, name: str, tz: ZoneInfo) -> datetime:
    """Parse an explicit bound; naive values are read in ``tz``."""
    try:
        dt = parse_iso(value)
    except ValueError:
        raise InvalidRangeError(
            f"Invalid {name}: {value!r}. Use ISO-8601 (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SSZ)"
        ) from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt.astimezone(UTC)


def resolve_range(
    selector: str | None,
    start_date: str | None = None,
    end_date: str | None = None,
    date: str | None = None,
    *,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
) -> ResolvedRange:
    """
    Resolve a range selector into concrete UTC bounds.

    Args:
        selector: last_hour, today, yesterday, this_week, this_month,
            single_date (alias: date) or date_range. Anything else
            resolves like last_hour.
        start_date: Explicit start, required for date_range
        end_date: Explicit end, required for date_range
        date: The day to cover, required for single_date
        now: Request time; captured once so every bound shares it
        tz: Timezone for calendar boundaries (default UTC)

    Returns:
        ResolvedRange with start <= end

    Raises:
        InvalidRangeError: Missing or malformed explicit bounds, or a
            date_range whose start is after its end
    """
    now = ensure_utc(now) if now is not None else utc_now()
    tz = tz or ZoneInfo("UTC")
    selector = (selector or DEFAULT_SELECTOR).strip().lower()

    if selector == "last_hour":
        start, end = now - timedelta(hours=1), now

    elif selector == "today":
        start, end = local_midnight(now, tz), now

    elif selector == "yesterday":
        local_day = now.astimezone(tz).date() - timedelta(days=1)
        day = datetime(local_day.year, local_day.month, local_day.day, 12, tzinfo=tz)
        start, end = local_midnight(day, tz), local_end_of_day(day, tz)

    elif selector == "this_week":
        local_now = now.astimezone(tz)
        # weekday(): Monday=0 ... Sunday=6
        days_since_sunday = (local_now.weekday() + 1) % 7
        sunday = local_now.date() - timedelta(days=days_since_sunday)
        sunday_noon = datetime(sunday.year, sunday.month, sunday.day, 12, tzinfo=tz)
        start, end = local_midnight(sunday_noon, tz), now

    elif selector == "this_month":
        local_now = now.astimezone(tz)
        first = datetime(local_now.year, local_now.month, 1, tzinfo=tz)
        start, end = first.astimezone(UTC), now

    elif selector in ("single_date", "date"):
        if not date:
            raise InvalidRangeError("date is required for single_date")
        day = _parse_explicit(date, "date", tz)
        start, end = local_midnight(day, tz), local_end_of_day(day, tz)

    elif selector == "date_range":
        if not start_date or not end_date:
            raise InvalidRangeError("startDate and endDate are required for date_range")
        start = _parse_explicit(start_date, "startDate", tz)
        end = _parse_explicit(end_date, "endDate", tz)
        if start > end:
            raise InvalidRangeError(
                f"startDate ({start_date}) must not be after endDate ({end_date})"
            )

    else:
        logger.debug(f"Unknown range selector {selector!r}, using {DEFAULT_SELECTOR}")
        selector = DEFAULT_SELECTOR
        start, end = now - timedelta(hours=1), now

    return ResolvedRange(start=start, end=end, selector=selector)

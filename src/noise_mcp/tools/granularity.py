"""Breakdown units and their bucket truncation rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from noise_mcp.tools.datetime_utils import ISO_UTC_FORMAT, ensure_utc

DEFAULT_BREAKDOWN = "minute"

# Fields zeroed below each unit
_TRUNCATE_FIELDS = {
    "second": {"microsecond": 0},
    "minute": {"second": 0, "microsecond": 0},
    "hour": {"minute": 0, "second": 0, "microsecond": 0},
    "day": {"hour": 0, "minute": 0, "second": 0, "microsecond": 0},
}

BREAKDOWN_UNITS = tuple(_TRUNCATE_FIELDS)


@dataclass(frozen=True)
class TruncationRule:
    """How timestamps collapse into bucket starts for one breakdown unit.

    Attributes:
        unit: Breakdown unit, also the PostgreSQL ``date_trunc`` field name
    """

    unit: str

    def truncate(self, dt: datetime) -> datetime:
        """Bucket start for ``dt``, computed in UTC (naive input is UTC)."""
        return ensure_utc(dt).replace(**_TRUNCATE_FIELDS[self.unit])

    def bucket_label(self, dt: datetime) -> str:
        """Canonical bucket start string, e.g. ``2025-01-05T14:00:00Z``."""
        return self.truncate(dt).strftime(ISO_UTC_FORMAT)


def truncation_for(breakdown: str | None) -> TruncationRule:
    """Return the truncation rule for a breakdown unit (default: minute)."""
    unit = (breakdown or DEFAULT_BREAKDOWN).strip().lower()
    if unit not in _TRUNCATE_FIELDS:
        unit = DEFAULT_BREAKDOWN
    return TruncationRule(unit=unit)

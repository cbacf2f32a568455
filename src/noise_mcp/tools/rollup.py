"""Rollup table selection - raw readings vs minute or hour rollups.

Rollup tables trade granularity for a bounded scan size. Raw scans are only
used for short windows at fine granularity:

    day breakdown, or span > 7 days                  -> noise_rollup_hour
    hour breakdown, whole-day window at minute
    breakdown, or span > 1 day                       -> noise_rollup_minute
    otherwise                                        -> noise_readings

Both thresholds compare with strict ``>``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from noise_mcp.config import Settings
from noise_mcp.tools.time_range import DAY_SELECTORS, ResolvedRange


class Source(Enum):
    """Tables an aggregation can read from."""

    RAW = "raw"
    ROLLUP_MINUTE = "rollup_minute"
    ROLLUP_HOUR = "rollup_hour"

    @property
    def table(self) -> str:
        return _TABLES[self]

    @property
    def time_column(self) -> str:
        # Rollups key on their own bucket column, not the raw event time
        return "bucket_ts" if self.is_rollup else "created_at"

    @property
    def is_rollup(self) -> bool:
        return self is not Source.RAW


_TABLES = {
    Source.RAW: "noise_readings",
    Source.ROLLUP_MINUTE: "noise_rollup_minute",
    Source.ROLLUP_HOUR: "noise_rollup_hour",
}


@dataclass(frozen=True)
class RollupPolicy:
    """Span thresholds above which a rollup table is used."""

    minute_span: timedelta = timedelta(days=1)
    hour_span: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, config: Settings) -> "RollupPolicy":
        return cls(
            minute_span=timedelta(hours=config.rollup_minute_span_hours),
            hour_span=timedelta(hours=config.rollup_hour_span_hours),
        )


DEFAULT_POLICY = RollupPolicy()


def choose_source(
    span: timedelta,
    breakdown: str,
    selector: str,
    policy: RollupPolicy = DEFAULT_POLICY,
) -> Source:
    """Pick the source table from the span, breakdown unit and range selector."""
    if breakdown == "day" or span > policy.hour_span:
        return Source.ROLLUP_HOUR
    if (
        breakdown == "hour"
        or (selector in DAY_SELECTORS and breakdown == "minute")
        or span > policy.minute_span
    ):
        return Source.ROLLUP_MINUTE
    return Source.RAW


def select_source(
    resolved: ResolvedRange,
    breakdown: str,
    policy: RollupPolicy | None = None,
) -> Source:
    """Pick the source table for a resolved range and breakdown unit."""
    return choose_source(
        resolved.span, breakdown, resolved.selector, policy or DEFAULT_POLICY
    )

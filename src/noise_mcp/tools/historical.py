"""Historical readings - bucketed avg/max/min series over raw or rollup tables.

One request issues exactly one grouped query. The query text comes from a
fixed template per source table; only values travel as parameters.

Known approximations kept for dashboard compatibility:
- Rollup averages are the mean of per-bucket means (``AVG(sum_dba / count)``),
  not the mean of the underlying readings, unless bucket counts are equal.
- ``p95`` is the bucket maximum, not a real 95th percentile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from noise_mcp.config import Settings, settings as default_settings
from noise_mcp.db import NoiseStore
from noise_mcp.errors import ValidationError
from noise_mcp.tools.datetime_utils import format_utc, get_zone, to_naive_utc
from noise_mcp.tools.granularity import TruncationRule, truncation_for
from noise_mcp.tools.normalize import normalize
from noise_mcp.tools.rollup import RollupPolicy, Source, select_source
from noise_mcp.tools.time_range import ResolvedRange, resolve_range

logger = logging.getLogger(__name__)

# Params: $1=date_trunc unit, $2=start, $3=end (inclusive), $4=device_id or NULL
QUERY_TEMPLATES: dict[Source, str] = {
    Source.RAW: """
        SELECT
            date_trunc($1, created_at) AS bucket,
            AVG(avg_dba) AS avg,
            MAX(max_dba) AS max,
            MIN(min_dba) AS min
        FROM noise_readings
        WHERE created_at BETWEEN $2 AND $3
          AND ($4::int IS NULL OR device_id = $4)
        GROUP BY bucket
        ORDER BY bucket ASC
    """,
    Source.ROLLUP_MINUTE: """
        SELECT
            date_trunc($1, bucket_ts) AS bucket,
            AVG(sum_dba / "count") AS avg,
            MAX(max_dba) AS max,
            MIN(min_dba) AS min
        FROM noise_rollup_minute
        WHERE bucket_ts BETWEEN $2 AND $3
          AND ($4::int IS NULL OR device_id = $4)
        GROUP BY bucket
        ORDER BY bucket ASC
    """,
    Source.ROLLUP_HOUR: """
        SELECT
            date_trunc($1, bucket_ts) AS bucket,
            AVG(sum_dba / "count") AS avg,
            MAX(max_dba) AS max,
            MIN(min_dba) AS min
        FROM noise_rollup_hour
        WHERE bucket_ts BETWEEN $2 AND $3
          AND ($4::int IS NULL OR device_id = $4)
        GROUP BY bucket
        ORDER BY bucket ASC
    """,
}


@dataclass
class AggregationRequest:
    """Parameters of one historical aggregation request."""

    range: str | None = None
    breakdown: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    date: str | None = None
    device_id: int | str | None = None


def coerce_device_id(value: int | str | None) -> int | None:
    """Turn a device filter into an int, or None when absent."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid deviceId: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"Invalid deviceId: {value!r}. Must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid deviceId: {value!r}. Must be an integer") from None


async def plan(
    store: NoiseStore,
    source: Source,
    resolved: ResolvedRange,
    rule: TruncationRule,
    device_id: int | None = None,
) -> list[dict]:
    """
    Run the grouped aggregation for one source table.

    Args:
        store: Readings database handle
        source: Table chosen by select_source
        resolved: Inclusive time bounds
        rule: Bucket truncation rule
        device_id: Restrict to one device, or None for all devices

    Returns:
        Normalized points ordered by bucket time; empty when no rows match

    Raises:
        QueryFailure: The read failed
    """
    query = QUERY_TEMPLATES[source]
    rows = await store.fetch_all(
        query,
        rule.unit,
        to_naive_utc(resolved.start),
        to_naive_utc(resolved.end),
        device_id,
    )
    logger.debug(f"{source.table}: {len(rows)} bucket(s) at {rule.unit} granularity")

    return normalize([
        {
            "time": rule.bucket_label(row["bucket"]),
            "avg": row["avg"],
            "max": row["max"],
            "min": row["min"],
        }
        for row in rows
    ])


async def aggregate(
    store: NoiseStore,
    request: AggregationRequest,
    *,
    now: datetime | None = None,
    config: Settings | None = None,
) -> list[dict]:
    """
    Resolve, plan and run one historical aggregation request.

    Raises:
        ValidationError: Bad parameters, raised before any query
        QueryFailure: The read failed
    """
    points, _, _ = await _aggregate(store, request, now=now, config=config)
    return points


async def _aggregate(
    store: NoiseStore,
    request: AggregationRequest,
    *,
    now: datetime | None = None,
    config: Settings | None = None,
) -> tuple[list[dict], ResolvedRange, Source]:
    config = config or default_settings
    device_id = coerce_device_id(request.device_id)
    resolved = resolve_range(
        request.range,
        request.start_date,
        request.end_date,
        request.date,
        now=now,
        tz=get_zone(config.range_timezone),
    )
    rule = truncation_for(request.breakdown)
    source = select_source(resolved, rule.unit, RollupPolicy.from_settings(config))

    logger.info(
        f"Historical query: range={resolved.selector} breakdown={rule.unit} "
        f"source={source.value} device={device_id}"
    )
    points = await plan(store, source, resolved, rule, device_id)
    return points, resolved, source


async def get_historical_readings(
    store: NoiseStore,
    range: str | None = None,
    breakdown: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    date: str | None = None,
    device_id: int | str | None = None,
) -> dict:
    """
    Get bucketed noise statistics for a time range.

    Args:
        store: Readings database handle
        range: last_hour, today, yesterday, this_week, this_month,
            single_date or date_range (default: last_hour)
        breakdown: second, minute, hour or day (default: minute)
        start_date: Explicit start for date_range
        end_date: Explicit end for date_range
        date: Day for single_date (YYYY-MM-DD)
        device_id: Optional device filter

    Returns:
        Dict with the resolved window, the table used and the points
    """
    request = AggregationRequest(
        range=range,
        breakdown=breakdown,
        start_date=start_date,
        end_date=end_date,
        date=date,
        device_id=device_id,
    )
    points, resolved, source = await _aggregate(store, request)
    return {
        "range": resolved.selector,
        "breakdown": truncation_for(breakdown).unit,
        "source": source.value,
        "start": format_utc(resolved.start),
        "end": format_utc(resolved.end),
        "device_id": coerce_device_id(device_id),
        "count": len(points),
        "points": points,
    }


def format_historical_response(result: dict) -> str:
    """Format get_historical_readings result for human-readable output."""
    device = result.get("device_id")
    scope = f"device {device}" if device is not None else "all devices"
    header = (
        f"**Noise history** ({result['range']}, per {result['breakdown']}, {scope})\n"
        f"Window: {result['start']} to {result['end']}\n"
        f"Source: {result['source']}"
    )

    if result["count"] == 0:
        return f"{header}\n\nNo readings in this window."

    lines = [header, "", f"{result['count']} bucket(s):", ""]
    lines.append("| Time | Avg dBA | Max dBA | Min dBA | P95 dBA |")
    lines.append("|------|---------|---------|---------|---------|")
    for p in result["points"]:
        lines.append(
            f"| {p['time']} | {_fmt(p['avg'])} | {_fmt(p['max'])} "
            f"| {_fmt(p['min'])} | {_fmt(p['p95'])} |"
        )
    return "\n".join(lines)


def _fmt(value: float | None) -> str:
    return "-" if value is None else f"{value:.2f}"

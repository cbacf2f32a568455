"""Raw readings tools - recent readings and polling for new ones."""

import json
import logging
from typing import Any

from noise_mcp.db import NoiseStore
from noise_mcp.errors import ValidationError
from noise_mcp.tools.datetime_utils import format_utc, parse_iso, to_naive_utc

logger = logging.getLogger(__name__)

# Upper bounds (exclusive) of each noise level, in dBA
NOISE_THRESHOLDS = [
    ("normal", 35.0),
    ("elevated", 50.0),
    ("high", 70.0),
]

READING_COLUMNS = """
    id, device_id, created_at, max_dba, min_dba, avg_dba, stddev_dba, peaks
"""


def noise_level(dba: float | None) -> str | None:
    """Classify a dBA value as normal, elevated, high or critical."""
    if dba is None:
        return None
    for level, upper in NOISE_THRESHOLDS:
        if dba < upper:
            return level
    return "critical"


def parse_peaks(raw: Any) -> list[float]:
    """Parse the peaks column into floats.

    Accepts a JSON string or an already-decoded list. Anything malformed
    yields an empty list instead of failing the whole response.
    """
    peaks = raw
    if isinstance(raw, (str, bytes)):
        try:
            peaks = json.loads(raw)
        except ValueError:
            logger.debug(f"Malformed peaks value: {raw!r}")
            return []
    if not isinstance(peaks, list):
        return []
    try:
        return [float(p) for p in peaks]
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric peaks value: {peaks!r}")
        return []


def _to_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def normalize_reading(row: dict) -> dict:
    """Convert a raw readings row to JSON-ready values."""
    reading = dict(row)
    for key in ("max_dba", "min_dba", "avg_dba", "stddev_dba"):
        reading[key] = _to_float(row.get(key))
    reading["peaks"] = parse_peaks(row.get("peaks"))
    if row.get("created_at") is not None:
        reading["created_at"] = format_utc(row["created_at"])
    reading["noise_level"] = noise_level(reading["avg_dba"])
    return reading


async def get_recent_readings(store: NoiseStore, limit: int = 1000) -> list[dict]:
    """
    Get the most recent raw readings across all devices.

    Args:
        store: Readings database handle
        limit: Number of readings to return (default: 1000)

    Returns:
        Readings in chronological order (oldest first)
    """
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid limit: {limit!r}") from None
    if limit <= 0:
        raise ValidationError(f"Invalid limit: {limit}. Must be positive")

    query = f"""
        SELECT {READING_COLUMNS}
        FROM noise_readings
        ORDER BY created_at DESC
        LIMIT $1
    """
    rows = await store.fetch_all(query, limit)
    readings = [normalize_reading(row) for row in rows]
    readings.reverse()
    return readings


async def get_latest_readings(store: NoiseStore, since: str | None) -> list[dict]:
    """
    Get raw readings newer than a timestamp, for polling.

    Args:
        store: Readings database handle
        since: ISO-8601 timestamp; only readings strictly after it are returned

    Returns:
        Readings in chronological order
    """
    if not since:
        raise ValidationError("Missing since parameter")
    try:
        since_dt = parse_iso(since)
    except ValueError:
        raise ValidationError(f"Invalid since: {since!r}. Use ISO-8601") from None

    query = f"""
        SELECT {READING_COLUMNS}
        FROM noise_readings
        WHERE created_at > $1
        ORDER BY created_at ASC
    """
    rows = await store.fetch_all(query, to_naive_utc(since_dt))
    return [normalize_reading(row) for row in rows]


def format_readings_response(readings: list[dict], title: str = "Readings") -> str:
    """Format a readings list for human-readable output."""
    if not readings:
        return f"{title}: no readings found."

    lines = [f"**{title}** ({len(readings)} reading(s))", ""]
    lines.append("| Time | Device | Avg dBA | Max dBA | Min dBA | Level |")
    lines.append("|------|--------|---------|---------|---------|-------|")
    for r in readings:
        lines.append(
            f"| {r.get('created_at')} | {r.get('device_id')} | {r['avg_dba']} "
            f"| {r['max_dba']} | {r['min_dba']} | {r['noise_level'] or '-'} |"
        )
    return "\n".join(lines)

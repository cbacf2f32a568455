"""Result normalization for aggregated series.

Drivers hand back numerics as Decimal, float or string and times as naive
datetimes or strings. Everything leaving the query layer is a float rounded
to two decimals (half-up) and a ``YYYY-MM-DDTHH:MM:SSZ`` string.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from noise_mcp.tools.datetime_utils import format_utc, parse_iso

TWO_PLACES = Decimal("0.01")


def round_half_up(value: Any) -> float | None:
    """Convert to float rounded to 2 decimals, half away from zero.

    NaN and infinities become None.

    Going through ``str`` keeps 2.675 as 2.68 instead of the binary-float
    2.67 that ``round()`` gives.
    """
    if value is None:
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}") from None
    if not number.is_finite():
        return None
    return float(number.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def canonical_time(value: datetime | str) -> str:
    """Render a bucket time as canonical UTC with trailing Z."""
    if isinstance(value, str):
        value = parse_iso(value)
    return format_utc(value)


def normalize_point(row: dict) -> dict:
    """Normalize one aggregated row to an output point."""
    point = {
        "time": canonical_time(row["time"]),
        "avg": round_half_up(row.get("avg")),
        "max": round_half_up(row.get("max")),
        "min": round_half_up(row.get("min")),
    }
    # p95 is reported as max until real percentiles are computed
    p95 = row.get("p95")
    point["p95"] = round_half_up(p95) if p95 is not None else point["max"]
    return point


def normalize(rows: list[dict]) -> list[dict]:
    """Normalize aggregated rows. Idempotent."""
    return [normalize_point(row) for row in rows]

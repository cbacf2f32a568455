"""Tests for the historical aggregation pipeline against a fake store."""

from datetime import datetime
from decimal import Decimal

import pytest

from noise_mcp.errors import QueryFailure, ValidationError
from noise_mcp.tools.granularity import truncation_for
from noise_mcp.tools.historical import (
    QUERY_TEMPLATES,
    AggregationRequest,
    aggregate,
    coerce_device_id,
    format_historical_response,
    get_historical_readings,
    plan,
)
from noise_mcp.tools.rollup import Source
from noise_mcp.tools.time_range import resolve_range

from tests.fakes import FakeStore


class TestQueryTemplates:
    """One fixed template per source table."""

    def test_closed_mapping(self):
        assert set(QUERY_TEMPLATES) == set(Source)

    @pytest.mark.parametrize("source", list(Source))
    def test_template_reads_its_table_and_column(self, source):
        query = QUERY_TEMPLATES[source]
        assert f"FROM {source.table}" in query
        assert f"date_trunc($1, {source.time_column})" in query
        assert f"{source.time_column} BETWEEN $2 AND $3" in query

    def test_raw_averages_readings(self):
        assert "AVG(avg_dba)" in QUERY_TEMPLATES[Source.RAW]

    @pytest.mark.parametrize("source", [Source.ROLLUP_MINUTE, Source.ROLLUP_HOUR])
    def test_rollup_averages_bucket_means(self, source):
        assert 'AVG(sum_dba / "count")' in QUERY_TEMPLATES[source]


class TestAggregateScenarios:
    """End-to-end request scenarios."""

    @pytest.mark.asyncio
    async def test_last_hour_second_reads_raw(self, fake_store, now):
        result = await aggregate(
            fake_store, AggregationRequest(range="last_hour", breakdown="second"), now=now
        )

        assert result == []
        assert fake_store.last_query == QUERY_TEMPLATES[Source.RAW]
        unit, start, end, device = fake_store.last_args
        assert unit == "second"
        assert start == datetime(2025, 1, 8, 14, 30)
        assert end == datetime(2025, 1, 8, 15, 30)
        assert start.tzinfo is None and end.tzinfo is None
        assert device is None

    @pytest.mark.asyncio
    async def test_today_hour_reads_minute_rollup(self, now):
        store = FakeStore(rows=[
            {"bucket": datetime(2025, 1, 8, 9, 0), "avg": Decimal("45.1234"),
             "max": Decimal("71.5"), "min": Decimal("30.25")},
        ])
        result = await aggregate(
            store, AggregationRequest(range="today", breakdown="hour"), now=now
        )

        assert store.last_query == QUERY_TEMPLATES[Source.ROLLUP_MINUTE]
        assert store.last_args[0] == "hour"
        assert store.last_args[1] == datetime(2025, 1, 8, 0, 0)
        assert result == [{
            "time": "2025-01-08T09:00:00Z",
            "avg": 45.12,
            "max": 71.5,
            "min": 30.25,
            "p95": 71.5,
        }]

    @pytest.mark.asyncio
    async def test_this_month_day_reads_hour_rollup(self, fake_store, now):
        await aggregate(
            fake_store, AggregationRequest(range="this_month", breakdown="day"), now=now
        )
        assert fake_store.last_query == QUERY_TEMPLATES[Source.ROLLUP_HOUR]

    @pytest.mark.asyncio
    async def test_device_filter_passed(self, fake_store, now):
        await aggregate(
            fake_store,
            AggregationRequest(range="last_hour", breakdown="minute", device_id="7"),
            now=now,
        )
        assert fake_store.last_args[3] == 7

    @pytest.mark.asyncio
    async def test_synthetic_bucket(self, now):
        """Readings avg [10, 20, 30], max [15, 25, 35] in one bucket."""
        store = FakeStore(rows=[
            {"bucket": datetime(2025, 1, 8, 15, 0),
             "avg": Decimal("20.0000000000000000"),
             "max": Decimal("35"), "min": Decimal("5")},
        ])
        result = await aggregate(
            store, AggregationRequest(range="last_hour", breakdown="hour"), now=now
        )
        assert len(result) == 1
        assert result[0]["avg"] == 20.00
        assert result[0]["max"] == 35.00
        assert result[0]["p95"] == 35.00

    @pytest.mark.asyncio
    async def test_buckets_keep_store_order(self, now):
        store = FakeStore(rows=[
            {"bucket": datetime(2025, 1, 8, 15, 0, s), "avg": 1, "max": 2, "min": 0}
            for s in range(3)
        ])
        result = await aggregate(
            store, AggregationRequest(range="last_hour", breakdown="second"), now=now
        )
        assert [p["time"] for p in result] == [
            "2025-01-08T15:00:00Z",
            "2025-01-08T15:00:01Z",
            "2025-01-08T15:00:02Z",
        ]


class TestAggregateErrors:
    """Validation happens before I/O; store failures propagate."""

    @pytest.mark.asyncio
    async def test_date_range_without_bounds(self, fake_store, now):
        with pytest.raises(ValidationError, match="startDate and endDate"):
            await aggregate(fake_store, AggregationRequest(range="date_range"), now=now)
        assert fake_store.calls == []

    @pytest.mark.asyncio
    async def test_single_date_without_date(self, fake_store, now):
        with pytest.raises(ValidationError):
            await aggregate(fake_store, AggregationRequest(range="single_date"), now=now)
        assert fake_store.calls == []

    @pytest.mark.asyncio
    async def test_bad_device_id(self, fake_store, now):
        with pytest.raises(ValidationError, match="Invalid deviceId"):
            await aggregate(
                fake_store, AggregationRequest(device_id="seven"), now=now
            )
        assert fake_store.calls == []

    @pytest.mark.asyncio
    async def test_query_failure_propagates(self, now):
        store = FakeStore(error=OSError("connection refused"))
        with pytest.raises(QueryFailure):
            await aggregate(store, AggregationRequest(range="last_hour"), now=now)


class TestPlan:
    """plan() on an already resolved request."""

    @pytest.mark.asyncio
    async def test_passes_naive_bounds(self, fake_store, now):
        resolved = resolve_range("date_range", "2025-01-01", "2025-01-05", now=now)
        await plan(fake_store, Source.ROLLUP_MINUTE, resolved, truncation_for("hour"), 3)
        assert fake_store.last_args == (
            "hour",
            datetime(2025, 1, 1),
            datetime(2025, 1, 5),
            3,
        )


class TestCoerceDeviceId:
    """Device filter parsing."""

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_absent(self, value):
        assert coerce_device_id(value) is None

    def test_int_and_str(self):
        assert coerce_device_id(7) == 7
        assert coerce_device_id("7") == 7

    @pytest.mark.parametrize("value", ["7a", 1.5j, True])
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            coerce_device_id(value)

    def test_fractional_float_rejected(self):
        """7.9 must not silently filter on device 7."""
        with pytest.raises(ValidationError, match="Must be an integer"):
            coerce_device_id(7.9)

    def test_whole_float_accepted(self):
        assert coerce_device_id(7.0) == 7


class TestHistoricalTool:
    """get_historical_readings and its text formatting."""

    @pytest.mark.asyncio
    async def test_result_shape(self, fake_store):
        result = await get_historical_readings(
            fake_store, range="last_hour", breakdown="second", device_id=7
        )
        assert result["source"] == "raw"
        assert result["breakdown"] == "second"
        assert result["device_id"] == 7
        assert result["count"] == 0
        assert result["points"] == []
        assert result["start"].endswith("Z")

    def test_format_empty(self):
        result = {
            "range": "last_hour", "breakdown": "minute", "source": "raw",
            "start": "2025-01-08T14:30:00Z", "end": "2025-01-08T15:30:00Z",
            "device_id": None, "count": 0, "points": [],
        }
        text = format_historical_response(result)
        assert "all devices" in text
        assert "No readings in this window." in text

    def test_format_points(self):
        result = {
            "range": "today", "breakdown": "hour", "source": "rollup_minute",
            "start": "2025-01-08T00:00:00Z", "end": "2025-01-08T15:30:00Z",
            "device_id": 7, "count": 1,
            "points": [{"time": "2025-01-08T09:00:00Z", "avg": 45.1,
                        "max": 71.5, "min": None, "p95": 71.5}],
        }
        text = format_historical_response(result)
        assert "device 7" in text
        assert "| 2025-01-08T09:00:00Z | 45.10 | 71.50 | - | 71.50 |" in text

"""
Tests for the Grid Assembler

Tests cover:
- Date-complete rows with sentinel fill
- Room type / rate plan filters
- Unified planning payload and per-entity fallback
- Store failures abort the load
- Week range helpers
"""

import asyncio
import pytest
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from planner.services.errors import GridAssemblyError
from planner.services.grid_assembler import (
    GridAssembler, RowKind, SENTINEL_ID, date_sequence, default_week_range, fill_series, shift_range
)
from planner.services.record_store import RatePlanInfo, RoomTypeInfo, StoredRecord


class TestFillSeries:

    def test_gaps_get_sentinel(self):
        dates = date_sequence(date(2024, 1, 1), date(2024, 1, 3))
        cells = fill_series(dates, [StoredRecord(record_id=9, date=date(2024, 1, 2), value=4)])

        assert [c.record_id for c in cells] == [SENTINEL_ID, 9, SENTINEL_ID]
        assert [c.value for c in cells] == [0, 4, 0]
        assert cells[1].is_persisted
        assert not cells[0].is_persisted

    def test_records_outside_range_ignored(self):
        dates = date_sequence(date(2024, 1, 1), date(2024, 1, 2))
        cells = fill_series(dates, [StoredRecord(record_id=9, date=date(2024, 2, 1), value=4)])
        assert all(c.record_id == SENTINEL_ID for c in cells)


class TestGridAssembler:

    def test_fallback_assembles_every_date(self, store, week):
        grid = asyncio.run(GridAssembler(store).assemble("p1", *week))

        assert len(grid.dates) == 7
        assert grid.channex_property_id == "cx-prop-1"
        room_type = grid.room_types[0]
        assert len(room_type.availability) == 7
        assert len(room_type.rate_plans[0].rates) == 7

        cell = grid.find_cell(RowKind.AVAILABILITY, "rt1", date(2024, 1, 2))
        assert cell.record_id == 7
        assert cell.value == 3

        rate = grid.find_cell(RowKind.RATE, "rp1", date(2024, 1, 3))
        assert rate.record_id == 42
        assert rate.value == Decimal("100.00")

        empty = grid.find_cell(RowKind.RATE, "rp1", date(2024, 1, 1))
        assert empty.record_id == SENTINEL_ID
        assert empty.value == 0

    def test_rate_plans_nested_under_their_room_type(self, store, week):
        store.room_types.append(RoomTypeInfo(id="rt2", title="Suite"))
        store.rate_plans.append(RatePlanInfo(id="rp2", title="Suite BAR", room_type_id="rt2", property_id="p1"))

        grid = asyncio.run(GridAssembler(store).assemble("p1", *week))

        assert [rp.id for rp in grid.find_room_type("rt1").rate_plans] == ["rp1"]
        assert [rp.id for rp in grid.find_room_type("rt2").rate_plans] == ["rp2"]
        assert grid.room_type_for(RowKind.RATE, "rp2") == "rt2"

    def test_filters_applied(self, store, week):
        store.room_types.append(RoomTypeInfo(id="rt2", title="Suite"))

        grid = asyncio.run(GridAssembler(store).assemble("p1", *week, room_type_ids=["rt2"]))
        assert [rt.id for rt in grid.room_types] == ["rt2"]

        grid = asyncio.run(GridAssembler(store).assemble("p1", *week, rate_plan_ids=["other"]))
        assert grid.room_types[0].rate_plans == []

    def test_unified_payload_used_when_available(self, store, week):
        store.fetch_planning = AsyncMock(return_value={
            "roomTypes": [{
                "id": "rt9",
                "title": "Loft",
                "countOfRooms": 2,
                "channexId": "cx-rt9",
                "availability": [{"id": 11, "date": "2024-01-05", "availability": 6}],
                "ratePlans": [{
                    "id": "rp9",
                    "title": "Loft BAR",
                    "propertyId": "p1",
                    "rates": [{"id": 12, "date": "2024-01-05T00:00:00.000Z", "rate": "150.5"}]
                }]
            }]
        })
        store.fetch_room_types = AsyncMock()

        grid = asyncio.run(GridAssembler(store).assemble("p1", *week))

        store.fetch_room_types.assert_not_called()
        assert grid.find_cell(RowKind.AVAILABILITY, "rt9", date(2024, 1, 5)).value == 6
        assert grid.find_cell(RowKind.RATE, "rp9", date(2024, 1, 5)).value == Decimal("150.5")
        assert grid.find_cell(RowKind.RATE, "rp9", date(2024, 1, 6)).record_id == SENTINEL_ID
        assert grid.owner_channex_id(RowKind.AVAILABILITY, "rt9") == "cx-rt9"

    def test_store_failure_aborts_load(self, store, week):
        store.fetch_availability = AsyncMock(side_effect=RuntimeError("connection reset"))

        with pytest.raises(GridAssemblyError) as exc:
            asyncio.run(GridAssembler(store).assemble("p1", *week))
        assert "connection reset" in exc.value.message

    def test_inverted_range_rejected(self, store):
        with pytest.raises(GridAssemblyError):
            asyncio.run(GridAssembler(store).assemble("p1", date(2024, 1, 7), date(2024, 1, 1)))

    def test_range_limit(self, store):
        start = date(2024, 1, 1)
        with pytest.raises(GridAssemblyError):
            asyncio.run(GridAssembler(store, max_range_days=30).assemble("p1", start, start + timedelta(days=30)))

    def test_row_series_unknown_row_is_empty(self, store, week):
        grid = asyncio.run(GridAssembler(store).assemble("p1", *week))
        assert grid.row_series(RowKind.RATE, "missing") == []
        assert not grid.has_row(RowKind.RATE, "missing")


class TestDateRange:

    def test_default_week_is_monday_to_sunday(self):
        start, end = default_week_range(date(2024, 1, 4))  # Thursday
        assert start == date(2024, 1, 1)
        assert end == date(2024, 1, 7)

    def test_shift_range(self):
        start, end = date(2024, 1, 1), date(2024, 1, 7)
        assert shift_range(start, end, "next") == (date(2024, 1, 7), date(2024, 1, 13))
        assert shift_range(start, end, "prev") == (date(2023, 12, 26), date(2024, 1, 1))

    def test_shift_range_unknown_direction(self):
        with pytest.raises(ValueError):
            shift_range(date(2024, 1, 1), date(2024, 1, 7), "sideways")

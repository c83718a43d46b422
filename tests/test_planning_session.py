"""
Tests for PlanningSession and SessionRegistry

Tests cover:
- Load, edit, save, reload cycle
- Save serialisation, including saves racing a Channex push
- Retry after a partial failure
- Reset and window changes
- Sync after save
"""

import asyncio
import pytest
from datetime import date
from unittest.mock import AsyncMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from planner.database import Base
from planner.models.inventory import Property, RoomType, RatePlan
from planner.services.channex_client import ChannexResponse
from planner.services.errors import PendingEditsError, PersistenceError, PlanningError, SessionNotFound
from planner.services.grid_assembler import RowKind
from planner.services.planning_session import PlanningSession, SessionRegistry
from planner.services.record_store import SqlRecordStore


def make_channel():
    channel = AsyncMock()
    channel.push_ranges.return_value = ChannexResponse(success=True, status_code=200)
    return channel


class TestPlanningSession:

    def test_save_then_reload_picks_up_new_record_ids(self, store, week):
        session = PlanningSession("p1", store, make_channel())

        async def scenario():
            await session.load(*week)
            session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1), "5")
            result = await session.commit()
            assert result.ok
            assert session.stale
            return await session.get_grid()

        grid = asyncio.run(scenario())

        assert not session.stale
        cell = grid.find_cell(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1))
        assert cell.record_id == 101
        assert cell.value == 5

    def test_edit_records_original_value_and_room_type(self, store, week):
        session = PlanningSession("p1", store, make_channel())
        asyncio.run(session.load(*week))

        edit = session.set_edit(RowKind.RATE, "rp1", "2024-01-03", "110")

        assert edit.original_value == 100
        assert edit.room_type_id == "rt1"

    def test_blur_path_clamps(self, store, week):
        session = PlanningSession("p1", store, make_channel())
        asyncio.run(session.load(*week))

        assert session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1), "13") is None
        assert session.finalize_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1), "13").value == 12

    def test_edit_outside_grid_rejected(self, store, week):
        session = PlanningSession("p1", store, make_channel())

        with pytest.raises(PlanningError):
            session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1), "5")

        asyncio.run(session.load(*week))
        with pytest.raises(PlanningError):
            session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 3, 1), "5")
        with pytest.raises(PlanningError):
            session.set_edit(RowKind.RATE, "nope", date(2024, 1, 1), "5")

    def test_concurrent_saves_are_serialised(self, store, week):
        session = PlanningSession("p1", store, make_channel())

        async def scenario():
            await session.load(*week)
            session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1), "5")
            return await asyncio.gather(session.commit(), session.commit())

        first, second = asyncio.run(scenario())

        assert len(first.operations) == 1
        assert second.operations == []
        assert len(store.calls) == 1

    def test_sync_after_save(self, store, week):
        channel = make_channel()
        session = PlanningSession("p1", store, channel)

        async def scenario():
            await session.load(*week)
            assert session.eligibility(RowKind.RATE, "rp1").reason_code == "no_changes"
            session.set_edit(RowKind.RATE, "rp1", date(2024, 1, 1), "100")
            await session.commit()
            assert session.eligibility(RowKind.RATE, "rp1").enabled
            return await session.sync_row(RowKind.RATE, "rp1")

        outcome = asyncio.run(scenario())

        # 100 on Jan 1, 0 on Jan 2, 100 on Jan 3, 0 after
        assert outcome.ranges_sent == 4
        channel.push_ranges.assert_awaited_once()
        assert not session.tracker.is_dirty(RowKind.RATE, "rp1")


    def test_save_during_sync_keeps_row_dirty(self, store, week):
        channel = make_channel()
        session = PlanningSession("p1", store, channel)
        pending = []

        async def push_while_user_saves(*args):
            session.set_edit(RowKind.RATE, "rp1", date(2024, 1, 3), "9")
            pending.append(asyncio.create_task(session.commit()))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            return ChannexResponse(success=True, status_code=200)

        channel.push_ranges.side_effect = push_while_user_saves

        async def scenario():
            await session.load(*week)
            session.set_edit(RowKind.RATE, "rp1", date(2024, 1, 1), "100")
            await session.commit()
            await session.sync_row(RowKind.RATE, "rp1")
            return await pending[0]

        result = asyncio.run(scenario())

        assert result.ok
        # The save landed after the push, so Channex has not seen 01-03 -> 9
        assert session.tracker.is_dirty(RowKind.RATE, "rp1")

    def test_retry_after_partial_failure_with_sql_store(self, week):
        engine = create_engine("sqlite:///:memory:")
        Base.metadata.create_all(bind=engine)
        db = sessionmaker(bind=engine)()
        db.add(Property(id="p1", title="Harbour View", channex_property_id="cx-p1"))
        db.add(RoomType(id="rt1", property_id="p1", title="Deluxe", count_of_rooms=4, channex_room_type_id="cx-rt1"))
        db.add(RatePlan(id="rp1", property_id="p1", room_type_id="rt1", title="BAR", code="BAR"))
        db.commit()

        sql_store = SqlRecordStore(db)
        original_create = sql_store.create_availability
        failures = [date(2024, 1, 2)]

        async def create_failing_once(property_id, room_type_id, day, value):
            if day in failures:
                failures.remove(day)
                raise PersistenceError(f"Create availability {room_type_id} {day} failed")
            return await original_create(property_id, room_type_id, day, value)

        sql_store.create_availability = create_failing_once
        session = PlanningSession("p1", sql_store, make_channel(), batch_size=1)

        async def scenario():
            await session.load(*week)
            session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1), "5")
            session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 2), "6")
            first = await session.commit()
            second = await session.commit()
            return first, second, await session.get_grid()

        try:
            first, second, grid = asyncio.run(scenario())
        finally:
            db.close()

        assert [o.status for o in first.operations] == ["succeeded", "failed"]
        assert second.ok, second.error
        assert [o.op for o in second.operations] == ["update", "create"]
        assert len(session.ledger) == 0
        assert grid.find_cell(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1)).value == 5
        assert grid.find_cell(RowKind.AVAILABILITY, "rt1", date(2024, 1, 2)).value == 6

    def test_reset_edits(self, store, week):
        session = PlanningSession("p1", store, make_channel())
        asyncio.run(session.load(*week))
        session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1), "5")
        session.set_edit(RowKind.RATE, "rp1", date(2024, 1, 2), "80")

        assert session.reset_edits() == 2
        assert len(session.ledger) == 0
        assert asyncio.run(session.commit()).operations == []
        assert store.calls == []

    def test_change_range_moves_window(self, store, week):
        session = PlanningSession("p1", store, make_channel())

        async def scenario():
            await session.load(*week, room_type_ids=["rt1"])
            forward = await session.change_range("next")
            back = await session.change_range("prev")
            explicit = await session.change_range(start_date=date(2024, 2, 1), end_date=date(2024, 2, 3))
            return forward, back, explicit

        forward, back, explicit = asyncio.run(scenario())

        assert (forward.start_date, forward.end_date) == (date(2024, 1, 7), date(2024, 1, 13))
        assert (back.start_date, back.end_date) == week
        assert explicit.dates == [date(2024, 2, 1), date(2024, 2, 2), date(2024, 2, 3)]

    def test_change_range_refused_with_pending_edits(self, store, week):
        session = PlanningSession("p1", store, make_channel())
        asyncio.run(session.load(*week))
        session.set_edit(RowKind.AVAILABILITY, "rt1", date(2024, 1, 1), "5")

        with pytest.raises(PendingEditsError):
            asyncio.run(session.change_range("next"))

        assert session.grid.start_date == week[0]


class TestSessionRegistry:

    def test_add_get_remove(self, store):
        registry = SessionRegistry()
        session = registry.add(PlanningSession("p1", store, make_channel()))

        assert registry.get(session.session_id) is session
        assert registry.remove(session.session_id)
        assert not registry.remove(session.session_id)
        assert len(registry) == 0

    def test_missing_session(self):
        with pytest.raises(SessionNotFound):
            SessionRegistry().get("nope")

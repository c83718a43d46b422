"""
Shared fixtures: an in-memory RecordStore with one property, one room type
and one rate plan.
"""

import pytest
from datetime import date
from decimal import Decimal

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from planner.services.errors import PersistenceError
from planner.services.record_store import RecordStore, RoomTypeInfo, RatePlanInfo, StoredRecord


class InMemoryRecordStore(RecordStore):
    """Records every write in self.calls; fail_on holds (method, key) pairs that raise"""

    def __init__(self):
        self.channex_property_id = "cx-prop-1"
        self.room_types = [RoomTypeInfo(id="rt1", title="Deluxe", count_of_rooms=5, channex_id="cx-rt1")]
        self.rate_plans = [
            RatePlanInfo(id="rp1", title="Standard", room_type_id="rt1", property_id="p1",
                         code="STD", channex_id="cx-rp1")
        ]
        self.availability = {"rt1": [StoredRecord(record_id=7, date=date(2024, 1, 2), value=3)]}
        self.rates = {"rp1": [StoredRecord(record_id=42, date=date(2024, 1, 3), value=Decimal("100.00"))]}
        self.calls = []
        self.fail_on = set()
        self._next_id = 100

    def _check(self, method, key):
        if (method, key) in self.fail_on:
            raise PersistenceError(f"{method} failed for {key}", status_code=500)

    async def fetch_room_types(self, property_id):
        return list(self.room_types)

    async def fetch_rate_plans(self, property_id):
        return list(self.rate_plans)

    async def fetch_channex_property_id(self, property_id):
        return self.channex_property_id

    async def fetch_availability(self, room_type_id, start_date, end_date):
        return [r for r in self.availability.get(room_type_id, []) if start_date <= r.date <= end_date]

    async def fetch_rates(self, rate_plan_id, start_date, end_date):
        return [r for r in self.rates.get(rate_plan_id, []) if start_date <= r.date <= end_date]

    async def create_availability(self, property_id, room_type_id, day, value):
        self.calls.append(("create_availability", property_id, room_type_id, day, value))
        self._check("create_availability", day)
        self._next_id += 1
        self.availability.setdefault(room_type_id, []).append(
            StoredRecord(record_id=self._next_id, date=day, value=value)
        )
        return self._next_id

    async def update_availability(self, record_id, value):
        self.calls.append(("update_availability", record_id, value))
        self._check("update_availability", record_id)
        for records in self.availability.values():
            for r in records:
                if r.record_id == record_id:
                    r.value = value

    async def create_rate(self, property_id, rate_plan_id, day, value):
        self.calls.append(("create_rate", property_id, rate_plan_id, day, value))
        self._check("create_rate", day)
        self._next_id += 1
        self.rates.setdefault(rate_plan_id, []).append(
            StoredRecord(record_id=self._next_id, date=day, value=value)
        )
        return self._next_id

    async def update_rate(self, record_id, value):
        self.calls.append(("update_rate", record_id, value))
        self._check("update_rate", record_id)
        for records in self.rates.values():
            for r in records:
                if r.record_id == record_id:
                    r.value = value


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def week():
    """Monday 2024-01-01 .. Sunday 2024-01-07"""
    return date(2024, 1, 1), date(2024, 1, 7)

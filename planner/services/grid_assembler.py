"""
Grid Assembler

Builds the dense, date-complete planning grid from sparse store records:
- One availability cell per room type per date in the inclusive range
- One rate cell per rate plan per date in the inclusive range
- Missing dates are filled with record id 0 (sentinel) and value 0
- Room type / rate plan filters are applied before filling

Tries the store's unified planning endpoint first and falls back to
per-entity assembly when it is not available.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import GridAssemblyError, PlanningEndpointUnavailable
from .record_store import RecordStore, RatePlanInfo, RoomTypeInfo, StoredRecord, parse_date

logger = logging.getLogger(__name__)

# Record id meaning "no backing record exists yet for this date"
SENTINEL_ID = 0


class RowKind(str, enum.Enum):
    AVAILABILITY = "availability"
    RATE = "rate"


@dataclass
class GridCell:
    """One date slot of a row"""
    record_id: int
    date: date
    value: Any

    @property
    def is_persisted(self) -> bool:
        return self.record_id > SENTINEL_ID


@dataclass
class PlanningRatePlan:
    id: str
    title: str
    property_id: str
    code: Optional[str] = None
    channex_id: Optional[str] = None
    rates: List[GridCell] = field(default_factory=list)


@dataclass
class PlanningRoomType:
    id: str
    title: str
    count_of_rooms: int = 0
    channex_id: Optional[str] = None
    availability: List[GridCell] = field(default_factory=list)
    rate_plans: List[PlanningRatePlan] = field(default_factory=list)


@dataclass
class PlanningGrid:
    """RoomType-rooted planning tree for one property and date range"""
    property_id: str
    start_date: date
    end_date: date
    dates: List[date]
    room_types: List[PlanningRoomType]
    channex_property_id: Optional[str] = None

    def _cells(self, kind: RowKind, owner_id: str) -> Optional[List[GridCell]]:
        for room_type in self.room_types:
            if kind == RowKind.AVAILABILITY:
                if room_type.id == owner_id:
                    return room_type.availability
            else:
                for rate_plan in room_type.rate_plans:
                    if rate_plan.id == owner_id:
                        return rate_plan.rates
        return None

    def has_row(self, kind: RowKind, owner_id: str) -> bool:
        return self._cells(kind, owner_id) is not None

    def find_cell(self, kind: RowKind, owner_id: str, day: date) -> Optional[GridCell]:
        cells = self._cells(kind, owner_id) or []
        for cell in cells:
            if cell.date == day:
                return cell
        return None

    def row_series(self, kind: RowKind, owner_id: str) -> List[Tuple[date, Any]]:
        """Ordered (date, value) pairs for one row; empty if the row is unknown"""
        return [(cell.date, cell.value) for cell in (self._cells(kind, owner_id) or [])]

    def find_rate_plan(self, rate_plan_id: str) -> Optional[PlanningRatePlan]:
        for room_type in self.room_types:
            for rate_plan in room_type.rate_plans:
                if rate_plan.id == rate_plan_id:
                    return rate_plan
        return None

    def find_room_type(self, room_type_id: str) -> Optional[PlanningRoomType]:
        for room_type in self.room_types:
            if room_type.id == room_type_id:
                return room_type
        return None

    def room_type_for(self, kind: RowKind, owner_id: str) -> Optional[str]:
        """Id of the room type a row belongs to"""
        if kind == RowKind.AVAILABILITY:
            return owner_id if self.find_room_type(owner_id) else None
        for room_type in self.room_types:
            if any(rp.id == owner_id for rp in room_type.rate_plans):
                return room_type.id
        return None

    def owner_channex_id(self, kind: RowKind, owner_id: str) -> Optional[str]:
        if kind == RowKind.AVAILABILITY:
            room_type = self.find_room_type(owner_id)
            return room_type.channex_id if room_type else None
        rate_plan = self.find_rate_plan(owner_id)
        return rate_plan.channex_id if rate_plan else None


def date_sequence(start_date: date, end_date: date) -> List[date]:
    """All dates from start to end, both inclusive"""
    dates = []
    current = start_date
    while current <= end_date:
        dates.append(current)
        current += timedelta(days=1)
    return dates


def default_week_range(today: date) -> Tuple[date, date]:
    """Monday..Sunday of the week containing today"""
    week_start = today - timedelta(days=today.weekday())
    return week_start, week_start + timedelta(days=6)


def shift_range(start_date: date, end_date: date, direction: str) -> Tuple[date, date]:
    """Move the window back ("prev") or forward ("next") by its length in days"""
    span = timedelta(days=(end_date - start_date).days)
    if direction == "prev":
        return start_date - span, end_date - span
    if direction == "next":
        return start_date + span, end_date + span
    raise ValueError(f"Unknown direction: {direction}")


def fill_series(dates: Iterable[date], records: Iterable[StoredRecord], default: Any = 0) -> List[GridCell]:
    """
    One cell per date; existing records keep their id and value, gaps get the
    sentinel id and the default value.
    """
    by_date: Dict[date, StoredRecord] = {r.date: r for r in records}
    cells = []
    for d in dates:
        existing = by_date.get(d)
        if existing is not None:
            value = existing.value if existing.value is not None else default
            cells.append(GridCell(record_id=existing.record_id or SENTINEL_ID, date=d, value=value))
        else:
            cells.append(GridCell(record_id=SENTINEL_ID, date=d, value=default))
    return cells


def _keep(entity_id: str, allowed: Optional[List[str]]) -> bool:
    return not allowed or entity_id in allowed


class GridAssembler:
    """
    Assembles PlanningGrid objects from a RecordStore.

    Any store failure aborts the whole load; callers retry with a fresh load.
    """

    def __init__(self, store: RecordStore, max_range_days: Optional[int] = None):
        self.store = store
        self.max_range_days = max_range_days

    async def assemble(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        room_type_ids: Optional[List[str]] = None,
        rate_plan_ids: Optional[List[str]] = None
    ) -> PlanningGrid:
        if start_date > end_date:
            raise GridAssemblyError(f"Start date {start_date} is after end date {end_date}")
        if self.max_range_days and (end_date - start_date).days + 1 > self.max_range_days:
            raise GridAssemblyError(f"Date range exceeds {self.max_range_days} days")

        dates = date_sequence(start_date, end_date)

        try:
            channex_property_id = await self.store.fetch_channex_property_id(property_id)
            try:
                payload = await self.store.fetch_planning(
                    property_id, start_date, end_date, room_type_ids, rate_plan_ids
                )
                room_types = self._from_planning_payload(
                    payload, property_id, dates, room_type_ids, rate_plan_ids
                )
            except PlanningEndpointUnavailable:
                logger.info(f"Planning endpoint unavailable for {property_id}, assembling from entities")
                room_types = await self._from_entities(
                    property_id, start_date, end_date, dates, room_type_ids, rate_plan_ids
                )
        except GridAssemblyError:
            raise
        except Exception as e:
            logger.error(f"Grid assembly failed for property {property_id}: {e}")
            raise GridAssemblyError(f"Failed to load planning data: {e}", cause=e) from e

        logger.info(
            f"Assembled grid for property {property_id}: {len(room_types)} room types, "
            f"{len(dates)} dates ({start_date}..{end_date})"
        )
        return PlanningGrid(
            property_id=property_id,
            start_date=start_date,
            end_date=end_date,
            dates=dates,
            room_types=room_types,
            channex_property_id=channex_property_id
        )

    async def _from_entities(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        dates: List[date],
        room_type_ids: Optional[List[str]],
        rate_plan_ids: Optional[List[str]]
    ) -> List[PlanningRoomType]:
        room_types = [rt for rt in await self.store.fetch_room_types(property_id) if _keep(rt.id, room_type_ids)]
        rate_plans = [rp for rp in await self.store.fetch_rate_plans(property_id) if _keep(rp.id, rate_plan_ids)]

        async def build_rate_plan(rate_plan: RatePlanInfo) -> PlanningRatePlan:
            records = await self.store.fetch_rates(rate_plan.id, start_date, end_date)
            return PlanningRatePlan(
                id=rate_plan.id,
                title=rate_plan.title,
                property_id=rate_plan.property_id or property_id,
                code=rate_plan.code,
                channex_id=rate_plan.channex_id,
                rates=fill_series(dates, records, default=Decimal("0"))
            )

        async def build_room_type(room_type: RoomTypeInfo) -> PlanningRoomType:
            records = await self.store.fetch_availability(room_type.id, start_date, end_date)
            own_plans = [rp for rp in rate_plans if rp.room_type_id == room_type.id]
            built_plans = await asyncio.gather(*(build_rate_plan(rp) for rp in own_plans))
            return PlanningRoomType(
                id=room_type.id,
                title=room_type.title,
                count_of_rooms=room_type.count_of_rooms,
                channex_id=room_type.channex_id,
                availability=fill_series(dates, records, default=0),
                rate_plans=list(built_plans)
            )

        return list(await asyncio.gather(*(build_room_type(rt) for rt in room_types)))

    def _from_planning_payload(
        self,
        payload: Dict,
        property_id: str,
        dates: List[date],
        room_type_ids: Optional[List[str]],
        rate_plan_ids: Optional[List[str]]
    ) -> List[PlanningRoomType]:
        room_types = []
        for rt in payload.get("roomTypes", []):
            rt_id = str(rt["id"])
            if not _keep(rt_id, room_type_ids):
                continue

            availability = [
                StoredRecord(
                    record_id=int(a.get("id") or 0),
                    date=parse_date(a["date"]),
                    value=int(a.get("availability") or 0)
                )
                for a in rt.get("availability", [])
            ]

            plans = []
            for rp in rt.get("ratePlans", []):
                rp_id = str(rp["id"])
                if not _keep(rp_id, rate_plan_ids):
                    continue
                rates = [
                    StoredRecord(
                        record_id=int(r.get("id") or 0),
                        date=parse_date(r["date"]),
                        value=Decimal(str(r.get("rate") or 0))
                    )
                    for r in rp.get("rates", [])
                ]
                plans.append(PlanningRatePlan(
                    id=rp_id,
                    title=rp.get("title", ""),
                    property_id=str(rp.get("propertyId") or property_id),
                    code=rp.get("code"),
                    channex_id=rp.get("channexId"),
                    rates=fill_series(dates, rates, default=Decimal("0"))
                ))

            room_types.append(PlanningRoomType(
                id=rt_id,
                title=rt.get("title", ""),
                count_of_rooms=int(rt.get("countOfRooms") or 0),
                channex_id=rt.get("channexId"),
                availability=fill_series(dates, availability, default=0),
                rate_plans=plans
            ))
        return room_types

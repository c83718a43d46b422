"""
Record Store Adapters

Thin I/O layer that reads room types, rate plans and per-date
availability/rate records, and writes individual records back.

Two implementations share the RecordStore interface:
- HttpRecordStore: talks to the PMS REST API (Bearer token auth)
- SqlRecordStore: reads/writes the local SQLAlchemy tables
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.inventory import Property, RoomType, RatePlan, RoomTypeAvailability, RatePlanRate
from .errors import PersistenceError, PlanningEndpointUnavailable

logger = logging.getLogger(__name__)


@dataclass
class RoomTypeInfo:
    """Room type as returned by the store"""
    id: str
    title: str
    count_of_rooms: int = 0
    channex_id: Optional[str] = None


@dataclass
class RatePlanInfo:
    """Rate plan as returned by the store"""
    id: str
    title: str
    room_type_id: str
    property_id: str
    code: Optional[str] = None
    channex_id: Optional[str] = None


@dataclass
class StoredRecord:
    """One persisted availability or rate record"""
    record_id: int
    date: date
    value: Any


class RecordStore(ABC):
    """Backing store for availability and rate records"""

    @abstractmethod
    async def fetch_room_types(self, property_id: str) -> List[RoomTypeInfo]:
        ...

    @abstractmethod
    async def fetch_rate_plans(self, property_id: str) -> List[RatePlanInfo]:
        ...

    @abstractmethod
    async def fetch_channex_property_id(self, property_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def fetch_availability(self, room_type_id: str, start_date: date, end_date: date) -> List[StoredRecord]:
        ...

    @abstractmethod
    async def fetch_rates(self, rate_plan_id: str, start_date: date, end_date: date) -> List[StoredRecord]:
        ...

    @abstractmethod
    async def create_availability(self, property_id: str, room_type_id: str, day: date, value: int) -> int:
        ...

    @abstractmethod
    async def update_availability(self, record_id: int, value: int) -> None:
        ...

    @abstractmethod
    async def create_rate(self, property_id: str, rate_plan_id: str, day: date, value: Decimal) -> int:
        ...

    @abstractmethod
    async def update_rate(self, record_id: int, value: Decimal) -> None:
        ...

    async def fetch_planning(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        room_type_ids: Optional[List[str]] = None,
        rate_plan_ids: Optional[List[str]] = None
    ) -> Dict:
        """
        Unified planning payload, if the store offers one.

        Stores without a unified endpoint raise PlanningEndpointUnavailable and
        the grid is assembled from the per-entity calls instead.
        """
        raise PlanningEndpointUnavailable("Unified planning endpoint not available")


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    # Accept both "YYYY-MM-DD" and full ISO timestamps
    return date.fromisoformat(str(value)[:10])


def _extract_list(data: Any) -> List[Dict]:
    """The PMS API returns either a bare list or a paginated {"data": [...]} body"""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("data", "values", "items"):
            if isinstance(data.get(key), list):
                return data[key]
    raise ValueError("Invalid response format: expected array or paginated response")


class HttpRecordStore(RecordStore):
    """
    Record store backed by the PMS REST API.

    Endpoints:
    - GET   /room-types/property/{property_id}
    - GET   /rate-plans/property/{property_id}
    - GET   /properties/{property_id}
    - GET   /planning/property/{property_id}?startDate&endDate[&roomTypeIds&ratePlanIds]
    - GET   /room-type-availability/room-type/{room_type_id}?startDate&endDate
    - GET   /rate-plan-rates/rate-plan/{rate_plan_id}?startDate&endDate
    - POST  /room-type-availability, PATCH /room-type-availability/{id}
    - POST  /rate-plan-rates, PATCH /rate-plan-rates/{id}
    """

    # Large enough to cover a full planning window in one page
    PAGE_LIMIT = 1000

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[int] = None
    ):
        self.base_url = (base_url or settings.pms_api_base_url).rstrip("/")
        self.token = token if token is not None else settings.pms_api_token
        self.timeout = timeout or settings.pms_timeout_seconds
        self._client = client

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _client_or_new(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, endpoint: str, params: Optional[Dict] = None) -> Any:
        client = self._client_or_new()
        response = await client.get(endpoint, headers=self._get_headers(), params=params)
        response.raise_for_status()
        return response.json()

    async def _write(self, method: str, endpoint: str, payload: Dict) -> Dict:
        client = self._client_or_new()
        try:
            response = await client.request(method, endpoint, headers=self._get_headers(), json=payload)
        except httpx.HTTPError as e:
            raise PersistenceError(f"{method} {endpoint} failed: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("message")
            except ValueError:
                detail = None
            raise PersistenceError(
                detail or f"{method} {endpoint} failed with status {response.status_code}",
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _range_params(start_date: date, end_date: date) -> Dict:
        return {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "limit": HttpRecordStore.PAGE_LIMIT,
        }

    async def fetch_room_types(self, property_id: str) -> List[RoomTypeInfo]:
        data = await self._get(f"/room-types/property/{property_id}")
        return [
            RoomTypeInfo(
                id=str(item["id"]),
                title=item.get("title", ""),
                count_of_rooms=int(item.get("countOfRooms") or 0),
                channex_id=item.get("channexId")
            )
            for item in _extract_list(data)
        ]

    async def fetch_rate_plans(self, property_id: str) -> List[RatePlanInfo]:
        data = await self._get(f"/rate-plans/property/{property_id}")
        return [
            RatePlanInfo(
                id=str(item["id"]),
                title=item.get("title", ""),
                room_type_id=str(item.get("roomTypeId")),
                property_id=str(item.get("propertyId") or property_id),
                code=item.get("code"),
                channex_id=item.get("channexId")
            )
            for item in _extract_list(data)
        ]

    async def fetch_channex_property_id(self, property_id: str) -> Optional[str]:
        data = await self._get(f"/properties/{property_id}")
        return data.get("channexId") if isinstance(data, dict) else None

    async def fetch_planning(
        self,
        property_id: str,
        start_date: date,
        end_date: date,
        room_type_ids: Optional[List[str]] = None,
        rate_plan_ids: Optional[List[str]] = None
    ) -> Dict:
        params = {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}
        if room_type_ids:
            params["roomTypeIds"] = ",".join(room_type_ids)
        if rate_plan_ids:
            params["ratePlanIds"] = ",".join(rate_plan_ids)

        try:
            return await self._get(f"/planning/property/{property_id}", params=params)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise PlanningEndpointUnavailable("Unified planning endpoint not available") from e
            raise

    async def fetch_availability(self, room_type_id: str, start_date: date, end_date: date) -> List[StoredRecord]:
        data = await self._get(
            f"/room-type-availability/room-type/{room_type_id}",
            params=self._range_params(start_date, end_date)
        )
        return [
            StoredRecord(
                record_id=int(item.get("id") or 0),
                date=parse_date(item["date"]),
                value=int(item.get("availability") or 0)
            )
            for item in _extract_list(data)
        ]

    async def fetch_rates(self, rate_plan_id: str, start_date: date, end_date: date) -> List[StoredRecord]:
        data = await self._get(
            f"/rate-plan-rates/rate-plan/{rate_plan_id}",
            params=self._range_params(start_date, end_date)
        )
        return [
            StoredRecord(
                record_id=int(item.get("id") or 0),
                date=parse_date(item["date"]),
                value=Decimal(str(item.get("rate") or 0))
            )
            for item in _extract_list(data)
        ]

    async def create_availability(self, property_id: str, room_type_id: str, day: date, value: int) -> int:
        data = await self._write("POST", "/room-type-availability", {
            "propertyId": property_id,
            "roomTypeId": room_type_id,
            "date": day.isoformat(),
            "availability": value,
        })
        return int(data.get("id") or 0)

    async def update_availability(self, record_id: int, value: int) -> None:
        await self._write("PATCH", f"/room-type-availability/{record_id}", {"availability": value})

    async def create_rate(self, property_id: str, rate_plan_id: str, day: date, value: Decimal) -> int:
        data = await self._write("POST", "/rate-plan-rates", {
            "propertyId": property_id,
            "ratePlanId": rate_plan_id,
            "date": day.isoformat(),
            "rate": float(value),
        })
        return int(data.get("id") or 0)

    async def update_rate(self, record_id: int, value: Decimal) -> None:
        await self._write("PATCH", f"/rate-plan-rates/{record_id}", {"rate": float(value)})


class SqlRecordStore(RecordStore):
    """
    Record store backed by the local inventory tables.

    The session is synchronous; each call completes before returning to the
    event loop.
    """

    def __init__(self, db: Session):
        self.db = db

    async def fetch_room_types(self, property_id: str) -> List[RoomTypeInfo]:
        rows = self.db.query(RoomType).filter(
            RoomType.property_id == property_id
        ).order_by(RoomType.created_at, RoomType.title).all()
        return [
            RoomTypeInfo(
                id=rt.id,
                title=rt.title,
                count_of_rooms=rt.count_of_rooms or 0,
                channex_id=rt.channex_room_type_id
            )
            for rt in rows
        ]

    async def fetch_rate_plans(self, property_id: str) -> List[RatePlanInfo]:
        rows = self.db.query(RatePlan).filter(
            RatePlan.property_id == property_id
        ).order_by(RatePlan.created_at, RatePlan.title).all()
        return [
            RatePlanInfo(
                id=rp.id,
                title=rp.title,
                room_type_id=rp.room_type_id,
                property_id=rp.property_id,
                code=rp.code,
                channex_id=rp.channex_rate_plan_id
            )
            for rp in rows
        ]

    async def fetch_channex_property_id(self, property_id: str) -> Optional[str]:
        prop = self.db.query(Property).filter(Property.id == property_id).first()
        return prop.channex_property_id if prop else None

    async def fetch_availability(self, room_type_id: str, start_date: date, end_date: date) -> List[StoredRecord]:
        rows = self.db.query(RoomTypeAvailability).filter(
            RoomTypeAvailability.room_type_id == room_type_id,
            RoomTypeAvailability.date >= start_date,
            RoomTypeAvailability.date <= end_date
        ).order_by(RoomTypeAvailability.date).all()
        return [StoredRecord(record_id=r.id, date=r.date, value=r.availability) for r in rows]

    async def fetch_rates(self, rate_plan_id: str, start_date: date, end_date: date) -> List[StoredRecord]:
        rows = self.db.query(RatePlanRate).filter(
            RatePlanRate.rate_plan_id == rate_plan_id,
            RatePlanRate.date >= start_date,
            RatePlanRate.date <= end_date
        ).order_by(RatePlanRate.date).all()
        return [StoredRecord(record_id=r.id, date=r.date, value=Decimal(str(r.rate))) for r in rows]

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{action} failed: {e}")
            raise PersistenceError(f"{action} failed: {e.__class__.__name__}") from e

    async def create_availability(self, property_id: str, room_type_id: str, day: date, value: int) -> int:
        record = RoomTypeAvailability(
            property_id=property_id,
            room_type_id=room_type_id,
            date=day,
            availability=value
        )
        self.db.add(record)
        self._commit(f"Create availability {room_type_id} {day}")
        return record.id

    async def update_availability(self, record_id: int, value: int) -> None:
        record = self.db.query(RoomTypeAvailability).filter(RoomTypeAvailability.id == record_id).first()
        if not record:
            raise PersistenceError(f"Availability record {record_id} not found", status_code=404)
        record.availability = value
        self._commit(f"Update availability {record_id}")

    async def create_rate(self, property_id: str, rate_plan_id: str, day: date, value: Decimal) -> int:
        record = RatePlanRate(
            property_id=property_id,
            rate_plan_id=rate_plan_id,
            date=day,
            rate=value
        )
        self.db.add(record)
        self._commit(f"Create rate {rate_plan_id} {day}")
        return record.id

    async def update_rate(self, record_id: int, value: Decimal) -> None:
        record = self.db.query(RatePlanRate).filter(RatePlanRate.id == record_id).first()
        if not record:
            raise PersistenceError(f"Rate record {record_id} not found", status_code=404)
        record.rate = value
        self._commit(f"Update rate {record_id}")

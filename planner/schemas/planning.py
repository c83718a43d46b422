"""
Planning Schemas

Pydantic models for the planning grid API requests and responses.
"""

from datetime import date
from decimal import Decimal
from typing import Any, List, Literal, Optional, Union
from pydantic import BaseModel, Field, model_validator

from ..services.grid_assembler import RowKind


# ==================
# Requests
# ==================

class SessionCreate(BaseModel):
    """Open an editing session for one property"""
    property_id: str = Field(..., min_length=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    room_type_ids: Optional[List[str]] = None
    rate_plan_ids: Optional[List[str]] = None

    @model_validator(mode="after")
    def validate_range(self):
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be given together")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class CellEditRequest(BaseModel):
    """
    Typed input for one cell. finalize=true is the blur path: the value is
    coerced into range instead of rejected.
    """
    kind: RowKind
    owner_id: str
    date: date
    value: Union[str, int, float, None] = None
    finalize: bool = False


class RangeChangeRequest(BaseModel):
    """
    Either a direction ("prev"/"next") or an explicit range and filter set.
    """
    direction: Optional[Literal["prev", "next"]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    room_type_ids: Optional[List[str]] = None
    rate_plan_ids: Optional[List[str]] = None

    @model_validator(mode="after")
    def validate_range(self):
        if self.direction and (self.start_date or self.end_date):
            raise ValueError("Give either direction or start_date/end_date, not both")
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be given together")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


# ==================
# Responses
# ==================

class GridCellResponse(BaseModel):
    id: int
    date: date
    value: Any


class RatePlanRowResponse(BaseModel):
    id: str
    title: str
    code: Optional[str] = None
    property_id: str
    channex_id: Optional[str] = None
    rates: List[GridCellResponse]


class RoomTypeRowResponse(BaseModel):
    id: str
    title: str
    count_of_rooms: int
    channex_id: Optional[str] = None
    availability: List[GridCellResponse]
    rate_plans: List[RatePlanRowResponse]


class GridResponse(BaseModel):
    session_id: str
    property_id: str
    start_date: date
    end_date: date
    dates: List[date]
    channex_property_id: Optional[str] = None
    room_types: List[RoomTypeRowResponse]
    pending_edits: int = 0
    dirty_rows: List[str] = []


class CellEditResponse(BaseModel):
    kind: RowKind
    owner_id: str
    date: date
    value: Any
    original_value: Any = None
    pending_edits: int


class OperationResultResponse(BaseModel):
    op: str
    kind: RowKind
    owner_id: str
    date: date
    value: Any
    record_id: Optional[int] = None
    status: str
    error: Optional[str] = None


class CommitResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    operations: List[OperationResultResponse] = []
    pending_edits: int = 0


class SyncEligibilityResponse(BaseModel):
    kind: RowKind
    owner_id: str
    enabled: bool
    reason: Optional[str] = None
    reason_code: Optional[str] = None


class CompressedRangeResponse(BaseModel):
    date_from: date
    date_to: date
    value: Union[int, Decimal, None]


class SyncResponse(BaseModel):
    kind: RowKind
    owner_id: str
    ranges_sent: int
    ranges: List[CompressedRangeResponse]


class ResetEditsResponse(BaseModel):
    dropped: int
    pending_edits: int = 0

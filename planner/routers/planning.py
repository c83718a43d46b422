"""
Planning Grid API Router

Endpoints for the inventory planning grid:
- Open a session and load the availability/rate grid for a property
- Move the date window or change filters
- Record cell edits and save them to the record store
- Check sync eligibility and push a row to Channex
"""

import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ..config import settings
from ..database import SessionLocal
from ..schemas.planning import (
    SessionCreate,
    CellEditRequest,
    RangeChangeRequest,
    ResetEditsResponse,
    CellEditResponse,
    GridResponse,
    GridCellResponse,
    RoomTypeRowResponse,
    RatePlanRowResponse,
    CommitResponse,
    OperationResultResponse,
    SyncEligibilityResponse,
    SyncResponse,
    CompressedRangeResponse
)
from ..services.channex_client import ChannexClient
from ..services.errors import (
    ChannelSyncError,
    CommitValidationError,
    GridAssemblyError,
    PendingEditsError,
    PlanningError,
    SessionNotFound,
    SyncNotAllowed
)
from ..services.grid_assembler import RowKind
from ..services.planning_session import PlanningSession, SessionRegistry, registry
from ..services.record_store import HttpRecordStore, RecordStore, SqlRecordStore
from ..utils.logging_config import session_id_var

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/planning", tags=["Planning"])


# ==================
# Dependencies
# ==================

def get_registry() -> SessionRegistry:
    return registry


def _build_record_store() -> RecordStore:
    if settings.record_store_backend == "http":
        return HttpRecordStore()
    # One SQLAlchemy session per planning session; closed with the process
    return SqlRecordStore(SessionLocal())


def get_store_factory() -> Callable[[], RecordStore]:
    return _build_record_store


def get_channel_factory() -> Callable[[], object]:
    return ChannexClient


def _get_session(session_id: str, sessions: SessionRegistry) -> PlanningSession:
    try:
        session = sessions.get(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    session_id_var.set(session.session_id)
    return session


# ==================
# Serialization
# ==================

def _cells(cells):
    return [GridCellResponse(id=c.record_id, date=c.date, value=c.value) for c in cells]


def _grid_response(session: PlanningSession, grid) -> GridResponse:
    return GridResponse(
        session_id=session.session_id,
        property_id=grid.property_id,
        start_date=grid.start_date,
        end_date=grid.end_date,
        dates=grid.dates,
        channex_property_id=grid.channex_property_id,
        room_types=[
            RoomTypeRowResponse(
                id=rt.id,
                title=rt.title,
                count_of_rooms=rt.count_of_rooms,
                channex_id=rt.channex_id,
                availability=_cells(rt.availability),
                rate_plans=[
                    RatePlanRowResponse(
                        id=rp.id,
                        title=rp.title,
                        code=rp.code,
                        property_id=rp.property_id,
                        channex_id=rp.channex_id,
                        rates=_cells(rp.rates)
                    )
                    for rp in rt.rate_plans
                ]
            )
            for rt in grid.room_types
        ],
        pending_edits=len(session.ledger),
        dirty_rows=[str(key) for key in session.tracker.dirty_rows()]
    )


def _commit_response(session: PlanningSession, result) -> CommitResponse:
    return CommitResponse(
        ok=result.ok,
        error=result.error,
        succeeded=result.succeeded,
        failed=result.failed,
        skipped=result.skipped,
        operations=[
            OperationResultResponse(
                op=o.op,
                kind=o.kind,
                owner_id=o.owner_id,
                date=o.date,
                value=o.value,
                record_id=o.record_id,
                status=o.status,
                error=o.error
            )
            for o in result.operations
        ],
        pending_edits=len(session.ledger)
    )


# ==================
# Sessions & Grid
# ==================

@router.post("/sessions", response_model=GridResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    sessions: SessionRegistry = Depends(get_registry),
    store_factory: Callable = Depends(get_store_factory),
    channel_factory: Callable = Depends(get_channel_factory)
):
    """Open an editing session and load its first grid"""
    session = PlanningSession(payload.property_id, store_factory(), channel_factory())
    session_id_var.set(session.session_id)
    try:
        grid = await session.load(
            payload.start_date,
            payload.end_date,
            room_type_ids=payload.room_type_ids,
            rate_plan_ids=payload.rate_plan_ids
        )
    except GridAssemblyError as e:
        raise HTTPException(status_code=502, detail=e.message)

    sessions.add(session)
    logger.info(f"Opened planning session {session.session_id} for property {payload.property_id}")
    return _grid_response(session, grid)


@router.get("/sessions/{session_id}/grid", response_model=GridResponse)
async def get_grid(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """Current grid; reloaded from the store after a successful save"""
    session = _get_session(session_id, sessions)
    try:
        grid = await session.get_grid()
    except GridAssemblyError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return _grid_response(session, grid)


@router.post("/sessions/{session_id}/range", response_model=GridResponse)
async def change_range(
    session_id: str,
    payload: RangeChangeRequest,
    sessions: SessionRegistry = Depends(get_registry)
):
    """Previous/next window, or an explicit range and filters; 409 while edits are pending"""
    session = _get_session(session_id, sessions)
    try:
        grid = await session.change_range(
            direction=payload.direction,
            start_date=payload.start_date,
            end_date=payload.end_date,
            room_type_ids=payload.room_type_ids,
            rate_plan_ids=payload.rate_plan_ids
        )
    except PendingEditsError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except GridAssemblyError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return _grid_response(session, grid)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    _get_session(session_id, sessions)
    sessions.remove(session_id)


# ==================
# Edits & Save
# ==================

@router.put("/sessions/{session_id}/cells", response_model=CellEditResponse)
async def edit_cell(
    session_id: str,
    payload: CellEditRequest,
    sessions: SessionRegistry = Depends(get_registry)
):
    session = _get_session(session_id, sessions)
    try:
        edit = session.edit(payload.kind, payload.owner_id, payload.date, payload.value, finalize=payload.finalize)
    except PlanningError as e:
        raise HTTPException(status_code=404, detail=e.message)

    if edit is None:
        policy = session.ledger.policies[RowKind.AVAILABILITY]
        raise HTTPException(
            status_code=422,
            detail=f"Availability must be a whole number between {policy.min_value} and {policy.max_value}"
        )

    return CellEditResponse(
        kind=edit.kind,
        owner_id=edit.owner_id,
        date=edit.date,
        value=edit.value,
        original_value=edit.original_value,
        pending_edits=len(session.ledger)
    )


@router.delete("/sessions/{session_id}/edits", response_model=ResetEditsResponse)
async def reset_edits(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """Discard every unsaved edit"""
    session = _get_session(session_id, sessions)
    dropped = session.reset_edits()
    return ResetEditsResponse(dropped=dropped, pending_edits=len(session.ledger))


@router.post("/sessions/{session_id}/commit", response_model=CommitResponse)
async def commit_edits(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
    """
    Save all pending edits.

    422 when availability validation fails (nothing written), 502 with the
    per-item results when some writes failed.
    """
    session = _get_session(session_id, sessions)
    try:
        result = await session.commit()
    except CommitValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except GridAssemblyError as e:
        raise HTTPException(status_code=502, detail=e.message)

    response = _commit_response(session, result)
    if not result.ok:
        return JSONResponse(status_code=502, content=response.model_dump(mode="json"))
    return response


# ==================
# Channex Sync
# ==================

@router.get("/sessions/{session_id}/sync/{kind}/{owner_id}", response_model=SyncEligibilityResponse)
async def get_sync_eligibility(
    session_id: str,
    kind: RowKind,
    owner_id: str,
    sessions: SessionRegistry = Depends(get_registry)
):
    session = _get_session(session_id, sessions)
    eligibility = session.eligibility(kind, owner_id)
    return SyncEligibilityResponse(
        kind=kind,
        owner_id=owner_id,
        enabled=eligibility.enabled,
        reason=eligibility.reason,
        reason_code=eligibility.reason_code
    )


@router.post("/sessions/{session_id}/sync/{kind}/{owner_id}", response_model=SyncResponse)
async def sync_row(
    session_id: str,
    kind: RowKind,
    owner_id: str,
    sessions: SessionRegistry = Depends(get_registry)
):
    """Push one row to Channex as compressed date ranges"""
    session = _get_session(session_id, sessions)
    try:
        outcome = await session.sync_row(kind, owner_id)
    except SyncNotAllowed as e:
        raise HTTPException(status_code=409, detail={"reason": e.message, "reason_code": e.reason_code})
    except ChannelSyncError as e:
        raise HTTPException(status_code=502, detail=e.message)
    except GridAssemblyError as e:
        raise HTTPException(status_code=502, detail=e.message)

    return SyncResponse(
        kind=outcome.kind,
        owner_id=outcome.owner_id,
        ranges_sent=outcome.ranges_sent,
        ranges=[
            CompressedRangeResponse(date_from=r.start_date, date_to=r.end_date, value=r.value)
            for r in outcome.ranges
        ]
    )

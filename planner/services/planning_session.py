"""
Planning Session

One user's editing context for one property: the loaded grid, the edit
ledger, the sync-state tracker and the services that act on them. Nothing
here is global; every piece of state belongs to a session.
"""

import asyncio
import logging
import time
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from ..config import settings
from ..utils.logging_config import get_logger
from .edit_ledger import CellEdit, EditLedger
from .errors import PendingEditsError, PlanningError, SessionNotFound
from .grid_assembler import GridAssembler, PlanningGrid, RowKind, default_week_range, shift_range
from .range_sync import RangeSyncAdapter, SyncEligibility, SyncOutcome
from .reconciler import CommitResult, Reconciler, TouchedRow
from .record_store import RecordStore, parse_date
from .sync_state import SyncStateTracker

logger = logging.getLogger(__name__)
structured_logger = get_logger(__name__)


class PlanningSession:
    """
    Editing session for a single property.

    A successful commit marks the cached grid stale; the next read reloads it
    so new record ids replace the sentinel cells.
    """

    def __init__(
        self,
        property_id: str,
        store: RecordStore,
        channel: Any,
        session_id: Optional[str] = None,
        batch_size: Optional[int] = None
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.property_id = property_id
        self.store = store
        self.assembler = GridAssembler(store, max_range_days=settings.planning_max_range_days)
        self.ledger = EditLedger()
        self.tracker = SyncStateTracker()
        self.reconciler = Reconciler(store, batch_size=batch_size, on_persisted=self._invalidate)
        self.sync_adapter = RangeSyncAdapter(channel)

        self.grid: Optional[PlanningGrid] = None
        self.stale = False
        self.fetch_in_flight = False
        self._filters: Dict[str, Optional[List[str]]] = {"room_type_ids": None, "rate_plan_ids": None}
        self._range = default_week_range(date.today())
        self._commit_lock = asyncio.Lock()

    def _invalidate(self, rows: List[TouchedRow]):
        logger.debug(f"Session {self.session_id}: grid stale after saving {len(rows)} rows")
        self.stale = True

    async def load(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        room_type_ids: Optional[List[str]] = None,
        rate_plan_ids: Optional[List[str]] = None
    ) -> PlanningGrid:
        if start_date is None or end_date is None:
            start_date, end_date = default_week_range(date.today())
        previous = (self._range, self._filters)
        self._range = (start_date, end_date)
        self._filters = {"room_type_ids": room_type_ids, "rate_plan_ids": rate_plan_ids}
        try:
            return await self.reload()
        except PlanningError:
            self._range, self._filters = previous
            raise

    async def reload(self) -> PlanningGrid:
        start_date, end_date = self._range
        self.fetch_in_flight = True
        started = time.time()
        try:
            grid = await self.assembler.assemble(
                self.property_id,
                start_date,
                end_date,
                room_type_ids=self._filters["room_type_ids"],
                rate_plan_ids=self._filters["rate_plan_ids"]
            )
        finally:
            self.fetch_in_flight = False
        self.grid = grid
        self.stale = False
        structured_logger.grid_loaded(
            self.property_id, len(grid.room_types), len(grid.dates),
            duration_ms=int((time.time() - started) * 1000)
        )
        return grid

    async def get_grid(self) -> PlanningGrid:
        if self.grid is None or self.stale:
            return await self.reload()
        return self.grid

    def _require_grid(self) -> PlanningGrid:
        if self.grid is None:
            raise PlanningError("Planning grid has not been loaded")
        return self.grid

    def edit(self, kind: RowKind, owner_id: str, day: Any, raw_input: Any, finalize: bool = False) -> Optional[CellEdit]:
        """
        Record user input for one cell. finalize=True is the blur path and
        always stores a coerced value; otherwise rejected input returns None.
        """
        grid = self._require_grid()
        kind = RowKind(kind)
        day = parse_date(day)
        if not grid.has_row(kind, owner_id):
            raise PlanningError(f"Unknown {kind.value} row {owner_id}")

        cell = grid.find_cell(kind, owner_id, day)
        if cell is None:
            raise PlanningError(f"{day} is outside the loaded date range")

        room_type_id = grid.room_type_for(kind, owner_id)
        if finalize:
            return self.ledger.finalize(kind, owner_id, day, raw_input, cell.value, room_type_id)
        return self.ledger.set_edit(kind, owner_id, day, raw_input, cell.value, room_type_id)

    def set_edit(self, kind: RowKind, owner_id: str, day: Any, raw_input: Any) -> Optional[CellEdit]:
        return self.edit(kind, owner_id, day, raw_input)

    def finalize_edit(self, kind: RowKind, owner_id: str, day: Any, raw_input: Any) -> CellEdit:
        return self.edit(kind, owner_id, day, raw_input, finalize=True)

    def reset_edits(self) -> int:
        """Drop every pending edit; returns how many were dropped"""
        dropped = len(self.ledger)
        self.ledger.clear()
        logger.info(f"Session {self.session_id}: reset {dropped} pending edits")
        return dropped

    async def change_range(
        self,
        direction: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        room_type_ids: Optional[List[str]] = None,
        rate_plan_ids: Optional[List[str]] = None
    ) -> PlanningGrid:
        """
        Move the window ("prev"/"next" by its own length) or load an explicit
        range and filter set. Missing dates keep the current window. Refused
        while edits are pending.
        """
        if len(self.ledger):
            raise PendingEditsError("Save or reset pending changes before changing the date range")

        if direction is not None:
            start_date, end_date = shift_range(*self._range, direction)
            return await self.load(start_date, end_date, **self._filters)
        if start_date is None or end_date is None:
            start_date, end_date = self._range
        return await self.load(start_date, end_date, room_type_ids=room_type_ids, rate_plan_ids=rate_plan_ids)

    async def commit(self) -> CommitResult:
        """Save all pending edits; only one commit runs at a time"""
        async with self._commit_lock:
            grid = await self.get_grid()
            started = time.time()
            result = await self.reconciler.commit(self.ledger, grid, self.tracker)
            if result.operations:
                structured_logger.commit_finished(
                    self.property_id, result.ok, result.succeeded, result.failed, result.skipped,
                    duration_ms=int((time.time() - started) * 1000)
                )
            return result

    def eligibility(self, kind: RowKind, owner_id: str) -> SyncEligibility:
        return self.sync_adapter.check_eligibility(
            kind, owner_id, self.grid, self.tracker, fetch_in_flight=self.fetch_in_flight
        )

    async def sync_row(self, kind: RowKind, owner_id: str) -> SyncOutcome:
        """
        Push one row to Channex. Runs under the commit lock; a save and a push
        never overlap.
        """
        async with self._commit_lock:
            grid = await self.get_grid()
            started = time.time()
            outcome = await self.sync_adapter.sync_row(
                kind, owner_id, grid, self.tracker, fetch_in_flight=self.fetch_in_flight
            )
        structured_logger.row_synced(
            outcome.kind.value, owner_id, outcome.ranges_sent,
            duration_ms=int((time.time() - started) * 1000)
        )
        return outcome


class SessionRegistry:
    """In-process map of session id -> PlanningSession"""

    def __init__(self):
        self._sessions: Dict[str, PlanningSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: PlanningSession) -> PlanningSession:
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> PlanningSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Planning session {session_id} not found")
        return session

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None


registry = SessionRegistry()

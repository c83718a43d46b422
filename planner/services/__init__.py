# Services package
from .errors import (
    PlanningError, GridAssemblyError, PlanningEndpointUnavailable, CommitValidationError,
    PersistenceError, SyncNotAllowed, ChannelSyncError, SessionNotFound,
    PendingEditsError
)
from .record_store import RecordStore, HttpRecordStore, SqlRecordStore, RoomTypeInfo, RatePlanInfo, StoredRecord
from .grid_assembler import (
    GridAssembler, PlanningGrid, PlanningRoomType, PlanningRatePlan, GridCell, RowKind,
    SENTINEL_ID, default_week_range, shift_range
)
from .edit_ledger import EditLedger, CellEdit, RejectPolicy, CoerceToZeroPolicy
from .task_queue import BatchTaskQueue, TaskOutcome
from .sync_state import SyncStateTracker, DirtyRowKey
from .reconciler import Reconciler, CommitResult, OperationResult
from .channex_client import ChannexClient, ChannexResponse
from .range_sync import RangeSyncAdapter, CompressedRange, SyncEligibility, SyncOutcome, compress_ranges
from .planning_session import PlanningSession, SessionRegistry, registry

__all__ = [
    "PlanningError", "GridAssemblyError", "PlanningEndpointUnavailable", "CommitValidationError",
    "PersistenceError", "SyncNotAllowed", "ChannelSyncError", "SessionNotFound",
    "PendingEditsError",
    "RecordStore", "HttpRecordStore", "SqlRecordStore", "RoomTypeInfo", "RatePlanInfo", "StoredRecord",
    "GridAssembler", "PlanningGrid", "PlanningRoomType", "PlanningRatePlan", "GridCell", "RowKind",
    "SENTINEL_ID", "default_week_range", "shift_range",
    "EditLedger", "CellEdit", "RejectPolicy", "CoerceToZeroPolicy",
    "BatchTaskQueue", "TaskOutcome",
    "SyncStateTracker", "DirtyRowKey",
    "Reconciler", "CommitResult", "OperationResult",
    "ChannexClient", "ChannexResponse",
    "RangeSyncAdapter", "CompressedRange", "SyncEligibility", "SyncOutcome", "compress_ranges",
    "PlanningSession", "SessionRegistry", "registry",
]

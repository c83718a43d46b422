"""
Reconciler

Turns the edit ledger into record store writes on Save:
- Availability edits are re-validated before any write is attempted
- Each edit becomes an update (backing record exists) or a create
- Writes go out in four groups: availability updates, rate updates,
  availability creates, rate creates
- Groups are split into batches; a batch runs concurrently, batches run
  one after another, and nothing is dispatched after a failed batch

On full success the touched rows are marked as needing Channex sync and the
saved edits leave the ledger. On partial failure nothing is rolled back and
the ledger keeps every edit so the user can retry; cells whose record was
created take the new record id.
"""

import inspect
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Optional, Set, Tuple

from ..config import settings
from .edit_ledger import CellEdit, EditLedger, RejectPolicy
from .errors import CommitValidationError
from .grid_assembler import PlanningGrid, RowKind, SENTINEL_ID
from .record_store import RecordStore
from .sync_state import SyncStateTracker
from .task_queue import BatchTaskQueue

logger = logging.getLogger(__name__)

OP_CREATE = "create"
OP_UPDATE = "update"

STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

TouchedRow = Tuple[RowKind, str]


@dataclass
class PendingOperation:
    op: str
    kind: RowKind
    owner_id: str
    date: date
    value: Any
    record_id: int = SENTINEL_ID
    property_id: Optional[str] = None


@dataclass
class OperationResult:
    """Outcome of one create/update call"""
    op: str
    kind: RowKind
    owner_id: str
    date: date
    value: Any
    record_id: Optional[int]
    status: str
    error: Optional[str] = None


@dataclass
class CommitResult:
    ok: bool
    operations: List[OperationResult] = field(default_factory=list)
    error: Optional[str] = None
    touched_rows: List[TouchedRow] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.operations if o.status == STATUS_SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.operations if o.status == STATUS_FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.operations if o.status == STATUS_SKIPPED)


class Reconciler:
    """
    Saves ledger edits to a RecordStore.

    on_persisted is called with the touched (kind, owner_id) rows after a
    fully successful commit, e.g. to mark cached grids stale.
    """

    def __init__(
        self,
        store: RecordStore,
        batch_size: Optional[int] = None,
        on_persisted: Optional[Callable[[List[TouchedRow]], Any]] = None,
        availability_policy: Optional[RejectPolicy] = None
    ):
        self.store = store
        self.batch_size = batch_size or settings.reconcile_batch_size
        self.on_persisted = on_persisted
        self.availability_policy = availability_policy or RejectPolicy()

    def validate(self, edits: List[CellEdit]):
        """Raise CommitValidationError listing every invalid availability date"""
        policy = self.availability_policy
        invalid = sorted({
            e.date.isoformat()
            for e in edits
            if e.kind == RowKind.AVAILABILITY and not policy.is_valid(e.value)
        })
        if invalid:
            raise CommitValidationError(invalid, policy.min_value, policy.max_value)

    def plan(self, edits: List[CellEdit], grid: PlanningGrid) -> List[Tuple[str, List[PendingOperation]]]:
        """Route edits into the four ordered operation groups"""
        groups = {
            ("availability", OP_UPDATE): [],
            ("rate", OP_UPDATE): [],
            ("availability", OP_CREATE): [],
            ("rate", OP_CREATE): [],
        }

        for edit in edits:
            cell = grid.find_cell(edit.kind, edit.owner_id, edit.date)
            record_id = cell.record_id if cell is not None else SENTINEL_ID
            op = OP_UPDATE if record_id > SENTINEL_ID else OP_CREATE

            property_id = grid.property_id
            if edit.kind == RowKind.RATE:
                rate_plan = grid.find_rate_plan(edit.owner_id)
                if rate_plan is not None and rate_plan.property_id:
                    property_id = rate_plan.property_id

            groups[(edit.kind.value, op)].append(PendingOperation(
                op=op,
                kind=edit.kind,
                owner_id=edit.owner_id,
                date=edit.date,
                value=edit.value,
                record_id=record_id,
                property_id=property_id
            ))

        return [(f"{kind} {op}s", items) for (kind, op), items in groups.items() if items]

    async def _execute(self, operation: PendingOperation) -> int:
        store = self.store
        if operation.kind == RowKind.AVAILABILITY:
            if operation.op == OP_UPDATE:
                await store.update_availability(operation.record_id, operation.value)
                return operation.record_id
            return await store.create_availability(
                operation.property_id, operation.owner_id, operation.date, operation.value
            )

        if operation.op == OP_UPDATE:
            await store.update_rate(operation.record_id, operation.value)
            return operation.record_id
        return await store.create_rate(
            operation.property_id, operation.owner_id, operation.date, operation.value
        )

    @staticmethod
    def _adopt_created_ids(grid: PlanningGrid, operations: List[OperationResult]) -> int:
        """
        Point sentinel cells at the records just created for them, so a retry
        after a partial failure updates those records instead of creating them
        again.
        """
        adopted = 0
        for o in operations:
            if o.op != OP_CREATE or o.status != STATUS_SUCCEEDED or not o.record_id:
                continue
            cell = grid.find_cell(o.kind, o.owner_id, o.date)
            if cell is not None and cell.record_id == SENTINEL_ID:
                cell.record_id = o.record_id
                cell.value = o.value
                adopted += 1
        return adopted

    async def commit(self, ledger: EditLedger, grid: PlanningGrid, tracker: SyncStateTracker) -> CommitResult:
        edits = ledger.snapshot()
        if not edits:
            logger.debug("Commit requested with no pending edits")
            return CommitResult(ok=True)

        self.validate(edits)

        queue: BatchTaskQueue[PendingOperation] = BatchTaskQueue(self._execute, batch_size=self.batch_size)
        for label, items in self.plan(edits, grid):
            queue.enqueue(label, items)

        logger.info(f"Committing {len(edits)} edits for property {grid.property_id} in {queue.pending_groups} batches")
        outcomes = await queue.run()

        operations = []
        for outcome in outcomes:
            item = outcome.item
            if not outcome.dispatched:
                status, error, record_id = STATUS_SKIPPED, None, item.record_id or None
            elif outcome.succeeded:
                status, error, record_id = STATUS_SUCCEEDED, None, outcome.result
            else:
                status = STATUS_FAILED
                error = getattr(outcome.error, "message", None) or str(outcome.error)
                record_id = item.record_id or None
            operations.append(OperationResult(
                op=item.op,
                kind=item.kind,
                owner_id=item.owner_id,
                date=item.date,
                value=item.value,
                record_id=record_id,
                status=status,
                error=error
            ))

        touched: List[TouchedRow] = []
        seen: Set[TouchedRow] = set()
        for edit in edits:
            row = (edit.kind, edit.owner_id)
            if row not in seen:
                seen.add(row)
                touched.append(row)

        self._adopt_created_ids(grid, operations)

        failed = [o for o in operations if o.status == STATUS_FAILED]
        if failed:
            skipped = sum(1 for o in operations if o.status == STATUS_SKIPPED)
            message = (
                f"Failed to save {len(failed)} of {len(operations)} changes"
                f" ({skipped} not attempted): {failed[0].error}"
            )
            logger.error(f"Commit for property {grid.property_id} incomplete: {message}")
            return CommitResult(ok=False, operations=operations, error=message, touched_rows=touched)

        for kind, owner_id in touched:
            tracker.mark_dirty(kind, owner_id)
        removed = ledger.discard(edits)
        logger.info(f"Committed {len(operations)} changes for property {grid.property_id} ({removed} edits cleared)")

        if self.on_persisted is not None:
            result = self.on_persisted(touched)
            if inspect.isawaitable(result):
                await result

        return CommitResult(ok=True, operations=operations, touched_rows=touched)

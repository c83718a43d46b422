"""
Sync-State Tracker

Rows that were saved locally but not yet confirmed as pushed to Channex.
Marked by the reconciler after a successful save, cleared only by the sync
adapter after Channex accepted the row.
"""

import logging
from dataclasses import dataclass
from typing import List, Set, Union

from .grid_assembler import RowKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class DirtyRowKey:
    kind: RowKind
    owner_id: str

    def __str__(self):
        return f"{self.kind.value}-{self.owner_id}"


class SyncStateTracker:
    """Set of dirty rows for one editing session"""

    def __init__(self):
        self._dirty: Set[DirtyRowKey] = set()

    def __len__(self) -> int:
        return len(self._dirty)

    def __contains__(self, key: DirtyRowKey) -> bool:
        return key in self._dirty

    def mark_dirty(self, kind: Union[RowKind, str], owner_id: str):
        key = DirtyRowKey(RowKind(kind), owner_id)
        if key not in self._dirty:
            self._dirty.add(key)
            logger.debug(f"Row {key} needs sync")

    def clear_dirty(self, kind: Union[RowKind, str], owner_id: str):
        key = DirtyRowKey(RowKind(kind), owner_id)
        if key in self._dirty:
            self._dirty.discard(key)
            logger.debug(f"Row {key} synced")

    def is_dirty(self, kind: Union[RowKind, str], owner_id: str) -> bool:
        return DirtyRowKey(RowKind(kind), owner_id) in self._dirty

    def dirty_rows(self) -> List[DirtyRowKey]:
        return sorted(self._dirty)

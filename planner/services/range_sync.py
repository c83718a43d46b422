"""
Range-Compression Sync Adapter

Pushes one grid row to Channex as the fewest contiguous equal-value ranges.

Input:  [(2024-01-01, 100), (2024-01-02, 100), (2024-01-03, 120)]
Output: [2024-01-01..2024-01-02 @ 100, 2024-01-03..2024-01-03 @ 120]

Also decides whether the row's sync action is enabled, and why not.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, List, Optional, Tuple

from .errors import ChannelSyncError, SyncNotAllowed
from .grid_assembler import PlanningGrid, RowKind
from .sync_state import SyncStateTracker

logger = logging.getLogger(__name__)

REASON_NO_CHANGES = "no_changes"
REASON_UNKNOWN_ROW = "unknown_row"
REASON_NO_VALUES = "no_values"
REASON_MISSING_CHANNEX_IDS = "missing_channex_ids"
REASON_LOADING = "loading"

REASON_MESSAGES = {
    REASON_NO_CHANGES: "No changes to sync. Make changes first.",
    REASON_UNKNOWN_ROW: "This row is not part of the loaded grid",
    REASON_LOADING: "Sync data is still loading",
}

NO_VALUES_MESSAGES = {
    RowKind.AVAILABILITY: "No availability to sync",
    RowKind.RATE: "No rates to sync",
}

MISSING_IDS_MESSAGES = {
    RowKind.AVAILABILITY: "Property and Room Type must be synced to Channex first",
    RowKind.RATE: "Property and Rate Plan must be synced to Channex first",
}


@dataclass
class CompressedRange:
    start_date: date
    end_date: date
    value: Any

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1


@dataclass
class SyncEligibility:
    enabled: bool
    reason: Optional[str] = None
    reason_code: Optional[str] = None


@dataclass
class SyncOutcome:
    kind: RowKind
    owner_id: str
    ranges_sent: int
    ranges: List[CompressedRange]


def compress_ranges(series: Iterable[Tuple[date, Any]]) -> List[CompressedRange]:
    """
    Greedy single pass over (date, value) pairs in date order.

    A range closes when the value changes or the next date is not the day
    after the current range end.
    """
    ranges: List[CompressedRange] = []
    current: Optional[CompressedRange] = None

    for day, value in series:
        if (
            current is not None
            and current.value == value
            and day - current.end_date == timedelta(days=1)
        ):
            current.end_date = day
            continue
        if current is not None:
            ranges.append(current)
        current = CompressedRange(start_date=day, end_date=day, value=value)

    if current is not None:
        ranges.append(current)
    return ranges


def _has_real_value(series: List[Tuple[date, Any]]) -> bool:
    return any(value not in (None, 0) for _day, value in series)


class RangeSyncAdapter:
    """
    Syncs dirty rows through a channel client exposing push_ranges().
    """

    def __init__(self, channel):
        self.channel = channel

    def check_eligibility(
        self,
        kind: RowKind,
        owner_id: str,
        grid: Optional[PlanningGrid],
        tracker: SyncStateTracker,
        fetch_in_flight: bool = False
    ) -> SyncEligibility:
        kind = RowKind(kind)

        if not tracker.is_dirty(kind, owner_id):
            return self._blocked(REASON_NO_CHANGES)
        if grid is None or not grid.has_row(kind, owner_id):
            return self._blocked(REASON_UNKNOWN_ROW)
        if not _has_real_value(grid.row_series(kind, owner_id)):
            return SyncEligibility(False, NO_VALUES_MESSAGES[kind], REASON_NO_VALUES)
        if not grid.channex_property_id or not grid.owner_channex_id(kind, owner_id):
            return SyncEligibility(False, MISSING_IDS_MESSAGES[kind], REASON_MISSING_CHANNEX_IDS)
        if fetch_in_flight:
            return self._blocked(REASON_LOADING)

        return SyncEligibility(enabled=True)

    @staticmethod
    def _blocked(reason_code: str) -> SyncEligibility:
        return SyncEligibility(False, REASON_MESSAGES[reason_code], reason_code)

    async def sync_row(
        self,
        kind: RowKind,
        owner_id: str,
        grid: Optional[PlanningGrid],
        tracker: SyncStateTracker,
        fetch_in_flight: bool = False
    ) -> SyncOutcome:
        """
        Push the row's whole filled series. Dates without a saved record go out
        as 0 (availability) or "0.00" (rate), so Channex mirrors the grid.
        """
        kind = RowKind(kind)
        eligibility = self.check_eligibility(kind, owner_id, grid, tracker, fetch_in_flight)
        if not eligibility.enabled:
            raise SyncNotAllowed(eligibility.reason, eligibility.reason_code)

        ranges = compress_ranges(grid.row_series(kind, owner_id))
        owner_external_id = grid.owner_channex_id(kind, owner_id)

        try:
            response = await self.channel.push_ranges(
                grid.channex_property_id, owner_external_id, kind, ranges
            )
        except ChannelSyncError:
            raise
        except Exception as e:
            logger.error(f"Sync of {kind.value} row {owner_id} failed: {e}")
            raise ChannelSyncError(f"Failed to sync {kind.value} to Channex: {e}") from e

        if not response.success:
            logger.warning(
                f"Channex rejected {kind.value} row {owner_id}: "
                f"{response.status_code} {response.error}"
            )
            raise ChannelSyncError(
                response.error or f"Channex returned status {response.status_code}",
                status_code=response.status_code,
                error_code=response.error_code
            )

        tracker.clear_dirty(kind, owner_id)
        logger.info(f"Synced {kind.value} row {owner_id}: {len(ranges)} ranges over {len(grid.dates)} dates")
        return SyncOutcome(kind=kind, owner_id=owner_id, ranges_sent=len(ranges), ranges=ranges)

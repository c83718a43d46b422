"""
Edit Ledger

In-memory map of unsaved cell edits keyed by (kind, owner_id, date).

Input validation differs by row kind:
- availability uses RejectPolicy: bad input never reaches the ledger
- rate uses CoerceToZeroPolicy: bad input is stored as 0
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ..config import settings
from .grid_assembler import RowKind
from .record_store import parse_date

logger = logging.getLogger(__name__)

LedgerKey = Tuple[RowKind, str, date]

_WHOLE_INT = re.compile(r"^[+-]?\d+$")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_DECIMAL = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")

TWO_PLACES = Decimal("0.01")


@dataclass
class CellEdit:
    """A pending, unsaved value for one grid cell"""
    kind: RowKind
    owner_id: str
    date: date
    value: Any
    original_value: Any = None
    room_type_id: Optional[str] = None

    @property
    def key(self) -> LedgerKey:
        return (self.kind, self.owner_id, self.date)


class RejectPolicy:
    """
    Whole numbers inside [min_value, max_value] only.

    parse() returns None to reject. An empty input is an explicit clear and
    maps to 0.
    """
    name = "reject"

    def __init__(self, min_value: Optional[int] = None, max_value: Optional[int] = None):
        self.min_value = settings.availability_min if min_value is None else min_value
        self.max_value = settings.availability_max if max_value is None else max_value

    def parse(self, raw: Any) -> Optional[int]:
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int):
            value = raw
        elif isinstance(raw, float):
            if not raw.is_integer():
                return None
            value = int(raw)
        else:
            text = "" if raw is None else str(raw).strip()
            if text == "":
                return 0
            if "." in text or "," in text:
                return None
            if not _WHOLE_INT.match(text):
                return None
            value = int(text, 10)

        if value < self.min_value or value > self.max_value:
            return None
        return value

    def finalize(self, raw: Any) -> int:
        """Blur handling: below range clears to 0, above range clamps to max"""
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            value = int(raw)
        else:
            match = _LEADING_INT.match("" if raw is None else str(raw))
            if not match:
                return 0
            value = int(match.group(1), 10)

        if value < self.min_value:
            return 0
        if value > self.max_value:
            return self.max_value
        return value

    def is_valid(self, value: Any) -> bool:
        """Commit-time check on an already stored value"""
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
            return False
        if value != int(value):
            return False
        return self.min_value <= value <= self.max_value


class CoerceToZeroPolicy:
    """Non-negative decimals; anything unparsable or negative becomes 0"""
    name = "coerce_to_zero"

    def parse(self, raw: Any) -> Decimal:
        if isinstance(raw, bool) or raw is None:
            return Decimal("0.00")
        match = _LEADING_DECIMAL.match(str(raw))
        if not match:
            return Decimal("0.00")

        value = Decimal(match.group(1))
        if value < 0:
            return Decimal("0.00")
        return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    def finalize(self, raw: Any) -> Decimal:
        return self.parse(raw)


class EditLedger:
    """
    Pending cell edits for one editing session.

    A later edit of the same cell overwrites the earlier one and keeps its
    position in iteration order.
    """

    def __init__(self, availability_policy: Optional[RejectPolicy] = None,
                 rate_policy: Optional[CoerceToZeroPolicy] = None):
        self.policies = {
            RowKind.AVAILABILITY: availability_policy or RejectPolicy(),
            RowKind.RATE: rate_policy or CoerceToZeroPolicy(),
        }
        self._edits: Dict[LedgerKey, CellEdit] = {}

    def __len__(self) -> int:
        return len(self._edits)

    def __iter__(self) -> Iterator[CellEdit]:
        return iter(list(self._edits.values()))

    def __contains__(self, key: LedgerKey) -> bool:
        return key in self._edits

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self._edits)

    def get(self, kind: Union[RowKind, str], owner_id: str, day: Union[date, str]) -> Optional[CellEdit]:
        return self._edits.get((RowKind(kind), owner_id, parse_date(day)))

    def _store(self, kind: RowKind, owner_id: str, day: date, value: Any,
               original_value: Any, room_type_id: Optional[str]) -> CellEdit:
        edit = CellEdit(
            kind=kind,
            owner_id=owner_id,
            date=day,
            value=value,
            original_value=original_value,
            room_type_id=room_type_id
        )
        self._edits[edit.key] = edit
        return edit

    def set_edit(
        self,
        kind: Union[RowKind, str],
        owner_id: str,
        day: Union[date, str],
        raw_input: Any,
        original_value: Any = None,
        room_type_id: Optional[str] = None
    ) -> Optional[CellEdit]:
        """Record a typed value; returns None (ledger untouched) when rejected"""
        kind = RowKind(kind)
        day = parse_date(day)
        value = self.policies[kind].parse(raw_input)
        if value is None:
            logger.debug(f"Rejected {kind.value} input {raw_input!r} for {owner_id} on {day}")
            return None
        return self._store(kind, owner_id, day, value, original_value, room_type_id)

    def finalize(
        self,
        kind: Union[RowKind, str],
        owner_id: str,
        day: Union[date, str],
        raw_input: Any,
        original_value: Any = None,
        room_type_id: Optional[str] = None
    ) -> CellEdit:
        """Blur: coerce the input into the allowed domain and always record it"""
        kind = RowKind(kind)
        day = parse_date(day)
        value = self.policies[kind].finalize(raw_input)
        return self._store(kind, owner_id, day, value, original_value, room_type_id)

    def has_pending_edits(self, kind: Union[RowKind, str], owner_id: str) -> bool:
        kind = RowKind(kind)
        return any(k == kind and o == owner_id for (k, o, _d) in self._edits)

    def snapshot(self) -> List[CellEdit]:
        """Copy of the current edits, in ledger order"""
        return list(self._edits.values())

    def discard(self, edits: List[CellEdit]) -> int:
        """
        Remove snapshotted edits. A key that was overwritten after the
        snapshot was taken is left alone.
        """
        removed = 0
        for edit in edits:
            if self._edits.get(edit.key) is edit:
                del self._edits[edit.key]
                removed += 1
        return removed

    def clear(self):
        self._edits.clear()

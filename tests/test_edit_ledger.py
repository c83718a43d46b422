"""
Tests for the Edit Ledger

Tests cover:
- Availability input rejection while typing
- Availability coercion on blur
- Rate coercion to zero
- Overwrite, pending-edit lookups and snapshot discard
"""

import pytest
from datetime import date
from decimal import Decimal

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from planner.services.edit_ledger import EditLedger, RejectPolicy, CoerceToZeroPolicy
from planner.services.grid_assembler import RowKind


D1 = date(2024, 1, 1)
D2 = date(2024, 1, 2)


class TestRejectPolicy:
    """Availability typing rules"""

    @pytest.fixture
    def policy(self):
        return RejectPolicy(min_value=1, max_value=12)

    def test_whole_number_in_range_accepted(self, policy):
        assert policy.parse("7") == 7
        assert policy.parse(12) == 12
        assert policy.parse(" 1 ") == 1

    def test_out_of_range_rejected(self, policy):
        assert policy.parse("13") is None
        assert policy.parse("-1") is None

    def test_fractions_rejected(self, policy):
        assert policy.parse("10.5") is None
        assert policy.parse("10,5") is None
        assert policy.parse(2.5) is None

    def test_garbage_rejected(self, policy):
        assert policy.parse("abc") is None
        assert policy.parse(True) is None

    def test_empty_input_clears_to_zero(self, policy):
        assert policy.parse("") == 0
        assert policy.parse(None) == 0

    def test_finalize_clamps(self, policy):
        assert policy.finalize("13") == 12
        assert policy.finalize("-1") == 0
        assert policy.finalize("0") == 0
        assert policy.finalize("10.5") == 10
        assert policy.finalize("abc") == 0
        assert policy.finalize("5") == 5

    def test_is_valid(self, policy):
        assert policy.is_valid(1)
        assert policy.is_valid(12)
        assert not policy.is_valid(0)
        assert not policy.is_valid(13)
        assert not policy.is_valid(Decimal("2.5"))
        assert not policy.is_valid("5")


class TestCoerceToZeroPolicy:
    """Rate typing rules"""

    def test_valid_decimal_kept(self):
        assert CoerceToZeroPolicy().parse("120.50") == Decimal("120.50")

    def test_rounded_to_two_places(self):
        assert CoerceToZeroPolicy().parse("99.999") == Decimal("100.00")

    def test_invalid_becomes_zero(self):
        policy = CoerceToZeroPolicy()
        assert policy.parse("abc") == Decimal("0")
        assert policy.parse("") == Decimal("0")
        assert policy.parse(None) == Decimal("0")

    def test_negative_becomes_zero(self):
        assert CoerceToZeroPolicy().parse("-5") == Decimal("0")

    def test_leading_number_used(self):
        assert CoerceToZeroPolicy().parse("80abc") == Decimal("80.00")


class TestEditLedger:
    """Ledger behaviour"""

    def test_rejected_input_leaves_ledger_untouched(self):
        ledger = EditLedger(RejectPolicy(1, 12))
        ledger.set_edit(RowKind.AVAILABILITY, "rt1", D1, "5", original_value=3)

        assert ledger.set_edit(RowKind.AVAILABILITY, "rt1", D1, "13") is None
        assert ledger.get(RowKind.AVAILABILITY, "rt1", D1).value == 5

        assert ledger.set_edit(RowKind.AVAILABILITY, "rt1", D2, "10.5") is None
        assert (RowKind.AVAILABILITY, "rt1", D2) not in ledger

    def test_accepted_input_recorded(self):
        ledger = EditLedger(RejectPolicy(1, 12))
        edit = ledger.set_edit("availability", "rt1", "2024-01-01", "7", original_value=3, room_type_id="rt1")

        assert edit.value == 7
        assert edit.original_value == 3
        assert edit.kind == RowKind.AVAILABILITY
        assert ledger.has_unsaved_changes

    def test_finalize_always_records(self):
        ledger = EditLedger(RejectPolicy(1, 12))
        assert ledger.finalize(RowKind.AVAILABILITY, "rt1", D1, "13").value == 12
        assert ledger.finalize(RowKind.AVAILABILITY, "rt1", D2, "-1").value == 0
        assert len(ledger) == 2

    def test_rate_input_never_rejected(self):
        ledger = EditLedger()
        edit = ledger.set_edit(RowKind.RATE, "rp1", D1, "not a number")
        assert edit.value == Decimal("0")

    def test_later_edit_overwrites(self):
        ledger = EditLedger(RejectPolicy(1, 12))
        ledger.set_edit(RowKind.AVAILABILITY, "rt1", D1, "4")
        ledger.set_edit(RowKind.AVAILABILITY, "rt1", D1, "6")

        assert len(ledger) == 1
        assert ledger.get(RowKind.AVAILABILITY, "rt1", D1).value == 6

    def test_has_pending_edits_per_row(self):
        ledger = EditLedger()
        ledger.set_edit(RowKind.RATE, "rp1", D1, "100")

        assert ledger.has_pending_edits(RowKind.RATE, "rp1")
        assert not ledger.has_pending_edits(RowKind.RATE, "rp2")
        assert not ledger.has_pending_edits(RowKind.AVAILABILITY, "rp1")

    def test_discard_keeps_edits_made_after_snapshot(self):
        ledger = EditLedger(RejectPolicy(1, 12))
        ledger.set_edit(RowKind.AVAILABILITY, "rt1", D1, "4")
        ledger.set_edit(RowKind.AVAILABILITY, "rt1", D2, "5")
        snapshot = ledger.snapshot()

        # User keeps typing while the save is in flight
        ledger.set_edit(RowKind.AVAILABILITY, "rt1", D2, "9")
        removed = ledger.discard(snapshot)

        assert removed == 1
        assert len(ledger) == 1
        assert ledger.get(RowKind.AVAILABILITY, "rt1", D2).value == 9

    def test_clear(self):
        ledger = EditLedger()
        ledger.set_edit(RowKind.RATE, "rp1", D1, "100")
        ledger.clear()
        assert not ledger.has_unsaved_changes

"""
Tests for SyncStateTracker
"""

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from planner.services.grid_assembler import RowKind
from planner.services.sync_state import DirtyRowKey, SyncStateTracker


class TestSyncStateTracker:

    def test_dirty_lifecycle(self):
        tracker = SyncStateTracker()
        assert not tracker.is_dirty(RowKind.RATE, "rp1")

        tracker.mark_dirty(RowKind.RATE, "rp1")
        assert tracker.is_dirty(RowKind.RATE, "rp1")

        tracker.clear_dirty(RowKind.RATE, "rp1")
        assert not tracker.is_dirty(RowKind.RATE, "rp1")

    def test_mark_and_clear_are_idempotent(self):
        tracker = SyncStateTracker()
        tracker.mark_dirty("availability", "rt1")
        tracker.mark_dirty(RowKind.AVAILABILITY, "rt1")
        assert len(tracker) == 1

        tracker.clear_dirty(RowKind.AVAILABILITY, "rt1")
        tracker.clear_dirty(RowKind.AVAILABILITY, "rt1")
        assert len(tracker) == 0

    def test_kinds_are_separate_keys(self):
        tracker = SyncStateTracker()
        tracker.mark_dirty(RowKind.AVAILABILITY, "x")
        assert not tracker.is_dirty(RowKind.RATE, "x")
        assert DirtyRowKey(RowKind.AVAILABILITY, "x") in tracker

    def test_dirty_rows_sorted(self):
        tracker = SyncStateTracker()
        tracker.mark_dirty(RowKind.RATE, "rp2")
        tracker.mark_dirty(RowKind.AVAILABILITY, "rt1")
        tracker.mark_dirty(RowKind.RATE, "rp1")

        assert [str(k) for k in tracker.dirty_rows()] == ["availability-rt1", "rate-rp1", "rate-rp2"]

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            SyncStateTracker().mark_dirty("inventory", "rt1")

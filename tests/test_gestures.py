"""Tests for gesture adapters (mouse / touch drag and two-tap mode)."""

import os
import sys
from datetime import date

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from courtbooking.gestures import (
    DragGestureAdapter,
    PointerEvent,
    TapGestureAdapter,
    adapter_for,
)
from courtbooking.grid import GridCell
from courtbooking.selection import ReservedSlot, SelectionState, SlotSelectionEngine

MON = date(2026, 3, 16)


def _engine(reserved=()):
    return SlotSelectionEngine(reserved, price_per_hour=100_000, resource_id="c1")


class TestPointerEvent:
    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            PointerEvent("hover")

    def test_cell_optional(self):
        assert PointerEvent("release").cell is None


class TestDragAdapter:
    def test_press_move_release(self):
        engine = _engine()
        adapter = DragGestureAdapter(engine)
        adapter.handle(PointerEvent("press", GridCell(MON, 10)))
        adapter.handle(PointerEvent("move", GridCell(MON, 11)))
        adapter.handle(PointerEvent("move", GridCell(MON, 12)))
        adapter.handle(PointerEvent("release"))

        quote = engine.current_quote()
        assert quote.duration_hours == 3
        assert quote.total_price == 300_000

    def test_release_with_cell_extends_first(self):
        engine = _engine()
        adapter = DragGestureAdapter(engine, mode="touch")
        adapter.handle(PointerEvent("press", GridCell(MON, 10)))
        adapter.handle(PointerEvent("release", GridCell(MON, 13)))
        assert engine.current_quote().duration_hours == 4

    def test_move_off_grid_keeps_cursor(self):
        engine = _engine()
        adapter = DragGestureAdapter(engine, mode="touch")
        adapter.handle(PointerEvent("press", GridCell(MON, 10)))
        adapter.handle(PointerEvent("move", GridCell(MON, 11)))
        adapter.handle(PointerEvent("move", None))
        adapter.handle(PointerEvent("release"))
        assert engine.current_quote().duration_hours == 2

    def test_press_on_blocked_cell_then_release(self):
        engine = _engine([ReservedSlot("c1", MON, 10, 11)])
        adapter = DragGestureAdapter(engine)
        adapter.handle(PointerEvent("press", GridCell(MON, 10)))
        adapter.handle(PointerEvent("release", GridCell(MON, 12)))
        assert engine.state is SelectionState.IDLE

    def test_tap_events_ignored(self):
        engine = _engine()
        DragGestureAdapter(engine).handle(PointerEvent("tap", GridCell(MON, 10)))
        assert engine.state is SelectionState.IDLE

    def test_reset_abandons_drag(self):
        engine = _engine()
        adapter = DragGestureAdapter(engine)
        adapter.handle(PointerEvent("press", GridCell(MON, 10)))
        adapter.reset()
        assert engine.state is SelectionState.IDLE

    def test_reset_keeps_frozen_selection(self):
        engine = _engine()
        adapter = DragGestureAdapter(engine)
        adapter.handle(PointerEvent("press", GridCell(MON, 10)))
        adapter.handle(PointerEvent("release"))
        adapter.reset()
        assert engine.state is SelectionState.SELECTED


class TestTapAdapter:
    def test_two_taps_select_range(self):
        engine = _engine()
        adapter = TapGestureAdapter(engine)
        adapter.handle(PointerEvent("tap", GridCell(MON, 15)))
        assert engine.state is SelectionState.SELECTING
        adapter.handle(PointerEvent("tap", GridCell(MON, 12)))
        quote = engine.current_quote()
        assert quote.duration_hours == 4

    def test_third_tap_starts_over(self):
        engine = _engine()
        adapter = TapGestureAdapter(engine)
        adapter.handle(PointerEvent("tap", GridCell(MON, 10)))
        adapter.handle(PointerEvent("tap", GridCell(MON, 11)))
        adapter.handle(PointerEvent("tap", GridCell(MON, 18)))
        assert engine.state is SelectionState.SELECTING
        assert engine.anchor == GridCell(MON, 18)

    def test_tap_on_blocked_cell_ignored(self):
        engine = _engine([ReservedSlot("c1", MON, 14, 15)])
        TapGestureAdapter(engine).handle(PointerEvent("tap", GridCell(MON, 14)))
        assert engine.state is SelectionState.IDLE

    def test_drag_events_ignored(self):
        engine = _engine()
        TapGestureAdapter(engine).handle(PointerEvent("press", GridCell(MON, 10)))
        assert engine.state is SelectionState.IDLE


class TestAdapterFor:
    @pytest.mark.parametrize("mode,cls", [
        ("mouse", DragGestureAdapter),
        ("touch", DragGestureAdapter),
        ("tap", TapGestureAdapter),
    ])
    def test_known_modes(self, mode, cls):
        adapter = adapter_for(mode, _engine())
        assert isinstance(adapter, cls)
        assert adapter.mode == mode

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            adapter_for("stylus", _engine())

"""GestureAdapter ABC, normalizing pointer input from different platforms.

Desktop browsers deliver mouse press/move/release, touch screens deliver
touchstart/touchmove/touchend with the finger sometimes leaving the grid,
and the small-screen "tap mode" uses two discrete taps instead of a drag.
Adapters translate all of these into the three engine calls
``begin_selection`` / ``extend_selection`` / ``end_selection`` so the
engine only ever sees one selection model.

Hit-testing (pixel -> cell) stays in the presentation layer; events arrive
here already resolved to a ``GridCell`` or ``None`` when the pointer is
outside the grid.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from courtbooking.grid import GridCell
from courtbooking.selection import SelectionState, SlotSelectionEngine

GESTURE_KINDS = ("press", "move", "release", "tap")
MODES = ("mouse", "touch", "tap")


@dataclass(frozen=True)
class PointerEvent:
    """Platform-neutral pointer event."""

    kind: str  # press | move | release | tap
    cell: Optional[GridCell] = None

    def __post_init__(self) -> None:
        if self.kind not in GESTURE_KINDS:
            raise ValueError(f"Unknown gesture kind: {self.kind!r}")


class GestureAdapter(ABC):
    """Translate one platform's pointer events into engine calls."""

    mode: str = ""

    def __init__(self, engine: SlotSelectionEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> SlotSelectionEngine:
        return self._engine

    @abstractmethod
    def handle(self, event: PointerEvent) -> None:
        """Apply one pointer event to the engine.

        Events that make no sense in the current state are dropped; the
        engine itself treats invalid transitions as no-ops.
        """

    def reset(self) -> None:
        """Abandon any in-progress gesture (mode switch, view change)."""
        if self._engine.state is SelectionState.SELECTING:
            self._engine.clear_selection()


class DragGestureAdapter(GestureAdapter):
    """Press-drag-release, shared by mouse and touch input."""

    def __init__(self, engine: SlotSelectionEngine, mode: str = "mouse") -> None:
        super().__init__(engine)
        self.mode = mode

    def handle(self, event: PointerEvent) -> None:
        if event.kind == "press":
            if event.cell is not None:
                self._engine.begin_selection(event.cell.day, event.cell.hour)
        elif event.kind == "move":
            # Finger dragged off the grid: keep the last cursor.
            if event.cell is not None:
                self._engine.extend_selection(event.cell.day, event.cell.hour)
        elif event.kind == "release":
            if event.cell is not None:
                self._engine.extend_selection(event.cell.day, event.cell.hour)
            self._engine.end_selection()


class TapGestureAdapter(GestureAdapter):
    """Two-tap selection: first tap anchors, second tap closes the range."""

    mode = "tap"

    def handle(self, event: PointerEvent) -> None:
        if event.kind != "tap" or event.cell is None:
            return

        cell = event.cell
        if self._engine.state is SelectionState.SELECTING:
            self._engine.extend_selection(cell.day, cell.hour)
            self._engine.end_selection()
        else:
            self._engine.begin_selection(cell.day, cell.hour)


def adapter_for(mode: str, engine: SlotSelectionEngine) -> GestureAdapter:
    """Build the adapter for an input mode ("mouse", "touch" or "tap")."""
    if mode in ("mouse", "touch"):
        return DragGestureAdapter(engine, mode=mode)
    if mode == "tap":
        return TapGestureAdapter(engine)
    raise ValueError(f"Unknown input mode: {mode!r}. Expected one of {MODES}")

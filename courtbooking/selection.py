"""Slot selection engine: drag-to-select over the weekly court grid.

The presentation layer enumerates the fixed day x hour grid and feeds
pointer gestures in as three calls::

    engine = SlotSelectionEngine(reserved, price_per_hour=100_000, resource_id="c1")
    engine.begin_selection(monday, 10)    # press
    engine.extend_selection(monday, 12)   # move
    engine.end_selection()                # release
    quote = engine.current_quote()        # Mon 10:00-13:00, 3h, 300000

State machine::

    idle --begin--> selecting --end--> selected
    selecting --extend--> selecting
    selected --begin--> selecting, any --clear--> idle

Invalid transitions are silent no-ops.  Blocking is checked against the
start hour of each reserved slot only; a multi-hour reservation blocks its
first cell and nothing else.  Submission code re-checks the selected cells
through ``conflicting_cells()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Optional, Union

from courtbooking.grid import SLOT_LENGTH, GridCell

log = logging.getLogger("courtbooking.selection")

Price = Union[int, float]


class SlotStatus(str, Enum):
    BOOKED = "booked"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    AVAILABLE = "available"


# Pending bookings only show up as reserved once an admin confirms them.
BLOCKING_STATUSES = frozenset({SlotStatus.BOOKED, SlotStatus.CONFIRMED})


class SelectionState(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    SELECTED = "selected"


@dataclass(frozen=True)
class ReservedSlot:
    """A read-only snapshot of an occupied range on one court."""

    resource_id: str
    day: date
    start_hour: int
    end_hour: int
    status: SlotStatus = SlotStatus.BOOKED

    def __post_init__(self) -> None:
        if self.start_hour >= self.end_hour:
            raise ValueError(
                f"Reserved slot must end after it starts "
                f"({self.start_hour} >= {self.end_hour})"
            )


@dataclass(frozen=True)
class Selection:
    """Anchor (where the gesture began) and cursor (where it is now)."""

    anchor: GridCell
    cursor: GridCell

    @property
    def start(self) -> datetime:
        return min(self.anchor, self.cursor).start

    @property
    def end(self) -> datetime:
        return max(self.anchor, self.cursor).start + SLOT_LENGTH

    @property
    def duration_hours(self) -> int:
        return int((self.end - self.start) / SLOT_LENGTH)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


@dataclass(frozen=True)
class BookingQuote:
    resource_id: str
    start: datetime
    end: datetime
    duration_hours: int
    price_per_hour: Price
    total_price: Price


class SlotSelectionEngine:
    """Selection state for one court's weekly grid.

    Owned by exactly one grid view; receives a fresh reserved-slot
    snapshot whenever that view re-fetches.
    """

    def __init__(
        self,
        reserved_slots: Iterable[ReservedSlot] = (),
        *,
        price_per_hour: Price,
        resource_id: str = "",
        blocking_statuses: Iterable[SlotStatus] = BLOCKING_STATUSES,
    ) -> None:
        self._check_price(price_per_hour)
        self._reserved: tuple[ReservedSlot, ...] = tuple(reserved_slots)
        self._price_per_hour = price_per_hour
        self._resource_id = resource_id
        self._blocking = frozenset(SlotStatus(s) for s in blocking_statuses)

        self._state = SelectionState.IDLE
        self._anchor: Optional[GridCell] = None
        self._cursor: Optional[GridCell] = None

    @staticmethod
    def _check_price(price_per_hour: Price) -> None:
        if price_per_hour <= 0:
            raise ValueError(f"price_per_hour must be positive, got {price_per_hour!r}")

    # ── Inputs ────────────────────────────────────────────────

    def update(
        self,
        reserved_slots: Optional[Iterable[ReservedSlot]] = None,
        price_per_hour: Optional[Price] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        """Replace the reserved snapshot and/or price. Selection is untouched."""
        if reserved_slots is not None:
            self._reserved = tuple(reserved_slots)
        if price_per_hour is not None:
            self._check_price(price_per_hour)
            self._price_per_hour = price_per_hour
        if resource_id is not None:
            self._resource_id = resource_id

    @property
    def reserved_slots(self) -> tuple[ReservedSlot, ...]:
        return self._reserved

    @property
    def price_per_hour(self) -> Price:
        return self._price_per_hour

    @property
    def resource_id(self) -> str:
        return self._resource_id

    # ── State ─────────────────────────────────────────────────

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def anchor(self) -> Optional[GridCell]:
        return self._anchor

    @property
    def cursor(self) -> Optional[GridCell]:
        return self._cursor

    @property
    def selection(self) -> Optional[Selection]:
        """The normalized in-progress or frozen selection, if any."""
        if self._state is SelectionState.IDLE or self._anchor is None:
            return None
        return Selection(anchor=self._anchor, cursor=self._cursor or self._anchor)

    # ── Gestures ──────────────────────────────────────────────

    def begin_selection(self, day: date, hour: int) -> None:
        cell = GridCell(day, hour)
        if not cell.in_window:
            log.debug("begin ignored: %s %02d:00 outside bookable window", day, hour)
            return
        if self.is_slot_blocked(day, hour):
            log.debug("begin ignored: %s %02d:00 is reserved", day, hour)
            return

        self._anchor = cell
        self._cursor = cell
        self._state = SelectionState.SELECTING
        log.debug("selection begin at %s %02d:00", day, hour)

    def extend_selection(self, day: date, hour: int) -> None:
        if self._state is not SelectionState.SELECTING:
            return
        cell = GridCell(day, hour)
        if not cell.in_window:
            return
        self._cursor = cell

    def end_selection(self) -> None:
        if self._state is not SelectionState.SELECTING:
            return
        self._state = SelectionState.SELECTED
        selection = self.selection
        log.debug("selection frozen: %s -> %s", selection.start, selection.end)

    def clear_selection(self) -> None:
        self._state = SelectionState.IDLE
        self._anchor = None
        self._cursor = None

    # ── Queries ───────────────────────────────────────────────

    def current_quote(self) -> Optional[BookingQuote]:
        if self._state is not SelectionState.SELECTED:
            return None
        selection = self.selection
        hours = selection.duration_hours
        return BookingQuote(
            resource_id=self._resource_id,
            start=selection.start,
            end=selection.end,
            duration_hours=hours,
            price_per_hour=self._price_per_hour,
            total_price=hours * self._price_per_hour,
        )

    def is_slot_selected(self, day: date, hour: int) -> bool:
        selection = self.selection
        if selection is None:
            return False
        return selection.contains(GridCell(day, hour).start)

    def is_slot_blocked(self, day: date, hour: int) -> bool:
        return any(
            slot.status in self._blocking
            and slot.day == day
            and slot.start_hour == hour
            for slot in self._reserved
        )

    def selected_cells(self) -> list[GridCell]:
        """Grid cells covered by the current selection, in time order."""
        selection = self.selection
        if selection is None:
            return []
        cells = []
        moment = selection.start
        while moment < selection.end:
            cell = GridCell.at(moment)
            if cell.in_window:
                cells.append(cell)
            moment += SLOT_LENGTH
        return cells

    def conflicting_cells(self) -> list[GridCell]:
        return [
            cell for cell in self.selected_cells()
            if self.is_slot_blocked(cell.day, cell.hour)
        ]

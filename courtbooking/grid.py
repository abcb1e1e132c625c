"""Weekly booking grid: bookable window, cells, and week arithmetic.

Every court is bookable in one-hour slots from 10:00 to 22:00, so a week
renders as 7 days x 12 hours.  Weeks start on Sunday.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

OPEN_HOUR = 10
CLOSE_HOUR = 22
HOURS = range(OPEN_HOUR, CLOSE_HOUR)

SLOT_LENGTH = timedelta(hours=1)


@dataclass(frozen=True, order=True)
class GridCell:
    """One hour-wide cell of the weekly grid."""

    day: date
    hour: int

    @property
    def start(self) -> datetime:
        return datetime.combine(self.day, time(hour=self.hour))

    @property
    def end(self) -> datetime:
        return self.start + SLOT_LENGTH

    @property
    def in_window(self) -> bool:
        return OPEN_HOUR <= self.hour < CLOSE_HOUR

    @classmethod
    def at(cls, moment: datetime) -> "GridCell":
        return cls(day=moment.date(), hour=moment.hour)


def week_start(day: date) -> date:
    """Return the Sunday on or before ``day``."""
    # date.weekday(): Monday == 0 ... Sunday == 6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_days(day: date) -> list[date]:
    first = week_start(day)
    return [first + timedelta(days=offset) for offset in range(7)]


def week_bounds(day: date) -> tuple[date, date]:
    """First and last day (inclusive) of the week containing ``day``."""
    first = week_start(day)
    return first, first + timedelta(days=6)


def week_cells(day: date) -> list[GridCell]:
    """All cells of the week containing ``day``, hour-major."""
    days = week_days(day)
    return [GridCell(d, hour) for hour in HOURS for d in days]


def parse_clock(value: str) -> int:
    """Hour component of a store time string (``HH:MM`` or ``HH:MM:SS``)."""
    return int(value.split(":", 1)[0])


def format_clock(hour: int) -> str:
    return f"{hour:02d}:00:00"

"""Pydantic models for bookings and confirmed schedule entries."""

from __future__ import annotations

from datetime import date as date_type
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from courtbooking.grid import parse_clock
from courtbooking.selection import BookingQuote, ReservedSlot, SlotStatus


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Booking(BaseModel):
    """Row of the ``bookings`` table."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    user_id: str
    court_id: str
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM:SS
    end_time: str  # HH:MM:SS
    duration: int
    total_price: Optional[float] = None
    status: BookingStatus = BookingStatus.PENDING
    payment_proof: Optional[str] = None
    created_at: str = ""


class BookingDraft(BaseModel):
    """Insert payload for a new booking, derived from a frozen quote."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    court_id: str
    user_id: str
    date: str
    start_time: str
    end_time: str
    duration: int
    total_price: float
    status: BookingStatus = BookingStatus.PENDING
    payment_proof: Optional[str] = None

    @classmethod
    def from_quote(cls, quote: BookingQuote, user_id: str) -> "BookingDraft":
        return cls(
            court_id=quote.resource_id,
            user_id=user_id,
            date=quote.start.date().isoformat(),
            start_time=quote.start.strftime("%H:%M:%S"),
            end_time=quote.end.strftime("%H:%M:%S"),
            duration=quote.duration_hours,
            total_price=quote.total_price,
        )


class ScheduleEntry(BaseModel):
    """Row of the ``schedules`` table, written when an admin confirms payment."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    court_id: str
    date: str
    start_time: str
    end_time: str
    status: str = "booked"  # "booked" or "available"
    user_id: Optional[str] = None

    @property
    def start_hour(self) -> int:
        return parse_clock(self.start_time)

    @property
    def end_hour(self) -> int:
        return parse_clock(self.end_time)

    def covers(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour

    def to_reserved_slot(self) -> ReservedSlot:
        return ReservedSlot(
            resource_id=self.court_id,
            day=date_type.fromisoformat(self.date),
            start_hour=self.start_hour,
            end_hour=self.end_hour,
            status=SlotStatus(self.status),
        )

    @classmethod
    def for_booking(cls, booking: Booking, entry_id: str = "") -> "ScheduleEntry":
        return cls(
            id=entry_id,
            court_id=booking.court_id,
            date=booking.date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            status="booked",
            user_id=booking.user_id,
        )

"""Data models for persisted records and the user session context."""

from .booking import Booking, BookingDraft, BookingStatus, ScheduleEntry
from .court import Court
from .user import UserRecord, UserSession

__all__ = [
    "Booking",
    "BookingDraft",
    "BookingStatus",
    "Court",
    "ScheduleEntry",
    "UserRecord",
    "UserSession",
]

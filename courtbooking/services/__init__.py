"""Booking, admin and schedule-board services."""

from .admin import AdminService
from .booking import BookingError, BookingService, NotFoundError
from .schedule import ScheduleBoard

__all__ = [
    "AdminService",
    "BookingError",
    "BookingService",
    "NotFoundError",
    "ScheduleBoard",
]

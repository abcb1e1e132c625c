"""Admin dashboard operations.

Payment review is the heart of it: a customer's booking stays ``pending``
until an admin has looked at the uploaded receipt.  Confirming writes a
``booked`` schedule entry, which is what makes the slot show as reserved
on every grid.  Pending bookings never block the grid, so two customers can
submit the same hour; the admin resolves that by cancelling one of them.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from typing import Any, Optional

from courtbooking.grid import week_bounds
from courtbooking.models import (
    Booking,
    BookingStatus,
    Court,
    ScheduleEntry,
    UserRecord,
)
from courtbooking.stores.base import ResourceStore

from .booking import BookingError, NotFoundError, with_names

logger = logging.getLogger(__name__)

COURT_FIELDS = {"name", "address", "price", "status", "image_url"}
SCHEDULE_STATUSES = ("booked", "available")


class AdminService:
    """Operations behind the admin dashboard tabs."""

    def __init__(self, store: ResourceStore) -> None:
        self._store = store

    # ---- Payment review ---------------------------------------------------

    async def pending_payments(self) -> list[dict[str, Any]]:
        """Bookings awaiting review, with court name and customer name/email."""
        bookings = await self._store.list_bookings(status=BookingStatus.PENDING.value)
        return await with_names(self._store, bookings)

    async def confirm_booking(self, booking_id: str) -> tuple[Booking, ScheduleEntry]:
        """Accept the payment and reserve the slot on the schedule."""
        booking = await self._require_booking(booking_id)
        if not (booking.court_id and booking.date and booking.start_time and booking.end_time):
            raise BookingError(f"Booking {booking_id} is incomplete; cannot confirm.")
        if booking.status is not BookingStatus.PENDING:
            raise BookingError(
                f"Booking {booking_id} is {booking.status.value}; only pending bookings can be confirmed."
            )

        confirmed = await self._store.update_booking(
            booking_id, {"status": BookingStatus.CONFIRMED.value}
        )
        entry = await self._store.create_schedule(ScheduleEntry.for_booking(confirmed))
        logger.info(
            "Booking %s confirmed; schedule %s reserves court %s %s %s-%s",
            booking_id, entry.id, entry.court_id, entry.date, entry.start_time, entry.end_time,
        )
        return confirmed, entry

    async def cancel_booking(self, booking_id: str) -> Booking:
        await self._require_booking(booking_id)
        cancelled = await self._store.update_booking(
            booking_id, {"status": BookingStatus.CANCELLED.value}
        )
        logger.info("Booking %s cancelled by admin", booking_id)
        return cancelled

    # ---- Dashboard --------------------------------------------------------

    async def dashboard_stats(self) -> dict[str, int]:
        courts = await self._store.list_courts()
        users = await self._store.list_users()
        bookings = await self._store.list_bookings()
        by_status = Counter(b.status.value for b in bookings)
        return {
            "total_courts": len(courts),
            "total_users": len(users),
            "total_bookings": len(bookings),
            "confirmed_bookings": by_status[BookingStatus.CONFIRMED.value],
            "pending_bookings": by_status[BookingStatus.PENDING.value],
            "cancelled_bookings": by_status[BookingStatus.CANCELLED.value],
        }

    async def daily_breakdown(self, limit: int = 30) -> list[dict[str, Any]]:
        """Per-date status counts over the earliest ``limit`` bookings."""
        bookings = (await self._store.list_bookings())[:limit]
        days: dict[str, dict[str, Any]] = {}
        for booking in bookings:
            row = days.setdefault(
                booking.date,
                {"date": booking.date, "confirmed": 0, "pending": 0, "cancelled": 0},
            )
            row[booking.status.value] += 1
        return list(days.values())

    async def transaction_history(self, search: str = "") -> list[dict[str, Any]]:
        """All bookings with court name and user email, filtered by ``search``."""
        needle = search.strip().lower()
        rows = await with_names(self._store, await self._store.list_bookings())
        if not needle:
            return rows
        return [
            row for row in rows
            if any(needle in str(row[key]).lower() for key in ("status", "court_name", "user_email"))
        ]

    # ---- Courts -----------------------------------------------------------

    async def list_courts(self) -> list[Court]:
        return await self._store.list_courts()

    async def create_court(self, fields: dict[str, Any]) -> Court:
        clean = self._court_fields(fields)
        if not clean.get("name"):
            raise BookingError("Court name is required.")
        court = await self._store.create_court(clean)
        logger.info("Court %s created: %s", court.id, court.name)
        return court

    async def update_court(self, court_id: str, fields: dict[str, Any]) -> Court:
        if await self._store.get_court(court_id) is None:
            raise NotFoundError(f"Court {court_id} not found")
        return await self._store.update_court(court_id, self._court_fields(fields))

    async def delete_court(self, court_id: str) -> None:
        if await self._store.get_court(court_id) is None:
            raise NotFoundError(f"Court {court_id} not found")
        await self._store.delete_court(court_id)
        logger.info("Court %s deleted", court_id)

    @staticmethod
    def _court_fields(fields: dict[str, Any]) -> dict[str, Any]:
        clean = {k: v for k, v in fields.items() if k in COURT_FIELDS}
        if "price" in clean:
            try:
                price = float(clean["price"])
            except (TypeError, ValueError):
                raise BookingError(f"Invalid court price {clean['price']!r}") from None
            if price <= 0:
                raise BookingError("Court price must be positive.")
            clean["price"] = price
        return clean

    # ---- Schedules --------------------------------------------------------

    async def list_schedules(
        self, week_of: Optional[date] = None, court_id: Optional[str] = None
    ) -> list[ScheduleEntry]:
        first, last = week_bounds(week_of or date.today())
        return await self._store.list_schedules(first, last, court_id=court_id)

    async def toggle_schedule(self, schedule_id: str, current_status: str) -> ScheduleEntry:
        """Flip an entry between ``booked`` and ``available``."""
        if current_status not in SCHEDULE_STATUSES:
            raise BookingError(f"Unknown schedule status {current_status!r}")
        new_status = "booked" if current_status == "available" else "available"
        return await self._store.set_schedule_status(schedule_id, new_status)

    async def delete_schedule(self, schedule_id: str) -> None:
        await self._store.delete_schedule(schedule_id)
        logger.info("Schedule %s deleted", schedule_id)

    # ---- Users ------------------------------------------------------------

    async def list_users(self) -> list[UserRecord]:
        return await self._store.list_users()

    # ---- Internal ---------------------------------------------------------

    async def _require_booking(self, booking_id: str) -> Booking:
        booking = await self._store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

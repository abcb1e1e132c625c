"""Abstract base classes for the external backend collaborators.

Persistence, identity and file storage all live in a hosted
backend-as-a-service.  These ABCs are the only surface the rest of the
package talks to; ``stores.memory`` and ``stores.supabase`` implement them.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional

from courtbooking.models import (
    Booking,
    BookingDraft,
    Court,
    ScheduleEntry,
    UserRecord,
    UserSession,
)


class StoreError(Exception):
    """A backend call failed (transport error, rejected write, missing row)."""


class ResourceStore(ABC):
    """Tables: courts, schedules, bookings, users."""

    # ── Courts ────────────────────────────────────────────────

    @abstractmethod
    async def list_courts(self) -> list[Court]:
        """Return every court."""

    @abstractmethod
    async def get_court(self, court_id: str) -> Optional[Court]:
        """Return one court, or None if it does not exist."""

    @abstractmethod
    async def create_court(self, fields: dict[str, Any]) -> Court:
        """Insert a court and return the stored row."""

    @abstractmethod
    async def update_court(self, court_id: str, fields: dict[str, Any]) -> Court:
        """Update a court and return the stored row."""

    @abstractmethod
    async def delete_court(self, court_id: str) -> None:
        """Delete a court."""

    # ── Schedules ─────────────────────────────────────────────

    @abstractmethod
    async def list_schedules(
        self,
        start: date,
        end: date,
        court_id: Optional[str] = None,
    ) -> list[ScheduleEntry]:
        """Schedule entries with ``start <= date <= end``.

        Ordered by date then start time.  Filtered to one court when
        ``court_id`` is given.
        """

    @abstractmethod
    async def create_schedule(self, entry: ScheduleEntry) -> ScheduleEntry:
        """Insert a schedule entry; the store assigns the id."""

    @abstractmethod
    async def set_schedule_status(self, schedule_id: str, status: str) -> ScheduleEntry:
        """Change a schedule entry's status."""

    @abstractmethod
    async def delete_schedule(self, schedule_id: str) -> None:
        """Delete a schedule entry."""

    # ── Bookings ──────────────────────────────────────────────

    @abstractmethod
    async def list_bookings(
        self,
        user_id: Optional[str] = None,
        court_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Booking]:
        """Bookings matching every given filter, ordered by date."""

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Return one booking, or None."""

    @abstractmethod
    async def create_booking(
        self, draft: BookingDraft, access_token: Optional[str] = None
    ) -> Booking:
        """Insert a booking and return the stored row.

        ``access_token`` is the signed-in customer's token; backends with
        row-level security authorize the write as that user.
        """

    @abstractmethod
    async def update_booking(
        self,
        booking_id: str,
        fields: dict[str, Any],
        user_id: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> Booking:
        """Update a booking.

        When ``user_id`` is given the update only applies if the booking
        belongs to that user; otherwise ``StoreError`` is raised.  The write
        is made as ``access_token``'s user when one is given.
        """

    # ── Users ─────────────────────────────────────────────────

    @abstractmethod
    async def list_users(self) -> list[UserRecord]:
        """Return every user record."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        """Return one user record, or None."""


class IdentityProvider(ABC):
    """Sign-in, sign-up, sign-out and token lookup."""

    @abstractmethod
    async def sign_up(self, email: str, password: str, full_name: str = "") -> UserSession:
        """Create an account and return a signed-in session."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> UserSession:
        """Exchange credentials for a session. Raises StoreError on failure."""

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        """Invalidate the token."""

    @abstractmethod
    async def get_user(self, access_token: str) -> Optional[UserSession]:
        """Resolve a token to its session, or None if invalid/expired."""

    @abstractmethod
    async def update_user(self, access_token: str, metadata: dict[str, Any]) -> UserSession:
        """Merge ``metadata`` into the user's profile metadata."""


class BlobStore(ABC):
    """Public file buckets (payment proofs, avatars)."""

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        access_token: Optional[str] = None,
    ) -> str:
        """Store ``content`` at ``bucket/path`` and return its public URL.

        Uploads are made as ``access_token``'s user when one is given.
        """

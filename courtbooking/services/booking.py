"""Customer-side booking flow: submit, pay, review, cancel.

A submission turns the frozen selection of a BookingSession into a
``pending`` booking row.  Payment is a manual transfer; the customer uploads
a photo of the receipt which an admin later checks (see ``services.admin``).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from courtbooking.config import settings
from courtbooking.models import Booking, BookingDraft, BookingStatus, UserSession
from courtbooking.selection import SelectionState
from courtbooking.session import BookingSession, redact_pii
from courtbooking.stores.base import BlobStore, IdentityProvider, ResourceStore

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
}


class BookingError(ValueError):
    """The request breaks a booking rule (nothing was written)."""


class NotFoundError(LookupError):
    """No row with that id is visible to the caller."""


def image_extension(content_type: str) -> str:
    """File extension for an uploaded image, rejecting non-images."""
    ext = _EXTENSIONS.get(content_type.lower())
    if ext is None:
        raise BookingError(
            f"Unsupported file type {content_type!r}. Upload a JPEG, PNG, WEBP or HEIC image."
        )
    return ext


async def with_names(
    store: ResourceStore, bookings: list[Booking], include_users: bool = True
) -> list[dict[str, Any]]:
    """Booking rows as dicts with ``court_name`` (and ``user_email``/``user_name``)."""
    courts = {c.id: c for c in await store.list_courts()}
    users = {u.id: u for u in await store.list_users()} if include_users else {}

    rows = []
    for booking in bookings:
        court = courts.get(booking.court_id)
        row = {**booking.model_dump(mode="json"), "court_name": court.name if court else ""}
        if include_users:
            user = users.get(booking.user_id)
            row["user_email"] = user.email if user else ""
            row["user_name"] = user.full_name if user else ""
        rows.append(row)
    return rows


class BookingService:
    """Booking operations for a signed-in customer."""

    def __init__(
        self,
        store: ResourceStore,
        blobs: BlobStore,
        identity: Optional[IdentityProvider] = None,
        payment_proof_bucket: str = "",
        avatar_bucket: str = "",
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._identity = identity
        self._proof_bucket = payment_proof_bucket or settings.payment_proof_bucket
        self._avatar_bucket = avatar_bucket or settings.avatar_bucket

    # ---- Submission -------------------------------------------------------

    async def submit(self, session: BookingSession, user: UserSession) -> Booking:
        """Insert a pending booking for the session's frozen selection.

        The session's selection is cleared only after the insert succeeds,
        so a failed submission can be retried as-is.
        """
        engine = session.engine
        if engine.state is not SelectionState.SELECTED:
            raise BookingError("Select a time range on the grid before booking.")

        quote = engine.current_quote()
        if quote.start.date() != quote.end.date():
            raise BookingError("A booking must start and end on the same day.")

        conflicts = engine.conflicting_cells()
        if conflicts:
            taken = ", ".join(f"{c.day.isoformat()} {c.hour:02d}:00" for c in conflicts)
            raise BookingError(f"These slots are already booked: {taken}")

        draft = BookingDraft.from_quote(quote, user_id=user.user_id)
        booking = await self._store.create_booking(draft, access_token=user.access_token)
        session.clear_selection()

        logger.info(
            "Booking %s submitted by %s: court=%s %s %s-%s total=%s",
            booking.id,
            redact_pii(user.email),
            booking.court_id,
            booking.date,
            booking.start_time,
            booking.end_time,
            booking.total_price,
        )
        return booking

    # ---- Payment proof ----------------------------------------------------

    async def attach_payment_proof(
        self,
        user: UserSession,
        booking_id: str,
        content: bytes,
        content_type: str,
    ) -> Booking:
        """Upload a receipt image and mark the booking as awaiting review."""
        if not content:
            raise BookingError("Please upload payment proof.")
        ext = image_extension(content_type)

        booking = await self._get_own_booking(user, booking_id)
        if booking.status is not BookingStatus.PENDING:
            raise BookingError(f"Booking {booking_id} is {booking.status.value}; no payment expected.")

        court = await self._store.get_court(booking.court_id)
        if court is None:
            raise NotFoundError(f"Court {booking.court_id} not found")

        path = f"proof_{user.user_id}_{int(time.time() * 1000)}.{ext}"
        url = await self._blobs.upload(
            self._proof_bucket, path, content, content_type, access_token=user.access_token,
        )

        updated = await self._store.update_booking(
            booking_id,
            {
                "payment_proof": url,
                "status": BookingStatus.PENDING.value,
                "total_price": court.price * booking.duration,
            },
            user_id=user.user_id,
            access_token=user.access_token,
        )
        logger.info("Payment proof attached to booking %s", booking_id)
        return updated

    # ---- History ----------------------------------------------------------

    async def list_user_bookings(
        self, user: UserSession, status: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """The user's bookings, newest first, with the court name."""
        if status in (None, "", "all"):
            status = None
        elif status not in {s.value for s in BookingStatus}:
            raise BookingError(f"Unknown booking status {status!r}")
        bookings = await self._store.list_bookings(user_id=user.user_id, status=status)
        bookings.sort(key=lambda b: b.created_at, reverse=True)
        return await with_names(self._store, bookings, include_users=False)

    async def get_booking(self, user: UserSession, booking_id: str) -> Booking:
        return await self._get_own_booking(user, booking_id)

    async def cancel_booking(self, user: UserSession, booking_id: str) -> Booking:
        """Customers may withdraw a booking while it is still pending."""
        booking = await self._get_own_booking(user, booking_id)
        if booking.status is not BookingStatus.PENDING:
            raise BookingError(
                f"Only pending bookings can be cancelled (booking is {booking.status.value})."
            )
        updated = await self._store.update_booking(
            booking_id,
            {"status": BookingStatus.CANCELLED.value},
            user_id=user.user_id,
            access_token=user.access_token,
        )
        logger.info("Booking %s cancelled by owner", booking_id)
        return updated

    # ---- Profile ----------------------------------------------------------

    async def update_profile(self, user: UserSession, full_name: str) -> UserSession:
        if self._identity is None:
            raise RuntimeError("BookingService was built without an identity provider")
        full_name = full_name.strip()
        if not full_name:
            raise BookingError("Name cannot be empty.")
        updated = await self._identity.update_user(user.access_token, {"full_name": full_name})
        return updated.model_copy(update={"is_admin": user.is_admin})

    async def upload_avatar(
        self, user: UserSession, content: bytes, content_type: str
    ) -> UserSession:
        if self._identity is None:
            raise RuntimeError("BookingService was built without an identity provider")
        ext = image_extension(content_type)
        path = f"{user.user_id}/avatar_{int(time.time() * 1000)}.{ext}"
        url = await self._blobs.upload(
            self._avatar_bucket, path, content, content_type, access_token=user.access_token,
        )
        updated = await self._identity.update_user(user.access_token, {"avatar_url": url})
        return updated.model_copy(update={"is_admin": user.is_admin})

    # ---- Internal ---------------------------------------------------------

    async def _get_own_booking(self, user: UserSession, booking_id: str) -> Booking:
        booking = await self._store.get_booking(booking_id)
        if booking is None or booking.user_id != user.user_id:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking


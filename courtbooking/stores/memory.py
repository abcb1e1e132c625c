"""In-process backend for local development and tests.

Rows live in plain dicts keyed by id.  Behaviour mirrors the hosted
backend closely enough for the services: filters, ordering, owner-guarded
updates and public URLs for uploaded blobs.
"""

from __future__ import annotations

import hashlib
import itertools
import logging
import secrets
from datetime import date, datetime, timezone
from typing import Any, Optional

from courtbooking.models import (
    Booking,
    BookingDraft,
    Court,
    ScheduleEntry,
    UserRecord,
    UserSession,
)

from .base import BlobStore, IdentityProvider, ResourceStore, StoreError

logger = logging.getLogger(__name__)


class InMemoryResourceStore(ResourceStore):
    """ResourceStore backed by dicts."""

    def __init__(self) -> None:
        self._courts: dict[str, Court] = {}
        self._schedules: dict[str, ScheduleEntry] = {}
        self._bookings: dict[str, Booking] = {}
        self._users: dict[str, UserRecord] = {}
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    # ------------------------------------------------------------------
    # Seeding helpers (not part of the ResourceStore interface)
    # ------------------------------------------------------------------

    def add_court(self, court: Court) -> Court:
        self._courts[court.id] = court
        return court

    def add_user(self, user: UserRecord) -> UserRecord:
        self._users[user.id] = user
        return user

    def add_schedule(self, entry: ScheduleEntry) -> ScheduleEntry:
        if not entry.id:
            entry = entry.model_copy(update={"id": self._next_id("sch")})
        self._schedules[entry.id] = entry
        return entry

    # ------------------------------------------------------------------
    # Courts
    # ------------------------------------------------------------------

    async def list_courts(self) -> list[Court]:
        return list(self._courts.values())

    async def get_court(self, court_id: str) -> Optional[Court]:
        return self._courts.get(court_id)

    async def create_court(self, fields: dict[str, Any]) -> Court:
        court = Court(**{"id": self._next_id("court"), **fields})
        self._courts[court.id] = court
        return court

    async def update_court(self, court_id: str, fields: dict[str, Any]) -> Court:
        court = self._courts.get(court_id)
        if court is None:
            raise StoreError(f"Court {court_id} not found")
        updated = Court(**{**court.model_dump(), **fields, "id": court_id})
        self._courts[court_id] = updated
        return updated

    async def delete_court(self, court_id: str) -> None:
        if self._courts.pop(court_id, None) is None:
            raise StoreError(f"Court {court_id} not found")

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    async def list_schedules(
        self,
        start: date,
        end: date,
        court_id: Optional[str] = None,
    ) -> list[ScheduleEntry]:
        lo, hi = start.isoformat(), end.isoformat()
        rows = [
            entry for entry in self._schedules.values()
            if lo <= entry.date <= hi
            and (court_id is None or entry.court_id == court_id)
        ]
        rows.sort(key=lambda e: (e.date, e.start_time))
        return rows

    async def create_schedule(self, entry: ScheduleEntry) -> ScheduleEntry:
        stored = entry.model_copy(update={"id": self._next_id("sch")})
        self._schedules[stored.id] = stored
        return stored

    async def set_schedule_status(self, schedule_id: str, status: str) -> ScheduleEntry:
        entry = self._schedules.get(schedule_id)
        if entry is None:
            raise StoreError(f"Schedule {schedule_id} not found")
        updated = entry.model_copy(update={"status": status})
        self._schedules[schedule_id] = updated
        return updated

    async def delete_schedule(self, schedule_id: str) -> None:
        if self._schedules.pop(schedule_id, None) is None:
            raise StoreError(f"Schedule {schedule_id} not found")

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def list_bookings(
        self,
        user_id: Optional[str] = None,
        court_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Booking]:
        rows = [
            b for b in self._bookings.values()
            if (user_id is None or b.user_id == user_id)
            and (court_id is None or b.court_id == court_id)
            and (status is None or b.status == status)
        ]
        rows.sort(key=lambda b: (b.date, b.start_time))
        return rows

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    async def create_booking(
        self, draft: BookingDraft, access_token: Optional[str] = None
    ) -> Booking:
        booking = Booking(
            id=self._next_id("bk"),
            created_at=datetime.now(tz=timezone.utc).isoformat(),
            **draft.model_dump(),
        )
        self._bookings[booking.id] = booking
        logger.info("Stored booking %s for court %s", booking.id, booking.court_id)
        return booking

    async def update_booking(
        self,
        booking_id: str,
        fields: dict[str, Any],
        user_id: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None or (user_id is not None and booking.user_id != user_id):
            raise StoreError(f"Booking {booking_id} not found")
        updated = Booking(**{**booking.model_dump(), **fields, "id": booking_id})
        self._bookings[booking_id] = updated
        return updated

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def list_users(self) -> list[UserRecord]:
        return list(self._users.values())

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id)


class InMemoryIdentityProvider(IdentityProvider):
    """Email/password accounts with opaque random tokens.

    When given a ``store``, sign-up also writes the ``users`` row, as the
    hosted backend's trigger does.
    """

    def __init__(self, store: Optional[InMemoryResourceStore] = None) -> None:
        self._store = store
        self._accounts: dict[str, dict[str, Any]] = {}  # email -> account
        self._tokens: dict[str, str] = {}  # token -> email
        self._ids = itertools.count(1)

    @staticmethod
    def _hash(password: str) -> str:
        return hashlib.sha256(password.encode("utf-8")).hexdigest()

    def _session_for(self, email: str, token: str) -> UserSession:
        account = self._accounts[email]
        return UserSession(
            user_id=account["id"],
            email=email,
            access_token=token,
            full_name=account["metadata"].get("full_name", ""),
            avatar_url=account["metadata"].get("avatar_url"),
        )

    def _issue(self, email: str) -> UserSession:
        token = secrets.token_urlsafe(24)
        self._tokens[token] = email
        return self._session_for(email, token)

    async def sign_up(self, email: str, password: str, full_name: str = "") -> UserSession:
        if email in self._accounts:
            raise StoreError("User already registered")
        user_id = f"user_{next(self._ids)}"
        self._accounts[email] = {
            "id": user_id,
            "password": self._hash(password),
            "metadata": {"full_name": full_name},
        }
        if self._store is not None:
            self._store.add_user(UserRecord(id=user_id, email=email, full_name=full_name))
        return self._issue(email)

    async def sign_in(self, email: str, password: str) -> UserSession:
        account = self._accounts.get(email)
        if account is None or account["password"] != self._hash(password):
            raise StoreError("Invalid login credentials")
        return self._issue(email)

    async def sign_out(self, access_token: str) -> None:
        self._tokens.pop(access_token, None)

    async def get_user(self, access_token: str) -> Optional[UserSession]:
        email = self._tokens.get(access_token)
        if email is None:
            return None
        return self._session_for(email, access_token)

    async def update_user(self, access_token: str, metadata: dict[str, Any]) -> UserSession:
        email = self._tokens.get(access_token)
        if email is None:
            raise StoreError("Invalid or expired session")
        self._accounts[email]["metadata"].update(metadata)
        return self._session_for(email, access_token)


class InMemoryBlobStore(BlobStore):
    """Keeps uploaded bytes in memory; URLs use a fake public host."""

    def __init__(self, base_url: str = "memory://storage") -> None:
        self._base_url = base_url.rstrip("/")
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        access_token: Optional[str] = None,
    ) -> str:
        key = f"{bucket}/{path}"
        if key in self.objects:
            raise StoreError(f"Object {key} already exists")
        self.objects[key] = (content, content_type)
        return f"{self._base_url}/{key}"

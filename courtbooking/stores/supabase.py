"""Supabase backend implementation over its REST APIs.

Talks to the three Supabase services with ``httpx``:

* PostgREST (``/rest/v1``):  courts, schedules, bookings, users tables
* GoTrue    (``/auth/v1``):  sign-up / sign-in / sign-out / user lookup
* Storage   (``/storage/v1``): payment proofs and avatars in public buckets

The project URL and anon key come from ``SUPABASE_URL`` and
``SUPABASE_ANON_KEY``.  Row-level security on the project decides what
the anon key may touch; user-scoped calls pass the user's access token.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

import httpx

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

_RETURN_ROWS = {"Prefer": "return=representation"}


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable message out of a Supabase error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return str(body)[:200]


class SupabaseClient:
    """Thin async wrapper shared by the three Supabase-backed collaborators."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url or not anon_key:
            raise ValueError(
                "Supabase URL and anon key must be provided via constructor "
                "arguments or SUPABASE_URL / SUPABASE_ANON_KEY env vars."
            )
        self.url = url.rstrip("/")
        self._anon_key = anon_key
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout,
            transport=transport,
            headers={"apikey": anon_key},
        )

    def _auth_headers(self, access_token: str | None) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token or self._anon_key}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        access_token: str | None = None,
    ) -> Any:
        """Send one request; return decoded JSON (or None for empty bodies)."""
        merged = self._auth_headers(access_token)
        if headers:
            merged.update(headers)

        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                content=content,
                headers=merged,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            logger.error(
                "Supabase %s %s failed (%d): %s",
                method, path, exc.response.status_code, detail,
            )
            raise StoreError(detail) from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase %s %s unreachable: %s", method, path, exc)
            raise StoreError(f"Backend unreachable: {exc}") from exc

        if not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


class SupabaseResourceStore(ResourceStore):
    """ResourceStore backed by PostgREST tables."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _select(self, table: str, params: list[tuple[str, str]]) -> list[dict]:
        rows = await self._client.request(
            "GET", f"/rest/v1/{table}", params=[("select", "*"), *params]
        )
        return rows or []

    async def _insert(
        self, table: str, row: dict[str, Any], access_token: Optional[str] = None
    ) -> dict:
        rows = await self._client.request(
            "POST", f"/rest/v1/{table}", json=row, headers=_RETURN_ROWS,
            access_token=access_token,
        )
        if not rows:
            raise StoreError(f"Insert into {table} returned no row")
        return rows[0]

    async def _update(
        self,
        table: str,
        filters: list[tuple[str, str]],
        fields: dict[str, Any],
        access_token: Optional[str] = None,
    ) -> dict:
        rows = await self._client.request(
            "PATCH", f"/rest/v1/{table}", params=filters, json=fields, headers=_RETURN_ROWS,
            access_token=access_token,
        )
        if not rows:
            raise StoreError(f"No {table} row matched {filters}")
        return rows[0]

    async def _delete(self, table: str, row_id: str) -> None:
        rows = await self._client.request(
            "DELETE", f"/rest/v1/{table}", params=[("id", f"eq.{row_id}")], headers=_RETURN_ROWS
        )
        if not rows:
            raise StoreError(f"No {table} row with id {row_id}")

    # ------------------------------------------------------------------
    # Courts
    # ------------------------------------------------------------------

    async def list_courts(self) -> list[Court]:
        return [Court(**row) for row in await self._select("courts", [("order", "name.asc")])]

    async def get_court(self, court_id: str) -> Optional[Court]:
        rows = await self._select("courts", [("id", f"eq.{court_id}")])
        return Court(**rows[0]) if rows else None

    async def create_court(self, fields: dict[str, Any]) -> Court:
        return Court(**await self._insert("courts", fields))

    async def update_court(self, court_id: str, fields: dict[str, Any]) -> Court:
        return Court(**await self._update("courts", [("id", f"eq.{court_id}")], fields))

    async def delete_court(self, court_id: str) -> None:
        await self._delete("courts", court_id)

    # ------------------------------------------------------------------
    # Schedules
    # ------------------------------------------------------------------

    async def list_schedules(
        self,
        start: date,
        end: date,
        court_id: Optional[str] = None,
    ) -> list[ScheduleEntry]:
        params = [
            ("date", f"gte.{start.isoformat()}"),
            ("date", f"lte.{end.isoformat()}"),
            ("order", "date.asc,start_time.asc"),
        ]
        if court_id is not None:
            params.append(("court_id", f"eq.{court_id}"))
        return [ScheduleEntry(**row) for row in await self._select("schedules", params)]

    async def create_schedule(self, entry: ScheduleEntry) -> ScheduleEntry:
        row = entry.model_dump(exclude={"id"})
        return ScheduleEntry(**await self._insert("schedules", row))

    async def set_schedule_status(self, schedule_id: str, status: str) -> ScheduleEntry:
        row = await self._update("schedules", [("id", f"eq.{schedule_id}")], {"status": status})
        return ScheduleEntry(**row)

    async def delete_schedule(self, schedule_id: str) -> None:
        await self._delete("schedules", schedule_id)

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    async def list_bookings(
        self,
        user_id: Optional[str] = None,
        court_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Booking]:
        params = [("order", "date.asc,start_time.asc")]
        if user_id is not None:
            params.append(("user_id", f"eq.{user_id}"))
        if court_id is not None:
            params.append(("court_id", f"eq.{court_id}"))
        if status is not None:
            params.append(("status", f"eq.{status}"))
        return [Booking(**row) for row in await self._select("bookings", params)]

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        rows = await self._select("bookings", [("id", f"eq.{booking_id}")])
        return Booking(**rows[0]) if rows else None

    async def create_booking(
        self, draft: BookingDraft, access_token: Optional[str] = None
    ) -> Booking:
        row = await self._insert("bookings", draft.model_dump(mode="json"), access_token)
        logger.info("Inserted booking %s for court %s", row.get("id"), draft.court_id)
        return Booking(**row)

    async def update_booking(
        self,
        booking_id: str,
        fields: dict[str, Any],
        user_id: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> Booking:
        filters = [("id", f"eq.{booking_id}")]
        if user_id is not None:
            filters.append(("user_id", f"eq.{user_id}"))
        return Booking(**await self._update("bookings", filters, fields, access_token))

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def list_users(self) -> list[UserRecord]:
        return [UserRecord(**row) for row in await self._select("users", [])]

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        rows = await self._select("users", [("id", f"eq.{user_id}")])
        return UserRecord(**rows[0]) if rows else None


class SupabaseIdentityProvider(IdentityProvider):
    """IdentityProvider backed by Supabase Auth (GoTrue)."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    @staticmethod
    def _to_session(user: dict, access_token: str = "") -> UserSession:
        metadata = user.get("user_metadata") or {}
        return UserSession(
            user_id=user["id"],
            email=user.get("email", ""),
            access_token=access_token,
            full_name=metadata.get("full_name", ""),
            avatar_url=metadata.get("avatar_url"),
        )

    async def sign_up(self, email: str, password: str, full_name: str = "") -> UserSession:
        body = await self._client.request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": {"full_name": full_name}},
        )
        # With email confirmation enabled GoTrue returns the bare user and no token.
        if "access_token" in body:
            return self._to_session(body["user"], body["access_token"])
        return self._to_session(body)

    async def sign_in(self, email: str, password: str) -> UserSession:
        body = await self._client.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return self._to_session(body["user"], body["access_token"])

    async def sign_out(self, access_token: str) -> None:
        await self._client.request("POST", "/auth/v1/logout", access_token=access_token)

    async def get_user(self, access_token: str) -> Optional[UserSession]:
        try:
            user = await self._client.request("GET", "/auth/v1/user", access_token=access_token)
        except StoreError:
            return None
        return self._to_session(user, access_token) if user else None

    async def update_user(self, access_token: str, metadata: dict[str, Any]) -> UserSession:
        user = await self._client.request(
            "PUT", "/auth/v1/user", json={"data": metadata}, access_token=access_token
        )
        return self._to_session(user, access_token)


class SupabaseBlobStore(BlobStore):
    """BlobStore backed by Supabase Storage public buckets."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._client.url}/storage/v1/object/public/{bucket}/{path}"

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        access_token: Optional[str] = None,
    ) -> str:
        await self._client.request(
            "POST",
            f"/storage/v1/object/{bucket}/{path}",
            content=content,
            headers={"Content-Type": content_type},
            access_token=access_token,
        )
        logger.info("Uploaded %d bytes to %s/%s", len(content), bucket, path)
        return self.public_url(bucket, path)

"""Tests for the Supabase REST backend, using httpx.MockTransport."""

import json
import os
import sys
from datetime import date

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx
import pytest

from courtbooking.models import BookingDraft, ScheduleEntry
from courtbooking.stores import StoreError
from courtbooking.stores.supabase import (
    SupabaseBlobStore,
    SupabaseClient,
    SupabaseIdentityProvider,
    SupabaseResourceStore,
)

URL = "https://demo.supabase.co"
KEY = "anon-key"


def _client(handler):
    """SupabaseClient whose requests are answered by ``handler``."""
    requests = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return SupabaseClient(URL, KEY, transport=httpx.MockTransport(record)), requests


class TestClientConfig:
    def test_requires_url_and_key(self):
        with pytest.raises(ValueError):
            SupabaseClient("", KEY)
        with pytest.raises(ValueError):
            SupabaseClient(URL, "")

    @pytest.mark.asyncio
    async def test_headers_use_anon_key_by_default(self):
        client, requests = _client(lambda r: httpx.Response(200, json=[]))
        await client.request("GET", "/rest/v1/courts")
        assert requests[0].headers["apikey"] == KEY
        assert requests[0].headers["authorization"] == f"Bearer {KEY}"

    @pytest.mark.asyncio
    async def test_user_token_overrides_bearer(self):
        client, requests = _client(lambda r: httpx.Response(200, json={}))
        await client.request("GET", "/auth/v1/user", access_token="user-token")
        assert requests[0].headers["authorization"] == "Bearer user-token"

    @pytest.mark.asyncio
    async def test_http_error_becomes_store_error(self):
        client, _ = _client(
            lambda r: httpx.Response(400, json={"message": "duplicate key value"})
        )
        with pytest.raises(StoreError, match="duplicate key value"):
            await client.request("POST", "/rest/v1/bookings", json={})

    @pytest.mark.asyncio
    async def test_transport_error_becomes_store_error(self):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = _client(boom)
        with pytest.raises(StoreError, match="unreachable"):
            await client.request("GET", "/rest/v1/courts")

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        client, _ = _client(lambda r: httpx.Response(204))
        assert await client.request("POST", "/auth/v1/logout") is None


class TestResourceStore:
    @pytest.mark.asyncio
    async def test_list_schedules_query(self):
        rows = [{
            "id": 1, "court_id": 3, "date": "2026-03-16",
            "start_time": "14:00:00", "end_time": "16:00:00", "status": "booked",
        }]
        client, requests = _client(lambda r: httpx.Response(200, json=rows))
        store = SupabaseResourceStore(client)

        entries = await store.list_schedules(date(2026, 3, 15), date(2026, 3, 21), court_id="3")

        assert entries[0].id == "1"
        assert entries[0].court_id == "3"
        params = requests[0].url.params
        assert requests[0].url.path == "/rest/v1/schedules"
        assert params.get_list("date") == ["gte.2026-03-15", "lte.2026-03-21"]
        assert params["court_id"] == "eq.3"
        assert params["order"] == "date.asc,start_time.asc"

    @pytest.mark.asyncio
    async def test_create_booking_posts_row(self):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(201, json=[{**body, "id": 42, "created_at": "2026-03-10T08:00:00Z"}])

        client, requests = _client(handler)
        store = SupabaseResourceStore(client)
        draft = BookingDraft(
            court_id="3", user_id="u1", date="2026-03-16",
            start_time="10:00:00", end_time="13:00:00", duration=3, total_price=300_000,
        )

        booking = await store.create_booking(draft)

        assert booking.id == "42"
        assert booking.status.value == "pending"
        sent = json.loads(requests[0].content)
        assert sent["status"] == "pending"
        assert sent["payment_proof"] is None
        assert requests[0].headers["prefer"] == "return=representation"

    @pytest.mark.asyncio
    async def test_create_booking_writes_as_user(self):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(201, json=[{**body, "id": 43, "created_at": "2026-03-10T08:00:00Z"}])

        client, requests = _client(handler)
        draft = BookingDraft(
            court_id="3", user_id="u1", date="2026-03-16",
            start_time="10:00:00", end_time="11:00:00", duration=1, total_price=100_000,
        )
        await SupabaseResourceStore(client).create_booking(draft, access_token="user-jwt")
        assert requests[0].headers["authorization"] == "Bearer user-jwt"
        assert requests[0].headers["apikey"] == KEY

    @pytest.mark.asyncio
    async def test_update_booking_owner_filter(self):
        client, requests = _client(lambda r: httpx.Response(200, json=[]))
        store = SupabaseResourceStore(client)
        with pytest.raises(StoreError):
            await store.update_booking("42", {"status": "cancelled"}, user_id="u1")
        params = requests[0].url.params
        assert params["id"] == "eq.42"
        assert params["user_id"] == "eq.u1"
        assert requests[0].method == "PATCH"

    @pytest.mark.asyncio
    async def test_update_booking_writes_as_user(self):
        row = {
            "id": 42, "court_id": 3, "user_id": "u1", "date": "2026-03-16",
            "start_time": "10:00:00", "end_time": "11:00:00", "duration": 1,
            "total_price": 100000, "status": "cancelled",
        }
        client, requests = _client(lambda r: httpx.Response(200, json=[row]))
        booking = await SupabaseResourceStore(client).update_booking(
            "42", {"status": "cancelled"}, user_id="u1", access_token="user-jwt",
        )
        assert booking.status.value == "cancelled"
        assert requests[0].headers["authorization"] == "Bearer user-jwt"

    @pytest.mark.asyncio
    async def test_get_court_missing(self):
        client, _ = _client(lambda r: httpx.Response(200, json=[]))
        assert await SupabaseResourceStore(client).get_court("9") is None

    @pytest.mark.asyncio
    async def test_create_schedule_omits_id(self):
        def handler(request):
            return httpx.Response(201, json=[{**json.loads(request.content), "id": 7}])

        client, requests = _client(handler)
        entry = ScheduleEntry(
            id="", court_id="3", date="2026-03-16", start_time="10:00:00", end_time="12:00:00",
        )
        stored = await SupabaseResourceStore(client).create_schedule(entry)
        assert stored.id == "7"
        assert "id" not in json.loads(requests[0].content)


class TestIdentityProvider:
    @pytest.mark.asyncio
    async def test_sign_in(self):
        body = {
            "access_token": "tok",
            "user": {"id": "u1", "email": "ana@example.com", "user_metadata": {"full_name": "Ana"}},
        }
        client, requests = _client(lambda r: httpx.Response(200, json=body))
        session = await SupabaseIdentityProvider(client).sign_in("ana@example.com", "pw")

        assert session.user_id == "u1"
        assert session.access_token == "tok"
        assert session.full_name == "Ana"
        assert requests[0].url.params["grant_type"] == "password"

    @pytest.mark.asyncio
    async def test_sign_up_without_confirmation_token(self):
        body = {"id": "u2", "email": "bo@example.com", "user_metadata": {"full_name": "Bo"}}
        client, requests = _client(lambda r: httpx.Response(200, json=body))
        session = await SupabaseIdentityProvider(client).sign_up("bo@example.com", "pw", "Bo")

        assert session.user_id == "u2"
        assert session.access_token == ""
        assert json.loads(requests[0].content)["data"] == {"full_name": "Bo"}

    @pytest.mark.asyncio
    async def test_get_user_invalid_token(self):
        client, _ = _client(lambda r: httpx.Response(401, json={"msg": "invalid JWT"}))
        assert await SupabaseIdentityProvider(client).get_user("bad") is None


class TestBlobStore:
    @pytest.mark.asyncio
    async def test_upload(self):
        client, requests = _client(lambda r: httpx.Response(200, json={"Key": "x"}))
        url = await SupabaseBlobStore(client).upload(
            "payment-proofs", "proof_u1_1.jpg", b"\xff\xd8", "image/jpeg"
        )
        assert url == f"{URL}/storage/v1/object/public/payment-proofs/proof_u1_1.jpg"
        assert requests[0].url.path == "/storage/v1/object/payment-proofs/proof_u1_1.jpg"
        assert requests[0].headers["content-type"] == "image/jpeg"
        assert requests[0].content == b"\xff\xd8"
        assert requests[0].headers["authorization"] == f"Bearer {KEY}"

    @pytest.mark.asyncio
    async def test_upload_as_user(self):
        client, requests = _client(lambda r: httpx.Response(200, json={"Key": "x"}))
        await SupabaseBlobStore(client).upload(
            "profile-picture", "avatar_u1_1.png", b"\x89PNG", "image/png",
            access_token="user-jwt",
        )
        assert requests[0].headers["authorization"] == "Bearer user-jwt"

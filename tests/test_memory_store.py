"""Tests for the in-process backend used in development and tests."""

import os
import sys
from datetime import date

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from courtbooking.models import BookingDraft, Court, ScheduleEntry
from courtbooking.stores import StoreError
from courtbooking.stores.memory import (
    InMemoryBlobStore,
    InMemoryIdentityProvider,
    InMemoryResourceStore,
)


def _draft(**overrides):
    fields = {
        "court_id": "c1", "user_id": "u1", "date": "2026-03-16",
        "start_time": "10:00:00", "end_time": "12:00:00",
        "duration": 2, "total_price": 200_000,
    }
    fields.update(overrides)
    return BookingDraft(**fields)


def _entry(day, start, end, court_id="c1"):
    return ScheduleEntry(id="", court_id=court_id, date=day, start_time=start, end_time=end)


# ── Resource store ─────────────────────────────────────────────────

class TestSchedules:
    @pytest.mark.asyncio
    async def test_list_filters_week_and_court(self):
        store = InMemoryResourceStore()
        store.add_schedule(_entry("2026-03-16", "14:00:00", "15:00:00"))
        store.add_schedule(_entry("2026-03-14", "14:00:00", "15:00:00"))  # previous week
        store.add_schedule(_entry("2026-03-17", "10:00:00", "11:00:00", court_id="c2"))

        rows = await store.list_schedules(date(2026, 3, 15), date(2026, 3, 21), court_id="c1")
        assert [(e.date, e.start_time) for e in rows] == [("2026-03-16", "14:00:00")]

        everything = await store.list_schedules(date(2026, 3, 15), date(2026, 3, 21))
        assert len(everything) == 2

    @pytest.mark.asyncio
    async def test_list_is_time_ordered(self):
        store = InMemoryResourceStore()
        store.add_schedule(_entry("2026-03-17", "10:00:00", "11:00:00"))
        store.add_schedule(_entry("2026-03-16", "18:00:00", "19:00:00"))
        store.add_schedule(_entry("2026-03-16", "12:00:00", "13:00:00"))
        rows = await store.list_schedules(date(2026, 3, 15), date(2026, 3, 21))
        assert [(e.date, e.start_time) for e in rows] == [
            ("2026-03-16", "12:00:00"),
            ("2026-03-16", "18:00:00"),
            ("2026-03-17", "10:00:00"),
        ]

    @pytest.mark.asyncio
    async def test_status_toggle_and_delete(self):
        store = InMemoryResourceStore()
        entry = await store.create_schedule(_entry("2026-03-16", "14:00:00", "15:00:00"))
        assert entry.id

        updated = await store.set_schedule_status(entry.id, "available")
        assert updated.status == "available"

        await store.delete_schedule(entry.id)
        with pytest.raises(StoreError):
            await store.delete_schedule(entry.id)


class TestBookings:
    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamp(self):
        store = InMemoryResourceStore()
        booking = await store.create_booking(_draft())
        assert booking.id
        assert booking.created_at
        assert await store.get_booking(booking.id) == booking

    @pytest.mark.asyncio
    async def test_list_filters(self):
        store = InMemoryResourceStore()
        await store.create_booking(_draft())
        await store.create_booking(_draft(user_id="u2"))
        await store.create_booking(_draft(status="confirmed"))

        assert len(await store.list_bookings(user_id="u1")) == 2
        assert len(await store.list_bookings(status="confirmed")) == 1
        assert len(await store.list_bookings(court_id="missing")) == 0

    @pytest.mark.asyncio
    async def test_update_owner_guard(self):
        store = InMemoryResourceStore()
        booking = await store.create_booking(_draft())
        with pytest.raises(StoreError):
            await store.update_booking(booking.id, {"status": "cancelled"}, user_id="u2")

        updated = await store.update_booking(booking.id, {"status": "cancelled"}, user_id="u1")
        assert updated.status == "cancelled"


class TestCourts:
    @pytest.mark.asyncio
    async def test_crud(self):
        store = InMemoryResourceStore()
        court = await store.create_court({"name": "Court A", "price": 100_000})
        assert (await store.get_court(court.id)).name == "Court A"

        updated = await store.update_court(court.id, {"status": "maintenance"})
        assert updated.status == "maintenance"
        assert updated.price == 100_000

        await store.delete_court(court.id)
        assert await store.get_court(court.id) is None

    @pytest.mark.asyncio
    async def test_update_missing(self):
        with pytest.raises(StoreError):
            await InMemoryResourceStore().update_court("nope", {"name": "x"})


# ── Identity ───────────────────────────────────────────────────────

class TestIdentity:
    @pytest.mark.asyncio
    async def test_sign_up_writes_user_row(self):
        store = InMemoryResourceStore()
        identity = InMemoryIdentityProvider(store)
        session = await identity.sign_up("ana@example.com", "pw123456", "Ana")

        assert session.access_token
        record = await store.get_user(session.user_id)
        assert record.email == "ana@example.com"
        assert record.is_admin is False

    @pytest.mark.asyncio
    async def test_duplicate_sign_up(self):
        identity = InMemoryIdentityProvider()
        await identity.sign_up("ana@example.com", "pw")
        with pytest.raises(StoreError):
            await identity.sign_up("ana@example.com", "pw")

    @pytest.mark.asyncio
    async def test_sign_in_wrong_password(self):
        identity = InMemoryIdentityProvider()
        await identity.sign_up("ana@example.com", "pw")
        with pytest.raises(StoreError):
            await identity.sign_in("ana@example.com", "nope")

    @pytest.mark.asyncio
    async def test_sign_out_invalidates_token(self):
        identity = InMemoryIdentityProvider()
        await identity.sign_up("ana@example.com", "pw")
        session = await identity.sign_in("ana@example.com", "pw")
        assert (await identity.get_user(session.access_token)).email == "ana@example.com"

        await identity.sign_out(session.access_token)
        assert await identity.get_user(session.access_token) is None

    @pytest.mark.asyncio
    async def test_update_metadata(self):
        identity = InMemoryIdentityProvider()
        session = await identity.sign_up("ana@example.com", "pw", "Ana")
        updated = await identity.update_user(session.access_token, {"full_name": "Ana Maria"})
        assert updated.full_name == "Ana Maria"


# ── Blobs ──────────────────────────────────────────────────────────

class TestBlobs:
    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self):
        blobs = InMemoryBlobStore()
        url = await blobs.upload("payment-proofs", "proof_u1_1.jpg", b"\xff\xd8", "image/jpeg")
        assert url == "memory://storage/payment-proofs/proof_u1_1.jpg"
        assert blobs.objects["payment-proofs/proof_u1_1.jpg"] == (b"\xff\xd8", "image/jpeg")

    @pytest.mark.asyncio
    async def test_no_overwrite(self):
        blobs = InMemoryBlobStore()
        await blobs.upload("b", "x.jpg", b"1")
        with pytest.raises(StoreError):
            await blobs.upload("b", "x.jpg", b"2")


class TestSeeding:
    def test_add_court(self):
        store = InMemoryResourceStore()
        court = store.add_court(Court(id="c1", name="Court A", price=1))
        assert store._courts["c1"] is court

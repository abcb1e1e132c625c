"""FastAPI application: HTTP + WebSocket endpoints for court booking.

Endpoints:

  GET  /health                         Health check
  POST /api/auth/{sign-up,sign-in,sign-out}, GET /api/auth/session
  PATCH /api/profile, POST /api/profile/avatar
  GET  /api/courts, /api/courts/{id}   Court catalogue
  GET  /api/schedule                   Weekly board for all courts
  *    /api/grid/sessions/...          Slot selection on one court's week
  WS   /ws/grid/{session_id}           Live pointer stream for a grid session
  *    /api/bookings/...               Customer bookings and payment proof
  *    /api/admin/...                  Payment review, courts, schedules, users

The booking flow:
  1. Browser opens a grid session for a court (POST /api/grid/sessions)
  2. Pointer events stream in (WS or POST .../gesture) and drive the
     selection engine; every event answers with the re-rendered grid
  3. POST .../submit turns the frozen selection into a pending booking
  4. Customer uploads the transfer receipt (POST /api/bookings/{id}/payment-proof)
  5. Admin confirms (POST /api/admin/bookings/{id}/confirm), which writes the
     schedule entry that blocks the slot on every grid
"""

from __future__ import annotations

# Load .env into os.environ early so Settings and uvicorn see the same values.
from dotenv import load_dotenv
load_dotenv()

import logging
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Optional

# Configure root logger early so all app loggers have a handler and are
# visible when run via `uvicorn courtbooking.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-24s %(levelname)-7s %(message)s",
)

from fastapi import (
    Depends,
    FastAPI,
    File,
    Request,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.responses import JSONResponse

from courtbooking.auth import require_admin, require_user
from courtbooking.config import settings
from courtbooking.gestures import PointerEvent
from courtbooking.grid import GridCell
from courtbooking.models import UserSession
from courtbooking.services import (
    AdminService,
    BookingError,
    BookingService,
    NotFoundError,
    ScheduleBoard,
)
from courtbooking.session import (
    BookingSession,
    evict_idle_sessions,
    get_active_sessions,
    get_session,
    redact_pii,
    register_session,
    unregister_session,
)
from courtbooking.stores.base import (
    BlobStore,
    IdentityProvider,
    ResourceStore,
    StoreError,
)

log = logging.getLogger("courtbooking.app")

_START_TIME = time.time()


def create_app(
    store: Optional[ResourceStore] = None,
    identity: Optional[IdentityProvider] = None,
    blobs: Optional[BlobStore] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Backends default to the ones selected by STORE_BACKEND; tests pass
    in-memory instances.
    """
    supabase_client = None
    if store is None or identity is None or blobs is None:
        store, identity, blobs, supabase_client = _create_backends(store, identity, blobs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if supabase_client is not None:
            await supabase_client.aclose()

    app = FastAPI(
        title="Court Booking",
        description="Weekly court schedule, slot selection and manual payment review",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.identity = identity
    app.state.blobs = blobs
    app.state.bookings = BookingService(store, blobs, identity)
    app.state.admin = AdminService(store)
    app.state.board = ScheduleBoard(store)

    # ── Error mapping ──────────────────────────────────────────

    @app.exception_handler(BookingError)
    async def booking_error(request: Request, exc: BookingError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=404)

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError) -> JSONResponse:
        log.error("Backend error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"error": f"Backend error: {exc}"}, status_code=502)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check; confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "backend": settings.store_backend,
            "grid_sessions": len(get_active_sessions()),
        })

    # ── Auth & profile ─────────────────────────────────────────

    @app.post("/api/auth/sign-up")
    async def sign_up(request: Request):
        body = await request.json()
        email = str(body.get("email", "")).strip()
        password = str(body.get("password", ""))
        full_name = str(body.get("full_name", "")).strip()
        if not (email and password and full_name):
            return JSONResponse({"error": "All fields are required."}, status_code=400)
        if password != body.get("confirm_password", password):
            return JSONResponse({"error": "Passwords do not match."}, status_code=400)

        try:
            session = await identity.sign_up(email, password, full_name)
        except StoreError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        log.info("New account: %s", redact_pii(email))
        return JSONResponse(session.model_dump(), status_code=201)

    @app.post("/api/auth/sign-in")
    async def sign_in(request: Request):
        body = await request.json()
        try:
            session = await identity.sign_in(
                str(body.get("email", "")), str(body.get("password", ""))
            )
        except StoreError as e:
            return JSONResponse({"error": str(e)}, status_code=401)

        record = await store.get_user(session.user_id)
        if record is not None:
            session = session.model_copy(update={"is_admin": record.is_admin})
        log.info("Signed in: %s (admin=%s)", redact_pii(session.email), session.is_admin)
        return JSONResponse(session.model_dump())

    @app.post("/api/auth/sign-out")
    async def sign_out(user: UserSession = Depends(require_user)):
        await identity.sign_out(user.access_token)
        log.info("Signed out: %s", redact_pii(user.email))
        return JSONResponse({"signed_out": True})

    @app.get("/api/auth/session")
    async def current_session(user: UserSession = Depends(require_user)):
        return JSONResponse(user.model_dump(exclude={"access_token"}))

    @app.patch("/api/profile")
    async def update_profile(request: Request, user: UserSession = Depends(require_user)):
        body = await request.json()
        updated = await app.state.bookings.update_profile(user, str(body.get("full_name", "")))
        return JSONResponse(updated.model_dump(exclude={"access_token"}))

    @app.post("/api/profile/avatar")
    async def upload_avatar(
        file: UploadFile = File(...),
        user: UserSession = Depends(require_user),
    ):
        content = await file.read()
        updated = await app.state.bookings.upload_avatar(
            user, content, file.content_type or ""
        )
        return JSONResponse(updated.model_dump(exclude={"access_token"}))

    # ── Courts & schedule board ────────────────────────────────

    @app.get("/api/courts")
    async def list_courts():
        courts = await store.list_courts()
        return JSONResponse({"courts": [c.model_dump() for c in courts]})

    @app.get("/api/courts/{court_id}")
    async def get_court(court_id: str):
        court = await store.get_court(court_id)
        if court is None:
            return JSONResponse({"error": "Court not found"}, status_code=404)
        return JSONResponse(court.model_dump())

    @app.get("/api/schedule")
    async def schedule_board(week_of: Optional[str] = None):
        day = _parse_date(week_of) if week_of else None
        return JSONResponse(await app.state.board.week(week_of=day))

    # ── Grid sessions ──────────────────────────────────────────

    @app.post("/api/grid/sessions")
    async def create_grid_session(request: Request):
        """Open a grid view on one court's week."""
        body = await request.json()
        court_id = str(body.get("court_id", ""))
        week_of = _parse_date(body["week_of"]) if body.get("week_of") else None
        mode = str(body.get("mode", "mouse"))

        session = BookingSession(store, court_id, week_of=week_of, mode=mode)
        try:
            await session.load()
        except LookupError as e:
            return JSONResponse({"error": str(e)}, status_code=404)
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=400)

        evict_idle_sessions(settings.grid_session_idle_timeout)
        register_session(session)
        return JSONResponse(session.to_dict(detail=True), status_code=201)

    @app.get("/api/grid/sessions")
    async def list_grid_sessions():
        """Return summary of all active grid sessions."""
        evict_idle_sessions(settings.grid_session_idle_timeout)
        sessions = get_active_sessions()
        return JSONResponse({
            "sessions": [s.to_dict() for s in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/grid/sessions/{session_id}")
    async def get_grid_session(session_id: str):
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/grid/sessions/{session_id}/gesture")
    async def grid_gesture(session_id: str, request: Request):
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        try:
            event = _parse_gesture(await request.json())
        except (KeyError, TypeError, ValueError) as e:
            return JSONResponse({"error": f"Invalid gesture: {e}"}, status_code=400)
        session.handle_gesture(event)
        return JSONResponse(session.grid())

    @app.post("/api/grid/sessions/{session_id}/mode")
    async def grid_mode(session_id: str, request: Request):
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        body = await request.json()
        try:
            session.set_mode(str(body.get("mode", "")))
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/grid/sessions/{session_id}/week")
    async def grid_week(session_id: str, request: Request):
        """Navigate: {"weeks": -1 | 1} or {"today": true}."""
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        body = await request.json()
        try:
            weeks = int(body.get("weeks", 0))
        except (TypeError, ValueError):
            return JSONResponse({"error": "weeks must be an integer"}, status_code=400)
        await session.navigate(weeks=weeks, today=bool(body.get("today")))
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/grid/sessions/{session_id}/submit")
    async def grid_submit(session_id: str, user: UserSession = Depends(require_user)):
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        booking = await app.state.bookings.submit(session, user)
        return JSONResponse(booking.model_dump(mode="json"), status_code=201)

    @app.delete("/api/grid/sessions/{session_id}")
    async def close_grid_session(session_id: str):
        if not get_session(session_id):
            return JSONResponse({"error": "Session not found"}, status_code=404)
        unregister_session(session_id)
        return JSONResponse({"closed": True})

    @app.websocket("/ws/grid/{session_id}")
    async def grid_stream(websocket: WebSocket, session_id: str) -> None:
        """Pointer events in, re-rendered grid out, one message each way."""
        session = get_session(session_id)
        if not session:
            await websocket.close(code=4004, reason="Session not found")
            return

        await websocket.accept()
        await websocket.send_json(session.grid())
        try:
            while True:
                message = await websocket.receive_json()
                try:
                    event = _parse_gesture(message)
                except (KeyError, TypeError, ValueError) as e:
                    await websocket.send_json({"error": f"Invalid gesture: {e}"})
                    continue
                session.handle_gesture(event)
                await websocket.send_json(session.grid())
        except WebSocketDisconnect:
            log.info("Grid stream closed for session %s", session_id)
        finally:
            unregister_session(session_id)

    # ── Customer bookings ──────────────────────────────────────

    @app.get("/api/bookings")
    async def my_bookings(
        status: Optional[str] = None, user: UserSession = Depends(require_user)
    ):
        bookings = await app.state.bookings.list_user_bookings(user, status)
        return JSONResponse({"bookings": bookings})

    @app.get("/api/bookings/{booking_id}")
    async def my_booking(booking_id: str, user: UserSession = Depends(require_user)):
        booking = await app.state.bookings.get_booking(user, booking_id)
        court = await store.get_court(booking.court_id)
        return JSONResponse({
            **booking.model_dump(mode="json"),
            "court": court.model_dump() if court else None,
        })

    @app.post("/api/bookings/{booking_id}/payment-proof")
    async def payment_proof(
        booking_id: str,
        file: UploadFile = File(...),
        user: UserSession = Depends(require_user),
    ):
        content = await file.read()
        booking = await app.state.bookings.attach_payment_proof(
            user, booking_id, content, file.content_type or ""
        )
        return JSONResponse(booking.model_dump(mode="json"))

    @app.post("/api/bookings/{booking_id}/cancel")
    async def cancel_my_booking(booking_id: str, user: UserSession = Depends(require_user)):
        booking = await app.state.bookings.cancel_booking(user, booking_id)
        return JSONResponse(booking.model_dump(mode="json"))

    # ── Admin ──────────────────────────────────────────────────

    admin = app.state.admin

    @app.get("/api/admin/stats", dependencies=[Depends(require_admin)])
    async def admin_stats():
        return JSONResponse({
            "stats": await admin.dashboard_stats(),
            "daily": await admin.daily_breakdown(),
        })

    @app.get("/api/admin/payments", dependencies=[Depends(require_admin)])
    async def admin_payments():
        bookings = await admin.pending_payments()
        return JSONResponse({"bookings": bookings})

    @app.post("/api/admin/bookings/{booking_id}/confirm", dependencies=[Depends(require_admin)])
    async def admin_confirm(booking_id: str):
        booking, entry = await admin.confirm_booking(booking_id)
        return JSONResponse({
            "booking": booking.model_dump(mode="json"),
            "schedule": entry.model_dump(),
        })

    @app.post("/api/admin/bookings/{booking_id}/cancel", dependencies=[Depends(require_admin)])
    async def admin_cancel(booking_id: str):
        booking = await admin.cancel_booking(booking_id)
        return JSONResponse(booking.model_dump(mode="json"))

    @app.get("/api/admin/transactions", dependencies=[Depends(require_admin)])
    async def admin_transactions(search: str = ""):
        rows = await admin.transaction_history(search)
        return JSONResponse({"transactions": rows, "count": len(rows)})

    @app.get("/api/admin/courts", dependencies=[Depends(require_admin)])
    async def admin_courts():
        return JSONResponse({"courts": [c.model_dump() for c in await admin.list_courts()]})

    @app.post("/api/admin/courts", dependencies=[Depends(require_admin)])
    async def admin_create_court(request: Request):
        court = await admin.create_court(await request.json())
        return JSONResponse(court.model_dump(), status_code=201)

    @app.patch("/api/admin/courts/{court_id}", dependencies=[Depends(require_admin)])
    async def admin_update_court(court_id: str, request: Request):
        court = await admin.update_court(court_id, await request.json())
        return JSONResponse(court.model_dump())

    @app.delete("/api/admin/courts/{court_id}", dependencies=[Depends(require_admin)])
    async def admin_delete_court(court_id: str):
        await admin.delete_court(court_id)
        return JSONResponse({"deleted": True})

    @app.get("/api/admin/schedules", dependencies=[Depends(require_admin)])
    async def admin_schedules(week_of: Optional[str] = None, court_id: Optional[str] = None):
        day = _parse_date(week_of) if week_of else None
        entries = await admin.list_schedules(week_of=day, court_id=court_id)
        return JSONResponse({"schedules": [e.model_dump() for e in entries]})

    @app.post("/api/admin/schedules/{schedule_id}/toggle", dependencies=[Depends(require_admin)])
    async def admin_toggle_schedule(schedule_id: str, request: Request):
        body = await request.json()
        entry = await admin.toggle_schedule(schedule_id, str(body.get("status", "")))
        return JSONResponse(entry.model_dump())

    @app.delete("/api/admin/schedules/{schedule_id}", dependencies=[Depends(require_admin)])
    async def admin_delete_schedule(schedule_id: str):
        await admin.delete_schedule(schedule_id)
        return JSONResponse({"deleted": True})

    @app.get("/api/admin/users", dependencies=[Depends(require_admin)])
    async def admin_users():
        return JSONResponse({"users": [u.model_dump() for u in await admin.list_users()]})

    return app


# ── Helper functions ──────────────────────────────────────────────

def _create_backends(
    store: Optional[ResourceStore],
    identity: Optional[IdentityProvider],
    blobs: Optional[BlobStore],
) -> tuple[ResourceStore, IdentityProvider, BlobStore, Any]:
    """Build whichever collaborators were not supplied, per STORE_BACKEND."""
    for warning in settings.validate_startup():
        log.warning(warning)

    if settings.store_backend == "supabase":
        from courtbooking.stores.supabase import (
            SupabaseBlobStore,
            SupabaseClient,
            SupabaseIdentityProvider,
            SupabaseResourceStore,
        )

        client = SupabaseClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            timeout=settings.request_timeout,
        )
        return (
            store or SupabaseResourceStore(client),
            identity or SupabaseIdentityProvider(client),
            blobs or SupabaseBlobStore(client),
            client,
        )

    from courtbooking.stores.memory import (
        InMemoryBlobStore,
        InMemoryIdentityProvider,
        InMemoryResourceStore,
    )

    memory_store = store or InMemoryResourceStore()
    return (
        memory_store,
        identity or InMemoryIdentityProvider(
            memory_store if isinstance(memory_store, InMemoryResourceStore) else None
        ),
        blobs or InMemoryBlobStore(),
        None,
    )


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BookingError(f"Invalid date {value!r}. Use YYYY-MM-DD.") from None


def _parse_gesture(body: dict[str, Any]) -> PointerEvent:
    """Decode {"kind": "press", "date": "2026-03-16", "hour": 10}.

    ``date``/``hour`` are omitted when the pointer is outside the grid.
    """
    if not isinstance(body, dict):
        raise ValueError("expected a JSON object")
    cell = None
    if body.get("date") is not None and body.get("hour") is not None:
        cell = GridCell(date.fromisoformat(body["date"]), int(body["hour"]))
    return PointerEvent(kind=body["kind"], cell=cell)


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "courtbooking.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )

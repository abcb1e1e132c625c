"""Per-view booking session that owns the selection engine for one grid.

Each browser tab showing a court's weekly grid gets a BookingSession that:
  1. Holds the court and the visible week
  2. Fetches that week's confirmed schedule entries as reserved slots
  3. Owns one SlotSelectionEngine exclusively
  4. Routes pointer events through the adapter for the current input mode
  5. Renders the grid (blocked / selected flags) and the current quote
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import date, timedelta
from typing import Any, Optional

from courtbooking.config import settings
from courtbooking.gestures import GestureAdapter, PointerEvent, adapter_for
from courtbooking.grid import HOURS, week_bounds, week_days, week_start
from courtbooking.models import Court
from courtbooking.selection import BookingQuote, SlotSelectionEngine
from courtbooking.stores.base import ResourceStore

log = logging.getLogger("courtbooking.session")


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "BookingSession"] = {}


def register_session(session: "BookingSession") -> str:
    """Register a session and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = time.time()
    session._last_active = session._started_at
    _active_sessions[session_id] = session
    log.info("Session registered: %s (court=%s)", session_id, session.court_id)
    return session_id


def unregister_session(session_id: str) -> None:
    """Remove a session from the registry."""
    _active_sessions.pop(session_id, None)
    log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "BookingSession"]:
    """Return all active sessions."""
    return _active_sessions


def get_session(session_id: str) -> "BookingSession | None":
    """Look up a session by ID."""
    return _active_sessions.get(session_id)


def evict_idle_sessions(max_idle: float, now: Optional[float] = None) -> list[str]:
    """Drop sessions with no activity for ``max_idle`` seconds; return their IDs."""
    now = time.time() if now is None else now
    stale = [
        sid for sid, session in _active_sessions.items()
        if now - session.last_active > max_idle
    ]
    for sid in stale:
        _active_sessions.pop(sid, None)
    if stale:
        log.info("Evicted %d idle session(s)", len(stale))
    return stale


class SessionNotLoaded(RuntimeError):
    """The session was used before ``load()`` fetched its court."""


class BookingSession:
    """One court's weekly grid as seen by one viewer.

    Typical lifecycle::

        session = BookingSession(store, court_id="c1")
        await session.load()

        session.handle_gesture(PointerEvent("press", GridCell(mon, 10)))
        session.handle_gesture(PointerEvent("move", GridCell(mon, 12)))
        session.handle_gesture(PointerEvent("release"))

        session.quote()          # → BookingQuote for Mon 10:00-13:00
        await session.navigate(weeks=1)   # next week, selection cleared
    """

    def __init__(
        self,
        store: ResourceStore,
        court_id: str,
        week_of: Optional[date] = None,
        mode: str = "mouse",
    ) -> None:
        self._store = store
        self.court_id = court_id
        self._week_start = week_start(week_of or date.today())
        self._mode = mode

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0
        self._last_active: float = time.time()

        self._court: Optional[Court] = None
        self._engine: Optional[SlotSelectionEngine] = None
        self._adapter: Optional[GestureAdapter] = None

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def court(self) -> Court:
        if self._court is None:
            raise SessionNotLoaded(f"Court {self.court_id} not loaded")
        return self._court

    @property
    def engine(self) -> SlotSelectionEngine:
        if self._engine is None:
            raise SessionNotLoaded(f"Court {self.court_id} not loaded")
        return self._engine

    @property
    def week_start(self) -> date:
        return self._week_start

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def last_active(self) -> float:
        return self._last_active

    def touch(self) -> None:
        self._last_active = time.time()

    async def load(self) -> None:
        """Fetch the court and the visible week's reservations.

        A context refresh always drops the current selection.
        """
        court = await self._store.get_court(self.court_id)
        if court is None:
            raise LookupError(f"Court {self.court_id} not found")

        first, last = week_bounds(self._week_start)
        entries = await self._store.list_schedules(first, last, court_id=self.court_id)
        reserved = [entry.to_reserved_slot() for entry in entries]

        self._court = court
        if self._engine is None:
            self._engine = SlotSelectionEngine(
                reserved, price_per_hour=court.price, resource_id=court.id,
            )
            self._adapter = adapter_for(self._mode, self._engine)
        else:
            self._engine.update(
                reserved_slots=reserved, price_per_hour=court.price, resource_id=court.id,
            )
        self._engine.clear_selection()
        self.touch()

        log.info(
            "Loaded court %s week %s: %d reserved slot(s)",
            self.court_id, first.isoformat(), len(reserved),
        )

    async def navigate(self, weeks: int = 0, today: bool = False) -> None:
        """Move the visible week and reload."""
        if today:
            self._week_start = week_start(date.today())
        else:
            self._week_start = self._week_start + timedelta(weeks=weeks)
        await self.load()

    def set_mode(self, mode: str) -> None:
        """Switch input mode; an unfinished drag is abandoned."""
        adapter = adapter_for(mode, self.engine)
        if self._adapter is not None:
            self._adapter.reset()
        self._adapter = adapter
        self._mode = mode
        self.touch()
        log.info("Session %s input mode → %s", self._session_id, mode)

    def handle_gesture(self, event: PointerEvent) -> None:
        if self._adapter is None:
            raise SessionNotLoaded(f"Court {self.court_id} not loaded")
        self._adapter.handle(event)
        self.touch()

    def quote(self) -> Optional[BookingQuote]:
        return self.engine.current_quote()

    def clear_selection(self) -> None:
        self.engine.clear_selection()

    def grid(self) -> dict[str, Any]:
        """Render the week for the presentation layer."""
        engine = self.engine
        days = week_days(self._week_start)
        rows = []
        for hour in HOURS:
            rows.append({
                "hour": hour,
                "label": f"{hour}:00",
                "cells": [
                    {
                        "date": day.isoformat(),
                        "blocked": engine.is_slot_blocked(day, hour),
                        "selected": engine.is_slot_selected(day, hour),
                    }
                    for day in days
                ],
            })
        return {
            "court_id": self.court_id,
            "week_start": days[0].isoformat(),
            "days": [day.isoformat() for day in days],
            "rows": rows,
            "state": engine.state.value,
            "quote": quote_to_dict(engine.current_quote()),
        }

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=False: summary suitable for listing.
        With detail=True: adds the rendered grid.
        """
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "court_id": self.court_id,
            "week_start": self._week_start.isoformat(),
            "mode": self._mode,
            "started_at": self._started_at,
            "last_active": self._last_active,
            "state": self._engine.state.value if self._engine else "unloaded",
        }
        if detail and self._engine is not None:
            d["grid"] = self.grid()
        return d


def quote_to_dict(quote: Optional[BookingQuote]) -> Optional[dict[str, Any]]:
    if quote is None:
        return None
    return {
        "court_id": quote.resource_id,
        "start": quote.start.isoformat(),
        "end": quote.end.isoformat(),
        "duration_hours": quote.duration_hours,
        "price_per_hour": quote.price_per_hour,
        "total_price": quote.total_price,
        "currency": settings.currency,
    }

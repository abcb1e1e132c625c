"""Public weekly schedule board.

Shows every court's week at a glance.  Unlike the selection grid, a cell
here is marked with the status of whichever schedule entry's
``[start, end)`` contains that hour, so a three-hour reservation colours
all three rows.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

from courtbooking.grid import HOURS, week_bounds, week_days
from courtbooking.models import ScheduleEntry
from courtbooking.stores.base import ResourceStore

logger = logging.getLogger(__name__)


def cell_status(
    entries: list[ScheduleEntry], court_id: str, day: date, hour: int
) -> str:
    """Status of the first entry covering ``hour`` on ``day``, else ``available``."""
    iso = day.isoformat()
    for entry in entries:
        if entry.court_id == court_id and entry.date == iso and entry.covers(hour):
            return entry.status
    return "available"


class ScheduleBoard:
    """Builds the read-only schedule overview for all courts."""

    def __init__(self, store: ResourceStore) -> None:
        self._store = store

    async def week(
        self,
        week_of: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        now = now or datetime.now()
        week_of = week_of or now.date()
        first, last = week_bounds(week_of)
        days = week_days(week_of)

        courts = await self._store.list_courts()
        entries = await self._store.list_schedules(first, last)

        boards = []
        for court in courts:
            rows = []
            for hour in HOURS:
                rows.append({
                    "hour": hour,
                    "cells": [
                        {
                            "date": day.isoformat(),
                            "status": cell_status(entries, court.id, day, hour),
                            "current": day == now.date() and hour == now.hour,
                        }
                        for day in days
                    ],
                })
            boards.append({"court_id": court.id, "court_name": court.name, "rows": rows})

        logger.debug(
            "Schedule board %s..%s: %d court(s), %d entr(ies)",
            first, last, len(courts), len(entries),
        )
        return {
            "week_start": first.isoformat(),
            "days": [day.isoformat() for day in days],
            "courts": boards,
        }

# backend/consult_booking/services/slots/conflicts.py
"""
Conflict oracle: busy intervals of a business day.

Sources:
✓ Timed Google Calendar events overlapping the window
✓ CONFIRMED reservations overlapping the window (one bulk query)

Whole-day calendar events are ignored. An unreachable calendar fails the
request with ServiceUnavailableError instead of reporting the day free.
"""

import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from ...errors import ServiceUnavailableError
from ...models import Reservation, ReservationStatus
from ..google_calendar import CalendarOracle, CalendarUnavailableError
from .config import SlotConfig, get_slot_config
from .intervals import BusyInterval, overlaps

logger = logging.getLogger(__name__)


class ConflictOracle:
    """Merges calendar and reservation-store busy intervals."""

    def __init__(self, db: Session, calendar: CalendarOracle, config: SlotConfig | None = None):
        self.db = db
        self.calendar = calendar
        self.config = config or get_slot_config()

    def busy_intervals(self, target_date: date) -> list[BusyInterval]:
        """Busy intervals intersecting the working-hours window of target_date."""
        window_start, window_end = self.config.work_window(target_date)
        return self.busy_between(window_start, window_end)

    def busy_between(self, start: datetime, end: datetime) -> list[BusyInterval]:
        """Busy intervals overlapping [start, end), calendar first."""
        busy = self._calendar_busy(start, end)
        busy.extend(self._reservation_busy(start, end))
        return busy

    def find_conflicts(self, start: datetime, end: datetime) -> list[BusyInterval]:
        """Authoritative re-check of one requested interval (no cache)."""
        return self.busy_between(start, end)

    # ── Sources ──────────────────────────────────────────────────────────

    def _calendar_busy(self, start: datetime, end: datetime) -> list[BusyInterval]:
        try:
            events = self.calendar.list_events(start, end)
        except CalendarUnavailableError as e:
            raise ServiceUnavailableError("Calendar is temporarily unavailable") from e

        return [
            BusyInterval(start=ev.start, end=ev.end, source="calendar", ref=ev.id)
            for ev in events
            if ev.is_timed and overlaps(start, end, ev.start, ev.end)
        ]

    def _reservation_busy(self, start: datetime, end: datetime) -> list[BusyInterval]:
        rows = (
            self.db.query(Reservation.id, Reservation.start_instant, Reservation.end_instant)
            .filter(
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.start_instant < end,
                Reservation.end_instant > start,
            )
            .order_by(Reservation.start_instant)
            .all()
        )
        return [
            BusyInterval(start=row.start_instant, end=row.end_instant, source="reservation", ref=row.id)
            for row in rows
        ]

# backend/consult_booking/services/slots/availability.py
"""
Free-slot read path.

1. Availability cache (Redis Sorted Set, short TTL)
2. On MISS or UNAVAILABLE: slot grid − busy intervals (calendar + store)
3. Populate the cache (best-effort)

The recompute path is identical whether the cache missed or is down.
"""

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from ...errors import ServiceUnavailableError
from ..google_calendar import CalendarOracle
from .calculator import generate_day_slots
from .config import SlotConfig, get_slot_config
from .conflicts import ConflictOracle
from .intervals import Slot, free_slots
from .redis_store import AvailabilityCache

logger = logging.getLogger(__name__)


def get_free_slots(
    db: Session,
    target_date: date,
    calendar: CalendarOracle,
    cache: AvailabilityCache,
    config: SlotConfig | None = None,
    now: datetime | None = None,
) -> list[Slot]:
    """
    Free slots of target_date.

    Raises:
        ServiceUnavailableError: calendar unreachable on a cache miss
    """
    config = config or get_slot_config()
    now = now or datetime.now(timezone.utc)

    cached = cache.get(target_date, now)
    if cached.hit:
        return cached.slots

    candidates = generate_day_slots(target_date, config, now)
    if candidates:
        busy = ConflictOracle(db, calendar, config).busy_intervals(target_date)
        slots = free_slots(candidates, busy)
    else:
        slots = []

    cache.set(target_date, slots)
    return slots


def get_available_dates(
    db: Session,
    date_from: date,
    date_to: date,
    calendar: CalendarOracle,
    cache: AvailabilityCache,
    config: SlotConfig | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """
    Per-day availability summary for [date_from, date_to].

    Past days are unavailable. A calendar failure for one day marks only
    that day unavailable.
    """
    config = config or get_slot_config()
    now = now or datetime.now(timezone.utc)
    today = config.today(now)

    days = []
    current = date_from
    while current <= date_to:
        has_slots = False
        if current >= today:
            try:
                has_slots = bool(get_free_slots(db, current, calendar, cache, config, now))
            except ServiceUnavailableError:
                logger.warning(f"Calendar unavailable while checking {current}, reporting day as unavailable")
        days.append({"date": current, "has_available_slots": has_slots})
        current += timedelta(days=1)

    return days

# backend/consult_booking/services/slots/invalidator.py
"""
Availability cache invalidation.

Triggers:
✓ Reservation created → its date (before and after the commit)
✓ Reservation cancelled → its date (before and after the commit)
✓ Admin request → any date range

Does NOT trigger:
✗ Retention purge (purged reservations ended in the past)
✗ Direct edits in the external calendar (TTL bounds the staleness)
"""

from datetime import date, timedelta

from .redis_store import AvailabilityCache, CacheOutcome


def get_affected_dates(date_start: date, date_end: date) -> list[date]:
    """Dates in [date_start, date_end], either order accepted."""
    if date_start > date_end:
        date_start, date_end = date_end, date_start

    dates = []
    current = date_start
    while current <= date_end:
        dates.append(current)
        current += timedelta(days=1)
    return dates


def invalidate_dates(cache: AvailabilityCache, dates: list[date]) -> dict[date, CacheOutcome]:
    return {dt: cache.invalidate(dt) for dt in dates}

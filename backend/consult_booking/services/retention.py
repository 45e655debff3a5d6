"""
Retention sweeper.

Periodically hard-deletes confirmed reservations whose end instant is
more than RETENTION_PAST_BOOKING_MINUTES in the past (see
BookingManager.purge_expired), leaving a PURGED audit record without
contact data.

Runs as an asyncio task in the app lifespan.
Uses synchronous DB and Redis (via asyncio.to_thread).
"""

import asyncio
import logging

from ..config import settings
from ..database import SessionLocal
from ..redis_client import redis_client
from .booking import BookingManager, PurgeReport
from .google_calendar import build_calendar
from .notifications import DisabledNotifier
from .slots import AvailabilityCache, get_slot_config

logger = logging.getLogger(__name__)


async def retention_loop(interval: int | None = None) -> None:
    """Sweep once at startup, then every `interval` seconds."""
    interval = interval or settings.retention_interval_seconds
    logger.info(f"retention_loop started (interval={interval}s)")

    try:
        while True:
            try:
                await asyncio.to_thread(run_retention_sweep)
            except asyncio.CancelledError:
                logger.info("retention_loop cancelled")
                raise
            except Exception:
                logger.exception("retention_loop error")

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        pass


def run_retention_sweep() -> PurgeReport:
    """One sweep in its own session (synchronous)."""
    config = get_slot_config()
    db = SessionLocal()
    try:
        manager = BookingManager(
            db,
            build_calendar(settings),
            AvailabilityCache(redis_client, config),
            DisabledNotifier(),
            config=config,
        )
        return manager.purge_expired(settings.retention_past_booking_minutes)
    finally:
        db.close()

# backend/consult_booking/deps.py
"""
FastAPI dependency providers.

Every external capability (calendar, cache, notifier, clock, cipher) is
injected through these, so tests swap them via app.dependency_overrides.
"""

import hmac
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .errors import ForbiddenError, NotFoundError
from .redis_client import redis_client
from .services.booking import BookingManager
from .services.google_calendar import CalendarOracle, build_calendar
from .services.notifications import Notifier, build_notifier
from .services.slots import AvailabilityCache, SlotConfig, get_slot_config
from .utils.encryption import FieldCipher, get_cipher


@lru_cache
def _calendar() -> CalendarOracle:
    return build_calendar(settings)


@lru_cache
def _notifier() -> Notifier:
    return build_notifier(settings, get_slot_config().tz)


def get_calendar() -> CalendarOracle:
    return _calendar()


def get_notifier() -> Notifier:
    return _notifier()


def get_config() -> SlotConfig:
    return get_slot_config()


def get_cache(config: SlotConfig = Depends(get_config)) -> AvailabilityCache:
    return AvailabilityCache(redis_client, config)


def get_clock() -> Callable[[], datetime]:
    return lambda: datetime.now(timezone.utc)


def get_field_cipher() -> FieldCipher:
    return get_cipher()


def get_booking_manager(
    db: Session = Depends(get_db),
    calendar: CalendarOracle = Depends(get_calendar),
    cache: AvailabilityCache = Depends(get_cache),
    notifier: Notifier = Depends(get_notifier),
    config: SlotConfig = Depends(get_config),
    cipher: FieldCipher = Depends(get_field_cipher),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> BookingManager:
    return BookingManager(
        db,
        calendar,
        cache,
        notifier,
        config=config,
        cipher=cipher,
        clock=clock,
    )


def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
    """Admin endpoints exist only when ADMIN_TOKEN is configured."""
    if not settings.admin_token:
        raise NotFoundError("Not found")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.admin_token):
        raise ForbiddenError()

# backend/consult_booking/services/slots/__init__.py
"""
Availability engine.

Slot grid (pure) → conflict oracle (calendar + store) → free slots,
fronted by a short-TTL Redis cache that booking writes invalidate.
"""

from .config import SlotConfig, get_slot_config
from .intervals import BusyInterval, Slot, free_slots, overlaps
from .calculator import generate_day_slots
from .conflicts import ConflictOracle
from .redis_store import AvailabilityCache, CacheLookup, CacheOutcome
from .invalidator import get_affected_dates, invalidate_dates
from .availability import get_available_dates, get_free_slots

__all__ = [
    "SlotConfig",
    "get_slot_config",
    "BusyInterval",
    "Slot",
    "free_slots",
    "overlaps",
    "generate_day_slots",
    "ConflictOracle",
    "AvailabilityCache",
    "CacheLookup",
    "CacheOutcome",
    "get_affected_dates",
    "invalidate_dates",
    "get_available_dates",
    "get_free_slots",
]

# backend/consult_booking/services/slots/calculator.py
"""
Slot grid for one business day.

Pure: no I/O, deterministic given (target_date, config, now).

Contains:
✓ working hours in the fixed local zone
✓ slot duration (trailing partial slot dropped)
✓ min advance notice (slot kept iff start >= now + notice)

Does NOT contain:
✗ Calendar events (conflicts.py)
✗ Reservations (conflicts.py)
"""

from datetime import date, datetime, timezone

from .config import SlotConfig, get_slot_config
from .intervals import Slot


def generate_day_slots(
    target_date: date,
    config: SlotConfig | None = None,
    now: datetime | None = None,
) -> list[Slot]:
    """
    Build the candidate slots for target_date.

    Returns:
        Ordered, contiguous-step, non-overlapping slots. Empty list if the
        whole day falls inside the advance-notice window.
    """
    config = config or get_slot_config()
    now = now or datetime.now(timezone.utc)
    earliest_start = now + config.min_advance

    step = config.slot_duration_minutes
    end_min = config.work_end_minutes

    slots: list[Slot] = []
    t = config.work_start_minutes
    while t + step <= end_min:
        start = config.at_local_minutes(target_date, t)
        if start >= earliest_start:
            slots.append(Slot(start=start, end=start + config.slot_duration))
        t += step

    return slots

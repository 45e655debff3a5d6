# backend/consult_booking/services/slots/intervals.py
"""
Half-open time intervals.

All instants are timezone-aware UTC datetimes.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, order=True)
class Slot:
    """A candidate [start, end) interval a reservation could occupy."""
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {
            "start_instant": self.start.isoformat(),
            "end_instant": self.end.isoformat(),
        }


@dataclass(frozen=True)
class BusyInterval:
    """An already committed [start, end) range."""
    start: datetime
    end: datetime
    source: str  # "calendar" | "reservation"
    ref: str | None = None


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Strict half-open overlap: touching intervals do not conflict."""
    return start < other_end and end > other_start


def free_slots(candidates: list[Slot], busy: list[BusyInterval]) -> list[Slot]:
    """Candidates that overlap no busy interval, in start order."""
    return sorted(
        slot for slot in candidates
        if not any(overlaps(slot.start, slot.end, b.start, b.end) for b in busy)
    )

# backend/consult_booking/services/slots/config.py
"""
Slot grid configuration.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache

from ...config import settings


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hour_str, minute_str = value.strip().split(":")
    hour, minute = int(hour_str), int(minute_str)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour * 60 + minute


@dataclass(frozen=True)
class SlotConfig:
    """
    Configuration for the availability engine.

    Attributes:
        utc_offset_minutes: Fixed offset of the business zone (180 = UTC+3)
        work_start: Working day start, local "HH:MM"
        work_end: Working day end, local "HH:MM"
        slot_duration_minutes: Length of every bookable slot
        min_advance_minutes: Minimum lead time between now and a slot start
        cache_ttl_seconds: Availability cache TTL
    """
    utc_offset_minutes: int = 180
    work_start: str = "10:00"
    work_end: str = "18:00"
    slot_duration_minutes: int = 60
    min_advance_minutes: int = 120
    cache_ttl_seconds: int = 60

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_duration_minutes <= 0:
            raise ValueError(f"slot_duration_minutes must be positive, got {self.slot_duration_minutes}")
        if self.min_advance_minutes < 0:
            raise ValueError(f"min_advance_minutes must not be negative, got {self.min_advance_minutes}")
        if self.cache_ttl_seconds <= 0:
            raise ValueError(f"cache_ttl_seconds must be positive, got {self.cache_ttl_seconds}")
        if self.work_end_minutes <= self.work_start_minutes:
            raise ValueError(f"work_end {self.work_end} must be after work_start {self.work_start}")

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(minutes=self.utc_offset_minutes))

    @property
    def work_start_minutes(self) -> int:
        return time_str_to_minutes(self.work_start)

    @property
    def work_end_minutes(self) -> int:
        return time_str_to_minutes(self.work_end)

    @property
    def slot_duration(self) -> timedelta:
        return timedelta(minutes=self.slot_duration_minutes)

    @property
    def min_advance(self) -> timedelta:
        return timedelta(minutes=self.min_advance_minutes)

    def local_midnight(self, target_date: date) -> datetime:
        """Local-zone midnight of target_date as a UTC instant."""
        return datetime.combine(target_date, time.min, tzinfo=self.tz).astimezone(timezone.utc)

    def at_local_minutes(self, target_date: date, minutes: int) -> datetime:
        """UTC instant of target_date + minutes in the local zone."""
        local = datetime.combine(target_date, time.min, tzinfo=self.tz) + timedelta(minutes=minutes)
        return local.astimezone(timezone.utc)

    def work_window(self, target_date: date) -> tuple[datetime, datetime]:
        """Working-hours window of target_date as UTC instants [start, end)."""
        return (
            self.at_local_minutes(target_date, self.work_start_minutes),
            self.at_local_minutes(target_date, self.work_end_minutes),
        )

    def local_date_of(self, instant: datetime) -> date:
        return instant.astimezone(self.tz).date()

    def today(self, now: datetime) -> date:
        return self.local_date_of(now)


@lru_cache
def get_slot_config() -> SlotConfig:
    """Slot configuration built from application settings (singleton)."""
    return SlotConfig(
        utc_offset_minutes=settings.utc_offset_minutes,
        work_start=settings.work_hours_start,
        work_end=settings.work_hours_end,
        slot_duration_minutes=settings.slot_duration_minutes,
        min_advance_minutes=settings.min_advance_minutes,
        cache_ttl_seconds=settings.availability_cache_ttl_seconds,
    )

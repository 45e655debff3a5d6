# backend/consult_booking/schemas/availability.py
"""
Pydantic schemas for the availability API.
"""

from datetime import date, datetime
from pydantic import BaseModel


class SlotRead(BaseModel):
    """A free bookable interval."""
    start_instant: datetime
    end_instant: datetime

    model_config = {"from_attributes": True}


class DayAvailability(BaseModel):
    date: date
    has_available_slots: bool


class AvailableDatesResponse(BaseModel):
    dates: list[DayAvailability]


class InvalidationResult(BaseModel):
    date: date
    outcome: str

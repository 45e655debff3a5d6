# backend/consult_booking/schemas/reservations.py

from datetime import date, datetime
from typing import Any, Optional
from pydantic import BaseModel


class BookingCreate(BaseModel):
    # Kept loose: services.validation reports every field problem at once
    date: Optional[Any] = None
    start_instant: Optional[Any] = None
    end_instant: Optional[Any] = None
    contact: Optional[Any] = None
    contact_kind: Optional[Any] = None
    consent_given: Optional[Any] = None


class StatusUpdate(BaseModel):
    status: str


class ContactStatusUpdate(BaseModel):
    contact: str
    status: str


class ReservationRead(BaseModel):
    id: str

    date: date
    start_instant: datetime
    end_instant: datetime

    contact: str
    contact_kind: str
    consent_given: bool

    status: str
    external_event_id: Optional[str] = None

    created_at: datetime

    model_config = {"from_attributes": True}

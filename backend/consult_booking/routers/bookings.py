# backend/consult_booking/routers/bookings.py

from fastapi import APIRouter, Depends, Query

from ..deps import get_booking_manager
from ..middleware.rate_limit import enforce_booking_rate_limit
from ..schemas.reservations import (
    BookingCreate,
    ContactStatusUpdate,
    ReservationRead,
    StatusUpdate,
)
from ..services.booking import BookingManager

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=ReservationRead,
    status_code=201,
    dependencies=[Depends(enforce_booking_rate_limit)],
)
def create_booking(
    data: BookingCreate,
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.create(data.model_dump())


@router.get("/by-contact", response_model=ReservationRead)
def get_booking_by_contact(
    contact: str = Query(""),
    manager: BookingManager = Depends(get_booking_manager),
):
    """Nearest upcoming confirmed reservation of a contact."""
    return manager.lookup_by_contact(contact)


@router.patch("/status", response_model=ReservationRead)
def cancel_booking_by_contact(
    data: ContactStatusUpdate,
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.cancel_by_contact(data.contact, data.status)


@router.get("/{reservation_id}", response_model=ReservationRead)
def get_booking(
    reservation_id: str,
    manager: BookingManager = Depends(get_booking_manager),
):
    return manager.get(reservation_id)


@router.patch("/{reservation_id}/status", response_model=ReservationRead)
def update_booking_status(
    reservation_id: str,
    data: StatusUpdate,
    manager: BookingManager = Depends(get_booking_manager),
):
    """Only CONFIRMED → CANCELLED is allowed."""
    return manager.cancel(reservation_id, data.status)

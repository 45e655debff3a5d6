# backend/consult_booking/routers/availability.py
"""
Availability API endpoints.

GET  /availability?date=        - free slots of one business date
GET  /availability/dates        - which dates of a range have free slots
POST /availability/invalidate   - drop cached slots of a date or range (admin)
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..deps import get_cache, get_calendar, get_clock, get_config, require_admin
from ..errors import ValidationError
from ..schemas.availability import AvailableDatesResponse, InvalidationResult, SlotRead
from ..services.google_calendar import CalendarOracle
from ..services.slots import (
    AvailabilityCache,
    SlotConfig,
    get_available_dates,
    get_affected_dates,
    get_free_slots,
    invalidate_dates,
)
from ..services.validation import parse_date

MAX_RANGE_DAYS = 62

router = APIRouter(prefix="/availability", tags=["availability"])


def _required_date(value: Optional[str], field: str = "date") -> date:
    if not value:
        raise ValidationError({field: "Date is required"})
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError({field: "Invalid date format, expected YYYY-MM-DD"})
    return parsed


@router.get("", response_model=list[SlotRead])
def list_free_slots(
    date_: Optional[str] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    calendar: CalendarOracle = Depends(get_calendar),
    cache: AvailabilityCache = Depends(get_cache),
    config: SlotConfig = Depends(get_config),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Free slots of a date, ordered by start. Past dates have none."""
    target_date = _required_date(date_)
    slots = get_free_slots(db, target_date, calendar, cache, config, clock())
    return [s.to_dict() for s in slots]


@router.get("/dates", response_model=AvailableDatesResponse)
def list_available_dates(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    db: Session = Depends(get_db),
    calendar: CalendarOracle = Depends(get_calendar),
    cache: AvailabilityCache = Depends(get_cache),
    config: SlotConfig = Depends(get_config),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    now = clock()
    today = config.today(now)

    start = _required_date(date_from, "from") if date_from else today
    end = (
        _required_date(date_to, "to")
        if date_to
        else start + timedelta(days=settings.availability_horizon_days)
    )

    if end < start:
        raise ValidationError({"to": "End date must not be before start date"})
    if (end - start).days > MAX_RANGE_DAYS:
        raise ValidationError({"to": f"Date range must not exceed {MAX_RANGE_DAYS} days"})

    days = get_available_dates(db, start, end, calendar, cache, config, now)
    return {"dates": days}


@router.post(
    "/invalidate",
    response_model=list[InvalidationResult],
    dependencies=[Depends(require_admin)],
)
def invalidate_availability(
    date_: Optional[str] = Query(None, alias="date"),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    cache: AvailabilityCache = Depends(get_cache),
):
    """Drop cached slots of one date, or of every date in from..to."""
    if date_ or not (date_from or date_to):
        start = end = _required_date(date_)
    else:
        start = _required_date(date_from, "from")
        end = _required_date(date_to, "to")

    dates = get_affected_dates(start, end)
    if len(dates) > MAX_RANGE_DAYS + 1:
        raise ValidationError({"to": f"Date range must not exceed {MAX_RANGE_DAYS} days"})

    outcomes = invalidate_dates(cache, dates)
    return [{"date": dt, "outcome": outcome.value} for dt, outcome in outcomes.items()]

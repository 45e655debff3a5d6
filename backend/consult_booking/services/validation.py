"""
Booking request validation.

Collects every problem into one field → message map so the form can
show all errors at once; raises ValidationError if the map is non-empty.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from ..errors import ValidationError
from ..models import ContactKind
from .slots.config import SlotConfig

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
HANDLE_RE = re.compile(r"^@?[A-Za-z0-9_]{5,32}$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

CONTACT_KIND_ALIASES = {
    "EMAIL": ContactKind.EMAIL,
    "HANDLE": ContactKind.HANDLE,
    "TELEGRAM": ContactKind.HANDLE,
}


@dataclass(frozen=True)
class ValidatedBooking:
    date: date
    start: datetime
    end: datetime
    contact: str
    contact_kind: ContactKind
    consent_given: bool


def parse_date(value: Any) -> date | None:
    """YYYY-MM-DD → date, None if malformed."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_instant(value: Any) -> datetime | None:
    """ISO-8601 → aware UTC datetime (naive read as UTC), None if malformed."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_contact_kind(value: Any) -> ContactKind | None:
    if isinstance(value, ContactKind):
        return value
    if not isinstance(value, str):
        return None
    return CONTACT_KIND_ALIASES.get(value.strip().upper())


def validate_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value.strip()))


def validate_handle(value: str) -> bool:
    return bool(HANDLE_RE.match(value.strip()))


def validate_booking(data: dict, config: SlotConfig, now: datetime) -> ValidatedBooking:
    """
    Validate a booking create request.

    Args:
        data: keys date, start_instant, end_instant, contact, contact_kind, consent_given
        config: slot configuration (zone, working hours, duration, notice)
        now: current instant

    Raises:
        ValidationError: with a field → message map
    """
    errors: dict[str, str] = {}

    # Date
    raw_date = data.get("date")
    target_date = parse_date(raw_date)
    if not raw_date:
        errors["date"] = "Date is required"
    elif target_date is None:
        errors["date"] = "Invalid date format, expected YYYY-MM-DD"
    elif target_date < config.today(now):
        errors["date"] = "Cannot book a date in the past"

    # Interval
    start = parse_instant(data.get("start_instant"))
    end = parse_instant(data.get("end_instant"))
    if not data.get("start_instant"):
        errors["start_instant"] = "Start time is required"
    elif start is None:
        errors["start_instant"] = "Invalid start time format"
    if not data.get("end_instant"):
        errors["end_instant"] = "End time is required"
    elif end is None:
        errors["end_instant"] = "Invalid end time format"

    if start is not None and end is not None:
        if end - start != config.slot_duration:
            errors["end_instant"] = f"Interval must be exactly {config.slot_duration_minutes} minutes"
        elif start < now + config.min_advance:
            errors["start_instant"] = "This time can no longer be booked"

    if target_date is not None and start is not None and "date" not in errors:
        if config.local_date_of(start) != target_date:
            errors["date"] = "Date does not match the selected interval"
        elif end is not None and "end_instant" not in errors:
            work_start, work_end = config.work_window(target_date)
            if start < work_start or end > work_end:
                errors["start_instant"] = "Interval is outside working hours"
            elif (start - work_start) % config.slot_duration:
                # Confirmed starts are unique per grid step, so off-grid starts could overlap
                errors["start_instant"] = "Interval must start on a slot boundary"

    # Contact
    contact = data.get("contact")
    kind = parse_contact_kind(data.get("contact_kind"))
    if not isinstance(contact, str) or not contact.strip():
        errors["contact"] = "Contact is required"
    elif kind is None:
        errors["contact_kind"] = "Contact kind must be EMAIL or HANDLE"
    elif kind is ContactKind.EMAIL and not validate_email(contact):
        errors["contact"] = "Invalid email"
    elif kind is ContactKind.HANDLE and not validate_handle(contact):
        errors["contact"] = "Invalid handle"

    # Consent
    if data.get("consent_given") is not True:
        errors["consent_given"] = "Consent to personal data processing is required"

    if errors:
        raise ValidationError(errors)

    return ValidatedBooking(
        date=target_date,
        start=start,
        end=end,
        contact=contact.strip(),
        contact_kind=kind,
        consent_given=True,
    )

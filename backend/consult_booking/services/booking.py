"""
backend/consult_booking/services/booking.py

Booking lifecycle: create, cancel, lookup, purge.

State machine per reservation:

    (none) ──create──▶ CONFIRMED ──cancel──▶ CANCELLED
                           └──────purge───▶ (row deleted, PURGED audit)

Side-effect ordering on create:
1. validate input
2. conflict re-check against calendar + store (never the cache)
3. invalidate the date's cache entry
4. create calendar event (best-effort)
5. insert reservation + CREATED audit, commit
6. invalidate again (drops anything cached between 3 and 5)
7. notify (best-effort)

On cancel: invalidate, conditional status flip, delete the calendar
event (best-effort), CANCELLED audit + commit, invalidate again.

The store's partial unique index on confirmed start instants turns a lost
race between two creates into IntegrityError → ConflictError.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import AuditAction, AuditRecord, Reservation, ReservationStatus
from ..utils.encryption import FieldCipher, get_cipher
from ..utils.hashing import contact_digest
from ..utils.masking import mask_contact
from .google_calendar import CalendarOracle
from .notifications import Notifier
from .side_effects import run_best_effort
from .slots.config import SlotConfig, get_slot_config
from .slots.conflicts import ConflictOracle
from .slots.redis_store import AvailabilityCache
from .validation import validate_booking

logger = logging.getLogger(__name__)

EVENT_SUMMARY = "Consultation"
SLOT_TAKEN_MESSAGE = "This time slot is already taken, please choose another one"


@dataclass
class PurgeReport:
    purged: int = 0
    skipped: int = 0
    failed: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_target_status(status) -> ReservationStatus:
    """Only CANCELLED may be requested."""
    try:
        target = ReservationStatus(str(getattr(status, "value", status)).upper())
    except ValueError:
        target = None
    if target is not ReservationStatus.CANCELLED:
        raise ValidationError({"status": "Only cancellation is allowed"})
    return target


class BookingManager:
    """Orchestrates the reservation lifecycle over injected collaborators."""

    def __init__(
        self,
        db: Session,
        calendar: CalendarOracle,
        cache: AvailabilityCache,
        notifier: Notifier,
        config: SlotConfig | None = None,
        cipher: FieldCipher | None = None,
        digest: Callable[[str], str] = contact_digest,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.calendar = calendar
        self.cache = cache
        self.notifier = notifier
        self.config = config or get_slot_config()
        self._cipher = cipher
        self.digest = digest
        self.clock = clock

    @property
    def cipher(self) -> FieldCipher:
        # Resolved lazily: purging needs no key
        if self._cipher is None:
            self._cipher = get_cipher()
        return self._cipher

    # ── Create ───────────────────────────────────────────────────────────

    def create(self, data: dict) -> dict:
        """
        Create a CONFIRMED reservation.

        Raises:
            ValidationError: malformed input (field map)
            ConflictError: slot busy in calendar or store, or lost a race
            ServiceUnavailableError: calendar unreachable during the re-check
        """
        now = self.clock()
        booking = validate_booking(data, self.config, now)

        conflicts = ConflictOracle(self.db, self.calendar, self.config).find_conflicts(
            booking.start, booking.end
        )
        if conflicts:
            sources = sorted({c.source for c in conflicts})
            logger.info(f"Booking rejected, {booking.start.isoformat()} busy in {sources}")
            raise ConflictError(SLOT_TAKEN_MESSAGE, field="start_instant")

        contact_encrypted = self.cipher.encrypt(booking.contact)
        digest = self.digest(booking.contact)

        # Invalidate before any durable write
        self.cache.invalidate(booking.date)

        event = run_best_effort(
            "calendar.create_event",
            self.calendar.create_event,
            EVENT_SUMMARY,
            self._event_description(booking.contact, booking.contact_kind.value),
            booking.start,
            booking.end,
        )
        external_event_id: Optional[str] = event.value if event.ok else None

        reservation = Reservation(
            id=str(uuid4()),
            date=self.config.local_midnight(booking.date),
            start_instant=booking.start,
            end_instant=booking.end,
            contact_encrypted=contact_encrypted,
            contact_digest=digest,
            contact_kind=booking.contact_kind,
            consent_given=booking.consent_given,
            status=ReservationStatus.CONFIRMED,
            external_event_id=external_event_id,
            created_at=now,
        )

        try:
            self.db.add(reservation)
            self.db.flush()
            self._audit(AuditAction.CREATED, reservation, now, status=ReservationStatus.CONFIRMED.value)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"Booking lost race for {booking.start.isoformat()}")
            if external_event_id:
                run_best_effort("calendar.delete_orphan_event", self.calendar.delete_event, external_event_id)
            raise ConflictError(SLOT_TAKEN_MESSAGE, field="start_instant")

        self.cache.invalidate(booking.date)

        view = self._to_view(reservation, contact=booking.contact)
        logger.info(
            f"Booking created: id={view['id']}, "
            f"time={self._local_range(booking.start, booking.end)}, "
            f"contact={mask_contact(booking.contact, booking.contact_kind.value)}, "
            f"calendar_event={'yes' if external_event_id else 'no'}"
        )

        run_best_effort("notify.booking_created", self.notifier.booking_created, view)
        return view

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, reservation_id: str) -> dict:
        return self._to_view(self._get_or_404(reservation_id))

    def lookup_by_contact(self, contact: str) -> dict:
        """Nearest future CONFIRMED reservation of a contact."""
        return self._to_view(self._find_by_contact(contact))

    # ── Cancel ───────────────────────────────────────────────────────────

    def cancel(self, reservation_id: str, status=ReservationStatus.CANCELLED) -> dict:
        """
        CONFIRMED → CANCELLED.

        Raises:
            ValidationError: status other than CANCELLED, or not CONFIRMED
            NotFoundError: no such reservation
        """
        _parse_target_status(status)
        reservation = self._get_or_404(reservation_id)

        if reservation.status is not ReservationStatus.CONFIRMED:
            raise ValidationError({"status": "Only a confirmed reservation can be cancelled"})

        now = self.clock()
        target_date = self.config.local_date_of(reservation.start_instant)

        self.cache.invalidate(target_date)

        updated = (
            self.db.query(Reservation)
            .filter(
                Reservation.id == reservation.id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
            .update({Reservation.status: ReservationStatus.CANCELLED}, synchronize_session="fetch")
        )
        if not updated:
            # A concurrent cancel got there first
            self.db.rollback()
            raise ValidationError({"status": "Only a confirmed reservation can be cancelled"})

        if reservation.external_event_id:
            run_best_effort("calendar.delete_event", self.calendar.delete_event, reservation.external_event_id)

        self._audit(AuditAction.CANCELLED, reservation, now, status=ReservationStatus.CANCELLED.value)
        self.db.commit()

        self.cache.invalidate(target_date)

        logger.info(f"Booking cancelled: id={reservation.id}")
        return self._to_view(reservation)

    def cancel_by_contact(self, contact: str, status=ReservationStatus.CANCELLED) -> dict:
        _parse_target_status(status)
        reservation = self._find_by_contact(contact)
        return self.cancel(reservation.id, status)

    # ── Purge (retention) ────────────────────────────────────────────────

    def purge_expired(self, retention_minutes: int | None = None) -> PurgeReport:
        """
        Hard-delete CONFIRMED reservations that ended more than
        retention_minutes ago. One bad row never aborts the sweep.
        """
        if retention_minutes is None:
            retention_minutes = settings.retention_past_booking_minutes

        now = self.clock()
        threshold = now - timedelta(minutes=retention_minutes)

        candidate_ids = [
            row.id
            for row in self.db.query(Reservation.id)
            .filter(
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.end_instant < threshold,
            )
            .all()
        ]

        report = PurgeReport()
        for reservation_id in candidate_ids:
            try:
                if self.purge_one(reservation_id, now):
                    report.purged += 1
                else:
                    report.skipped += 1
            except Exception:
                self.db.rollback()
                logger.exception(f"Failed to purge reservation {reservation_id}")
                report.failed += 1

        if candidate_ids:
            logger.info(
                f"Retention sweep: purged={report.purged}, "
                f"skipped={report.skipped}, failed={report.failed}"
            )
        return report

    def purge_one(self, reservation_id: str, now: datetime | None = None) -> bool:
        """Purge one reservation; False if it is already gone."""
        now = now or self.clock()
        reservation = self.db.get(Reservation, reservation_id)
        if reservation is None or reservation.status is not ReservationStatus.CONFIRMED:
            return False

        details = {
            "date": self.config.local_date_of(reservation.start_instant).isoformat(),
            "end_instant": reservation.end_instant.isoformat(),
            "deleted_at": now.isoformat(),
        }
        external_event_id = reservation.external_event_id

        if external_event_id:
            run_best_effort("calendar.delete_event", self.calendar.delete_event, external_event_id)

        deleted = (
            self.db.query(Reservation)
            .filter(
                Reservation.id == reservation_id,
                Reservation.status == ReservationStatus.CONFIRMED,
            )
            .delete(synchronize_session="fetch")
        )
        if not deleted:
            self.db.rollback()
            return False

        # Row is gone: no reference, no contact data
        self.db.add(AuditRecord(
            action=AuditAction.PURGED,
            reservation_id=None,
            details=details,
            created_at=now,
        ))
        self.db.commit()
        return True

    # ── Helpers ──────────────────────────────────────────────────────────

    def _get_or_404(self, reservation_id: str) -> Reservation:
        reservation = self.db.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found")
        return reservation

    def _find_by_contact(self, contact: str) -> Reservation:
        if not isinstance(contact, str) or not contact.strip():
            raise ValidationError({"contact": "Contact is required"})

        reservation = (
            self.db.query(Reservation)
            .filter(
                Reservation.contact_digest == self.digest(contact),
                Reservation.status == ReservationStatus.CONFIRMED,
                Reservation.end_instant > self.clock(),
            )
            .order_by(Reservation.start_instant.asc())
            .first()
        )
        if reservation is None:
            raise NotFoundError("No active reservation found")
        return reservation

    def _audit(self, action: AuditAction, reservation: Reservation, now: datetime, **extra) -> None:
        self.db.add(AuditRecord(
            action=action,
            reservation_id=reservation.id,
            details={
                "date": self.config.local_date_of(reservation.start_instant).isoformat(),
                "end_instant": reservation.end_instant.isoformat(),
                **extra,
            },
            created_at=now,
        ))

    def _event_description(self, contact: str, kind: str) -> str:
        label = "Email" if kind == "EMAIL" else "Telegram"
        return f"Contact: {label} {contact}"

    def _local_range(self, start: datetime, end: datetime) -> str:
        tz = self.config.tz
        return f"{start.astimezone(tz):%Y-%m-%d %H:%M}-{end.astimezone(tz):%H:%M}"

    def _to_view(self, reservation: Reservation, contact: str | None = None) -> dict:
        """Reservation as a response dict with the contact decrypted."""
        if contact is None:
            contact = self.cipher.decrypt(reservation.contact_encrypted)
        return {
            "id": reservation.id,
            "date": self.config.local_date_of(reservation.start_instant),
            "start_instant": reservation.start_instant,
            "end_instant": reservation.end_instant,
            "contact": contact,
            "contact_kind": reservation.contact_kind.value,
            "consent_given": reservation.consent_given,
            "status": reservation.status.value,
            "external_event_id": reservation.external_event_id,
            "created_at": reservation.created_at,
        }

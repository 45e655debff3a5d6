from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from .enums import AuditAction, ContactKind, ReservationStatus

Base = declarative_base()
metadata = Base.metadata


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, returns aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requires a timezone-aware datetime")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Reservation(Base):
    __tablename__ = 'reservations'
    __table_args__ = (
        # Last line of defense against two concurrent creates for one slot
        Index(
            'uq_reservations_confirmed_start',
            'start_instant',
            unique=True,
            sqlite_where=text("status = 'CONFIRMED'"),
            postgresql_where=text("status = 'CONFIRMED'"),
        ),
        Index('ix_reservations_status_end', 'status', 'end_instant'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    date = Column(UTCDateTime, nullable=False)  # local midnight, UTC-normalized
    start_instant = Column(UTCDateTime, nullable=False)
    end_instant = Column(UTCDateTime, nullable=False)
    contact_encrypted = Column(Text, nullable=False)
    contact_digest = Column(String(64), nullable=False, index=True)
    contact_kind = Column(Enum(ContactKind, native_enum=False, length=16), nullable=False)
    consent_given = Column(Boolean, nullable=False)
    status = Column(
        Enum(ReservationStatus, native_enum=False, length=16),
        nullable=False,
        server_default=text("'CONFIRMED'"),
    )
    external_event_id = Column(Text)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class AuditRecord(Base):
    __tablename__ = 'audit_records'

    id = Column(Integer, primary_key=True)
    action = Column(Enum(AuditAction, native_enum=False, length=16), nullable=False)

    reservation_id = Column(
        ForeignKey('reservations.id', ondelete='SET NULL')
    )

    # Non-identifying only: date, end_instant, status, deleted_at
    details = Column('metadata', JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

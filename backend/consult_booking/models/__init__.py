from .enums import AuditAction, ContactKind, ReservationStatus
from .tables import AuditRecord, Base, Reservation, UTCDateTime, metadata, utcnow

__all__ = [
    "AuditAction",
    "AuditRecord",
    "Base",
    "ContactKind",
    "Reservation",
    "ReservationStatus",
    "UTCDateTime",
    "metadata",
    "utcnow",
]

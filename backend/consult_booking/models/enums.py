from enum import Enum


class ReservationStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ContactKind(str, Enum):
    EMAIL = "EMAIL"
    HANDLE = "HANDLE"


class AuditAction(str, Enum):
    CREATED = "CREATED"
    CANCELLED = "CANCELLED"
    PURGED = "PURGED"

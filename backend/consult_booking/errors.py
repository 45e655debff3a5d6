"""
Error taxonomy for the booking engine.

Every error carries an HTTP status and a stable machine code; the
handlers in main.py render them as

    {"error": {"code": ..., "message": ..., "fields": {...}}}
"""


class BookingError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class ValidationError(BookingError):
    """Malformed or missing input; `fields` maps field name → message."""

    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(self, fields: dict[str, str] | None = None, message: str | None = None):
        self.fields = dict(fields or {})
        if message is None and len(self.fields) == 1:
            message = next(iter(self.fields.values()))
        super().__init__(message)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["error"]["fields"] = self.fields
        return payload


class ConflictError(BookingError):
    status_code = 409
    code = "CONFLICT"
    default_message = "This time slot is already taken"

    def __init__(self, message: str | None = None, field: str | None = None):
        self.field = field
        super().__init__(message)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.field:
            payload["error"]["fields"] = {self.field: self.message}
        return payload


class ForbiddenError(BookingError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFoundError(BookingError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Reservation not found"


class ServiceUnavailableError(BookingError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"
    default_message = "Calendar is temporarily unavailable"


class RateLimitError(BookingError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests, try again later"

    def __init__(self, retry_after: int | None = None, message: str | None = None):
        self.retry_after = retry_after
        super().__init__(message)


class InternalError(BookingError):
    pass

# backend/consult_booking/main.py
"""FastAPI application entrypoint for the consultation booking engine."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .deps import get_calendar
from .errors import BookingError, InternalError, RateLimitError
from .middleware.access_log import access_log_middleware
from .redis_client import redis_client
from .routers import audit_log, availability, bookings
from .services.google_calendar import CalendarOracle
from .services.retention import retention_loop

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting consult-booking ({settings.app_env})")

    retention_task = None
    if settings.retention_enabled:
        retention_task = asyncio.create_task(retention_loop())

    yield

    if retention_task is not None:
        retention_task.cancel()
        await asyncio.gather(retention_task, return_exceptions=True)
    logger.info("consult-booking stopped")


app = FastAPI(title="Consultation Booking API", version="1.0.0", lifespan=lifespan)

app.middleware("http")(access_log_middleware)

app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(audit_log.router)


# ===== Error envelope =====

@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    headers = None
    if isinstance(exc, RateLimitError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "body"] = error.get("msg", "Invalid value")
    return JSONResponse(
        status_code=400,
        content={"error": {"code": "VALIDATION_ERROR", "message": "Validation failed", "fields": fields}},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = InternalError(None if settings.is_production else str(exc))
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


# ===== Health =====

@app.get("/health")
def health(db: Session = Depends(get_db), calendar: CalendarOracle = Depends(get_calendar)):
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except Exception as e:
        logger.error(f"Health check: database unreachable: {e}")
        database_ok = False

    try:
        redis_ok = bool(redis_client.ping())
    except Exception as e:
        logger.warning(f"Health check: redis unreachable: {e}")
        redis_ok = False

    return {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        "redis": redis_ok,
        "calendar": calendar.configured,
    }

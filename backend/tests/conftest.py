"""Pytest configuration and fixtures for the booking engine tests."""
import os

# Settings are read at import time
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENCRYPTION_KEY"] = "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY="
os.environ["CONTACT_DIGEST_KEY"] = "test-digest-key"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["RETENTION_ENABLED"] = "false"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["GOOGLE_SERVICE_ACCOUNT_EMAIL"] = ""
os.environ["GOOGLE_REFRESH_TOKEN"] = ""

import itertools
import threading
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import fakeredis
import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from consult_booking.database import build_engine
from consult_booking.models import Base, ContactKind, Reservation, ReservationStatus
from consult_booking.services.booking import BookingManager
from consult_booking.services.google_calendar import (
    CalendarError,
    CalendarEvent,
    CalendarUnavailableError,
)
from consult_booking.services.slots import AvailabilityCache, SlotConfig
from consult_booking.utils.encryption import get_cipher
from consult_booking.utils.hashing import contact_digest

# 2026-10-20 09:00 at UTC+3
NOW = datetime(2026, 10, 20, 6, 0, tzinfo=timezone.utc)
TODAY = date(2026, 10, 20)
TOMORROW = date(2026, 10, 21)


def local_instant(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC instant of a local UTC+3 wall-clock time."""
    local = datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone(timedelta(hours=3)))
    return local.astimezone(timezone.utc)


class FakeCalendar:
    """In-memory calendar oracle with failure switches."""

    configured = True

    def __init__(self):
        self.events: dict[str, CalendarEvent] = {}
        self.calls: list[tuple] = []
        self.fail_list = False
        self.fail_create = False
        self.fail_delete = False
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def add_event(self, start, end, summary="Busy") -> str:
        with self._lock:
            event_id = f"evt-{next(self._ids)}"
            self.events[event_id] = CalendarEvent(id=event_id, summary=summary, start=start, end=end)
        return event_id

    def add_all_day_event(self, summary="Holiday") -> str:
        return self.add_event(None, None, summary)

    def list_events(self, time_min, time_max):
        self.calls.append(("list", time_min, time_max))
        if self.fail_list:
            raise CalendarUnavailableError("calendar is down")
        with self._lock:
            return list(self.events.values())

    def create_event(self, summary, description, start, end):
        self.calls.append(("create", start, end))
        if self.fail_create:
            raise CalendarError("create failed")
        return self.add_event(start, end, summary)

    def delete_event(self, event_id):
        self.calls.append(("delete", event_id))
        if self.fail_delete:
            raise CalendarError("delete failed")
        with self._lock:
            self.events.pop(event_id, None)
        return True


class RecordingNotifier:
    def __init__(self, fail=False):
        self.sent: list[dict] = []
        self.fail = fail

    def booking_created(self, reservation: dict) -> None:
        if self.fail:
            raise RuntimeError("telegram is down")
        self.sent.append(reservation)


@pytest.fixture(scope="function")
def db_engine():
    """In-memory SQLite shared across threads (TestClient runs sync endpoints in a pool)."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def slot_config():
    return SlotConfig(
        utc_offset_minutes=180,
        work_start="10:00",
        work_end="18:00",
        slot_duration_minutes=60,
        min_advance_minutes=120,
        cache_ttl_seconds=60,
    )


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(fake_redis, slot_config):
    return AvailabilityCache(fake_redis, slot_config)


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    """Mutable fixed clock: set clock.now to move time."""
    class _Clock:
        now = NOW

        def __call__(self):
            return self.now

    return _Clock()


@pytest.fixture
def cipher():
    return get_cipher()


@pytest.fixture
def manager(db_session, calendar, cache, notifier, slot_config, cipher, clock):
    return BookingManager(
        db_session,
        calendar,
        cache,
        notifier,
        config=slot_config,
        cipher=cipher,
        clock=clock,
    )


@pytest.fixture
def booking_payload():
    """Valid create payload for tomorrow 14:00-15:00 local."""
    def _payload(**overrides):
        data = {
            "date": TOMORROW.isoformat(),
            "start_instant": local_instant(TOMORROW, 14).isoformat(),
            "end_instant": local_instant(TOMORROW, 15).isoformat(),
            "contact": "client@example.com",
            "contact_kind": "EMAIL",
            "consent_given": True,
        }
        data.update(overrides)
        return data
    return _payload


@pytest.fixture
def insert_reservation(db_session, cipher):
    """Insert a reservation row directly, bypassing validation."""
    def _insert(start, end, contact="client@example.com", status=ReservationStatus.CONFIRMED,
                external_event_id=None, kind=ContactKind.EMAIL):
        reservation = Reservation(
            id=str(uuid4()),
            date=start,
            start_instant=start,
            end_instant=end,
            contact_encrypted=cipher.encrypt(contact),
            contact_digest=contact_digest(contact),
            contact_kind=kind,
            consent_given=True,
            status=status,
            external_event_id=external_event_id,
            created_at=start - timedelta(days=1),
        )
        db_session.add(reservation)
        db_session.commit()
        return reservation
    return _insert

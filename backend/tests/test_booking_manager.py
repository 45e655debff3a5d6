"""Tests for the booking lifecycle manager."""
import threading

import pytest
from datetime import timedelta

from consult_booking.errors import ConflictError, NotFoundError, ServiceUnavailableError, ValidationError
from consult_booking.models import AuditAction, AuditRecord, Reservation, ReservationStatus
from consult_booking.services.booking import BookingManager
from consult_booking.services.slots import AvailabilityCache, get_free_slots
from consult_booking.utils.hashing import contact_digest

from conftest import NOW, TOMORROW, FakeCalendar, RecordingNotifier, local_instant


def _free_starts(manager):
    slots = get_free_slots(manager.db, TOMORROW, manager.calendar, manager.cache, manager.config, NOW)
    return [s.start for s in slots]


@pytest.mark.unit
class TestCreate:

    def test_create_success(self, manager, booking_payload, db_session, calendar, notifier, cipher):
        view = manager.create(booking_payload())

        assert view["status"] == "CONFIRMED"
        assert view["contact"] == "client@example.com"
        assert view["date"] == TOMORROW
        assert view["start_instant"] == local_instant(TOMORROW, 14)
        assert view["external_event_id"] in calendar.events

        row = db_session.get(Reservation, view["id"])
        assert row.contact_encrypted != "client@example.com"
        assert cipher.decrypt(row.contact_encrypted) == "client@example.com"
        assert row.contact_digest == contact_digest("client@example.com")

        audit = db_session.query(AuditRecord).one()
        assert audit.action is AuditAction.CREATED
        assert audit.reservation_id == view["id"]
        assert audit.details == {
            "date": "2026-10-21",
            "end_instant": local_instant(TOMORROW, 15).isoformat(),
            "status": "CONFIRMED",
        }

        assert [n["id"] for n in notifier.sent] == [view["id"]]

    def test_validation_error_persists_nothing(self, manager, booking_payload, db_session, calendar):
        with pytest.raises(ValidationError) as exc_info:
            manager.create(booking_payload(consent_given=False))

        assert "consent_given" in exc_info.value.fields
        assert db_session.query(Reservation).count() == 0
        assert calendar.calls == []

    def test_conflict_with_reservation(self, manager, booking_payload, db_session):
        manager.create(booking_payload())

        with pytest.raises(ConflictError) as exc_info:
            manager.create(booking_payload(contact="other@example.com"))

        assert exc_info.value.field == "start_instant"
        assert db_session.query(Reservation).count() == 1

    def test_conflict_with_calendar_event(self, manager, booking_payload, calendar, db_session):
        calendar.add_event(local_instant(TOMORROW, 14, 30), local_instant(TOMORROW, 16))

        with pytest.raises(ConflictError):
            manager.create(booking_payload())

        assert db_session.query(Reservation).count() == 0

    def test_back_to_back_allowed(self, manager, booking_payload):
        manager.create(booking_payload())
        view = manager.create(booking_payload(
            start_instant=local_instant(TOMORROW, 15).isoformat(),
            end_instant=local_instant(TOMORROW, 16).isoformat(),
            contact="other@example.com",
        ))
        assert view["status"] == "CONFIRMED"

    def test_calendar_unreachable_on_recheck(self, manager, booking_payload, calendar, db_session):
        calendar.fail_list = True

        with pytest.raises(ServiceUnavailableError):
            manager.create(booking_payload())

        assert db_session.query(Reservation).count() == 0

    def test_event_creation_failure_is_not_fatal(self, manager, booking_payload, calendar):
        calendar.fail_create = True

        view = manager.create(booking_payload())

        assert view["status"] == "CONFIRMED"
        assert view["external_event_id"] is None

    def test_unconfigured_calendar(self, db_session, cache, notifier, slot_config, cipher, clock, booking_payload):
        from consult_booking.services.google_calendar import UnconfiguredCalendar

        manager = BookingManager(
            db_session, UnconfiguredCalendar(), cache, notifier,
            config=slot_config, cipher=cipher, clock=clock,
        )
        view = manager.create(booking_payload())
        assert view["external_event_id"] is None

    def test_notification_failure_is_not_fatal(
        self, db_session, calendar, cache, slot_config, cipher, clock, booking_payload
    ):
        manager = BookingManager(
            db_session, calendar, cache, RecordingNotifier(fail=True),
            config=slot_config, cipher=cipher, clock=clock,
        )
        view = manager.create(booking_payload())

        assert db_session.get(Reservation, view["id"]).status is ReservationStatus.CONFIRMED

    def test_side_effect_ordering(self, manager, booking_payload, calendar, cache, db_session):
        """Conflict check, then invalidate, then event, then the row."""
        steps = []
        original_invalidate = cache.invalidate
        original_create = calendar.create_event
        original_list = calendar.list_events

        def spy_list(*args):
            steps.append("check")
            return original_list(*args)

        def spy_invalidate(dt):
            steps.append(("invalidate", db_session.query(Reservation).count()))
            return original_invalidate(dt)

        def spy_create(*args):
            steps.append(("event", db_session.query(Reservation).count()))
            return original_create(*args)

        calendar.list_events = spy_list
        calendar.create_event = spy_create
        cache.invalidate = spy_invalidate

        manager.create(booking_payload())

        assert steps == ["check", ("invalidate", 0), ("event", 0), ("invalidate", 1)]

    def test_create_invalidates_cached_day(self, manager, booking_payload):
        assert local_instant(TOMORROW, 14) in _free_starts(manager)
        assert manager.cache.get(TOMORROW, NOW).hit

        manager.create(booking_payload())

        assert local_instant(TOMORROW, 14) not in _free_starts(manager)

    def test_stale_cache_cannot_double_book(self, manager, booking_payload, insert_reservation):
        """A cache still showing the slot free does not bypass the re-check."""
        assert local_instant(TOMORROW, 14) in _free_starts(manager)
        insert_reservation(local_instant(TOMORROW, 14), local_instant(TOMORROW, 15), contact="first@example.com")
        assert manager.cache.get(TOMORROW, NOW).hit

        with pytest.raises(ConflictError):
            manager.create(booking_payload())

    def test_lost_race_deletes_orphan_event(self, manager, booking_payload, calendar, insert_reservation, monkeypatch):
        """Unique index rejects the insert after a clean re-check."""
        insert_reservation(local_instant(TOMORROW, 14), local_instant(TOMORROW, 15), contact="first@example.com")
        monkeypatch.setattr(
            "consult_booking.services.booking.ConflictOracle.find_conflicts",
            lambda self, start, end: [],
        )

        with pytest.raises(ConflictError):
            manager.create(booking_payload())

        deleted = [c for c in calendar.calls if c[0] == "delete"]
        assert len(deleted) == 1
        assert calendar.events == {}

    def test_overlapping_off_grid_request_never_confirmed(
        self, manager, booking_payload, db_session, insert_reservation, monkeypatch
    ):
        """A half-step shifted interval cannot slip past the start index."""
        insert_reservation(local_instant(TOMORROW, 14), local_instant(TOMORROW, 15), contact="first@example.com")
        monkeypatch.setattr(
            "consult_booking.services.booking.ConflictOracle.find_conflicts",
            lambda self, start, end: [],
        )

        with pytest.raises(ValidationError) as exc:
            manager.create(booking_payload(
                start_instant=local_instant(TOMORROW, 14, 30).isoformat(),
                end_instant=local_instant(TOMORROW, 15, 30).isoformat(),
            ))

        assert "start_instant" in exc.value.fields
        assert db_session.query(Reservation).filter_by(status=ReservationStatus.CONFIRMED).count() == 1


@pytest.mark.integration
class TestConcurrentCreate:

    def test_scenario_c_exactly_one_wins(self, tmp_path, slot_config, cipher, clock, booking_payload):
        from sqlalchemy.orm import sessionmaker

        from consult_booking.database import build_engine
        from consult_booking.models import Base

        engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
        calendar = FakeCalendar()
        barrier = threading.Barrier(2)
        results = []

        def attempt(contact):
            session = factory()
            manager = BookingManager(
                session, calendar, AvailabilityCache(None, slot_config), RecordingNotifier(),
                config=slot_config, cipher=cipher, clock=clock,
            )
            try:
                barrier.wait()
                results.append(manager.create(booking_payload(contact=contact))["status"])
            except ConflictError:
                results.append("conflict")
            finally:
                session.close()

        threads = [
            threading.Thread(target=attempt, args=(c,))
            for c in ("first@example.com", "second@example.com")
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(results) == ["CONFIRMED", "conflict"]

        session = factory()
        try:
            assert session.query(Reservation).filter(
                Reservation.status == ReservationStatus.CONFIRMED
            ).count() == 1
        finally:
            session.close()
        assert len(calendar.events) == 1
        engine.dispose()


@pytest.mark.unit
class TestCancel:

    def test_scenario_d_cancel_frees_slot_and_rejects_repeat(self, manager, booking_payload, db_session, calendar):
        view = manager.create(booking_payload())
        assert local_instant(TOMORROW, 14) not in _free_starts(manager)

        cancelled = manager.cancel(view["id"], "CANCELLED")

        assert cancelled["status"] == "CANCELLED"
        assert cancelled["contact"] == "client@example.com"
        assert view["external_event_id"] not in calendar.events
        assert local_instant(TOMORROW, 14) in _free_starts(manager)

        with pytest.raises(ValidationError):
            manager.cancel(view["id"], "CANCELLED")

        actions = [a.action for a in db_session.query(AuditRecord).order_by(AuditRecord.id)]
        assert actions == [AuditAction.CREATED, AuditAction.CANCELLED]

    def test_cancelled_slot_can_be_rebooked(self, manager, booking_payload):
        view = manager.create(booking_payload())
        manager.cancel(view["id"])

        again = manager.create(booking_payload(contact="other@example.com"))
        assert again["status"] == "CONFIRMED"

    @pytest.mark.parametrize("status", ["CONFIRMED", "DONE", ""])
    def test_only_cancellation_allowed(self, manager, booking_payload, status):
        view = manager.create(booking_payload())
        with pytest.raises(ValidationError) as exc_info:
            manager.cancel(view["id"], status)
        assert "status" in exc_info.value.fields

    def test_lowercase_status_accepted(self, manager, booking_payload):
        view = manager.create(booking_payload())
        assert manager.cancel(view["id"], "cancelled")["status"] == "CANCELLED"

    def test_unknown_id(self, manager):
        with pytest.raises(NotFoundError):
            manager.cancel("no-such-id")

    def test_missing_event_still_cancels(self, manager, booking_payload, calendar):
        calendar.fail_delete = True
        view = manager.create(booking_payload())

        assert manager.cancel(view["id"])["status"] == "CANCELLED"

    def test_event_deleted_before_cancel_audit(self, manager, booking_payload, db_session, calendar, cache):
        view = manager.create(booking_payload())
        steps = []
        original_delete = calendar.delete_event
        original_invalidate = cache.invalidate

        def spy_delete(event_id):
            steps.append(("event", db_session.query(AuditRecord).count()))
            return original_delete(event_id)

        def spy_invalidate(dt):
            steps.append(("invalidate", db_session.query(AuditRecord).count()))
            return original_invalidate(dt)

        calendar.delete_event = spy_delete
        cache.invalidate = spy_invalidate
        manager.cancel(view["id"])

        assert steps == [("invalidate", 1), ("event", 1), ("invalidate", 2)]

    def test_cancel_by_contact(self, manager, booking_payload):
        view = manager.create(booking_payload())

        cancelled = manager.cancel_by_contact(" client@example.com", "CANCELLED")

        assert cancelled["id"] == view["id"]
        assert cancelled["status"] == "CANCELLED"

    def test_cancel_by_contact_not_found(self, manager):
        with pytest.raises(NotFoundError):
            manager.cancel_by_contact("nobody@example.com", "CANCELLED")


@pytest.mark.unit
class TestLookup:

    def test_nearest_future_confirmed(self, manager, insert_reservation):
        insert_reservation(local_instant(TOMORROW, 16), local_instant(TOMORROW, 17))
        nearest = insert_reservation(local_instant(TOMORROW, 11), local_instant(TOMORROW, 12))
        insert_reservation(local_instant(TOMORROW, 10), local_instant(TOMORROW, 11),
                           status=ReservationStatus.CANCELLED)
        insert_reservation(NOW - timedelta(hours=3), NOW - timedelta(hours=2))

        view = manager.lookup_by_contact("client@example.com")

        assert view["id"] == nearest.id
        assert view["contact"] == "client@example.com"

    def test_other_contact_not_matched(self, manager, insert_reservation):
        insert_reservation(local_instant(TOMORROW, 11), local_instant(TOMORROW, 12))
        with pytest.raises(NotFoundError):
            manager.lookup_by_contact("Client@example.com")

    def test_empty_contact(self, manager):
        with pytest.raises(ValidationError):
            manager.lookup_by_contact("  ")

    def test_get_by_id(self, manager, booking_payload):
        view = manager.create(booking_payload())
        assert manager.get(view["id"])["contact"] == "client@example.com"

        with pytest.raises(NotFoundError):
            manager.get("missing")

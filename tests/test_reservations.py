"""
Tests for temporary slot reservations.
"""

import threading
from datetime import timedelta

import pytest

from salon_booking.errors import ConflictError, NotFoundError, ValidationError
from salon_booking.models.tables import TemporarySlotReservations
from salon_booking.schemas.appointments import AppointmentCreate
from salon_booking.services.booking import commit_booking
from salon_booking.services.reservation_sweeper import sweep_expired_reservations
from salon_booking.services.reservations import (
    purge_expired_reservations,
    release_reservation,
    reserve_slot,
)
from salon_booking.services.slots.availability import free_slots_for_day

from .factories import MONDAY, add_appointment, add_service, add_staff, local


@pytest.fixture
def service(db):
    return add_service(db, 30)


@pytest.fixture
def staff(db, service):
    return add_staff(db, services=[service])


def hold(db, staff, session_id, start, end, config, clock):
    return reserve_slot(db, staff.id, start, end, session_id, config=config, clock=clock)


class TestReserve:
    def test_creates_hold_with_ttl(self, db, staff, config, clock):
        reservation = hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)

        assert reservation.id is not None
        assert reservation.expires_at == clock.now() + timedelta(seconds=300)

    def test_hold_hides_slot_from_day_view(self, db, staff, config, clock):
        hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)

        slots = free_slots_for_day(db, staff.id, 30, MONDAY, config=config, clock=clock)

        assert local(MONDAY, 10) not in [s.start for s in slots]

    def test_same_session_renews_instead_of_conflicting(self, db, staff, config, clock, now):
        first = hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)
        now.advance(minutes=2)

        second = hold(db, staff, "s1", local(MONDAY, 10, 15), local(MONDAY, 10, 45), config, clock)

        assert second.id == first.id
        assert second.start_at == local(MONDAY, 10, 15)
        assert second.expires_at == clock.now() + timedelta(minutes=5)
        assert db.query(TemporarySlotReservations).count() == 1

    def test_other_session_conflicts_with_live_hold(self, db, staff, config, clock):
        hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)

        with pytest.raises(ConflictError) as exc_info:
            hold(db, staff, "s2", local(MONDAY, 10, 15), local(MONDAY, 10, 45), config, clock)

        assert exc_info.value.code == "SLOT_TAKEN"

    def test_adjacent_holds_do_not_conflict(self, db, staff, config, clock):
        hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)
        second = hold(db, staff, "s2", local(MONDAY, 10, 30), local(MONDAY, 11), config, clock)

        assert second.id

    def test_expired_hold_is_invisible(self, db, staff, config, clock, now):
        hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)
        now.advance(seconds=301)

        second = hold(db, staff, "s2", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)

        assert second.session_id == "s2"
        # Expired row purged in the same transaction
        assert db.query(TemporarySlotReservations).count() == 1

    def test_appointment_conflict(self, db, staff, service, config, clock):
        add_appointment(db, staff, service, local(MONDAY, 10), local(MONDAY, 11))

        with pytest.raises(ConflictError):
            hold(db, staff, "s1", local(MONDAY, 10, 30), local(MONDAY, 11), config, clock)
        assert db.query(TemporarySlotReservations).count() == 0

    def test_invalid_interval(self, db, staff, config, clock):
        with pytest.raises(ValidationError):
            hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10), config, clock)

    def test_unknown_staff(self, db, config, clock):
        with pytest.raises(NotFoundError):
            reserve_slot(db, 999, local(MONDAY, 10), local(MONDAY, 10, 30), "s1", config=config, clock=clock)


class TestConcurrentReservations:
    def test_second_session_gets_slot_taken_and_first_commits(
        self, session_factory, db, staff, service, config, clock
    ):
        staff_id, service_id = staff.id, service.id
        start, end = local(MONDAY, 14), local(MONDAY, 14, 30)
        barrier = threading.Barrier(2)
        outcomes = {}
        lock = threading.Lock()

        def attempt(session_id: str):
            session = session_factory()
            try:
                barrier.wait()
                try:
                    reserve_slot(session, staff_id, start, end, session_id, config=config, clock=clock)
                    result = "ok"
                except ConflictError as e:
                    result = e.code
            finally:
                session.close()
            with lock:
                outcomes[session_id] = result

        threads = [threading.Thread(target=attempt, args=(sid,)) for sid in ("s1", "s2")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes.values()) == ["SLOT_TAKEN", "ok"]
        winner = next(sid for sid, result in outcomes.items() if result == "ok")

        appointment = commit_booking(
            db,
            AppointmentCreate(
                staff_id=staff_id,
                service_id=service_id,
                start=start,
                end=end,
                customer_name="Mia",
                email="mia@example.com",
                session_id=winner,
            ),
            config=config,
            clock=clock,
        )

        assert appointment.id
        assert db.query(TemporarySlotReservations).count() == 0


class TestReleaseAndPurge:
    def test_release(self, db, staff, config, clock):
        hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)

        assert release_reservation(db, "s1") is True
        assert release_reservation(db, "s1") is False
        assert db.query(TemporarySlotReservations).count() == 0

    def test_purge_only_expired(self, db, staff, config, clock, now):
        hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)
        now.advance(minutes=3)
        hold(db, staff, "s2", local(MONDAY, 11), local(MONDAY, 11, 30), config, clock)
        now.advance(minutes=3)

        assert purge_expired_reservations(db, clock.now()) == 1
        assert [r.session_id for r in db.query(TemporarySlotReservations).all()] == ["s2"]

    def test_sweeper_pass(self, db, session_factory, staff, config, clock, now):
        hold(db, staff, "s1", local(MONDAY, 10), local(MONDAY, 10, 30), config, clock)
        now.advance(minutes=10)

        assert sweep_expired_reservations(session_factory, clock=clock) == 1
        assert db.query(TemporarySlotReservations).count() == 0

"""
Tests for weekly working hours: schema checks, table constraints and the HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError as SchemaError
from sqlalchemy.exc import IntegrityError

from salon_booking.database import get_db
from salon_booking.main import app
from salon_booking.models.tables import WorkingHours
from salon_booking.schemas.working_hours import WorkingHoursIn

from .factories import MONDAY, add_service, add_staff


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def service(db):
    return add_service(db, 30)


@pytest.fixture
def staff(db, service):
    return add_staff(db, services=[service])


class TestWorkingHoursSchema:
    @pytest.mark.parametrize(
        "fields",
        [
            {"weekday": 7, "start_minutes": 540, "end_minutes": 1080},
            {"weekday": -1, "start_minutes": 540, "end_minutes": 1080},
            {"weekday": 1, "start_minutes": -30, "end_minutes": 1080},
            {"weekday": 1, "start_minutes": 540, "end_minutes": 1441},
            {"weekday": 1, "start_minutes": 1080, "end_minutes": 540},
        ],
    )
    def test_rejected(self, fields):
        with pytest.raises(SchemaError):
            WorkingHoursIn(**fields)

    def test_full_day_bounds_accepted(self):
        row = WorkingHoursIn(weekday=0, start_minutes=0, end_minutes=1440)

        assert (row.start_minutes, row.end_minutes) == (0, 1440)

    def test_closed_day_ignores_order(self):
        row = WorkingHoursIn(weekday=6, start_minutes=600, end_minutes=0, is_closed=True)

        assert row.is_closed is True


class TestWorkingHoursConstraints:
    def test_bad_weekday_rejected_by_table(self, db, staff):
        db.add(WorkingHours(staff_id=staff.id, weekday=7, start_minutes=540, end_minutes=1080, is_closed=0))

        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_inverted_open_day_rejected_by_table(self, db):
        other = add_staff(db, name="Bea")
        db.query(WorkingHours).filter(WorkingHours.staff_id == other.id).delete()
        db.commit()
        db.add(WorkingHours(staff_id=other.id, weekday=1, start_minutes=1080, end_minutes=540, is_closed=0))

        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()


class TestWorkingHoursApi:
    def test_list(self, client, staff):
        resp = client.get(f"/staff/{staff.id}/working-hours")

        assert resp.status_code == 200
        assert [row["weekday"] for row in resp.json()] == list(range(7))

    def test_bad_weekday_is_422(self, client, staff):
        resp = client.put(
            f"/staff/{staff.id}/working-hours",
            json={"weekday": 7, "start_minutes": 540, "end_minutes": 1080},
        )

        assert resp.status_code == 422

    def test_unknown_staff(self, client):
        resp = client.put(
            "/staff/999/working-hours",
            json={"weekday": 1, "start_minutes": 540, "end_minutes": 720},
        )

        assert resp.status_code == 404
        assert resp.json()["error"] == "NOT_FOUND"

    def test_upsert_changes_day_view(self, client, db, staff, service):
        resp = client.put(
            f"/staff/{staff.id}/working-hours",
            json={"weekday": 1, "start_minutes": 540, "end_minutes": 720},
        )

        assert resp.status_code == 200
        assert resp.json()["is_closed"] is False
        rows = (
            db.query(WorkingHours)
            .filter(WorkingHours.staff_id == staff.id, WorkingHours.weekday == 1)
            .all()
        )
        assert len(rows) == 1
        assert rows[0].end_minutes == 720

        day = client.get(
            "/slots/day",
            params={"staff_id": staff.id, "date": MONDAY.isoformat(), "service_ids": str(service.id)},
        )
        assert len(day.json()["slots"]) == 6

    def test_closing_a_day(self, client, staff, service):
        client.put(f"/staff/{staff.id}/working-hours", json={"weekday": 1, "is_closed": True})

        day = client.get(
            "/slots/day",
            params={"staff_id": staff.id, "date": MONDAY.isoformat(), "service_ids": str(service.id)},
        )
        assert day.json()["slots"] == []

"""
Integration tests for the scheduling API endpoints.
"""

import pytest
from datetime import datetime
from fastapi.testclient import TestClient

from core.database import get_db
from main import app
from services.scheduling_engine import build_scheduling_engine, get_scheduling_engine
from tests.conftest import FailingExternalCalendar, create_appointment, create_clinic


@pytest.fixture
def client(db_session):
    """Test client whose requests share the test's database session."""
    app.dependency_overrides[get_db] = lambda: db_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestSystemEndpoints:

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestScheduleEndpoint:

    def test_get_schedule(self, client, clinic):
        response = client.get(f"/api/clinics/{clinic.id}/schedule")

        assert response.status_code == 200
        data = response.json()
        assert data["working_days"] == ["monday", "tuesday", "thursday", "friday"]
        assert data["work_start"] == "08:00"
        assert data["lunch_start"] == "12:00"
        assert data["timezone"] == "America/Sao_Paulo"

    def test_unknown_clinic(self, client):
        response = client.get("/api/clinics/999/schedule")
        assert response.status_code == 404
        assert response.json()["type"] == "not_found"


class TestAvailabilityEndpoint:

    def test_thursday_availability(self, client, clinic, professional):
        response = client.get(
            f"/api/clinics/{clinic.id}/availability",
            params={"professional_id": professional.id, "date": "2025-01-16", "duration_minutes": 60},
        )

        assert response.status_code == 200
        data = response.json()
        starts = [slot["start"] for slot in data["slots"]]
        assert starts[0] == "2025-01-16T08:00:00"
        assert "2025-01-16T11:00:00" in starts
        assert "2025-01-16T12:00:00" not in starts
        assert "2025-01-16T13:00:00" in starts
        assert len(starts) == 9
        assert len(data["slots_by_period"]["morning"]) == 4
        assert len(data["slots_by_period"]["afternoon"]) == 5
        assert data["busy_blocks"] == [{
            "type": "lunch",
            "start": "2025-01-16T12:00:00",
            "end": "2025-01-16T13:00:00",
            "title": "Lunch break",
            "appointment_id": None,
            "external_id": None,
            "source": "clinic",
        }]
        assert data["partial"] is False
        assert data["timezone"] == "America/Sao_Paulo"

    def test_saturday_has_no_slots(self, client, clinic, professional):
        response = client.get(
            f"/api/clinics/{clinic.id}/availability",
            params={"professional_id": professional.id, "date": "2025-01-18", "duration_minutes": 60},
        )
        assert response.status_code == 200
        assert response.json()["slots"] == []

    def test_existing_appointment_shown_as_busy(self, client, db_session, clinic, professional, contact):
        existing = create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 16, 10, 0))

        response = client.get(
            f"/api/clinics/{clinic.id}/availability",
            params={"professional_id": professional.id, "date": "2025-01-16", "duration_minutes": 60},
        )

        data = response.json()
        starts = [slot["start"] for slot in data["slots"]]
        assert "2025-01-16T10:00:00" not in starts
        assert "2025-01-16T09:00:00" in starts and "2025-01-16T11:00:00" in starts
        assert [b["appointment_id"] for b in data["busy_blocks"] if b["type"] == "appointment"] == [existing.id]

    def test_working_hours_override(self, client, clinic, professional):
        response = client.get(
            f"/api/clinics/{clinic.id}/availability",
            params={
                "professional_id": professional.id,
                "date": "2025-01-16",
                "duration_minutes": 60,
                "work_start": "09:00",
                "work_end": "11:00",
            },
        )
        assert [slot["start"] for slot in response.json()["slots"]] == ["2025-01-16T09:00:00", "2025-01-16T10:00:00"]

    def test_partial_override_rejected(self, client, clinic, professional):
        response = client.get(
            f"/api/clinics/{clinic.id}/availability",
            params={"professional_id": professional.id, "date": "2025-01-16", "duration_minutes": 60, "work_start": "09:00"},
        )
        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"

    def test_invalid_date(self, client, clinic, professional):
        response = client.get(
            f"/api/clinics/{clinic.id}/availability",
            params={"professional_id": professional.id, "date": "16/01/2025x", "duration_minutes": 60},
        )
        assert response.status_code == 400

    def test_duration_out_of_bounds(self, client, clinic, professional):
        response = client.get(
            f"/api/clinics/{clinic.id}/availability",
            params={"professional_id": professional.id, "date": "2025-01-16", "duration_minutes": 5},
        )
        assert response.status_code == 422

    def test_malformed_clinic_settings(self, client, db_session, professional):
        broken = create_clinic(db_session, name="Broken", scheduling_settings={"work_start": "19:00", "work_end": "09:00"})
        response = client.get(
            f"/api/clinics/{broken.id}/availability",
            params={"professional_id": professional.id, "date": "2025-01-16", "duration_minutes": 60},
        )
        assert response.status_code == 422
        assert response.json()["type"] == "config_error"

    def test_external_calendar_failure_is_partial(self, client, db_session, clinic, professional):
        app.dependency_overrides[get_scheduling_engine] = lambda: build_scheduling_engine(
            db_session, external_calendar=FailingExternalCalendar()
        )

        response = client.get(
            f"/api/clinics/{clinic.id}/availability",
            params={"professional_id": professional.id, "date": "2025-01-16", "duration_minutes": 60},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["partial"] is True
        assert data["warnings"][0]["type"] == "partial_external_data"
        assert data["warnings"][0]["professional_id"] == professional.id
        assert len(data["slots"]) == 9

    def test_response_timezone_is_clinic_timezone(self, client, db_session, professional):
        manaus = create_clinic(db_session, name="Manaus Clinic", timezone="America/Manaus")
        response = client.get(
            f"/api/clinics/{manaus.id}/availability",
            params={"professional_id": professional.id, "date": "2025-01-16", "duration_minutes": 60},
        )
        assert response.status_code == 200
        assert response.json()["timezone"] == "America/Manaus"


class TestAppointmentEndpoints:

    def _create(self, client, clinic, professional, contact, start_time: str, duration: int = 60):
        return client.post(
            f"/api/clinics/{clinic.id}/appointments",
            json={
                "professional_id": professional.id,
                "contact_id": contact.id,
                "start_time": start_time,
                "duration_minutes": duration,
                "title": "Consultation",
            },
        )

    def test_create_appointment(self, client, clinic, professional, contact):
        response = self._create(client, clinic, professional, contact, "2025-01-16T09:00:00")

        assert response.status_code == 201
        data = response.json()
        assert data["state"] == "committed"
        assert data["appointment"]["professional_id"] == professional.id
        assert data["appointment"]["start_time"] == "2025-01-16T09:00:00"
        assert data["appointment"]["end_time"] == "2025-01-16T10:00:00"
        assert data["appointment"]["status"] == "scheduled"

    def test_create_with_utc_start_time(self, client, clinic, professional, contact):
        # 17:00 UTC is 14:00 in Sao Paulo
        response = self._create(client, clinic, professional, contact, "2025-01-16T17:00:00Z")
        assert response.status_code == 201
        assert response.json()["appointment"]["start_time"] == "2025-01-16T14:00:00"

    def test_offset_start_time_conflicts_with_same_instant(self, client, db_session, clinic, professional, contact):
        existing = create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 16, 10, 0))

        # 09:00-04:00 is 10:00 in Sao Paulo
        response = self._create(client, clinic, professional, contact, "2025-01-16T09:00:00-04:00")

        assert response.status_code == 409
        assert response.json()["conflict"]["appointment_id"] == existing.id

    def test_create_conflicting_appointment(self, client, db_session, clinic, professional, contact):
        existing = create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 16, 10, 0))

        response = self._create(client, clinic, professional, contact, "2025-01-16T10:30:00")

        assert response.status_code == 409
        data = response.json()
        assert data["type"] == "appointment_conflict"
        assert data["conflict"]["appointment_id"] == existing.id
        assert data["suggested_slots"][0]["start"] == "2025-01-16T11:00:00"

    @pytest.mark.parametrize("start_time, expected_type", [
        ("2025-01-18T09:00:00", "not_working_day"),
        ("2025-01-16T17:30:00", "outside_working_hours"),
        ("2025-01-16T12:00:00", "lunch_break_conflict"),
    ])
    def test_create_rejections(self, client, clinic, professional, contact, start_time, expected_type):
        response = self._create(client, clinic, professional, contact, start_time)
        assert response.status_code == 409
        assert response.json()["type"] == expected_type

    def test_create_for_unknown_contact(self, client, clinic, professional):
        response = client.post(
            f"/api/clinics/{clinic.id}/appointments",
            json={"professional_id": professional.id, "contact_id": 999, "start_time": "2025-01-16T09:00:00", "duration_minutes": 60},
        )
        assert response.status_code == 404

    def test_create_with_invalid_duration(self, client, clinic, professional, contact):
        response = self._create(client, clinic, professional, contact, "2025-01-16T09:00:00", duration=0)
        assert response.status_code == 422

    def test_reschedule_onto_own_slot(self, client, db_session, clinic, professional, contact):
        create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 16, 10, 0), appointment_id=7)

        response = client.put(
            f"/api/clinics/{clinic.id}/appointments/7/reschedule",
            json={"start_time": "2025-01-16T10:00:00"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "committed"
        assert data["appointment"]["id"] == 7
        assert data["appointment"]["duration_minutes"] == 60

    def test_reschedule_with_new_duration(self, client, db_session, clinic, professional, contact):
        appointment = create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 16, 10, 0))

        response = client.put(
            f"/api/clinics/{clinic.id}/appointments/{appointment.id}/reschedule",
            json={"start_time": "2025-01-17T14:00:00", "duration_minutes": 30},
        )

        assert response.status_code == 200
        assert response.json()["appointment"]["end_time"] == "2025-01-17T14:30:00"

    def test_reschedule_unknown_appointment(self, client, clinic):
        response = client.put(
            f"/api/clinics/{clinic.id}/appointments/404/reschedule",
            json={"start_time": "2025-01-16T10:00:00"},
        )
        assert response.status_code == 404

    def test_cancel_and_list(self, client, db_session, clinic, professional, contact):
        appointment = create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 16, 10, 0))

        response = client.post(
            f"/api/clinics/{clinic.id}/appointments/{appointment.id}/cancel",
            json={"cancelled_by": "contact", "reason": "Travelling"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["cancelled_by"] == "contact"

        again = client.post(f"/api/clinics/{clinic.id}/appointments/{appointment.id}/cancel", json={})
        assert again.status_code == 400

        listing = client.get(f"/api/clinics/{clinic.id}/appointments", params={"status": "cancelled"})
        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert listing.json()["appointments"][0]["id"] == appointment.id

    def test_update_status(self, client, db_session, clinic, professional, contact):
        appointment = create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 16, 10, 0))

        response = client.patch(
            f"/api/clinics/{clinic.id}/appointments/{appointment.id}/status",
            json={"status": "confirmed"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

        invalid = client.patch(
            f"/api/clinics/{clinic.id}/appointments/{appointment.id}/status",
            json={"status": "scheduled"},
        )
        assert invalid.status_code == 400

    def test_list_appointments_by_date(self, client, db_session, clinic, professional, contact):
        create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 16, 9, 0))
        create_appointment(db_session, clinic, professional, contact, datetime(2025, 1, 17, 9, 0))

        response = client.get(
            f"/api/clinics/{clinic.id}/appointments",
            params={"date_from": "2025-01-17", "date_to": "2025-01-17"},
        )

        data = response.json()
        assert data["total"] == 1
        assert data["appointments"][0]["start_time"] == "2025-01-17T09:00:00"
        assert data["limit"] == 50
        assert data["offset"] == 0

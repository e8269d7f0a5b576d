import httpx
import pytest
from fastapi import Depends
from sqlalchemy.orm import Session

from portal.database import get_db
from portal.domain.scheduling.router import get_appointment_service
from portal.domain.scheduling.service import AppointmentService
from portal.main import app
from portal.services.calendly_service import CalendlyService


def _book(client, headers, start, end, **extra):
    return client.post(
        "/appointments",
        json={"title": "Strategy session", "start_time": start, "end_time": end, **extra},
        headers=headers,
    )


def test_book_and_list(client, client_user, headers_for):
    headers = headers_for(client_user)
    response = _book(client, headers, "2030-01-07T10:00:00Z", "2030-01-07T10:30:00Z", notes="Zoom")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "scheduled"
    assert body["source"] == "portal"
    assert body["attendee_user_id"] == client_user.id
    assert body["start_time"] == "2030-01-07T10:00:00"

    listed = client.get("/appointments", headers=headers).json()
    assert [a["id"] for a in listed] == [body["id"]]


def test_booking_validation(client, client_user, headers_for):
    headers = headers_for(client_user)
    backwards = _book(client, headers, "2030-01-07T11:00:00", "2030-01-07T10:00:00")
    assert backwards.status_code == 400

    blank = client.post(
        "/appointments",
        json={"title": "  ", "start_time": "2030-01-07T10:00:00", "end_time": "2030-01-07T10:30:00"},
        headers=headers,
    )
    assert blank.status_code == 400

    unknown_provider = _book(
        client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00", provider_user_id="nobody"
    )
    assert unknown_provider.status_code == 404


def test_overlapping_booking_conflicts(client, client_user, headers_for):
    headers = headers_for(client_user)
    _book(client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00")

    overlap = _book(client, headers, "2030-01-07T10:15:00", "2030-01-07T10:45:00")
    assert overlap.status_code == 409

    adjacent = _book(client, headers, "2030-01-07T10:30:00", "2030-01-07T11:00:00")
    assert adjacent.status_code == 200


def test_provider_calendar_is_shared(client, make_user, client_user, admin_user, headers_for):
    other = make_user(email="other@example.com")
    first = _book(
        client, headers_for(client_user), "2030-01-07T10:00:00", "2030-01-07T11:00:00",
        provider_user_id=admin_user.id,
    )
    assert first.status_code == 200

    second = _book(
        client, headers_for(other), "2030-01-07T10:30:00", "2030-01-07T11:30:00",
        provider_user_id=admin_user.id,
    )
    assert second.status_code == 409

    # The provider sees the booking in their own list
    provider_list = client.get("/appointments", headers=headers_for(admin_user)).json()
    assert [a["id"] for a in provider_list] == [first.json()["id"]]


def test_slots_mark_booked_times(client, client_user, headers_for):
    headers = headers_for(client_user)
    _book(client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00")

    slots = client.get("/appointments/slots", params={"date": "2030-01-07"}, headers=headers).json()
    assert len(slots) == 16
    booked = [s["label"] for s in slots if s["booked"]]
    assert booked == ["09:30 AM", "10:00 AM", "10:30 AM"]


def test_status_updates(client, make_user, client_user, admin_user, headers_for):
    appointment = _book(
        client, headers_for(client_user), "2030-01-07T10:00:00", "2030-01-07T10:30:00"
    ).json()
    url = f"/appointments/{appointment['id']}/status"

    invalid = client.patch(url, json={"status": "done"}, headers=headers_for(client_user))
    assert invalid.status_code == 400

    stranger = make_user(email="stranger@example.com")
    forbidden = client.patch(url, json={"status": "cancelled"}, headers=headers_for(stranger))
    assert forbidden.status_code == 403

    # Admins who are not on the appointment cannot change it either
    by_admin = client.patch(url, json={"status": "completed"}, headers=headers_for(admin_user))
    assert by_admin.status_code == 403

    by_attendee = client.patch(url, json={"status": "completed"}, headers=headers_for(client_user))
    assert by_attendee.json()["status"] == "completed"

    missing = client.patch("/appointments/999/status", json={"status": "cancelled"}, headers=headers_for(admin_user))
    assert missing.status_code == 404


def test_cancelled_appointment_frees_the_slot(client, client_user, headers_for):
    headers = headers_for(client_user)
    appointment = _book(client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00").json()
    client.patch(f"/appointments/{appointment['id']}/status", json={"status": "cancelled"}, headers=headers)

    rebooked = _book(client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00")
    assert rebooked.status_code == 200


def test_reschedule(client, make_user, client_user, headers_for):
    headers = headers_for(client_user)
    first = _book(client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00").json()
    _book(client, headers, "2030-01-07T14:00:00", "2030-01-07T15:00:00")
    url = f"/appointments/{first['id']}/reschedule"

    # Moving within its own window does not conflict with itself
    moved = client.patch(
        url, json={"start_time": "2030-01-07T10:15:00", "end_time": "2030-01-07T10:45:00"}, headers=headers
    )
    assert moved.status_code == 200
    assert moved.json()["status"] == "rescheduled"
    assert moved.json()["start_time"] == "2030-01-07T10:15:00"

    clash = client.patch(
        url, json={"start_time": "2030-01-07T14:30:00", "end_time": "2030-01-07T15:30:00"}, headers=headers
    )
    assert clash.status_code == 409

    stranger = make_user(email="stranger@example.com")
    forbidden = client.patch(
        url, json={"start_time": "2030-01-08T10:00:00", "end_time": "2030-01-08T10:30:00"}, headers=headers_for(stranger)
    )
    assert forbidden.status_code == 403


class FakeCalendly:
    def __init__(self, events=None, error=None):
        self.events = events or []
        self.error = error

    def is_available(self):
        return True

    async def list_events_for_invitee(self, email):
        if self.error:
            raise self.error
        return self.events


@pytest.fixture()
def calendly_events():
    fake = FakeCalendly(
        events=[
            {
                "uri": "https://api.calendly.com/scheduled_events/EV1",
                "name": "Intro call",
                "start_time": "2030-01-07T09:00:00.000000Z",
                "end_time": "2030-01-07T09:30:00.000000Z",
                "status": "active",
                "location": {"join_url": "https://zoom.example.com/j/1"},
            }
        ]
    )

    def override(db: Session = Depends(get_db)):
        return AppointmentService(db, calendly=fake)

    app.dependency_overrides[get_appointment_service] = override
    yield fake
    app.dependency_overrides.pop(get_appointment_service, None)


def test_merged_list_is_sorted_by_start(client, client_user, headers_for, calendly_events):
    headers = headers_for(client_user)
    _book(client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00")

    merged = client.get("/appointments/merged", headers=headers).json()
    assert [m["source"] for m in merged] == ["calendly", "portal"]
    assert merged[0]["id"] == "cal-https://api.calendly.com/scheduled_events/EV1"
    assert merged[0]["notes"] == "https://zoom.example.com/j/1"
    assert merged[0]["status"] == "scheduled"
    assert merged[1]["start_time"] == "2030-01-07T10:00:00Z"


def test_merged_list_survives_calendly_outage(client, client_user, headers_for, calendly_events):
    calendly_events.error = httpx.ConnectError("down")
    headers = headers_for(client_user)
    _book(client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00")

    merged = client.get("/appointments/merged", headers=headers).json()
    assert [m["source"] for m in merged] == ["portal"]


def test_merged_list_survives_calendly_maintenance_page(client, client_user, headers_for, mock_http):
    mock_http.add(
        "GET",
        "https://api.calendly.com/scheduled_events",
        content=b"<html>maintenance</html>",
    )
    api = CalendlyService(api_token="token")

    def override(db: Session = Depends(get_db)):
        return AppointmentService(db, calendly=api)

    app.dependency_overrides[get_appointment_service] = override
    try:
        headers = headers_for(client_user)
        _book(client, headers, "2030-01-07T10:00:00", "2030-01-07T10:30:00")
        response = client.get("/appointments/merged", headers=headers)
    finally:
        app.dependency_overrides.pop(get_appointment_service, None)

    assert response.status_code == 200
    assert [m["source"] for m in response.json()] == ["portal"]

"""Tests for the live events calendar and registrations."""

from datetime import date, datetime, timedelta, timezone

import pytest

from community.database.events import EventsRepository

NEXT_WEEK = date.today() + timedelta(days=7)


def create_event(client, admin, **fields):
    payload = {"title": "Live Q&A", "event_date": NEXT_WEEK.isoformat(), "event_time": "18:00:00", **fields}
    response = client.post("/events", headers=admin.headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def event(client, admin):
    return create_event(client, admin, learning_points=["Intro", "Q&A"])


class TestManageEvents:
    """Tests for admin event management."""

    def test_create_defaults(self, client, event):
        """New events are upcoming live sessions."""
        assert event["status"] == "upcoming"
        assert event["event_type"] == "live"
        assert event["event_date"] == NEXT_WEEK.isoformat()
        assert event["learning_points"] == ["Intro", "Q&A"]

    def test_requires_date_and_time(self, client, admin):
        """Title, date and time are required."""
        response = client.post("/events", headers=admin.headers, json={"title": "Someday"})
        assert response.status_code == 400

    def test_invalid_type(self, client, admin):
        """Unknown event types are rejected."""
        response = client.post("/events", headers=admin.headers, json={
            "title": "Party", "event_date": NEXT_WEEK.isoformat(), "event_time": "18:00:00", "event_type": "party",
        })
        assert response.status_code == 400

    def test_members_cannot_create(self, client, member):
        """Only admins schedule events."""
        response = client.post("/events", headers=member.headers, json={
            "title": "Mine", "event_date": NEXT_WEEK.isoformat(), "event_time": "18:00:00",
        })
        assert response.status_code == 403

    def test_update(self, client, admin, event):
        """Admins edit events."""
        response = client.put(f"/events/{event['id']}", headers=admin.headers, json={"location": "Zoom"})
        assert response.status_code == 200
        assert response.json()["data"]["location"] == "Zoom"

    def test_soft_delete(self, client, admin, event):
        """Deleted events leave the listings but admins can still ask for them."""
        assert client.delete(f"/events/{event['id']}", headers=admin.headers).status_code == 200
        assert client.get("/events").json()["data"] == []
        assert client.get(f"/events/{event['id']}").status_code == 404

        everything = client.get("/events", headers=admin.headers, params={"include_deleted": True}).json()["data"]
        assert [e["status"] for e in everything] == ["deleted"]


class TestListEvents:
    """Tests for GET /events and /events/upcoming."""

    def test_calendar_order(self, client, admin):
        """Events are listed by date and time."""
        create_event(client, admin, title="Late", event_time="20:00:00")
        create_event(client, admin, title="Early", event_time="09:00:00")
        create_event(client, admin, title="Tomorrow", event_date=(date.today() + timedelta(days=1)).isoformat())
        titles = [e["title"] for e in client.get("/events").json()["data"]]
        assert titles == ["Tomorrow", "Early", "Late"]

    def test_month_filter(self, client, admin):
        """A year and month narrow the calendar to that month."""
        create_event(client, admin, title="March", event_date="2030-03-15")
        create_event(client, admin, title="April", event_date="2030-04-01")
        titles = [e["title"] for e in client.get("/events", params={"year": 2030, "month": 3}).json()["data"]]
        assert titles == ["March"]

    def test_bad_month(self, client):
        """Months run from 1 to 12."""
        assert client.get("/events", params={"year": 2030, "month": 13}).status_code == 400

    def test_include_deleted_is_admin_only(self, client, admin, member, event):
        """Members asking for deleted events get the normal list."""
        client.delete(f"/events/{event['id']}", headers=admin.headers)
        response = client.get("/events", headers=member.headers, params={"include_deleted": True})
        assert response.json()["data"] == []

    def test_upcoming_skips_past_and_cancelled(self, client, admin, event):
        """Upcoming events start today or later and are not cancelled."""
        create_event(client, admin, title="Past", event_date=(date.today() - timedelta(days=3)).isoformat())
        cancelled = create_event(client, admin, title="Cancelled")
        client.put(f"/events/{cancelled['id']}", headers=admin.headers, json={"status": "cancelled"})
        titles = [e["title"] for e in client.get("/events/upcoming").json()["data"]]
        assert titles == ["Live Q&A"]


class TestRegistration:
    """Tests for POST /events/{id}/register."""

    def test_register(self, client, member, mailer, event):
        """Registering earns a point and sends a confirmation."""
        response = client.post(f"/events/{event['id']}/register", headers=member.headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user_id"] == member.id
        assert data["event"]["title"] == "Live Q&A"

        assert client.get("/gamification/me", headers=member.headers).json()["data"]["points"] == 11
        assert "You're registered: Live Q&A" in mailer.subjects()

    def test_register_twice(self, client, member, event):
        """A member registers once per event."""
        client.post(f"/events/{event['id']}/register", headers=member.headers)
        response = client.post(f"/events/{event['id']}/register", headers=member.headers)
        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_REGISTERED"
        assert client.get("/gamification/me", headers=member.headers).json()["data"]["points"] == 11

    def test_cancelled_event(self, client, admin, member, event):
        """Cancelled events take no registrations."""
        client.put(f"/events/{event['id']}", headers=admin.headers, json={"status": "cancelled"})
        response = client.post(f"/events/{event['id']}/register", headers=member.headers)
        assert response.status_code == 400

    def test_requires_login(self, client, event):
        """Anonymous visitors cannot register."""
        assert client.post(f"/events/{event['id']}/register").status_code == 401

    def test_detail_shows_registration(self, client, member, event):
        """The detail view tells the caller whether they are registered."""
        assert client.get(f"/events/{event['id']}", headers=member.headers).json()["data"]["is_registered"] is False
        client.post(f"/events/{event['id']}/register", headers=member.headers)
        assert client.get(f"/events/{event['id']}", headers=member.headers).json()["data"]["is_registered"] is True
        assert client.get(f"/events/{event['id']}").json()["data"]["is_registered"] is False

    def test_my_registrations(self, client, member, event):
        """Members list the events they registered for."""
        client.post(f"/events/{event['id']}/register", headers=member.headers)
        registrations = client.get("/events/registrations/me", headers=member.headers).json()["data"]
        assert [r["event"]["id"] for r in registrations] == [event["id"]]

    def test_admin_lists_registrants(self, client, admin, member, event):
        """Admins see who registered, with their email."""
        client.post(f"/events/{event['id']}/register", headers=member.headers)
        registrants = client.get(f"/events/{event['id']}/registrations", headers=admin.headers).json()["data"]
        assert registrants[0]["profile"]["email"] == member.email
        assert registrants[0]["profile"]["display_name"] == member.display_name

        assert client.get(f"/events/{event['id']}/registrations", headers=member.headers).status_code == 403


class TestStatusRefresh:
    """Tests for EventsRepository.refresh_event_statuses."""

    def test_statuses_follow_the_clock(self, client, admin, run_db, event):
        """Events turn active at their start and completed two hours later."""
        cancelled = create_event(client, admin, title="Cancelled")
        client.put(f"/events/{cancelled['id']}", headers=admin.headers, json={"status": "cancelled"})
        start = datetime.combine(NEXT_WEEK, datetime.min.time(), tzinfo=timezone.utc) + timedelta(hours=18)

        def refresh(now):
            return run_db(lambda session: EventsRepository(session).refresh_event_statuses(now))

        assert refresh(start - timedelta(minutes=1)) == 0
        assert refresh(start + timedelta(minutes=30)) == 1
        assert client.get(f"/events/{event['id']}").json()["data"]["status"] == "active"
        assert refresh(start + timedelta(hours=3)) == 1
        assert client.get(f"/events/{event['id']}").json()["data"]["status"] == "completed"
        assert client.get(f"/events/{cancelled['id']}").json()["data"]["status"] == "cancelled"

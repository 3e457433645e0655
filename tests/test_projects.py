"""Tests for the project marketplace."""

import pytest


@pytest.fixture
def project(client, make_user):
    owner = make_user(display_name="Owner")
    response = client.post("/projects", headers=owner.headers, json={
        "title": "Landing page",
        "description": "A simple marketing site",
        "budget_min": 1000,
        "budget_max": 3000,
        "technologies": "react, tailwind ,",
    })
    assert response.status_code == 201, response.text
    return {"owner": owner, **response.json()["data"]}


def submit_offer(client, user, project, **fields):
    return client.post(f"/projects/{project['id']}/offers", headers=user.headers, json={
        "message": "I can build this", "offer_amount": 2000, **fields,
    })


class TestCreateProject:
    """Tests for POST /projects."""

    def test_member_project(self, client, project):
        """Member projects carry the owner profile and parsed technologies."""
        assert project["technologies"] == ["react", "tailwind"]
        assert project["budget_currency"] == "ILS"
        assert project["status"] == "open"
        assert project["profile"]["display_name"] == "Owner"

    def test_guest_project(self, client):
        """Guests post with a name and email."""
        response = client.post("/projects", json={
            "title": "Logo", "description": "Need a logo",
            "guest_name": "Guest", "guest_email": "guest@example.com",
            "technologies": ["figma"],
        })
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user_id"] is None
        assert data["profile"]["display_name"] == "Guest"

    def test_guest_needs_contact(self, client):
        """Guests without a name and email are rejected."""
        response = client.post("/projects", json={"title": "Logo", "description": "Need a logo"})
        assert response.status_code == 400

    def test_guest_email_must_be_valid(self, client):
        """Malformed guest emails are rejected."""
        response = client.post("/projects", json={
            "title": "Logo", "description": "Need a logo", "guest_name": "Guest", "guest_email": "not-an-email",
        })
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email format"

    def test_missing_title(self, client, member):
        """Title and description are required."""
        response = client.post("/projects", headers=member.headers, json={"description": "x"})
        assert response.status_code == 400

    def test_announced_to_other_members(self, client, make_user, mailer):
        """Other members get a new-project email, the author does not."""
        reader = make_user()
        author = make_user()
        client.post("/projects", headers=author.headers, json={"title": "API", "description": "REST API"})
        recipients = [email["to"] for email in mailer.sent if email["subject"] == "New project: API"]
        assert recipients == [reader.email]

    def test_opted_out_members_not_emailed(self, client, make_user, mailer):
        """Members who turned off project emails are skipped."""
        reader = make_user()
        client.put("/email-preferences", headers=reader.headers, json={"new_project": False})
        client.post("/projects", json={
            "title": "API", "description": "REST API", "guest_name": "G", "guest_email": "g@example.com",
        })
        assert not [email for email in mailer.sent if email["subject"] == "New project: API"]


class TestListProjects:
    """Tests for GET /projects."""

    def test_list_newest_first(self, client, member):
        """Projects are listed newest first."""
        for title in ("first", "second"):
            client.post("/projects", headers=member.headers, json={"title": title, "description": "d"})
        titles = [p["title"] for p in client.get("/projects").json()["data"]]
        assert titles == ["second", "first"]

    def test_create_invalidates_cached_list(self, client, member):
        """A cached list is refreshed after a new project."""
        assert client.get("/projects").json()["data"] == []
        client.post("/projects", headers=member.headers, json={"title": "t", "description": "d"})
        assert len(client.get("/projects").json()["data"]) == 1

    def test_detail_counts_views(self, client, project):
        """Opening a project counts a view."""
        client.get(f"/projects/{project['id']}")
        assert client.get(f"/projects/{project['id']}").json()["data"]["views"] == 2


class TestUpdateProject:
    """Tests for PUT and DELETE /projects/{id}."""

    def test_owner_updates(self, client, project):
        """Owners can change status and technologies."""
        response = client.put(f"/projects/{project['id']}", headers=project["owner"].headers, json={
            "status": "in_progress", "technologies": ["vue"],
        })
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "in_progress"
        assert response.json()["data"]["technologies"] == ["vue"]

    def test_invalid_status(self, client, project):
        """Unknown statuses are rejected."""
        response = client.put(f"/projects/{project['id']}", headers=project["owner"].headers, json={"status": "paused"})
        assert response.status_code == 400

    def test_other_member_cannot_update(self, client, project, member):
        """Only the owner or an admin edits a project."""
        response = client.put(f"/projects/{project['id']}", headers=member.headers, json={"title": "Mine"})
        assert response.status_code == 403

    def test_admin_deletes(self, client, project, admin):
        """Admins can delete any project."""
        assert client.delete(f"/projects/{project['id']}", headers=admin.headers).status_code == 200
        assert client.get(f"/projects/{project['id']}").status_code == 404


class TestOffers:
    """Tests for project offers."""

    def test_free_member_pays_points(self, client, project, member):
        """Free members pay the offer cost in points."""
        response = submit_offer(client, member, project)
        assert response.status_code == 201
        assert response.json()["data"]["points_charged"] == 10
        me = client.get("/gamification/me", headers=member.headers).json()["data"]
        assert me["points"] == 0

    def test_insufficient_points(self, client, project, member):
        """Without enough points the offer is refused with a 402."""
        submit_offer(client, member, project)
        response = submit_offer(client, member, project)
        assert response.status_code == 402
        body = response.json()
        assert body["code"] == "INSUFFICIENT_POINTS"
        assert body["current"] == 0
        assert body["required"] == 10

    def test_premium_member_offers_free(self, client, project, premium):
        """Premium members are not charged."""
        response = submit_offer(client, premium, project)
        assert response.json()["data"]["points_charged"] == 0
        assert client.get("/gamification/me", headers=premium.headers).json()["data"]["points"] == 10

    def test_offer_notifies_and_emails_owner(self, client, project, member, mailer):
        """The owner gets a notification and an email."""
        submit_offer(client, member, project)
        page = client.get("/notifications", headers=project["owner"].headers).json()["data"]
        assert "project_offer" in [n["type"] for n in page["notifications"]]
        assert any(e["to"] == project["owner"].email and "Landing page" in e["subject"] for e in mailer.sent)

    def test_offer_requires_message(self, client, project, premium):
        """Offers need a message."""
        response = submit_offer(client, premium, project, message="")
        assert response.status_code == 400

    def test_offer_counter(self, client, project, premium):
        """The project counts its offers."""
        submit_offer(client, premium, project)
        assert client.get(f"/projects/{project['id']}").json()["data"]["offers_count"] == 1

    def test_offer_visibility(self, client, project, make_user):
        """Owners see every offer, bidders only their own."""
        first = make_user(role="premium")
        second = make_user(role="premium")
        submit_offer(client, first, project)
        submit_offer(client, second, project)
        owner_view = client.get(f"/projects/{project['id']}/offers", headers=project["owner"].headers).json()["data"]
        bidder_view = client.get(f"/projects/{project['id']}/offers", headers=first.headers).json()["data"]
        assert len(owner_view) == 2
        assert [offer["user_id"] for offer in bidder_view] == [first.id]

    def test_owner_accepts_offer(self, client, project, premium):
        """The owner can accept an offer."""
        offer = submit_offer(client, premium, project).json()["data"]
        response = client.put(f"/projects/offers/{offer['id']}", headers=project["owner"].headers, json={
            "status": "accepted",
        })
        assert response.json()["data"]["status"] == "accepted"
        mine = client.get("/projects/offers/me", headers=premium.headers).json()["data"]
        assert mine[0]["status"] == "accepted"
        assert mine[0]["project_title"] == "Landing page"

    def test_bidder_cannot_accept(self, client, project, premium):
        """Bidders cannot change their own offer status."""
        offer = submit_offer(client, premium, project).json()["data"]
        response = client.put(f"/projects/offers/{offer['id']}", headers=premium.headers, json={"status": "accepted"})
        assert response.status_code == 403

    def test_invalid_offer_status(self, client, project, premium):
        """Offer status must be pending, accepted or rejected."""
        offer = submit_offer(client, premium, project).json()["data"]
        response = client.put(f"/projects/offers/{offer['id']}", headers=project["owner"].headers, json={"status": "won"})
        assert response.status_code == 400

    def test_failed_offer_keeps_points(self, client, project, member, monkeypatch):
        """If the offer cannot be stored the points charge is rolled back."""
        def broken_offer(**fields):
            raise RuntimeError("insert failed")

        monkeypatch.setattr("community.database.projects.ProjectOffer", broken_offer)
        response = submit_offer(client, member, project)
        assert response.status_code == 500
        assert client.get("/gamification/me", headers=member.headers).json()["data"]["points"] == 10
        history = client.get("/gamification/history", headers=member.headers).json()["data"]
        assert [h["action_name"] for h in history] == ["registration"]


class TestGuestContact:
    """Tests for guest contact details on projects."""

    @pytest.fixture
    def guest_project(self, client):
        response = client.post("/projects", json={
            "title": "Logo", "description": "Need a logo",
            "guest_name": "Guest", "guest_email": "guest@example.com",
        })
        return response.json()["data"]

    def test_anonymous_listing_hides_email(self, client, guest_project):
        """Public listings never show a guest's email."""
        listed = client.get("/projects").json()["data"]
        assert listed[0]["title"] == "Logo"
        assert "guest_email" not in listed[0]
        assert listed[0]["profile"]["display_name"] == "Guest"

    def test_detail_hides_email_from_members(self, client, guest_project, member):
        """Members other than admins do not see the guest's email."""
        data = client.get(f"/projects/{guest_project['id']}", headers=member.headers).json()["data"]
        assert "guest_email" not in data

    def test_admin_sees_email(self, client, guest_project, admin):
        """Admins see the guest's email."""
        data = client.get(f"/projects/{guest_project['id']}", headers=admin.headers).json()["data"]
        assert data["guest_email"] == "guest@example.com"

    def test_offer_emails_guest(self, client, guest_project, premium, mailer):
        """Offers on guest projects are emailed to the guest."""
        submit_offer(client, premium, guest_project)
        assert any(e["to"] == "guest@example.com" for e in mailer.sent)

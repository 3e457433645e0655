"""Tests for the recordings library."""

import pytest


@pytest.fixture
def recording(client, admin):
    response = client.post("/recordings", headers=admin.headers, json={
        "title": "Live Q&A #1",
        "video_url": "https://video.example.com/1",
        "category": "career",
        "qa_section": [{"question": "q", "answer": "a"}],
        "key_points": ["one", "two"],
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestListRecordings:
    """Tests for GET /recordings."""

    def test_listing_hides_details(self, client, recording):
        """Listings omit the video, Q&A and key points."""
        listed = client.get("/recordings").json()["data"]
        assert listed[0]["title"] == "Live Q&A #1"
        assert "qa_section" not in listed[0]
        assert "key_points" not in listed[0]
        assert "video_url" not in listed[0]

    def test_category_is_a_list(self, client, recording):
        """A single category is stored as a list."""
        assert recording["category"] == ["career"]

    def test_category_filter(self, client, admin, recording):
        """Filtering by category keeps matching recordings only."""
        client.post("/recordings", headers=admin.headers, json={
            "title": "Other", "video_url": "https://video.example.com/2", "category": ["python", "web"],
        })
        titles = [r["title"] for r in client.get("/recordings", params={"category": "python"}).json()["data"]]
        assert titles == ["Other"]

    def test_new_recording_refreshes_list(self, client, admin, recording):
        """Creating a recording invalidates the cached list."""
        assert len(client.get("/recordings").json()["data"]) == 1
        client.post("/recordings", headers=admin.headers, json={"title": "Two", "video_url": "https://video.example.com/2"})
        assert len(client.get("/recordings").json()["data"]) == 2


class TestViewRecording:
    """Tests for GET /recordings/{id}."""

    def test_free_member_denied(self, client, member, recording):
        """Free members cannot watch recordings."""
        response = client.get(f"/recordings/{recording['id']}", headers=member.headers)
        assert response.status_code == 403
        assert response.json()["code"] == "PREMIUM_REQUIRED"

    def test_premium_member_watches(self, client, premium, recording):
        """Premium members get the full recording and a view is counted."""
        data = client.get(f"/recordings/{recording['id']}", headers=premium.headers).json()["data"]
        assert data["qa_section"] == [{"question": "q", "answer": "a"}]
        assert data["key_points"] == ["one", "two"]
        assert data["views"] == 1

    def test_active_subscription_grants_access(self, client, admin, member, recording):
        """An admin-granted premium subscription unlocks recordings."""
        client.post("/admin/subscriptions", headers=admin.headers, json={
            "user_id": member.id, "role": "premium", "months": 1,
        })
        response = client.get(f"/recordings/{recording['id']}", headers=member.headers)
        assert response.status_code == 200


class TestManageRecordings:
    """Tests for admin recording management."""

    def test_requires_title_and_url(self, client, admin):
        """Title and video URL are required."""
        response = client.post("/recordings", headers=admin.headers, json={"title": "No video"})
        assert response.status_code == 400

    def test_members_cannot_create(self, client, member):
        """Only admins add recordings."""
        response = client.post("/recordings", headers=member.headers, json={"title": "t", "video_url": "https://v"})
        assert response.status_code == 403

    def test_update_and_delete(self, client, admin, recording):
        """Admins update and delete recordings."""
        updated = client.put(f"/recordings/{recording['id']}", headers=admin.headers, json={"title": "Renamed"})
        assert updated.json()["data"]["title"] == "Renamed"
        assert client.delete(f"/recordings/{recording['id']}", headers=admin.headers).status_code == 200
        assert client.get("/recordings").json()["data"] == []


def add_comment(client, user, recording, content="Great session", parent_id=None):
    response = client.post(f"/recordings/{recording['id']}/comments", headers=user.headers, json={
        "content": content, "parent_id": parent_id,
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


def notification_types(client, user):
    page = client.get("/notifications", headers=user.headers).json()["data"]
    return [n["type"] for n in page["notifications"]]


class TestRecordingComments:
    """Tests for /recordings/{id}/comments and /recordings/comments/{id}."""

    def test_premium_member_comments(self, client, premium, recording):
        """A comment carries its author and earns points."""
        comment = add_comment(client, premium, recording)
        assert comment["content"] == "Great session"
        assert comment["user"]["user_id"] == premium.id
        assert comment["replies"] == []
        me = client.get("/gamification/me", headers=premium.headers).json()["data"]
        assert me["points"] == 15

    def test_free_member_denied(self, client, member, recording):
        """Comments follow recording access."""
        response = client.post(f"/recordings/{recording['id']}/comments", headers=member.headers, json={"content": "hi"})
        assert response.status_code == 403
        assert client.get(f"/recordings/{recording['id']}/comments", headers=member.headers).status_code == 403

    def test_empty_comment(self, client, premium, recording):
        """Whitespace is not a comment."""
        response = client.post(f"/recordings/{recording['id']}/comments", headers=premium.headers, json={"content": "  "})
        assert response.status_code == 400

    def test_owner_is_notified(self, client, admin, premium, recording):
        """The recording's owner hears about new comments."""
        add_comment(client, premium, recording)
        assert "comment" in notification_types(client, admin)

    def test_replies_are_nested(self, client, admin, make_user, premium, recording):
        """Replies, including replies to replies, hang off the top-level comment."""
        other = make_user(role="premium")
        first = add_comment(client, premium, recording, "First")
        reply = add_comment(client, other, recording, "Reply", parent_id=first["id"])
        add_comment(client, premium, recording, "Reply to reply", parent_id=reply["id"])
        add_comment(client, other, recording, "Second")

        comments = client.get(f"/recordings/{recording['id']}/comments", headers=premium.headers).json()["data"]
        assert [c["content"] for c in comments] == ["Second", "First"]
        assert [r["content"] for r in comments[1]["replies"]] == ["Reply", "Reply to reply"]
        assert "reply" in notification_types(client, premium)

    def test_author_edits_comment(self, client, premium, make_user, recording):
        """Only the author edits a comment."""
        comment = add_comment(client, premium, recording)
        other = make_user(role="premium")
        denied = client.put(f"/recordings/comments/{comment['id']}", headers=other.headers, json={"content": "x"})
        assert denied.status_code == 403
        edited = client.put(f"/recordings/comments/{comment['id']}", headers=premium.headers, json={"content": "Edited"})
        assert edited.json()["data"]["content"] == "Edited"

    def test_delete_comment_with_replies(self, client, admin, premium, make_user, recording):
        """Admins delete any comment and its replies go too; other members cannot."""
        other = make_user(role="premium")
        comment = add_comment(client, premium, recording)
        add_comment(client, other, recording, "Reply", parent_id=comment["id"])

        assert client.delete(f"/recordings/comments/{comment['id']}", headers=other.headers).status_code == 403
        assert client.delete(f"/recordings/comments/{comment['id']}", headers=admin.headers).status_code == 200
        assert client.get(f"/recordings/{recording['id']}/comments", headers=premium.headers).json()["data"] == []

"""Tests for in-app notifications."""

import uuid
from uuid import UUID

import pytest

from community.database.notifications import NotificationsRepository
from community.errors import ValidationError


@pytest.fixture
def member(make_user, run_db):
    """A member whose signup points notification has been cleared"""
    user = make_user()
    run_db(lambda session: NotificationsRepository(session).delete_old_notifications(UUID(user.id), 0))
    return user


@pytest.fixture
def notify(run_db):
    """Create notifications for a user directly"""
    def _notify(user, count=1, type="points"):
        async def create(session):
            repo = NotificationsRepository(session)
            for i in range(count):
                await repo.create_notification(
                    user_id=UUID(user.id), type=type, title=f"Note {i}", message=f"Message {i}",
                )
        run_db(create)
    return _notify


def list_notifications(client, user, **params):
    return client.get("/notifications", headers=user.headers, params=params).json()["data"]


class TestListNotifications:
    """Tests for GET /notifications."""

    def test_newest_first(self, client, member, notify):
        """Notifications are listed newest first."""
        notify(member, count=3)
        page = list_notifications(client, member)
        assert [n["title"] for n in page["notifications"]] == ["Note 2", "Note 1", "Note 0"]
        assert page["total"] == 3
        assert page["has_more"] is False

    def test_pagination(self, client, member, notify):
        """limit and offset page through the list."""
        notify(member, count=5)
        page = list_notifications(client, member, limit=2, offset=2)
        assert [n["title"] for n in page["notifications"]] == ["Note 2", "Note 1"]
        assert page["has_more"] is True

    def test_only_newest_are_kept(self, client, member, notify):
        """Older notifications beyond the cap are pruned."""
        notify(member, count=62)
        page = list_notifications(client, member, limit=100)
        assert page["total"] == 60
        assert len(page["notifications"]) == 60
        assert page["notifications"][-1]["title"] == "Note 2"

    def test_offset_past_cap(self, client, member, notify):
        """Offsets past the visible window return an empty page."""
        notify(member, count=2)
        page = list_notifications(client, member, offset=60)
        assert page["notifications"] == []
        assert page["has_more"] is False

    def test_requires_login(self, client):
        """Notifications are private."""
        assert client.get("/notifications").status_code == 401


class TestReadState:
    """Tests for read markers and deletion."""

    def test_unread_count_and_mark_all(self, client, member, notify):
        """Marking all as read clears the unread count."""
        notify(member, count=3)
        assert client.get("/notifications/unread-count", headers=member.headers).json()["data"] == {"count": 3}
        response = client.put("/notifications/read-all", headers=member.headers)
        assert response.json()["data"] == {"updated": 3}
        assert client.get("/notifications/unread-count", headers=member.headers).json()["data"] == {"count": 0}

    def test_mark_one_read(self, client, member, notify):
        """A single notification can be marked read."""
        notify(member)
        notification = list_notifications(client, member)["notifications"][0]
        response = client.put(f"/notifications/{notification['id']}/read", headers=member.headers)
        assert response.json()["data"]["is_read"] is True

    def test_cannot_touch_others(self, client, member, make_user, notify):
        """Other users' notifications are off limits."""
        notify(member)
        other = make_user()
        notification = list_notifications(client, member)["notifications"][0]
        assert client.put(f"/notifications/{notification['id']}/read", headers=other.headers).status_code == 403
        assert client.delete(f"/notifications/{notification['id']}", headers=other.headers).status_code == 403

    def test_missing_notification(self, client, member):
        """Unknown notifications are a 404."""
        response = client.put(f"/notifications/{uuid.uuid4()}/read", headers=member.headers)
        assert response.status_code == 404

    def test_delete(self, client, member, notify):
        """Owners can delete notifications."""
        notify(member)
        notification = list_notifications(client, member)["notifications"][0]
        client.delete(f"/notifications/{notification['id']}", headers=member.headers)
        assert list_notifications(client, member)["total"] == 0


class TestCreateNotification:
    """Tests for NotificationsRepository.create_notification."""

    def test_unknown_type_rejected(self, member, run_db):
        """Only known notification types are stored."""
        async def create(session):
            await NotificationsRepository(session).create_notification(
                user_id=UUID(member.id), type="party", title="t", message="m",
            )

        with pytest.raises(ValidationError):
            run_db(create)

    def test_prune_keeps_count(self, member, notify, run_db):
        """Pruning keeps only the requested number."""
        notify(member, count=5)
        removed = run_db(lambda session: NotificationsRepository(session).delete_old_notifications(UUID(member.id), 2))
        assert removed == 3

"""Tests for tags, suggestions and content tagging."""

import uuid

import pytest


@pytest.fixture
def python_tag(client, admin):
    response = client.post("/tags", headers=admin.headers, json={"name": "Python 3", "color": "#3776AB"})
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateTags:
    """Tests for POST /tags and /tags/suggest."""

    def test_admin_tag_is_approved(self, client, python_tag):
        """Admin-created tags are approved with a slug."""
        assert python_tag["slug"] == "python-3"
        assert python_tag["is_approved"] is True
        assert python_tag["usage_count"] == 0

    def test_duplicate_tag(self, client, admin, python_tag):
        """A tag with the same slug already exists."""
        response = client.post("/tags", headers=admin.headers, json={"name": "python 3"})
        assert response.status_code == 409
        assert response.json()["code"] == "TAG_EXISTS"

    def test_suggestion_is_hidden(self, client, member):
        """Member suggestions wait for approval and are not listed."""
        response = client.post("/tags/suggest", headers=member.headers, json={"name": "Rust"})
        assert response.status_code == 201
        assert response.json()["data"]["is_approved"] is False
        assert client.get("/tags").json()["data"] == []

    def test_duplicate_suggestion(self, client, member):
        """Suggesting a pending tag again is a conflict."""
        client.post("/tags/suggest", headers=member.headers, json={"name": "Rust"})
        response = client.post("/tags/suggest", headers=member.headers, json={"name": "rust"})
        assert response.status_code == 409
        assert response.json()["code"] == "TAG_SUGGESTED"

    def test_name_without_letters(self, client, admin):
        """Names must produce a slug."""
        response = client.post("/tags", headers=admin.headers, json={"name": "!!!"})
        assert response.status_code == 400

    def test_name_without_latin_letters_takes_slug(self, client, admin):
        """Hebrew names are accepted with an explicit slug."""
        response = client.post("/tags", headers=admin.headers, json={"name": "פייתון", "slug": "Python IL"})
        assert response.status_code == 201
        assert response.json()["data"]["name"] == "פייתון"
        assert response.json()["data"]["slug"] == "python-il"

    def test_hebrew_name_without_slug(self, client, admin):
        """A name with no latin letters needs a slug."""
        response = client.post("/tags", headers=admin.headers, json={"name": "פייתון"})
        assert response.status_code == 400

    def test_members_cannot_create(self, client, member):
        """Direct creation is admin-only."""
        response = client.post("/tags", headers=member.headers, json={"name": "Go"})
        assert response.status_code == 403


class TestApproval:
    """Tests for approving and managing tags."""

    def test_approve_suggestion(self, client, admin, member):
        """Approved suggestions appear in the public list."""
        tag = client.post("/tags/suggest", headers=member.headers, json={"name": "Rust"}).json()["data"]
        pending = client.get("/tags/unapproved", headers=admin.headers).json()["data"]
        assert [t["name"] for t in pending] == ["Rust"]

        client.post(f"/tags/{tag['id']}/approve", headers=admin.headers)
        assert [t["name"] for t in client.get("/tags").json()["data"]] == ["Rust"]

    def test_admin_list_includes_pending(self, client, admin, member, python_tag):
        """Admins see pending suggestions in the list."""
        client.post("/tags/suggest", headers=member.headers, json={"name": "Rust"})
        names = sorted(t["name"] for t in client.get("/tags", headers=admin.headers).json()["data"])
        assert names == ["Python 3", "Rust"]

    def test_rename_updates_slug(self, client, admin, python_tag):
        """Renaming a tag regenerates its slug."""
        response = client.put(f"/tags/{python_tag['id']}", headers=admin.headers, json={"name": "Python"})
        assert response.json()["data"]["slug"] == "python"

    def test_rename_to_hebrew_keeps_slug(self, client, admin, python_tag):
        """A rename that yields no slug leaves the old one in place."""
        response = client.put(f"/tags/{python_tag['id']}", headers=admin.headers, json={"name": "פייתון"})
        assert response.json()["data"]["name"] == "פייתון"
        assert response.json()["data"]["slug"] == "python-3"

    def test_delete(self, client, admin, python_tag):
        """Deleted tags disappear from the list."""
        client.get("/tags")
        client.delete(f"/tags/{python_tag['id']}", headers=admin.headers)
        assert client.get("/tags").json()["data"] == []


class TestSearch:
    """Tests for tag search and popularity."""

    def test_search(self, client, admin, python_tag):
        """Search matches names case-insensitively."""
        client.post("/tags", headers=admin.headers, json={"name": "Design"})
        results = client.get("/tags/search", params={"q": "PYTH"}).json()["data"]
        assert [t["name"] for t in results] == ["Python 3"]

    def test_popular_orders_by_usage(self, client, admin, member, python_tag):
        """Popular tags are ordered by usage."""
        design = client.post("/tags", headers=admin.headers, json={"name": "Design"}).json()["data"]
        for _ in range(2):
            client.put(f"/tags/content/project/{uuid.uuid4()}", headers=member.headers, json={"tag_ids": [design["id"]]})
        popular = client.get("/tags/popular").json()["data"]
        assert [t["name"] for t in popular] == ["Design", "Python 3"]
        assert popular[0]["usage_count"] == 2


class TestContentTags:
    """Tests for /tags/content/{type}/{id}."""

    def test_assign_replaces_and_recounts(self, client, admin, member, python_tag):
        """Reassigning content tags recounts usage for old and new tags."""
        design = client.post("/tags", headers=admin.headers, json={"name": "Design"}).json()["data"]
        content_id = str(uuid.uuid4())

        first = client.put(f"/tags/content/course/{content_id}", headers=member.headers, json={"tag_ids": [python_tag["id"]]})
        assert [t["name"] for t in first.json()["data"]] == ["Python 3"]

        second = client.put(f"/tags/content/course/{content_id}", headers=member.headers, json={"tag_ids": [design["id"]]})
        assert [t["name"] for t in second.json()["data"]] == ["Design"]

        usage = {t["name"]: t["usage_count"] for t in client.get("/tags").json()["data"]}
        assert usage == {"Design": 1, "Python 3": 0}

    def test_unknown_content_type(self, client, member, python_tag):
        """Only known content types can be tagged."""
        response = client.put(f"/tags/content/video/{uuid.uuid4()}", headers=member.headers, json={
            "tag_ids": [python_tag["id"]],
        })
        assert response.status_code == 400

    def test_unknown_tag(self, client, member):
        """Assigning a missing tag is a 404."""
        response = client.put(f"/tags/content/course/{uuid.uuid4()}", headers=member.headers, json={
            "tag_ids": [str(uuid.uuid4())],
        })
        assert response.status_code == 404

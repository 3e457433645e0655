"""Tests for the resource library and uploads."""

import pytest

from community.storage.objects import get_storage


def create_resource(client, user, **fields):
    payload = {"title": "Style guide", "type": "link", "external_url": "https://example.com/guide", **fields}
    response = client.post("/resources", headers=user.headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def resource(client, member):
    return create_resource(client, member, category="design", description="Typography rules")


class TestCreateResource:
    """Tests for POST /resources."""

    def test_create_link(self, client, member, resource):
        """Link resources default their file name to the title."""
        assert resource["created_by"] == member.id
        assert resource["file_name"] == "Style guide"
        assert resource["download_count"] == 0
        assert resource["is_premium"] is False

    def test_link_needs_external_url(self, client, member):
        """Links without an external URL are rejected."""
        response = client.post("/resources", headers=member.headers, json={"title": "x", "type": "link"})
        assert response.status_code == 400

    def test_file_needs_file_url(self, client, member):
        """Non-link resources need a file URL."""
        response = client.post("/resources", headers=member.headers, json={"title": "x", "type": "document"})
        assert response.status_code == 400

    def test_private_url_rejected(self, client, member):
        """External URLs pointing at private hosts are refused."""
        response = client.post("/resources", headers=member.headers, json={
            "title": "x", "type": "link", "external_url": "http://192.168.1.10/admin",
        })
        assert response.status_code == 400

    def test_unknown_type(self, client, member):
        """Only the known resource types are accepted."""
        response = client.post("/resources", headers=member.headers, json={
            "title": "x", "type": "archive", "file_url": "https://files.example.com/x.zip",
        })
        assert response.status_code == 400

    def test_tags_assigned_on_create(self, client, admin, member):
        """Tags passed on creation are assigned to the resource."""
        tag = client.post("/tags", headers=admin.headers, json={"name": "Design"}).json()["data"]
        created = create_resource(client, member, tag_ids=[tag["id"]])
        tags = client.get(f"/tags/content/resource/{created['id']}").json()["data"]
        assert [t["name"] for t in tags] == ["Design"]


class TestListResources:
    """Tests for GET /resources."""

    def test_filters(self, client, member, resource):
        """Type, category and text search narrow the list."""
        create_resource(client, member, title="Intro video", type="video", file_url="https://files.example.com/v.mp4")
        assert [r["title"] for r in client.get("/resources", params={"type": "video"}).json()["data"]] == ["Intro video"]
        assert [r["title"] for r in client.get("/resources", params={"category": "design"}).json()["data"]] == ["Style guide"]
        assert [r["title"] for r in client.get("/resources", params={"search": "typography"}).json()["data"]] == ["Style guide"]

    def test_user_liked_flag(self, client, member, resource):
        """The listing marks resources the caller liked."""
        client.post(f"/resources/{resource['id']}/like", headers=member.headers)
        listed = client.get("/resources", headers=member.headers).json()["data"]
        assert listed[0]["user_liked"] is True
        assert client.get("/resources").json()["data"][0]["user_liked"] is False


class TestResourceActions:
    """Tests for likes, downloads, updates and deletes."""

    def test_like_toggles(self, client, member, resource):
        """A second like removes the first."""
        first = client.post(f"/resources/{resource['id']}/like", headers=member.headers).json()["data"]
        second = client.post(f"/resources/{resource['id']}/like", headers=member.headers).json()["data"]
        assert first == {"liked": True, "likes_count": 1}
        assert second == {"liked": False, "likes_count": 0}

    def test_download_counter(self, client, resource):
        """Each download increments the counter."""
        client.post(f"/resources/{resource['id']}/download")
        response = client.post(f"/resources/{resource['id']}/download")
        assert response.json()["data"] == {"download_count": 2}

    def test_owner_updates(self, client, member, resource):
        """Owners can edit their resources."""
        response = client.put(f"/resources/{resource['id']}", headers=member.headers, json={"title": "Brand guide"})
        assert response.json()["data"]["title"] == "Brand guide"

    def test_other_member_cannot_delete(self, client, make_user, resource):
        """Other members cannot delete a resource."""
        other = make_user()
        response = client.delete(f"/resources/{resource['id']}", headers=other.headers)
        assert response.status_code == 403

    def test_admin_deletes(self, client, admin, resource):
        """Admins can delete any resource."""
        assert client.delete(f"/resources/{resource['id']}", headers=admin.headers).status_code == 200
        assert client.get("/resources").json()["data"] == []


class TestUpload:
    """Tests for POST /resources/upload."""

    def test_upload_stores_file(self, client, member, storage):
        """Uploads are stored and described."""
        response = client.post("/resources/upload", headers=member.headers, files={
            "file": ("notes.pdf", b"%PDF-1.4 content", "application/pdf"),
        })
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["file_name"] == "notes.pdf"
        assert data["file_size"] == len(b"%PDF-1.4 content")
        assert data["file_url"].startswith(storage.base_url)
        assert f"resources/{member.id}/notes.pdf" in storage.objects

    def test_dangerous_extension_rejected(self, client, member):
        """Executable uploads are refused."""
        response = client.post("/resources/upload", headers=member.headers, files={
            "file": ("setup.exe", b"MZ", "application/octet-stream"),
        })
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_FILENAME"

    def test_empty_file_rejected(self, client, member):
        """Empty uploads are refused."""
        response = client.post("/resources/upload", headers=member.headers, files={
            "file": ("empty.txt", b"", "text/plain"),
        })
        assert response.status_code == 400

    def test_storage_not_configured(self, client, member):
        """Without storage credentials uploads are unavailable."""
        client.app.dependency_overrides.pop(get_storage)
        response = client.post("/resources/upload", headers=member.headers, files={
            "file": ("notes.pdf", b"data", "application/pdf"),
        })
        assert response.status_code == 503

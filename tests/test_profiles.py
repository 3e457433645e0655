"""Tests for profile and role endpoints."""

import uuid


class TestPublicProfiles:
    """Tests for GET /profiles."""

    def test_list_hides_private_fields(self, client, member):
        """Public profiles carry no email, points or role."""
        profiles = client.get("/profiles").json()["data"]
        assert len(profiles) == 1
        assert profiles[0]["display_name"] == member.display_name
        assert "email" not in profiles[0]
        assert "points" not in profiles[0]
        assert "role" not in profiles[0]

    def test_get_profile(self, client, member):
        """A single profile is found by user id."""
        response = client.get(f"/profiles/{member.id}")
        assert response.status_code == 200
        assert response.json()["data"]["user_id"] == member.id

    def test_get_profile_not_found(self, client):
        """Unknown users are a 404."""
        response = client.get(f"/profiles/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestUserSearch:
    """Tests for GET /users/search."""

    def test_search_matches_names(self, client, make_user):
        """The query matches display names case-insensitively."""
        dana = make_user(display_name="Dana Levi")
        make_user(display_name="Yossi")
        results = client.get("/users/search", headers=dana.headers, params={"q": "LEV"}).json()["data"]
        assert results == [{
            "id": dana.id, "label": "Dana Levi", "username": "Dana Levi", "avatar_url": None,
        }]

    def test_empty_query_lists_recent_members(self, client, make_user):
        """Without a query the members with a display name are suggested."""
        user = make_user(display_name="Dana")
        make_user(display_name=None, first_name="Noa")
        labels = [r["label"] for r in client.get("/users/search", headers=user.headers).json()["data"]]
        assert labels == ["Dana"]

    def test_search_requires_login(self, client):
        """Anonymous callers cannot search members."""
        assert client.get("/users/search", params={"q": "a"}).status_code == 401


class TestUpdateProfile:
    """Tests for PUT /profiles/me."""

    def test_update_own_profile(self, client, member):
        """Editable fields are saved."""
        response = client.put("/profiles/me", headers=member.headers, json={
            "headline": "Backend developer",
            "social_links": [{"type": "github", "url": "https://github.com/member"}],
        })
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["headline"] == "Backend developer"
        assert data["social_links"][0]["type"] == "github"

    def test_display_name_falls_back_to_first_name(self, client, make_user):
        """Without a display name the first and last name are shown."""
        user = make_user(display_name=None, first_name="Dana", last_name="Levi")
        data = client.get(f"/profiles/{user.id}").json()["data"]
        assert data["display_name"] == "Dana Levi"

    def test_update_requires_login(self, client):
        """Anonymous callers cannot edit profiles."""
        response = client.put("/profiles/me", json={"bio": "hi"})
        assert response.status_code == 401


class TestRoles:
    """Tests for roles and admin role assignment."""

    def test_list_roles(self, client):
        """The four standard roles exist."""
        names = [role["name"] for role in client.get("/roles").json()["data"]]
        assert sorted(names) == ["admin", "basic", "free", "premium"]

    def test_admin_sets_role(self, client, admin, member):
        """Admins can promote members."""
        response = client.put(f"/admin/users/{member.id}/role", headers=admin.headers, json={"role": "premium"})
        assert response.status_code == 200
        assert response.json()["data"]["role"] == "premium"

    def test_unknown_role_rejected(self, client, admin, member):
        """Only the standard roles can be assigned."""
        response = client.put(f"/admin/users/{member.id}/role", headers=admin.headers, json={"role": "owner"})
        assert response.status_code == 400

    def test_member_cannot_set_roles(self, client, member):
        """Role assignment is admin-only."""
        response = client.put(f"/admin/users/{member.id}/role", headers=member.headers, json={"role": "admin"})
        assert response.status_code == 403

    def test_admin_user_list_includes_email(self, client, admin, member):
        """The admin view includes email, points and role."""
        users = client.get("/admin/users", headers=admin.headers).json()["data"]
        by_email = {user["email"]: user for user in users}
        assert by_email[member.email]["role"] == "free"
        assert by_email[member.email]["points"] == 10

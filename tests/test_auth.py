"""Tests for signup, login, token refresh and registration limits."""

from community.database.settings import EmailPreferencesRepository, SystemSettingsRepository

from conftest import PASSWORD


class TestSignup:
    """Tests for POST /auth/signup."""

    def test_signup_returns_tokens(self, client):
        """Signup creates the account and logs the member in."""
        response = client.post("/auth/signup", json={
            "email": "new@example.com", "password": PASSWORD, "display_name": "Newbie",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["email"] == "new@example.com"
        assert body["data"]["token_type"] == "bearer"
        assert body["data"]["access_token"]
        assert body["data"]["refresh_token"]

    def test_signup_awards_registration_points(self, client, member):
        """New members start with the registration points."""
        response = client.get("/auth/me", headers=member.headers)
        assert response.status_code == 200
        assert response.json()["data"]["points"] == 10
        assert response.json()["data"]["role"] == "free"

    def test_signup_sends_welcome_email(self, client, mailer):
        """A welcome email goes to the new address."""
        client.post("/auth/signup", json={"email": "hello@example.com", "password": PASSWORD})
        assert mailer.sent[0]["to"] == "hello@example.com"
        assert mailer.sent[0]["subject"] == "Welcome to the community"

    def test_signup_duplicate_email(self, client, member):
        """A second account with the same email is rejected."""
        response = client.post("/auth/signup", json={"email": member.email, "password": PASSWORD})
        assert response.status_code == 409
        assert response.json()["code"] == "EMAIL_EXISTS"

    def test_signup_short_password(self, client):
        """Passwords shorter than six characters fail validation."""
        response = client.post("/auth/signup", json={"email": "x@example.com", "password": "123"})
        assert response.status_code == 422

    def test_failed_signup_leaves_no_account(self, client, monkeypatch):
        """An error while creating the profile rolls back the login account."""
        async def broken_defaults(self, user_id, commit=True):
            raise RuntimeError("insert failed")

        monkeypatch.setattr(EmailPreferencesRepository, "create_defaults", broken_defaults)
        payload = {"email": "broken@example.com", "password": PASSWORD}
        assert client.post("/auth/signup", json=payload).status_code == 500
        assert client.post("/auth/login", json=payload).status_code == 401

        monkeypatch.undo()
        assert client.post("/auth/signup", json=payload).status_code == 201

    def test_signup_closed_when_limit_reached(self, client, member, run_db):
        """Signup is refused once the member count reaches the limit."""
        run_db(lambda session: SystemSettingsRepository(session).set_registration_limit(1))
        response = client.post("/auth/signup", json={"email": "late@example.com", "password": PASSWORD})
        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "REGISTRATION_CLOSED"
        assert body["current"] == 1
        assert body["limit"] == 1


class TestLogin:
    """Tests for POST /auth/login."""

    def test_login_success(self, client, member):
        """Correct credentials return a token pair."""
        response = client.post("/auth/login", json={"email": member.email, "password": PASSWORD})
        assert response.status_code == 200
        assert response.json()["data"]["access_token"]

    def test_login_wrong_password(self, client, member):
        """A wrong password is a 401."""
        response = client.post("/auth/login", json={"email": member.email, "password": "wrong-password"})
        assert response.status_code == 401
        assert response.json()["error"] == "Incorrect email or password"

    def test_login_unknown_email(self, client):
        """Unknown accounts get the same 401."""
        response = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
        assert response.status_code == 401

    def test_daily_login_points_once_per_day(self, client, member):
        """Only the first login of the day earns points."""
        client.post("/auth/login", json={"email": member.email, "password": PASSWORD})
        client.post("/auth/login", json={"email": member.email, "password": PASSWORD})
        me = client.get("/auth/me", headers=member.headers).json()["data"]
        assert me["points"] == 15


class TestTokens:
    """Tests for token handling."""

    def test_refresh_issues_new_access_token(self, client, member):
        """A refresh token yields a new access token and keeps itself."""
        response = client.post("/auth/refresh", json={"refresh_token": member.refresh_token})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["refresh_token"] == member.refresh_token
        assert data["access_token"]

    def test_refresh_rejects_access_token(self, client, member):
        """Access tokens cannot be used to refresh."""
        response = client.post("/auth/refresh", json={"refresh_token": member.token})
        assert response.status_code == 401

    def test_me_requires_token(self, client):
        """No bearer token means 401."""
        response = client.get("/auth/me")
        assert response.status_code == 401

    def test_me_rejects_garbage_token(self, client):
        """A token that does not decode is refused."""
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_role_change_applies_to_existing_token(self, client, member, set_role):
        """Roles are read per request, so a promotion applies without a new login."""
        set_role(member.id, "admin")
        response = client.get("/admin/users", headers=member.headers)
        assert response.status_code == 200


class TestRegistrationStatus:
    """Tests for GET /auth/registration-status."""

    def test_status_open(self, client, member):
        """The default limit leaves registration open."""
        data = client.get("/auth/registration-status").json()["data"]
        assert data == {"available": True, "current": 1, "limit": 50}

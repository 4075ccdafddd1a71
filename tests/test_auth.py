"""
Authentication tests.

Verifies:
- Login sets the session cookie and returns the user summary
- Wrong credentials return 401 without revealing which part was wrong
- Session tokens: valid, expired and tampered
- Change-password flow
"""

from datetime import timedelta

from fintrack.domain.models.user import Role
from fintrack.domain.services.auth_service import (
    SESSION_EXPIRED,
    SESSION_INVALID,
    create_session_token,
    has_role,
    inspect_session,
    validate_session,
)
from fintrack.presentation.guard import SESSION_COOKIE

ADMIN_PASSWORD = "Adm1nSecret!"


class TestLogin:
    def test_login_sets_cookie(self, client, admin):
        resp = client.post(
            "/api/auth/login",
            json={"email": "Admin@FinTrack.test ", "password": ADMIN_PASSWORD},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["user"] == {
            "id": admin.id,
            "email": "admin@fintrack.test",
            "name": "Admin",
            "role": "administrator",
        }
        assert body["token_type"] == "bearer"
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith(f"{SESSION_COOKIE}=")
        assert "HttpOnly" in cookie
        assert "Max-Age=604800" in cookie

    def test_cookie_session_reaches_protected_routes(self, client, admin):
        client.post(
            "/api/auth/login",
            json={"email": "admin@fintrack.test", "password": ADMIN_PASSWORD},
        )
        resp = client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "admin@fintrack.test"

    def test_wrong_password(self, client, admin):
        resp = client.post(
            "/api/auth/login",
            json={"email": "admin@fintrack.test", "password": "nope-nope"},
        )
        assert resp.status_code == 401
        assert resp.json() == {"error": "Incorrect email or password"}

    def test_unknown_email(self, client):
        resp = client.post(
            "/api/auth/login",
            json={"email": "ghost@fintrack.test", "password": "whatever"},
        )
        assert resp.status_code == 401
        assert resp.json() == {"error": "Incorrect email or password"}

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"email": "admin@fintrack.test"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request data"

    def test_logout_clears_cookie(self, client, admin_headers):
        resp = client.post("/api/auth/logout", headers=admin_headers)
        assert resp.status_code == 200
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith(f"{SESSION_COOKIE}=")
        assert "Max-Age=0" in cookie


class TestSessions:
    def test_round_trip(self, admin):
        identity, failure = inspect_session(create_session_token(admin))
        assert failure is None
        assert identity.user_id == admin.id
        assert identity.role == Role.ADMINISTRATOR

    def test_expired(self, admin):
        token = create_session_token(admin, expires_delta=timedelta(seconds=-5))
        assert inspect_session(token) == (None, SESSION_EXPIRED)

    def test_tampered(self, admin):
        token = create_session_token(admin)
        assert inspect_session(token[:-2] + "xx") == (None, SESSION_INVALID)

    def test_garbage(self):
        assert inspect_session("not-a-token") == (None, SESSION_INVALID)

    def test_validate_session(self, admin):
        assert validate_session(create_session_token(admin)).email == admin.email
        assert validate_session(None) is None

    def test_superadmin_satisfies_every_role(self, superadmin, admin):
        root, _ = inspect_session(create_session_token(superadmin))
        plain, _ = inspect_session(create_session_token(admin))
        assert has_role(root, Role.ADMINISTRATOR)
        assert has_role(root, Role.SUPERADMIN)
        assert has_role(plain, Role.ADMINISTRATOR)
        assert not has_role(plain, Role.SUPERADMIN)
        assert not has_role(None, Role.ADMINISTRATOR)


class TestChangePassword:
    def test_change_password_flow(self, client, admin, admin_headers):
        resp = client.post(
            "/api/auth/me",
            json={"currentPassword": ADMIN_PASSWORD, "newPassword": "brand-new-pw"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        old = client.post(
            "/api/auth/login",
            json={"email": "admin@fintrack.test", "password": ADMIN_PASSWORD},
        )
        new = client.post(
            "/api/auth/login",
            json={"email": "admin@fintrack.test", "password": "brand-new-pw"},
        )
        assert old.status_code == 401
        assert new.status_code == 200

    def test_wrong_current_password(self, client, admin_headers):
        resp = client.post(
            "/api/auth/me",
            json={"current_password": "wrong-one", "new_password": "brand-new-pw"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Current password is incorrect"

    def test_new_password_too_short(self, client, admin_headers):
        resp = client.post(
            "/api/auth/me",
            json={"currentPassword": ADMIN_PASSWORD, "newPassword": "abc"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert "at least 6" in resp.json()["error"]

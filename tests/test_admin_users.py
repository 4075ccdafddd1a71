"""
User management tests (superadmin only).
"""

import pytest

from fintrack.domain.errors import DuplicateError
from fintrack.domain.models.user import Role
from fintrack.domain.services.auth_service import bootstrap_superadmin, create_user


class TestUserManagement:
    def test_list_users(self, client, superadmin_headers, admin):
        resp = client.get("/api/admin/users", headers=superadmin_headers)
        assert resp.status_code == 200
        emails = {u["email"] for u in resp.json()["users"]}
        assert emails == {"root@fintrack.test", "admin@fintrack.test"}
        assert all("hashed_password" not in u for u in resp.json()["users"])

    def test_create_user(self, client, superadmin_headers):
        resp = client.post(
            "/api/admin/users",
            json={"email": "new@fintrack.test", "password": "secret123", "name": "New"},
            headers=superadmin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "administrator"
        login = client.post(
            "/api/auth/login",
            json={"email": "new@fintrack.test", "password": "secret123"},
        )
        assert login.status_code == 200

    def test_duplicate_email(self, client, superadmin_headers, admin):
        resp = client.post(
            "/api/admin/users",
            json={"email": "ADMIN@fintrack.test", "password": "secret123", "name": "Dup"},
            headers=superadmin_headers,
        )
        assert resp.status_code == 409

    def test_unknown_role_is_rejected(self, client, superadmin_headers):
        resp = client.post(
            "/api/admin/users",
            json={
                "email": "x@fintrack.test",
                "password": "secret123",
                "name": "X",
                "role": "owner",
            },
            headers=superadmin_headers,
        )
        assert resp.status_code == 400

    def test_update_role(self, client, superadmin_headers, admin):
        resp = client.patch(
            "/api/admin/users",
            json={"userId": admin.id, "role": "superadmin"},
            headers=superadmin_headers,
        )
        assert resp.status_code == 200
        users = client.get("/api/admin/users", headers=superadmin_headers).json()["users"]
        assert {u["email"]: u["role"] for u in users}["admin@fintrack.test"] == "superadmin"

    def test_update_profile(self, client, superadmin_headers, admin):
        resp = client.put(
            "/api/admin/users",
            json={"userId": admin.id, "name": "Renamed", "email": "renamed@fintrack.test"},
            headers=superadmin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["email"] == "renamed@fintrack.test"

    def test_delete_user(self, client, superadmin_headers, admin):
        resp = client.request(
            "DELETE",
            "/api/admin/users",
            json={"userId": admin.id},
            headers=superadmin_headers,
        )
        assert resp.status_code == 200
        users = client.get("/api/admin/users", headers=superadmin_headers).json()["users"]
        assert [u["email"] for u in users] == ["root@fintrack.test"]

    def test_superadmin_cannot_be_deleted(self, client, superadmin, superadmin_headers):
        resp = client.request(
            "DELETE",
            "/api/admin/users",
            json={"userId": superadmin.id},
            headers=superadmin_headers,
        )
        assert resp.status_code == 400

    def test_delete_missing_user(self, client, superadmin_headers):
        resp = client.request(
            "DELETE", "/api/admin/users", json={"userId": 999}, headers=superadmin_headers
        )
        assert resp.status_code == 404

    def test_reset_password(self, client, superadmin_headers, admin):
        resp = client.post(
            "/api/admin/users/reset-password",
            json={"userId": admin.id, "newPassword": "reset-pw-1"},
            headers=superadmin_headers,
        )
        assert resp.status_code == 200
        login = client.post(
            "/api/auth/login",
            json={"email": "admin@fintrack.test", "password": "reset-pw-1"},
        )
        assert login.status_code == 200


class TestBootstrap:
    def test_creates_first_superadmin(self, db_session):
        user = bootstrap_superadmin(db_session, "Boss@FinTrack.test", "boss-pw", "Boss")
        assert user.role == Role.SUPERADMIN
        assert user.email == "boss@fintrack.test"

    def test_noop_when_users_exist(self, db_session, admin):
        assert bootstrap_superadmin(db_session, "boss@fintrack.test", "boss-pw", "Boss") is None

    def test_noop_without_credentials(self, db_session):
        assert bootstrap_superadmin(db_session, None, None, "Boss") is None

    def test_duplicate_at_service_level(self, db_session, admin):
        with pytest.raises(DuplicateError):
            create_user(db_session, "admin@fintrack.test", "another-pw", "Again")


class TestUsersPage:
    def test_lists_every_account(self, client, superadmin_headers, admin):
        resp = client.get("/admin/users", headers=superadmin_headers)
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert "<h1>Users</h1>" in resp.text
        assert "admin@fintrack.test" in resp.text
        assert "root@fintrack.test" in resp.text
        assert "superadmin" in resp.text

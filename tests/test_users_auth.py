"""Tests for authentication and user management.

Covers:
- Registration (first account is admin), duplicate and weak-password rejection
- Login returns a bearer token and records a bounded login history
- Token validation: bad, missing, deactivated user
- Password change / forgot / reset flows
- Role-restricted user listing, role changes and deletion
- Self-only settings and security preferences
"""

from datetime import datetime, timedelta, timezone

from crm.extensions import db
from crm.models.user import LoginEvent, User
from crm.services import auth_service


def _register(client, name, email, password="secret123"):
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )


def _login(client, email, password="password123"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestRegister:

    def test_first_user_is_admin_then_employees(self, client):
        first = _register(client, "Founder", "founder@crm.test")
        assert first.status_code == 201
        assert first.get_json()["user"]["role"] == "admin"

        second = _register(client, "Hire", "Hire@CRM.test")
        assert second.get_json()["user"]["role"] == "employee"
        assert second.get_json()["user"]["email"] == "hire@crm.test"

    def test_password_hash_never_returned(self, client):
        user = _register(client, "Founder", "founder@crm.test").get_json()["user"]
        assert "password" not in user
        assert "passwordHash" not in user
        assert "password_hash" not in user

    def test_duplicate_email(self, client, seed_data):
        resp = _register(client, "Again", "erin@crm.test")
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "User with this email already exists"

    def test_short_password(self, client):
        resp = _register(client, "Weak", "weak@crm.test", password="123")
        assert resp.status_code == 400

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/register", json={"email": "x@crm.test"})
        assert resp.status_code == 400


class TestLogin:

    def test_login_returns_usable_token(self, client, seed_data):
        resp = _login(client, "Erin@CRM.test")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["id"] == seed_data["emp1"].id

        me = client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"}
        )
        assert me.status_code == 200
        assert me.get_json()["user"]["email"] == "erin@crm.test"

    def test_bad_credentials(self, client, seed_data):
        resp = _login(client, "erin@crm.test", password="wrong-password")
        assert resp.status_code == 401
        assert resp.get_json() == {"success": False, "message": "Invalid credentials"}

    def test_unknown_email_same_message(self, client, seed_data):
        resp = _login(client, "ghost@crm.test")
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid credentials"

    def test_login_history_is_bounded(self, app, client, seed_data):
        limit = app.config["LOGIN_HISTORY_LIMIT"]
        for _ in range(limit + 2):
            assert _login(client, "erin@crm.test").status_code == 200

        assert LoginEvent.query.filter_by(user_id=seed_data["emp1"].id).count() == limit

        resp = client.get(
            f"/api/users/{seed_data['emp1'].id}/login-history",
            headers=seed_data["emp1_headers"],
        )
        assert len(resp.get_json()["loginHistory"]) == limit

    def test_login_history_of_others_admin_only(self, client, seed_data):
        url = f"/api/users/{seed_data['emp1'].id}/login-history"
        assert client.get(url, headers=seed_data["manager_headers"]).status_code == 403
        assert client.get(url, headers=seed_data["admin_headers"]).status_code == 200


class TestTokens:

    def test_garbage_token(self, client, seed_data):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert resp.status_code == 401

    def test_expired_token(self, app, client, seed_data):
        original = app.config["JWT_EXPIRES_DAYS"]
        app.config["JWT_EXPIRES_DAYS"] = -1
        try:
            token = auth_service.issue_token(seed_data["emp1"])
        finally:
            app.config["JWT_EXPIRES_DAYS"] = original
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_deactivated_user_rejected(self, client, seed_data):
        seed_data["emp1"].is_active = False
        db.session.commit()

        resp = client.get("/api/auth/me", headers=seed_data["emp1_headers"])
        assert resp.status_code == 401


class TestPasswords:

    def test_change_password(self, client, seed_data):
        resp = client.post(
            "/api/auth/change-password",
            headers=seed_data["emp1_headers"],
            json={"currentPassword": "password123", "newPassword": "brand-new-pw"},
        )
        assert resp.status_code == 200
        assert _login(client, "erin@crm.test", "brand-new-pw").status_code == 200
        assert _login(client, "erin@crm.test").status_code == 401

    def test_change_password_wrong_current(self, client, seed_data):
        resp = client.post(
            "/api/auth/change-password",
            headers=seed_data["emp1_headers"],
            json={"currentPassword": "nope", "newPassword": "brand-new-pw"},
        )
        assert resp.status_code == 401

    def test_forgot_then_reset(self, client, seed_data):
        resp = client.post("/api/auth/forgot-password", json={"email": "erin@crm.test"})
        assert resp.status_code == 200
        token = db.session.get(User, seed_data["emp1"].id).password_reset_token
        assert token

        resp = client.post(
            "/api/auth/reset-password", json={"token": token, "password": "reset-pw-1"}
        )
        assert resp.status_code == 200
        assert _login(client, "erin@crm.test", "reset-pw-1").status_code == 200

        # one-time token
        again = client.post(
            "/api/auth/reset-password", json={"token": token, "password": "reset-pw-2"}
        )
        assert again.status_code == 400

    def test_forgot_unknown_email(self, client, seed_data):
        resp = client.post("/api/auth/forgot-password", json={"email": "ghost@crm.test"})
        assert resp.status_code == 404

    def test_expired_reset_token(self, client, seed_data):
        token = auth_service.forgot_password("erin@crm.test")
        seed_data["emp1"].password_reset_expires = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.session.commit()

        resp = client.post(
            "/api/auth/reset-password", json={"token": token, "password": "reset-pw-1"}
        )
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Invalid or expired reset token"


class TestUserManagement:

    def test_list_users_staff_only(self, client, seed_data):
        resp = client.get("/api/users", headers=seed_data["manager_headers"])
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 4
        assert "settings" not in resp.get_json()["users"][0]

        assert client.get("/api/users", headers=seed_data["emp1_headers"]).status_code == 403

    def test_employee_reads_only_self(self, client, seed_data):
        own = client.get(f"/api/users/{seed_data['emp1'].id}", headers=seed_data["emp1_headers"])
        assert own.status_code == 200
        other = client.get(f"/api/users/{seed_data['emp2'].id}", headers=seed_data["emp1_headers"])
        assert other.status_code == 403

    def test_update_own_profile(self, client, seed_data):
        resp = client.put(
            f"/api/users/{seed_data['emp1'].id}",
            headers=seed_data["emp1_headers"],
            json={"position": "Account Executive", "bio": "<i>Hi</i> there"},
        )
        assert resp.status_code == 200
        user = resp.get_json()["user"]
        assert user["position"] == "Account Executive"
        assert user["bio"] == "Hi there"

    def test_employee_cannot_promote_self(self, client, seed_data):
        resp = client.put(
            f"/api/users/{seed_data['emp1'].id}",
            headers=seed_data["emp1_headers"],
            json={"role": "admin"},
        )
        assert resp.status_code == 403
        assert db.session.get(User, seed_data["emp1"].id).role == "employee"

    def test_resending_own_role_is_harmless(self, client, seed_data):
        resp = client.put(
            f"/api/users/{seed_data['emp1'].id}",
            headers=seed_data["emp1_headers"],
            json={"role": "employee", "name": "Erin E."},
        )
        assert resp.status_code == 200

    def test_manager_cannot_edit_others(self, client, seed_data):
        resp = client.put(
            f"/api/users/{seed_data['emp1'].id}",
            headers=seed_data["manager_headers"],
            json={"name": "Renamed"},
        )
        assert resp.status_code == 403

    def test_admin_changes_role(self, client, seed_data):
        resp = client.put(
            f"/api/users/{seed_data['emp1'].id}",
            headers=seed_data["admin_headers"],
            json={"role": "manager"},
        )
        assert resp.status_code == 200
        assert resp.get_json()["user"]["role"] == "manager"

    def test_delete_admin_only(self, client, seed_data):
        url = f"/api/users/{seed_data['emp2'].id}"
        assert client.delete(url, headers=seed_data["manager_headers"]).status_code == 403

        resp = client.delete(url, headers=seed_data["admin_headers"])
        assert resp.status_code == 200
        assert db.session.get(User, seed_data["emp2"].id) is None


class TestPreferences:

    def test_update_own_settings(self, client, seed_data):
        resp = client.put(
            f"/api/users/{seed_data['emp1'].id}/settings",
            headers=seed_data["emp1_headers"],
            json={"theme": "dark", "emailNotifications": False},
        )
        assert resp.status_code == 200
        settings = resp.get_json()["settings"]
        assert settings["theme"] == "dark"
        assert settings["emailNotifications"] is False
        assert settings["language"] == "English"

    def test_settings_are_self_only_even_for_admin(self, client, seed_data):
        resp = client.put(
            f"/api/users/{seed_data['emp1'].id}/settings",
            headers=seed_data["admin_headers"],
            json={"theme": "dark"},
        )
        assert resp.status_code == 403

    def test_unknown_settings_key(self, client, seed_data):
        resp = client.put(
            f"/api/users/{seed_data['emp1'].id}/settings",
            headers=seed_data["emp1_headers"],
            json={"favoriteColor": "teal"},
        )
        assert resp.status_code == 400

    def test_security_type_checked(self, client, seed_data):
        url = f"/api/users/{seed_data['emp1'].id}/security"
        headers = seed_data["emp1_headers"]
        assert client.put(url, headers=headers, json={"twoFactorAuth": "yes"}).status_code == 400

        resp = client.put(url, headers=headers, json={"twoFactorAuth": True})
        assert resp.status_code == 200
        assert resp.get_json()["security"]["twoFactorAuth"] is True

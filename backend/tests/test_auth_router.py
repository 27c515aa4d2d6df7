"""Tests for the authentication router."""

from stride.models import SecurityAuditLog, UserSession
from tests.factories import CHROME_MAC, bearer, login, register_and_login


class TestRegister:
    def test_register_success(self, auth_client):
        test_client, _ = auth_client

        response = test_client.post(
            "/api/auth/register",
            json={"email": "New@Example.com", "password": "Password123"},
        )

        assert response.status_code == 201
        assert response.json()["email"] == "new@example.com"
        assert response.json()["two_factor_enabled"] is False

    def test_register_duplicate_email(self, auth_client):
        test_client, _ = auth_client
        payload = {"email": "dup@example.com", "password": "Password123"}

        test_client.post("/api/auth/register", json=payload)
        response = test_client.post("/api/auth/register", json=payload)

        assert response.status_code == 400

    def test_register_weak_password(self, auth_client):
        test_client, _ = auth_client

        response = test_client.post(
            "/api/auth/register", json={"email": "weak@example.com", "password": "password"}
        )
        assert response.status_code == 422


class TestLogin:
    def test_login_records_session(self, auth_client):
        test_client, db_session_maker = auth_client

        tokens = register_and_login(test_client, ip_address="127.0.0.1")

        assert tokens["token_type"] == "bearer"
        assert tokens["session_id"]
        db = db_session_maker()
        record = db.query(UserSession).filter(UserSession.session_id == tokens["session_id"]).one()
        assert record.browser == "Chrome"
        assert record.os == "macOS"
        assert record.ip_address == "127.0.0.1"
        assert record.user_agent == CHROME_MAC
        db.close()

    def test_login_wrong_password(self, auth_client):
        test_client, db_session_maker = auth_client
        register_and_login(test_client)

        response = login(test_client, password="WrongPassword1")

        assert response.status_code == 401
        db = db_session_maker()
        assert db.query(SecurityAuditLog).filter_by(event_type="login_failed").count() == 1
        db.close()

    def test_login_unknown_email(self, auth_client):
        test_client, _ = auth_client

        response = login(test_client, email="nobody@example.com")
        assert response.status_code == 401


class TestCurrentSession:
    def test_me_requires_token(self, auth_client):
        test_client, _ = auth_client

        response = test_client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "NOT_AUTHENTICATED"

    def test_me_with_invalid_token(self, auth_client):
        test_client, _ = auth_client

        response = test_client.get("/api/auth/me", headers=bearer("not-a-jwt"))
        assert response.status_code == 401

    def test_me(self, auth_client):
        test_client, _ = auth_client
        tokens = register_and_login(test_client)

        response = test_client.get("/api/auth/me", headers=bearer(tokens["access_token"]))

        assert response.status_code == 200
        assert response.json()["email"] == "test@example.com"

    def test_logout_revokes_session(self, auth_client):
        test_client, db_session_maker = auth_client
        tokens = register_and_login(test_client)
        headers = bearer(tokens["access_token"])

        assert test_client.post("/api/auth/logout", headers=headers).status_code == 200

        db = db_session_maker()
        record = db.query(UserSession).filter(UserSession.session_id == tokens["session_id"]).one()
        assert record.is_revoked is True
        db.close()
        assert test_client.get("/api/auth/me", headers=headers).status_code == 401

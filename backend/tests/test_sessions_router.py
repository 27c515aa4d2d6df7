"""Tests for the session management router."""

from datetime import UTC, datetime, timedelta

from stride.models import User
from tests.factories import (
    EDGE_WINDOWS,
    FIREFOX_WINDOWS,
    SAFARI_IPHONE,
    add_session,
    bearer,
    login,
    register_and_login,
)


def test_sessions_require_auth(auth_client):
    test_client, _ = auth_client

    assert test_client.get("/api/sessions").status_code == 401
    assert test_client.post("/api/sessions/revoke-others").status_code == 401
    assert test_client.delete("/api/sessions/anything").status_code == 401


def test_list_marks_current_session(auth_client):
    test_client, _ = auth_client
    laptop = register_and_login(test_client, ip_address="10.0.0.1")
    phone = login(test_client, user_agent=SAFARI_IPHONE, ip_address="10.0.0.2").json()

    response = test_client.get("/api/sessions", headers=bearer(phone["access_token"]))

    assert response.status_code == 200
    sessions = response.json()["sessions"]
    assert len(sessions) == 2
    current = [s for s in sessions if s["is_current"]]
    assert [s["session_id"] for s in current] == [phone["session_id"]]
    assert current[0]["device_type"] == "mobile"
    assert current[0]["location"] == {"city": "Local", "country": "Development"}
    assert laptop["session_id"] in {s["session_id"] for s in sessions}


def test_cannot_revoke_current_session(auth_client):
    test_client, _ = auth_client
    tokens = register_and_login(test_client)

    response = test_client.delete(
        f"/api/sessions/{tokens['session_id']}", headers=bearer(tokens["access_token"])
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "SELF_REVOKE_DENIED"


def test_revoke_other_session_signs_it_out(auth_client):
    test_client, _ = auth_client
    laptop = register_and_login(test_client, ip_address="10.0.0.1")
    phone = login(test_client, user_agent=SAFARI_IPHONE, ip_address="10.0.0.2").json()

    response = test_client.delete(
        f"/api/sessions/{phone['session_id']}", headers=bearer(laptop["access_token"])
    )

    assert response.status_code == 200
    assert test_client.get("/api/auth/me", headers=bearer(phone["access_token"])).status_code == 401
    assert test_client.get("/api/auth/me", headers=bearer(laptop["access_token"])).status_code == 200


def test_revoke_foreign_session_is_forbidden(auth_client):
    test_client, _ = auth_client
    alice = register_and_login(test_client, email="alice@example.com")
    bob = register_and_login(test_client, email="bob@example.com", ip_address="10.0.0.9")

    response = test_client.delete(
        f"/api/sessions/{bob['session_id']}", headers=bearer(alice["access_token"])
    )

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "FORBIDDEN"


def test_revoke_others(auth_client):
    test_client, db_session_maker = auth_client
    tokens = register_and_login(test_client, ip_address="10.0.0.1")

    db = db_session_maker()
    user = db.query(User).filter(User.email == "test@example.com").one()
    add_session(db, user.id, "other-1", FIREFOX_WINDOWS, "10.0.0.2")
    add_session(db, user.id, "other-2", EDGE_WINDOWS, "10.0.0.3")
    db.close()

    response = test_client.post(
        "/api/sessions/revoke-others", headers=bearer(tokens["access_token"])
    )

    assert response.status_code == 200
    assert response.json()["revoked_count"] == 2
    sessions = test_client.get("/api/sessions", headers=bearer(tokens["access_token"])).json()
    assert [s["session_id"] for s in sessions["sessions"]] == [tokens["session_id"]]


def test_register_session_is_idempotent(auth_client):
    test_client, _ = auth_client
    tokens = register_and_login(test_client)
    headers = bearer(tokens["access_token"])

    first = test_client.post("/api/sessions", json={"device_id": "laptop-1"}, headers=headers)
    second = test_client.post("/api/sessions", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert len(test_client.get("/api/sessions", headers=headers).json()["sessions"]) == 1


def test_activity_heartbeat(auth_client):
    test_client, _ = auth_client
    tokens = register_and_login(test_client)

    response = test_client.post("/api/sessions/activity", headers=bearer(tokens["access_token"]))

    assert response.status_code == 200
    assert "updated" in response.json()


class TestCleanup:
    def test_requires_cron_secret(self, auth_client):
        test_client, _ = auth_client

        assert test_client.post("/api/sessions/cleanup").status_code == 401
        response = test_client.post(
            "/api/sessions/cleanup", headers={"Authorization": "Bearer wrong"}
        )
        assert response.status_code == 401

    def test_deletes_expired_sessions(self, auth_client):
        test_client, db_session_maker = auth_client
        register_and_login(test_client)

        db = db_session_maker()
        user = db.query(User).filter(User.email == "test@example.com").one()
        add_session(
            db, user.id, "stale", FIREFOX_WINDOWS,
            created_at=datetime.now(UTC) - timedelta(days=120),
        )
        db.close()

        headers = {"Authorization": "Bearer test-cron-secret"}
        response = test_client.post("/api/sessions/cleanup", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"deleted_count": 1}
        assert test_client.post("/api/sessions/cleanup", headers=headers).json() == {
            "deleted_count": 0
        }

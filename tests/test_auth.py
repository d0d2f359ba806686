"""Tests for caller validation."""

from tests.conftest import ADMIN_ID, USER_ID


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_missing_auth(client):
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Missing authorization header"}


def test_invalid_token(client):
    resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired token"


def test_me(client, user_headers):
    resp = client.get("/api/v1/auth/me", headers=user_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == USER_ID
    assert data["email"] == "user@example.com"
    assert data["is_admin"] is False


def test_admin_from_app_metadata(client, admin_headers):
    resp = client.get("/api/v1/auth/me", headers=admin_headers)
    assert resp.json()["id"] == ADMIN_ID
    assert resp.json()["is_admin"] is True


def test_admin_from_role_rpc(client, db, user_headers):
    db.rpc_handlers["has_role"] = lambda params: params["_user_id"] == USER_ID and params["_role"] == "admin"
    resp = client.get("/api/v1/auth/me", headers=user_headers)
    assert resp.json()["is_admin"] is True


def test_token_lookup_is_cached(client, db, user_headers):
    assert client.get("/api/v1/auth/me", headers=user_headers).status_code == 200
    db.auth.users.pop("user-token")
    assert client.get("/api/v1/auth/me", headers=user_headers).status_code == 200

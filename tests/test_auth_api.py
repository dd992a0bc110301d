"""End-to-end tests for the login endpoint."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from fastapi.testclient import TestClient

from userapi.config import Settings

USERNAME = "admin"
PASSWORD = "password123"


def test_login_returns_token_with_expected_claims(client: TestClient, settings: Settings) -> None:
    before = datetime.now(timezone.utc)
    response = client.post("/api/auth/login", json={"username": USERNAME, "password": PASSWORD})

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["message"] == "Login successful"

    claims = jwt.decode(
        payload["token"],
        settings.jwt_secret,
        algorithms=["HS256"],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )
    assert claims["sub"] == USERNAME
    assert claims["role"] == "Admin"

    expires_at = datetime.fromisoformat(payload["expiresAt"].replace("Z", "+00:00"))
    assert expires_at == datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
    assert timedelta(minutes=59) <= expires_at - before <= timedelta(hours=1, seconds=5)


def test_login_rejects_wrong_password(client: TestClient) -> None:
    response = client.post("/api/auth/login", json={"username": USERNAME, "password": "nope"})

    assert response.status_code == 401
    payload = response.json()
    assert "token" not in payload
    assert payload["statusCode"] == 401
    assert payload["message"] == "Authentication failed"
    assert payload["details"] == "Invalid username or password"


def test_login_does_not_reveal_unknown_users(client: TestClient) -> None:
    unknown = client.post("/api/auth/login", json={"username": "ghost", "password": PASSWORD})
    wrong = client.post("/api/auth/login", json={"username": USERNAME, "password": "nope"})

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json()["details"] == wrong.json()["details"]


def test_login_is_reachable_with_a_stale_token(client: TestClient) -> None:
    response = client.post(
        "/api/auth/login",
        json={"username": USERNAME, "password": PASSWORD},
        headers={"Authorization": "Bearer stale.token.value"},
    )
    assert response.status_code == 200


def test_login_with_missing_fields_is_a_validation_failure(client: TestClient) -> None:
    response = client.post("/api/auth/login", json={"username": USERNAME})

    assert response.status_code == 400
    payload = response.json()
    assert payload["message"] == "Validation failed"
    assert "password" in payload["details"]


def test_issued_token_unlocks_user_routes(client: TestClient) -> None:
    login = client.post("/api/auth/login", json={"username": USERNAME, "password": PASSWORD})
    token = login.json()["token"]

    response = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200

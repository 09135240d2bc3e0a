"""
tests/test_api_routes.py -- Integration tests for the /api/v1/auth endpoints.

Covers:
  - register returns 201 with account + token pair and Cache-Control: no-store
  - duplicate registration returns 409, policy violations 400, bad bodies 422
  - login success, and one identical 401 body for every credential failure
  - refresh returns a new access token; access tokens and revoked refresh
    tokens are rejected with 401
  - logout revokes the pair and is repeatable
  - GET /auth/me requires a valid Bearer access token
  - the credential hash never appears in any response body
"""

from __future__ import annotations

import itertools

import pytest

PASSWORD = "Abc12345!"
_counter = itertools.count()


def _email() -> str:
    return f"user{next(_counter)}@x.com"


def _register(client, email: str | None = None) -> dict:
    resp = client.post("/api/v1/auth/register", json={"email": email or _email(), "password": PASSWORD})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestRegister:
    def test_created(self, api_client):
        client, _ = api_client
        email = _email()
        resp = client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": PASSWORD, "given_name": "Ada"},
        )
        assert resp.status_code == 201
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["account"]["email"] == email
        assert data["account"]["given_name"] == "Ada"
        assert data["account"]["is_active"] is True
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 900
        assert data["access_token"] and data["refresh_token"]
        assert "credential_hash" not in resp.text
        assert "$2b$" not in resp.text

    def test_duplicate(self, api_client):
        client, _ = api_client
        email = _email()
        _register(client, email)
        resp = client.post("/api/v1/auth/register", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "already_exists"

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "not-an-email", "password": PASSWORD},
            {"email": "weak@x.com", "password": "password"},
        ],
    )
    def test_policy_violation(self, api_client, body):
        client, _ = api_client
        resp = client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_missing_field(self, api_client):
        client, _ = api_client
        resp = client.post("/api/v1/auth/register", json={"email": _email()})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestLogin:
    def test_success(self, api_client):
        client, _ = api_client
        email = _email()
        _register(client, email)
        resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["account"]["email"] == email
        assert data["account"]["last_login_at"] is not None

    def test_failures_share_one_response(self, api_client):
        client, service = api_client
        email = _email()
        created = _register(client, email)

        unknown = client.post("/api/v1/auth/login", json={"email": "ghost@x.com", "password": PASSWORD})
        wrong = client.post("/api/v1/auth/login", json={"email": email, "password": "Wrong12345!"})
        service.accounts.deactivate(created["account"]["id"])
        inactive = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})

        for resp in (unknown, wrong, inactive):
            assert resp.status_code == 401
            assert resp.headers["www-authenticate"] == "Bearer"
        assert unknown.json() == wrong.json() == inactive.json()
        assert unknown.json()["error"]["code"] == "invalid_credentials"


class TestRefresh:
    def test_new_access_token(self, api_client):
        client, service = api_client
        created = _register(client)
        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": created["refresh_token"]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert service.codec.verify(data["access_token"]).account_id == created["account"]["id"]

    def test_access_token_rejected(self, api_client):
        client, _ = api_client
        created = _register(client)
        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": created["access_token"]})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"


class TestLogout:
    def test_revokes_refresh_token(self, api_client):
        client, _ = api_client
        created = _register(client)
        pair = {"access_token": created["access_token"], "refresh_token": created["refresh_token"]}

        resp = client.post("/api/v1/auth/logout", json=pair)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Logged out."

        assert client.post("/api/v1/auth/logout", json=pair).status_code == 200

        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": created["refresh_token"]})
        assert resp.status_code == 401
        assert resp.json()["error"]["message"] == "Token has been revoked."

    def test_garbage_token(self, api_client):
        client, _ = api_client
        created = _register(client)
        resp = client.post(
            "/api/v1/auth/logout",
            json={"access_token": created["access_token"], "refresh_token": "garbage"},
        )
        assert resp.status_code == 401


class TestMe:
    def test_current_account(self, api_client):
        client, _ = api_client
        created = _register(client)
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {created['access_token']}"})
        assert resp.status_code == 200
        assert resp.json()["id"] == created["account"]["id"]
        assert "credential_hash" not in resp.json()

    def test_missing_header(self, api_client):
        client, _ = api_client
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_refresh_token_rejected(self, api_client):
        client, _ = api_client
        created = _register(client)
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {created['refresh_token']}"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_token"

    def test_wrong_scheme(self, api_client):
        client, _ = api_client
        created = _register(client)
        resp = client.get("/api/v1/auth/me", headers={"Authorization": f"Basic {created['access_token']}"})
        assert resp.status_code == 401

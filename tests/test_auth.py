"""Tests for bearer-token authentication."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpers import TEST_JWT_SECRET, _create_token
from staybook.api.factory import create_app
from staybook.domain.access import Principal

GUEST = Principal(id="u-1", role="guest", email="ana@example.com", first_name="Ana", last_name="Silva")


@pytest.fixture
def auth_env(monkeypatch):
    monkeypatch.setenv("AUTH_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.delenv("AUTH_JWT_ISSUER", raising=False)
    monkeypatch.delenv("AUTH_JWT_AUDIENCE", raising=False)


def _whoami(token: str | None = None, header: str | None = None):
    headers = {}
    if header is not None:
        headers["Authorization"] = header
    elif token is not None:
        headers["Authorization"] = f"Bearer {token}"
    return TestClient(create_app()).get("/auth/whoami", headers=headers)


class TestAuthHeader:
    def test_missing_header(self, auth_env):
        response = _whoami()
        assert response.status_code == 401
        assert "Missing authorization header" in response.json()["detail"]

    def test_malformed_header(self, auth_env):
        assert _whoami(header="Token abc").status_code == 401


class TestTokenValidation:
    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("AUTH_JWT_SECRET", raising=False)
        response = _whoami(_create_token())
        assert response.status_code == 401
        assert response.json()["detail"] == "Auth not configured"

    def test_wrong_secret(self, auth_env):
        assert _whoami(_create_token(secret="another-secret-of-sufficient-length")).status_code == 401

    def test_expired(self, auth_env):
        response = _whoami(_create_token(exp=int(time.time()) - 3600))
        assert response.status_code == 401
        assert response.json()["detail"] == "Token expired"

    def test_issuer_checked_when_configured(self, auth_env, monkeypatch):
        monkeypatch.setenv("AUTH_JWT_ISSUER", "https://auth.staybook.test")
        assert _whoami(_create_token(iss="https://evil.test")).status_code == 401
        assert _whoami(_create_token()).status_code == 401

    def test_audience_checked_when_configured(self, auth_env, monkeypatch):
        monkeypatch.setenv("AUTH_JWT_AUDIENCE", "staybook")
        assert _whoami(_create_token(aud="other")).status_code == 401

    def test_garbage(self, auth_env):
        assert _whoami("not-a-jwt").status_code == 401


class TestPrincipalResolution:
    def test_user_not_found(self, auth_env):
        with patch("staybook.api.auth._get_user_from_db", return_value=None):
            response = _whoami(_create_token(sub="ghost"))
        assert response.status_code == 403
        assert response.json()["detail"] == "User not found"

    def test_valid_token_and_user(self, auth_env):
        with patch("staybook.api.auth._get_user_from_db", return_value=GUEST) as lookup:
            response = _whoami(_create_token(sub="sub-1"))
        lookup.assert_called_once_with("sub-1")
        assert response.status_code == 200
        assert response.json() == {
            "id": "u-1",
            "role": "guest",
            "email": "ana@example.com",
            "name": "Ana Silva",
        }

    def test_issuer_and_audience_accepted(self, auth_env, monkeypatch):
        monkeypatch.setenv("AUTH_JWT_ISSUER", "https://auth.staybook.test")
        monkeypatch.setenv("AUTH_JWT_AUDIENCE", "staybook")
        token = _create_token(iss="https://auth.staybook.test", aud="staybook")
        with patch("staybook.api.auth._get_user_from_db", return_value=GUEST):
            assert _whoami(token).status_code == 200

    def test_db_lookup_maps_row(self):
        from staybook.api.auth import _get_user_from_db
        from helpers import mock_txn

        row = {
            "id": "u-2",
            "external_subject": "sub-2",
            "email": None,
            "first_name": None,
            "last_name": None,
            "role": "host",
        }
        with mock_txn("staybook.infra.db"), \
             patch("staybook.infra.repositories.users_repository.get_user_by_subject", return_value=row):
            principal = _get_user_from_db("sub-2")
        assert principal == Principal(id="u-2", role="host")

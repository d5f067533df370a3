"""
Tests for the configuration surface.

Tests cover:
- postgres:// URLs normalised to postgresql://
- SSL mode defaults per environment and explicit overrides
- Voter identity with and without trusting X-Forwarded-For
- Static asset mount when STATIC_DIR exists
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from reflectboard.config import Settings
from reflectboard.main import mount_static
from reflectboard.utils import MAX_IDENTITY_LENGTH, get_client_ip


def make_settings(**overrides) -> Settings:
    """Build Settings from explicit values, ignoring any .env file."""
    values = {
        "DATABASE_URL": "sqlite:///./unused.db",
        "ENVIRONMENT": "development",
        "DB_SSL_MODE": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_request(forwarded_for: str = None, client=("9.9.9.9", 4321)) -> Request:
    """Minimal HTTP request scope with an optional X-Forwarded-For header."""
    headers = []
    if forwarded_for is not None:
        headers.append((b"x-forwarded-for", forwarded_for.encode("latin-1")))
    scope = {"type": "http", "method": "POST", "path": "/reflect/1", "headers": headers}
    if client is not None:
        scope["client"] = client
    return Request(scope)


class TestDatabaseUrl:
    """DATABASE_URL normalisation."""

    def test_postgres_scheme_normalised(self):
        settings = make_settings(DATABASE_URL="postgres://u:p@h/db")

        assert settings.DATABASE_URL == "postgresql://u:p@h/db"

    @pytest.mark.parametrize("url", [
        "postgresql://u:p@h/db",
        "sqlite:///./reflectboard.db",
    ])
    def test_other_urls_unchanged(self, url):
        assert make_settings(DATABASE_URL=url).DATABASE_URL == url


class TestSslMode:
    """ssl_mode defaults and overrides."""

    def test_production_requires_ssl(self):
        assert make_settings(ENVIRONMENT="production").ssl_mode == "require"

    def test_production_case_insensitive(self):
        assert make_settings(ENVIRONMENT="Production").ssl_mode == "require"

    def test_development_disables_ssl(self):
        assert make_settings(ENVIRONMENT="development").ssl_mode == "disable"

    def test_explicit_mode_wins(self):
        settings = make_settings(ENVIRONMENT="production", DB_SSL_MODE="verify-full")

        assert settings.ssl_mode == "verify-full"


class TestClientIdentity:
    """get_client_ip with and without X-Forwarded-For trust."""

    def test_trusted_forwarded_for_uses_first_hop(self):
        request = make_request(forwarded_for="6.6.6.6, 10.0.0.1")

        assert get_client_ip(request, trust_forwarded_for=True) == "6.6.6.6"

    def test_untrusted_forwarded_for_uses_socket_peer(self):
        request = make_request(forwarded_for="6.6.6.6")

        assert get_client_ip(request, trust_forwarded_for=False) == "9.9.9.9"

    def test_blank_forwarded_for_falls_back(self):
        request = make_request(forwarded_for=" , 10.0.0.1")

        assert get_client_ip(request, trust_forwarded_for=True) == "9.9.9.9"

    def test_no_client_is_unknown(self):
        request = make_request(client=None)

        assert get_client_ip(request, trust_forwarded_for=False) == "unknown"

    def test_identity_truncated(self):
        request = make_request(forwarded_for="x" * 100)

        assert len(get_client_ip(request)) == MAX_IDENTITY_LENGTH


class TestStaticMount:
    """Static assets served from STATIC_DIR."""

    def test_existing_directory_is_served(self, tmp_path):
        (tmp_path / "js").mkdir()
        (tmp_path / "js" / "main.js").write_text("console.log('reflect');")
        target = FastAPI()

        assert mount_static(target, str(tmp_path)) is True

        with TestClient(target) as test_client:
            response = test_client.get("/static/js/main.js")

        assert response.status_code == 200
        assert response.text == "console.log('reflect');"

    def test_missing_directory_not_mounted(self, tmp_path):
        target = FastAPI()

        assert mount_static(target, str(tmp_path / "missing")) is False

        with TestClient(target) as test_client:
            assert test_client.get("/static/js/main.js").status_code == 404

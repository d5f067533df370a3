"""
Pytest configuration and shared fixtures.

Test environment variables are set here, before the reflectboard package is
imported, so the module-level settings and engine pick them up.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_reflectboard.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("SEED_ON_STARTUP", "false")
os.environ.setdefault("TRUST_FORWARDED_FOR", "true")

import pytest
from fastapi.testclient import TestClient

# Clear settings cache before any app imports to ensure test env vars are used
from reflectboard.config import get_settings
get_settings.cache_clear()

from reflectboard.main import app
from reflectboard.storage import SessionLocal, Base, engine


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Cleanup - drop all tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db():
    """Raw session against a fresh schema, for service-level tests."""
    from reflectboard.models import Message, Reflection  # noqa: F401

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)

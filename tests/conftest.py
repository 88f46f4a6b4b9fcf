"""Shared pytest fixtures for EventHub."""

from __future__ import annotations

import os
import sys
from dataclasses import replace
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("EVENTHUB_DATABASE_URL", "sqlite+pysqlite:///:memory:")

from eventhub.api import create_app
from eventhub.config import settings
from eventhub.crud import create_event, create_venue
from eventhub.database import create_session_factory
from eventhub.models import Base

API_KEY = "test-website-key"
ASSET_BASE_URL = "https://assets.example.com"
AUTH_HEADERS = {"Authorization": f"Bearer {API_KEY}"}


@pytest.fixture(scope="session")
def engine():
    """Reuse a single in-memory SQLite database for fast, isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_database(engine):
    """Reset all tables between tests to guarantee isolation."""

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def app_settings():
    return replace(
        settings,
        website_api_key=API_KEY,
        asset_base_url=ASSET_BASE_URL,
        default_page_limit=50,
        max_page_limit=200,
    )


@pytest.fixture()
def client(app_settings, session_factory):
    """FastAPI test client authenticated with the website API key."""

    app = create_app(settings=app_settings, session_factory=session_factory)
    with TestClient(app, headers=AUTH_HEADERS) as test_client:
        yield test_client


@pytest.fixture()
def venue(db_session):
    venue = create_venue(
        db_session, name="City Tap", address="1 River Walk", capacity=120
    )
    db_session.commit()
    return venue


@pytest.fixture()
def make_event(db_session, venue):
    """Factory creating committed events with sensible public defaults."""

    base_start = datetime(2030, 6, 1, 18, 0)

    def _make(**overrides):
        offset_hours = overrides.pop("offset_hours", 0)
        fields = {
            "venue": venue,
            "title": "City Tap Jazz Brunch",
            "event_type": "Live Music",
            "status": "approved",
            "start_at": base_start + timedelta(hours=offset_hours),
            "venue_space": "Main Bar, Riverside Terrace",
        }
        fields.update(overrides)
        event = create_event(db_session, **fields)
        db_session.commit()
        return event

    return _make

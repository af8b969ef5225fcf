"""Shared fixtures for column discovery and preference tests.

Provides:
- Sample CRM records (deal, person) with nested objects, contact arrays
  and custom fields
- In-memory key/value store, team directory and preference store
- FastAPI app with in-memory services and an async HTTP client
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.sheetsync.config import get_settings
from src.sheetsync.main import create_app, init_services
from src.sheetsync.preferences.kv import InMemoryKeyValueStore
from src.sheetsync.preferences.store import PreferenceStore
from src.sheetsync.preferences.teams import TeamDirectory

CURRENCY_FIELD = "abcdef0123456789abcdef01"


@pytest.fixture
def deal_sample() -> dict:
    """A deal as returned by the CRM, with the usual denormalized extras."""
    return {
        "id": 42,
        "title": "Acme renewal",
        "owner_id": {"id": 9, "name": "Alice", "email": "alice@example.com", "value": 9},
        "org_id": {"name": "Acme", "value": 7, "address": "1 Main St"},
        "org_name": "Acme",
        "person_id": {
            "name": "Bob",
            "value": 3,
            "email": [{"value": "bob@acme.com", "label": "work", "primary": True}],
        },
        "person_name": "Bob",
        "value": 5000,
        "currency": "USD",
        "status": "open",
        "add_time": "2024-01-01 10:00:00",
        "formatted_value": "$5,000",
        "products_count": 2,
        "label": 5,
        "_meta": {"x": 1},
        "custom_fields": {CURRENCY_FIELD: {"value": 100, "currency": "USD"}},
    }


@pytest.fixture
def person_sample() -> dict:
    return {
        "id": 3,
        "name": "Bob",
        "email": [
            {"value": "bob@acme.com", "label": "work", "primary": True},
            {"value": "bob@home.net", "label": "work", "primary": False},
            {"value": "bob@mail.org", "label": "home", "primary": False},
        ],
        "phone": [{"value": "555-0100", "label": "mobile", "primary": True}],
    }


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def teams(kv) -> TeamDirectory:
    return TeamDirectory(kv)


@pytest.fixture
def store(kv, teams) -> PreferenceStore:
    return PreferenceStore(kv, teams)


@pytest.fixture
def app(kv):
    """FastAPI app with in-memory services (lifespan is not run by ASGITransport)."""
    application = create_app()
    init_services(application, kv, get_settings())
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

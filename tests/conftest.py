"""
tests/conftest.py -- Shared test fixtures for AccountHub.

This module provides:
  - FakeClock: settable epoch-millisecond clock for reset expiry tests
  - records / service: in-memory RecordStore and an AuthService built on it
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - api_client: TestClient against the real app with an isolated store

Design: the app fixture uses a named shared-memory SQLite URI (not plain
:memory:) so every worker thread TestClient runs sync handlers on sees the
same database. Unit fixtures use plain sqlite:///:memory:, which RecordStore
pins to a single shared connection.

Environment variables must be set before any project import: Settings is a
cached singleton read at import time by auth.passwords and api.limiter.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# Small scrypt cost keeps the suite fast; rate limits off so repeated logins
# from the single TestClient address never hit 429.
os.environ["SCRYPT_N"] = "1024"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from starlette.routing import NoMatchFound

from api.main import app, unwire_state, wire_state
from auth.reset import ResetTokenManager
from auth.service import AuthService
from auth.store import AccountStore
from live.routes import router as live_router
from store.records import RecordStore

# Mount the live router once, as asgi.py does in production.
try:
    app.url_path_for("updates")
except NoMatchFound:
    app.include_router(live_router, tags=["Live"])


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable returning a fixed epoch-ms time that tests move forward by hand."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def records() -> Generator[RecordStore, None, None]:
    store = RecordStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def service(records: RecordStore, clock: FakeClock) -> AuthService:
    return AuthService(AccountStore(records), ResetTokenManager(ttl_seconds=3600, clock=clock), clock=clock)


# ---------------------------------------------------------------------------
# App fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(records: RecordStore):
    """Return an async context manager that replaces the real lifespan.

    Runs the same wiring as production against the test store.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_state(app, records)
        yield
        unwire_state(app)

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, RecordStore], None, None]:
    """Yield (client, records) for API integration tests.

    One client per test module; tests that need a clean account list use
    unique email addresses rather than resetting the store.
    """
    records = RecordStore(f"sqlite:///file:test_records_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    app.router.lifespan_context = _patch_lifespan(records)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, records

    records.close()

"""
tests/conftest.py -- Shared test fixtures for itdoc tests.

This module provides:
  - make_engine(): an isolated named shared-memory SQLite engine with schema
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient + seeded user + JWT for API integration tests
  - web_client: TestClient with follow_redirects=False for gate / form tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
Each fixture instance gets a random DB name so modules never share state.

Environment must be set before any app import:
  DEBUG=true            -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4       -- bcrypt's minimum cost keeps the suite fast
  *_RATE_LIMIT          -- raised so a module's worth of registrations from
                           one client address is not throttled; see
                           tight_rate_limits for the throttled case
  ALLOWED_HOSTS         -- TestClient sends Host: testserver
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.config import get_settings
from core.database import create_db_engine, init_schema
from orgs.store import OrganizationStore
from web.routes import router as web_router

# Mount the web router once, as asgi.py does in production.
if not any(getattr(r, "path", None) == "/auth/login" for r in app.router.routes):
    app.include_router(web_router, tags=["Web"])

SEED_NAME = "Test Owner"
SEED_EMAIL = "owner@example.com"
SEED_PASSWORD = "ownerpass123"


class ClientContext(NamedTuple):
    client: TestClient
    token: str
    user_id: str
    user_store: UserStore
    org_store: OrganizationStore


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_engine() -> Engine:
    """Create an engine on a fresh named shared-memory SQLite DB with all tables."""
    name = f"itdoc_test_{uuid.uuid4().hex}"
    engine = create_db_engine(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")
    init_schema(engine)
    return engine


def _patch_lifespan(engine: Engine, user_store: UserStore, org_store: OrganizationStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.user_store = user_store
        app.state.org_store = org_store
        yield

    return test_lifespan


def _client_context(**client_kwargs) -> Generator[ClientContext, None, None]:
    engine = make_engine()
    user_store = UserStore(engine)
    org_store = OrganizationStore(engine)

    uid = user_store.create_user(User(name=SEED_NAME, email=SEED_EMAIL, hashed_password=hash_password(SEED_PASSWORD)))
    token = create_access_token(user_id=uid, email=SEED_EMAIL, role="user", expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(engine, user_store, org_store)

    with TestClient(app, raise_server_exceptions=True, **client_kwargs) as client:
        yield ClientContext(client, token, uid, user_store, org_store)

    engine.dispose()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[ClientContext, None, None]:
    """Yield a ClientContext for API integration tests.

    The seeded user (SEED_EMAIL / SEED_PASSWORD) belongs to no organization
    at the start of the module. token is a valid JWT for that user.
    """
    yield from _client_context()


@pytest.fixture(scope="module")
def web_client() -> Generator[ClientContext, None, None]:
    """Yield a ClientContext whose client does not follow redirects.

    follow_redirects=False is essential: the tests assert on redirect
    Location headers, which vanish once the client follows them.
    """
    yield from _client_context(follow_redirects=False)


@pytest.fixture(autouse=True)
def _fresh_cookie_jar(request) -> Generator[None, None, None]:
    """Drop cookies a test picked up (e.g. from a login) before the next test runs.

    The clients are module-scoped; without this a login in one test would
    silently authenticate every test after it.
    """
    yield
    for name in ("api_client", "web_client"):
        if name in request.fixturenames:
            request.getfixturevalue(name).client.cookies.clear()

@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Yield a fresh in-memory engine with all tables, for store unit tests.

    Store tests call the store directly from the test thread, so plain
    :memory: is enough here.
    """
    engine = create_db_engine("sqlite:///:memory:")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def tight_rate_limits(monkeypatch) -> Generator[None, None, None]:
    """Drop login and registration limits to 2/minute with empty counters.

    The limits are read from Settings per request, so patching the cached
    instance takes effect immediately. Counters are cleared on both sides so
    no other test sees the throttled state.
    """
    settings = get_settings()
    monkeypatch.setattr(settings, "login_rate_limit", "2/minute")
    monkeypatch.setattr(settings, "register_rate_limit", "2/minute")
    limiter.reset()
    yield
    limiter.reset()

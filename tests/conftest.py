"""
tests/conftest.py -- Shared test fixtures for TokenGate unit and integration tests.

This module provides:
  - settings: a Settings instance with a fixed key, bcrypt cost 4 and a
    per-test SQLite file
  - db / repository / revocation_store: real SQLAlchemy-backed storage
  - hasher / codec / ledger / manager / service: the auth components wired
    the same way AuthService.from_settings() wires them
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: file-backed SQLite under tmp_path (not shared-cache :memory:) is used
wherever more than one thread touches the database. TestClient runs sync
route handlers on a thread pool, and shared-cache memory databases fail
concurrent writers with an immediate SQLITE_LOCKED instead of honouring the
busy timeout.

bcrypt_rounds=4 is the library minimum; it keeps each hash in the low
milliseconds so the suite stays fast without changing any code path.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set DEBUG before any core import so an accidental get_settings() call in a
# test auto-generates SECRET_KEY instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.accounts import AccountManager
from auth.passwords import CredentialHasher
from auth.revocation import RevocationLedger
from auth.service import AuthService
from auth.store import Database, SQLAccountRepository, SQLRevocationStore
from auth.tokens import TokenCodec
from core.config import Settings

TEST_SECRET_KEY = "k" * 64
STRONG_PASSWORD = "Sup3r$ecret"


def make_settings(db_path, **overrides) -> Settings:
    """Build Settings for tests. _env_file=None keeps a developer's .env out of the run."""
    values = {
        "secret_key": TEST_SECRET_KEY,
        "bcrypt_rounds": 4,
        "database_url": f"sqlite:///{db_path}",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path / "tokengate.db")


@pytest.fixture
def db(settings: Settings) -> Generator[Database, None, None]:
    database = Database.from_settings(settings)
    yield database
    database.close()


@pytest.fixture
def repository(db: Database) -> SQLAccountRepository:
    return SQLAccountRepository(db)


@pytest.fixture
def revocation_store(db: Database) -> SQLRevocationStore:
    return SQLRevocationStore(db)


@pytest.fixture
def hasher(settings: Settings) -> CredentialHasher:
    return CredentialHasher.from_settings(settings)


@pytest.fixture
def codec(settings: Settings) -> TokenCodec:
    return TokenCodec.from_settings(settings)


@pytest.fixture
def ledger(revocation_store: SQLRevocationStore) -> RevocationLedger:
    return RevocationLedger(revocation_store)


@pytest.fixture
def manager(repository: SQLAccountRepository) -> AccountManager:
    return AccountManager(repository)


@pytest.fixture
def service(settings: Settings, db: Database) -> AuthService:
    return AuthService.from_settings(settings, db)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(db: Database, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test components into app.state so TestClient routes use
    an isolated database rather than the configured one.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.db = db
        app.state.auth_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) for API integration tests.

    One database per test module. The client's base_url uses a host the
    TrustedHostMiddleware accepts; the default "testserver" would be rejected.
    """
    settings = make_settings(tmp_path_factory.mktemp("api") / "tokengate.db")
    database = Database.from_settings(settings)
    auth_service = AuthService.from_settings(settings, database)

    app.router.lifespan_context = _patch_lifespan(database, auth_service)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client, auth_service

    database.close()

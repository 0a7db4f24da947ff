"""
tests/conftest.py -- Shared test fixtures for Gatehouse.

This module provides:
  - store / hasher / issuer: isolated building blocks for unit tests
  - local_flow / refresh_flow / federated_flow: flows wired to those blocks
  - fake_provider: an in-memory IdentityProvider (no network)
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: the api_client store uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

bcrypt runs at 4 rounds in tests; production defaults to 12.

The DEBUG env var is set before any app import so get_settings() generates
dev token secrets instead of raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# Set DEBUG before any api/core import so get_settings() can auto-generate
# token secrets in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_services
from auth.errors import Unauthorized
from auth.federated import FederatedAuthFlow
from auth.local import LocalAuthFlow
from auth.models import ProviderIdentity
from auth.passwords import PasswordHasher
from auth.refresh import RefreshFlow
from auth.store import UserStore
from auth.tokens import TokenIssuer, TokenSettings
from core.config import Settings

TEST_ROUNDS = 4

ACCESS_SECRET = "a" * 32 + "-access-secret-for-tests"
REFRESH_SECRET = "r" * 32 + "-refresh-secret-for-tests"


# ---------------------------------------------------------------------------
# Fake identity provider
# ---------------------------------------------------------------------------


class FakeIdentityProvider:
    """IdentityProvider backed by two dicts. Unknown inputs raise Unauthorized.

    Set outage to an exception to make every call raise it.
    """

    def __init__(self) -> None:
        self.outage: Exception | None = None
        self.codes: dict[str, str] = {}  # authorization code -> provider access token
        self.identities: dict[str, ProviderIdentity] = {}  # provider access token -> identity

    def add(self, code: str, token: str, identity: ProviderIdentity) -> None:
        self.codes[code] = token
        self.identities[token] = identity

    def exchange_code(self, code: str) -> str:
        if self.outage is not None:
            raise self.outage
        try:
            return self.codes[code]
        except KeyError:
            raise Unauthorized("Invalid code.") from None

    def fetch_identity(self, access_token: str) -> ProviderIdentity:
        if self.outage is not None:
            raise self.outage
        try:
            return self.identities[access_token]
        except KeyError:
            raise Unauthorized("GitHub access token is invalid or expired.") from None


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_ROUNDS)


@pytest.fixture
def token_settings() -> TokenSettings:
    return TokenSettings(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        access_ttl=900,
        refresh_ttl=7 * 24 * 3600,
    )


@pytest.fixture
def issuer(token_settings: TokenSettings) -> TokenIssuer:
    return TokenIssuer(token_settings)


@pytest.fixture
def local_flow(store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer) -> LocalAuthFlow:
    return LocalAuthFlow(store, hasher, issuer)


@pytest.fixture
def refresh_flow(store: UserStore, issuer: TokenIssuer) -> RefreshFlow:
    return RefreshFlow(store, issuer)


@pytest.fixture
def fake_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def federated_flow(store: UserStore, fake_provider: FakeIdentityProvider, issuer: TokenIssuer) -> FederatedAuthFlow:
    return FederatedAuthFlow(store, fake_provider, issuer)


# ---------------------------------------------------------------------------
# API client -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, user_store: UserStore, provider: FakeIdentityProvider):
    """Return an async context manager that replaces the real lifespan.

    Wires the isolated store through build_services() -- the same code path
    production uses -- then swaps in a GitHub flow backed by the fake provider.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_services(app, settings, user_store)
        app.state.federated_flow = FederatedAuthFlow(
            user_store, provider, app.state.local_flow.issuer
        )
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, FakeIdentityProvider], None, None]:
    """Yield (client, fake_provider) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers, dependency injection and exception handlers.
    base_url must be an allowed host for TrustedHostMiddleware.
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    settings = Settings(
        debug=True,
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        bcrypt_rounds=TEST_ROUNDS,
    )
    provider = FakeIdentityProvider()

    app.router.lifespan_context = _patch_lifespan(settings, user_store, provider)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client, provider

    user_store.close()

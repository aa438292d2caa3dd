"""
tests/conftest.py -- Shared test fixtures for LoanDesk.

This module provides:
  - settings / codec: a fixed-key Settings and TokenCodec for the whole session
  - user_store / loan_store / authenticator: fresh in-memory stores per test
  - api_client: TestClient over the real app with isolated stores and one
    account (plus token) per role

Design: Named shared-memory SQLite URIs (not plain :memory:) back the API
fixture because TestClient runs sync route handlers and the auth middleware's
store lookup in a thread pool. Plain :memory: DBs are per-connection and would
present a blank schema to each worker thread. Unit-test fixtures run on one
thread and use plain :memory:.

DEBUG, SECRET_KEY and DATABASE_URL must be set before any api/auth import so
get_settings() never touches a real .env or the on-disk database.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# CRITICAL: set before importing anything that calls get_settings().
TEST_SECRET = "loandesk-test-secret-key-0123456789abcdef"
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", TEST_SECRET)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.authenticator import Authenticator
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import TokenCodec, hash_password
from core.config import Settings
from loans.service import LoanService
from loans.store import LoanStore

# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def settings() -> Settings:
    return Settings(secret_key=TEST_SECRET, token_expire_ms=3_600_000)


@pytest.fixture(scope="session")
def codec(settings: Settings) -> TokenCodec:
    return TokenCodec.from_settings(settings)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def loan_store() -> Generator[LoanStore, None, None]:
    store = LoanStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def authenticator(user_store: UserStore, codec: TokenCodec) -> Authenticator:
    return Authenticator(user_store, codec)


@pytest.fixture
def loan_service(loan_store: LoanStore) -> LoanService:
    return LoanService(loan_store)


# ---------------------------------------------------------------------------
# API harness
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    """Everything an API test needs: the client, the stores behind it, and tokens."""

    client: TestClient
    codec: TokenCodec
    user_store: UserStore
    loan_store: LoanStore
    tokens: dict[Role, str] = field(default_factory=dict)
    user_ids: dict[Role, int] = field(default_factory=dict)

    def headers(self, role: Role) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens[role]}"}

    def create_user(self, username: str, role: Role = Role.CUSTOMER, password: str = "pass1234") -> tuple[int, str]:
        """Create an account directly in the store and return (user_id, token)."""
        uid = self.user_store.create_user(User(username=username, hashed_password=hash_password(password), role=role))
        return uid, self.codec.issue(username, role).token


def _make_test_stores(db_suffix: str) -> tuple[UserStore, LoanStore]:
    """Create isolated named shared-memory SQLite stores for one test module."""
    user_store = UserStore(f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true")
    loan_store = LoanStore(f"sqlite:///file:test_loans_{db_suffix}?mode=memory&cache=shared&uri=true")
    return user_store, loan_store


def _patch_lifespan(user_store: UserStore, loan_store: LoanStore, codec: TokenCodec):
    """Return a lifespan that wires pre-created test stores into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.token_codec = codec
        app.state.user_store = user_store
        app.state.loan_store = loan_store
        app.state.authenticator = Authenticator(user_store, codec)
        app.state.loan_service = LoanService(loan_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request, codec: TokenCodec) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness with one active account and token per role.

    Accounts: admin/adminpass1, analyst/analystpass1, customer/customerpass1.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, loan_store = _make_test_stores(suffix)
    harness = ApiHarness(client=None, codec=codec, user_store=user_store, loan_store=loan_store)

    for role in Role:
        username = role.value.lower()
        uid = user_store.create_user(
            User(username=username, hashed_password=hash_password(f"{username}pass1"), role=role)
        )
        harness.user_ids[role] = uid
        harness.tokens[role] = codec.issue(username, role).token

    app.router.lifespan_context = _patch_lifespan(user_store, loan_store, codec)

    with TestClient(app, raise_server_exceptions=True) as client:
        harness.client = client
        yield harness

    user_store.close()
    loan_store.close()

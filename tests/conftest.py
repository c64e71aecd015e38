"""
tests/conftest.py -- Shared test fixtures for the auth service.

This module provides:
  - settings:       a Settings object with a fixed 40-char key and memory backends
  - hasher:         a small PasswordHashingPool, shut down after the test
  - email_client:   RecordingEmailClient -- captures 2FA codes instead of sending
  - fake_redis:     FakeRedis -- the slice of redis.asyncio.Redis the cache/
                    backends use, with TTL capture and a failure switch
  - auth_service:   AuthService wired to in-memory stores
  - api_client:     (TestClient, RecordingEmailClient) over the real FastAPI app
                    with a patched lifespan

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError when
api/main.py is imported.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from api.main import app
from auth.banned_tokens import InMemoryBannedTokenStore
from auth.credentials import Email
from auth.notifier import EmailClient
from auth.passwords import PasswordHashingPool
from auth.service import AuthService
from auth.store import InMemoryUserStore
from auth.tokens import TokenService
from auth.two_fa import InMemoryTwoFACodeStore
from core.config import Settings

TEST_SECRET_KEY = "test-secret-key-0123456789abcdefghijkl"

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class RecordingEmailClient(EmailClient):
    """Keeps every message in memory so tests can read the 2FA code."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    async def send_email(self, recipient: Email, subject: str, content: str) -> None:
        self.sent.append((recipient.value, subject, content))

    def last_code_for(self, email: str) -> str:
        for recipient, _subject, content in reversed(self.sent):
            if recipient == email:
                return content
        raise AssertionError(f"No e-mail sent to {email}")


class FakeRedis:
    """In-process stand-in for the redis.asyncio client commands used by cache/store.py.

    ttls records the `ex=` passed on the last SET of each key. Setting
    fail=True makes every command raise a redis ConnectionError.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def exists(self, *keys: str) -> int:
        self._check()
        return sum(1 for k in keys if k in self.data)

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for k in keys:
            if self.data.pop(k, None) is not None:
                self.ttls.pop(k, None)
                removed += 1
        return removed

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        secret_key=TEST_SECRET_KEY,
        user_store_backend="memory",
        token_store_backend="memory",
        two_fa_store_backend="memory",
        token_expire_seconds=600,
        banned_token_ttl_seconds=600,
        password_hash_workers=2,
    )


@pytest.fixture
def hasher() -> Generator[PasswordHashingPool, None, None]:
    pool = PasswordHashingPool(max_workers=2)
    yield pool
    pool.shutdown()


@pytest.fixture
def email_client() -> RecordingEmailClient:
    return RecordingEmailClient()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def auth_service(settings: Settings, hasher: PasswordHashingPool, email_client: RecordingEmailClient) -> AuthService:
    return AuthService(
        user_store=InMemoryUserStore(hasher),
        banned_token_store=InMemoryBannedTokenStore(),
        two_fa_code_store=InMemoryTwoFACodeStore(),
        email_client=email_client,
        tokens=TokenService(settings),
        hasher=hasher,
    )


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(settings: Settings, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test AuthService into app.state so TestClient routes see
    isolated in-memory stores rather than a real database or Redis.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture
def api_client(
    settings: Settings, auth_service: AuthService, email_client: RecordingEmailClient
) -> Generator[tuple[TestClient, RecordingEmailClient], None, None]:
    """Yield (client, email_client) for route integration tests.

    Each test gets fresh stores, so signups in one test never collide with
    another. The email_client is the one the AuthService sends 2FA codes to.
    """
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(settings, auth_service)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, email_client
    app.router.lifespan_context = original

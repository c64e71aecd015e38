"""
tests/test_lifespan.py -- Startup wiring and shutdown in api/main.py.

Unlike the route tests, these run the app's real lifespan, so backend
selection from Settings, create_schema(), and the shutdown sequence are all
exercised.

Covers:
  - SQL user store + in-memory ban list / challenges built from Settings,
    then signup -> login -> verify-token -> logout -> verify-token end to end
  - build_* helpers return the Redis backends when configured
  - a close() that raises does not stop the other resources from closing
  - a failed startup still shuts the hashing pool down
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import api.main as api_main
from api.main import app, build_banned_token_store, build_two_fa_code_store, build_user_store, lifespan
from auth.banned_tokens import InMemoryBannedTokenStore
from auth.passwords import PasswordHashingPool
from auth.store import InMemoryUserStore, SQLUserStore
from auth.two_fa import InMemoryTwoFACodeStore
from cache.store import RedisBannedTokenStore, RedisTwoFACodeStore
from core.config import Settings

SECRET_KEY = "lifespan-test-secret-key-0123456789abcdef"
PASSWORD = "Password123"


class RecordingPool(PasswordHashingPool):
    instances: list["RecordingPool"] = []

    def __init__(self, max_workers: int = 4) -> None:
        super().__init__(max_workers=max_workers)
        self.shut_down = False
        RecordingPool.instances.append(self)

    def shutdown(self) -> None:
        super().shutdown()
        self.shut_down = True


class ClosingUserStore(InMemoryUserStore):
    closed = False

    async def close(self) -> None:
        self.closed = True


class ClosingTwoFACodeStore(InMemoryTwoFACodeStore):
    closed = False

    async def close(self) -> None:
        self.closed = True


class BrokenBannedTokenStore(InMemoryBannedTokenStore):
    async def close(self) -> None:
        raise RuntimeError("close failed")


@pytest.fixture
def recording_pool(monkeypatch) -> type[RecordingPool]:
    RecordingPool.instances = []
    monkeypatch.setattr(api_main, "PasswordHashingPool", RecordingPool)
    return RecordingPool


def test_real_lifespan_wires_sql_backend(tmp_path: Path, monkeypatch, recording_pool) -> None:
    settings = Settings(
        secret_key=SECRET_KEY,
        user_store_backend="sql",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'users.db'}",
        token_store_backend="memory",
        two_fa_store_backend="memory",
        password_hash_workers=1,
    )
    monkeypatch.setattr(api_main, "get_settings", lambda: settings)

    with TestClient(app) as client:
        service = app.state.auth_service
        assert isinstance(service.user_store, SQLUserStore)
        assert isinstance(service.banned_token_store, InMemoryBannedTokenStore)
        assert isinstance(service.two_fa_code_store, InMemoryTwoFACodeStore)
        assert app.state.settings is settings

        body = {"email": "life@example.com", "password": PASSWORD, "requires2FA": False}
        assert client.post("/signup", json=body).status_code == 201
        login = client.post("/login", json={"email": "life@example.com", "password": PASSWORD})
        assert login.status_code == 200
        token = login.cookies.get("jwt")
        assert client.post("/verify-token", json={"token": token}).status_code == 200
        assert client.post("/logout").status_code == 200
        assert client.post("/verify-token", json={"token": token}).status_code == 401

    assert (tmp_path / "users.db").exists()
    assert recording_pool.instances and all(p.shut_down for p in recording_pool.instances)


class TestBuilders:
    @pytest.mark.asyncio
    async def test_redis_backends_selected(self) -> None:
        settings = Settings(
            secret_key=SECRET_KEY,
            token_store_backend="redis",
            two_fa_store_backend="redis",
            banned_token_ttl_seconds=900,
            two_fa_code_ttl_seconds=120,
        )
        banned = build_banned_token_store(settings)
        two_fa = build_two_fa_code_store(settings)
        try:
            assert isinstance(banned, RedisBannedTokenStore)
            assert banned.ttl == 900
            assert isinstance(two_fa, RedisTwoFACodeStore)
            assert two_fa.ttl == 120
        finally:
            await banned.close()
            await two_fa.close()

    @pytest.mark.asyncio
    async def test_memory_backends_selected(self, hasher) -> None:
        settings = Settings(
            secret_key=SECRET_KEY,
            user_store_backend="memory",
            token_store_backend="memory",
            two_fa_store_backend="memory",
        )
        assert isinstance(await build_user_store(settings, hasher), InMemoryUserStore)
        assert isinstance(build_banned_token_store(settings), InMemoryBannedTokenStore)
        assert isinstance(build_two_fa_code_store(settings), InMemoryTwoFACodeStore)


class TestShutdown:
    @pytest.mark.asyncio
    async def test_failing_close_does_not_skip_the_rest(self, monkeypatch, settings, recording_pool) -> None:
        user_store = ClosingUserStore(PasswordHashingPool(max_workers=1))
        two_fa_store = ClosingTwoFACodeStore()

        async def fake_build_user_store(_settings, _hasher):
            return user_store

        monkeypatch.setattr(api_main, "get_settings", lambda: settings)
        monkeypatch.setattr(api_main, "build_user_store", fake_build_user_store)
        monkeypatch.setattr(api_main, "build_banned_token_store", lambda _s: BrokenBannedTokenStore())
        monkeypatch.setattr(api_main, "build_two_fa_code_store", lambda _s: two_fa_store)

        with pytest.raises(RuntimeError, match="close failed"):
            async with lifespan(FastAPI()):
                pass

        assert two_fa_store.closed
        assert user_store.closed
        assert recording_pool.instances[0].shut_down
        user_store._hasher.shutdown()

    @pytest.mark.asyncio
    async def test_failed_startup_releases_hashing_pool(self, monkeypatch, settings, recording_pool) -> None:
        async def broken_build_user_store(_settings, _hasher):
            raise RuntimeError("database unreachable")

        monkeypatch.setattr(api_main, "get_settings", lambda: settings)
        monkeypatch.setattr(api_main, "build_user_store", broken_build_user_store)

        with pytest.raises(RuntimeError, match="database unreachable"):
            async with lifespan(FastAPI()):
                pass

        assert recording_pool.instances[0].shut_down

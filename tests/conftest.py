"""Shared fixtures for the media-vault test suite."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio

from media_vault.auth import AuthManager
from media_vault.client import MediaVaultClient
from media_vault.config import ApiProfile, Config, Settings
from media_vault.signals import SignalBus
from media_vault.storage import MemoryStore
from media_vault.token_store import TokenStore

BASE_URL = "http://vault.test/api"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeApi:
    """Scripted Media Vault server for httpx.MockTransport.

    Any non-auth path answers 200 when the request carries one of
    ``valid_tokens`` and 401 otherwise. The refresh endpoint can be held open
    with ``refresh_gate`` to line up concurrent failures.
    """

    def __init__(self) -> None:
        self.valid_tokens = {"new-token"}
        self.refresh_calls = 0
        self.refresh_status = 200
        self.refresh_body: dict = {
            "token": "new-token",
            "refreshToken": "new-refresh",
            "expiresIn": 3600,
        }
        self.refresh_gate: asyncio.Event | None = None
        self.refresh_started = asyncio.Event()
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.log: list[tuple[str, str, str | None]] = []

    def path_of(self, request: httpx.Request) -> str:
        return request.url.path.removeprefix("/api")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = self.path_of(request)
        self.log.append((request.method, path, request.headers.get("Authorization")))

        if path == "/auth/refresh-token":
            self.refresh_calls += 1
            self.refresh_started.set()
            if self.refresh_gate is not None:
                await self.refresh_gate.wait()
            return httpx.Response(self.refresh_status, json=self.refresh_body)

        if (request.method, path) in self.routes:
            return self.routes[(request.method, path)]

        authorization = request.headers.get("Authorization")
        if authorization not in {f"Bearer {t}" for t in self.valid_tokens}:
            return httpx.Response(401, json={"message": "Token expired"})
        return httpx.Response(200, json={"path": path, "tag": request.headers.get("X-Tag")})

    def data_requests(self) -> list[tuple[str, str, str | None]]:
        """Logged requests other than the auth endpoints."""
        return [entry for entry in self.log if not entry[1].startswith("/auth/")]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_settings(tmp_path) -> Settings:
    return Settings(
        profile="local",
        token_type="Bearer",
        token_file=str(tmp_path / "session.json"),
        timeout=5.0,
        refresh_before_expiry=300,
        proactive_refresh=False,
    )


@pytest.fixture
def fake_profiles() -> dict[str, ApiProfile]:
    return {
        "local": ApiProfile(api_base_url=BASE_URL),
        "staging": ApiProfile(api_base_url="https://staging.vault.test/api/", description="Staging"),
    }


@pytest.fixture
def fake_config(fake_settings, fake_profiles) -> Config:
    return Config(settings=fake_settings, profiles=fake_profiles)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def token_store(memory_store, clock) -> TokenStore:
    return TokenStore(memory_store, refresh_before_expiry=300, clock=clock)


@pytest.fixture
def logged_in(token_store) -> TokenStore:
    """Token store holding a pair the fake server no longer accepts."""
    assert token_store.set_tokens("old-token", "old-refresh", 3600)
    return token_store


@pytest.fixture
def signals() -> SignalBus:
    return SignalBus()


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def auth(fake_config, token_store, signals, api):
    manager = AuthManager(fake_config, token_store, signals=signals, transport=api.transport)
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def client(fake_config, token_store, signals, api):
    """Client wired to the fake server, proactive refresh off."""
    manager = AuthManager(fake_config, token_store, signals=signals, transport=api.transport)
    c = MediaVaultClient(fake_config, token_store, manager, transport=api.transport, proactive_refresh=False)
    yield c
    await c.close()

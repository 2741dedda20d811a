"""Pytest fixtures for backend tests."""
import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Generator

# In-memory accounts database; must be set before spinx.accounts.database is imported
os.environ.setdefault("SPINX_DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient

from spinx.accounts.client import AccountClient
from spinx.accounts.database import Base, engine as db_engine, init_db
from spinx.config import Settings
from spinx.logic.engine import RoundEngine
from spinx.logic.models import PersistedState
from spinx.logic.rng import SeededRNG
from spinx.logic.segments import SegmentTable
from spinx.main import app
from spinx.notifications import BufferedNotificationSink, Notifier
from spinx.persistence import MemoryStatePort
from spinx.registry import EngineRegistry


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (large seeded simulations)"
    )


class MockRedis:
    """Mock Redis client for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self.fail_writes = False
        self.set_delays: list[float] = []  # per-SET latency, consumed in order
        self.fail_next_sets = 0

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str) -> bool:
        if self.set_delays:
            await asyncio.sleep(self.set_delays.pop(0))
        if self.fail_next_sets:
            self.fail_next_sets -= 1
            raise ConnectionError("mock redis write failure")
        if self.fail_writes:
            raise ConnectionError("mock redis write failure")
        self._store[key] = value
        return True

    async def delete(self, key: str) -> int:
        if key in self._store:
            del self._store[key]
            return 1
        return 0

    async def aclose(self) -> None:
        pass

    def clear(self) -> None:
        self._store.clear()


class FailingStatePort(MemoryStatePort):
    """State port whose every save raises."""

    def save(self, state) -> None:
        raise ConnectionError("storage unavailable")


class FakeClock:
    """Deterministic clock for history timestamps and token expiry."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_settings(**overrides) -> Settings:
    """Default settings with overrides (never reads the live global)."""
    return Settings(**overrides)


def make_engine(
    seed: int = 42,
    port: MemoryStatePort | None = None,
    table: SegmentTable | None = None,
    initial: PersistedState | None = None,
    **overrides,
) -> RoundEngine:
    """Engine with a seeded RNG, memory port and buffered notifications."""
    return RoundEngine(
        config=make_settings(**overrides),
        table=table,
        initial=initial,
        rng=SeededRNG(seed=seed),
        port=port or MemoryStatePort(),
        notifier=Notifier(BufferedNotificationSink()),
        clock=FakeClock(),
    )


def run_round(engine: RoundEngine) -> None:
    """Tick from BETTING_OPEN through lock, spin and cooldown to the next window."""
    ticks = (
        engine.state.countdown_seconds
        + engine.timing.spin
        + engine.timing.cooldown
    )
    for _ in range(ticks):
        engine.on_timer()


@pytest.fixture
def mock_redis() -> MockRedis:
    """Create a fresh mock Redis for each test."""
    return MockRedis()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_session():
    """Fresh accounts schema per test on the shared in-memory engine."""
    from spinx.accounts.database import SessionLocal

    Base.metadata.drop_all(bind=db_engine)
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def registry() -> EngineRegistry:
    """Registry with memory ports and seeded RNGs; timers are driven by hand."""
    return EngineRegistry(
        port_factory=lambda player_id: MemoryStatePort(),
        rng_factory=lambda: SeededRNG(seed=7),
        start_timers=False,
    )


@pytest.fixture
def account_requests() -> list[httpx.Request]:
    """Requests seen by the mocked account service."""
    return []


@pytest.fixture
def account_transport(account_requests: list[httpx.Request]) -> httpx.MockTransport:
    """Account service stub: deposit/withdraw confirm a balance of 150."""

    def handler(request: httpx.Request) -> httpx.Response:
        account_requests.append(request)
        if request.url.path == "/api/transaction":
            return httpx.Response(200, json={"success": True, "balance": 150.0})
        return httpx.Response(404, json={"success": False, "message": "Not found"})

    return httpx.MockTransport(handler)


@pytest.fixture
def client(
    mock_redis: MockRedis,
    registry: EngineRegistry,
    account_transport: httpx.MockTransport,
    db_session,
) -> Generator[TestClient, None, None]:
    """TestClient with mocked Redis, memory engines and a stubbed account service."""
    from spinx.persistence import redis_connection

    original_client = redis_connection._client
    redis_connection._client = mock_redis
    app.state.registry = registry
    app.state.account_client = AccountClient(
        base_url="http://accounts.test", transport=account_transport
    )

    with TestClient(app) as test_client:
        yield test_client

    redis_connection._client = original_client
    mock_redis.clear()

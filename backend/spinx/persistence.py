"""Persistence port for wallet state, with in-memory and Redis backends."""
import asyncio
import json
import logging
from typing import Protocol

import redis.asyncio as redis

from spinx.config import settings
from spinx.logic.models import PersistedState

logger = logging.getLogger(__name__)


class StatePort(Protocol):
    """
    Key-value persistence of one player's wallet, history and flags.

    save() must return immediately; implementations that do I/O schedule
    the write and log failures themselves. An exception raised by save()
    is treated by the engine as a failed write.
    """

    async def load(self) -> PersistedState | None:
        ...

    def save(self, state: PersistedState) -> None:
        ...


class MemoryStatePort:
    """Keeps the last saved state in memory (tests and headless runs)."""

    def __init__(self, initial: PersistedState | None = None):
        self.state = initial.model_copy(deep=True) if initial else None
        self.writes = 0

    async def load(self) -> PersistedState | None:
        return self.state.model_copy(deep=True) if self.state else None

    def save(self, state: PersistedState) -> None:
        self.state = state.model_copy(deep=True)
        self.writes += 1


class RedisConnection:
    """Shared Redis client for every player's state port."""

    def __init__(self, redis_url: str | None = None):
        self._url = redis_url or settings.redis_url
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            self._client = redis.from_url(self._url, decode_responses=True)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        """Get Redis client, raise if not connected."""
        if self._client is None:
            raise RuntimeError("Redis not connected")
        return self._client


class RedisStatePort:
    """
    One JSON value per player under state:player:<id>.

    Writes are fire-and-forget tasks on the running event loop, chained so
    each write lands after the one scheduled before it; a failed write is
    logged and not retried.
    """

    STATE_PREFIX = "state:player:"

    def __init__(self, player_id: str, connection: RedisConnection):
        self.player_id = player_id
        self._connection = connection
        self._pending: set[asyncio.Task] = set()
        self._last_write: asyncio.Task | None = None
        self.write_failures = 0

    @property
    def key(self) -> str:
        return f"{self.STATE_PREFIX}{self.player_id}"

    async def load(self) -> PersistedState | None:
        """
        Load persisted state.

        Returns None if the player has no saved state yet.
        """
        cached = await self._connection.client.get(self.key)
        if cached is None:
            return None
        return PersistedState.model_validate(json.loads(cached))

    def save(self, state: PersistedState) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._write(json.dumps(state.model_dump(mode="json")), self._last_write)
        )
        self._last_write = task
        self._pending.add(task)
        task.add_done_callback(self._write_done)

    async def _write(self, payload: str, previous: asyncio.Task | None) -> None:
        if previous is not None and not previous.done():
            # Outcome of the previous write is reported by its own callback
            await asyncio.wait([previous])
        await self._connection.client.set(self.key, payload)

    def _write_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.write_failures += 1
            logger.warning(
                "PERSISTENCE_WRITE_FAILED player=%s (count=%d): %s",
                self.player_id,
                self.write_failures,
                error,
            )

    async def flush(self) -> None:
        """Wait for in-flight writes (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Global instance
redis_connection = RedisConnection()

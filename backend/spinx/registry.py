"""Per-player round engines for the game server."""
import asyncio
import logging
from collections.abc import Callable

from spinx.config import Settings, settings as default_settings
from spinx.logic.engine import RoundEngine, RoundTimer
from spinx.logic.rng import RNGBase
from spinx.notifications import BufferedNotificationSink, Notifier
from spinx.persistence import RedisStatePort, StatePort, redis_connection

logger = logging.getLogger(__name__)


def redis_port_factory(player_id: str) -> StatePort:
    return RedisStatePort(player_id, redis_connection)


class EngineRegistry:
    """
    Lazily creates one isolated RoundEngine (and its timer) per player.

    Engines share nothing but configuration; each loads its own persisted
    wallet through its own state port.
    """

    def __init__(
        self,
        port_factory: Callable[[str], StatePort] = redis_port_factory,
        config: Settings | None = None,
        rng_factory: Callable[[], RNGBase | None] = lambda: None,
        start_timers: bool = True,
    ):
        self.port_factory = port_factory
        self.config = config or default_settings
        self.rng_factory = rng_factory
        self.start_timers = start_timers
        self.engines: dict[str, RoundEngine] = {}
        self.timers: dict[str, RoundTimer] = {}
        self._lock = asyncio.Lock()

    async def get(self, player_id: str) -> RoundEngine:
        engine = self.engines.get(player_id)
        if engine is not None:
            return engine

        async with self._lock:
            engine = self.engines.get(player_id)
            if engine is not None:
                return engine

            port = self.port_factory(player_id)
            engine = await RoundEngine.load(
                port,
                config=self.config,
                rng=self.rng_factory(),
                notifier=Notifier(BufferedNotificationSink()),
            )
            self.engines[player_id] = engine
            if self.start_timers:
                timer = RoundTimer(engine)
                timer.start()
                self.timers[player_id] = timer
            else:
                engine.start()
            logger.info("Engine created for player %s", player_id)
            return engine

    async def close(self) -> None:
        """Stop all timers and wait for pending state writes."""
        for timer in self.timers.values():
            await timer.stop()
        for engine in self.engines.values():
            flush = getattr(engine.port, "flush", None)
            if flush is not None:
                await flush()
        self.timers.clear()
        self.engines.clear()

"""Notifications pushed from the round engine to the UI collaborator."""
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Protocol for UI/renderer sinks."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Deliver one notification."""
        ...


class LoggingNotificationSink:
    """Default sink that logs notifications."""

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        logger.info("NOTIFY %s: %s", event_name, data)


class BufferedNotificationSink:
    """Keeps the most recent notifications for clients that poll."""

    def __init__(self, maxlen: int = 100):
        self._events: deque[dict[str, Any]] = deque(maxlen=maxlen)
        self._seq = 0

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        self._seq += 1
        self._events.append({"seq": self._seq, "type": event_name, **data})

    def since(self, seq: int = 0) -> list[dict[str, Any]]:
        return [e for e in self._events if e["seq"] > seq]


@dataclass
class CountdownEvent:
    """Betting window countdown; 0 means betting just closed."""

    round_number: int
    seconds: int


@dataclass
class SpinStartedEvent:
    """Renderer should animate the wheel to segment_index."""

    round_number: int
    segment_index: int
    duration_seconds: int
    decorative: bool


@dataclass
class RoundResolvedEvent:
    """Outcome and updated wallet after a round."""

    round_number: int
    segment_index: int
    segment_label: str
    stake: float
    payout: int
    gift: str | None
    is_win: bool
    message: str
    balance: float
    free_spins: int
    bonus_badge_count: int


@dataclass
class ThresholdRewardEvent:
    """Badge threshold crossed; a free spin was awarded."""

    threshold: int
    free_spins: int
    message: str


@dataclass
class AutoPlayChangedEvent:
    enabled: bool
    reason: str


@dataclass
class BetRejectedEvent:
    """An auto-play bet was refused by the ledger or state machine."""

    round_number: int
    code: str
    message: str


class Notifier:
    """Delivers engine notifications to a sink without ever raising."""

    def __init__(self, sink: NotificationSink | None = None):
        self._sink = sink or LoggingNotificationSink()
        self._sink_errors = 0

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    def set_sink(self, sink: NotificationSink) -> None:
        """Set the sink (useful for testing)."""
        self._sink = sink

    def _safe_emit(self, event_name: str, data: dict[str, Any]) -> None:
        """Sink failures must not break the round timer."""
        try:
            self._sink.emit(event_name, data)
        except Exception as e:
            self._sink_errors += 1
            logger.warning(
                "Notification sink error (count=%d): %s - %s",
                self._sink_errors,
                event_name,
                str(e),
            )

    def countdown(self, event: CountdownEvent) -> None:
        self._safe_emit("countdown", asdict(event))

    def spin_started(self, event: SpinStartedEvent) -> None:
        self._safe_emit("spin_started", asdict(event))

    def round_resolved(self, event: RoundResolvedEvent) -> None:
        self._safe_emit("round_resolved", asdict(event))

    def threshold_reward(self, event: ThresholdRewardEvent) -> None:
        self._safe_emit("threshold_reward", asdict(event))

    def auto_play_changed(self, event: AutoPlayChangedEvent) -> None:
        self._safe_emit("auto_play_changed", asdict(event))

    def bet_rejected(self, event: BetRejectedEvent) -> None:
        self._safe_emit("bet_rejected", asdict(event))

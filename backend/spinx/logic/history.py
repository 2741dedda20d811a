"""Round history and the winners feed shown next to the wheel."""
from spinx.logic.models import HistoryEntry


class HistoryRecorder:
    """
    Newest-first round history capped at max_history entries.

    The feed is a shorter list of display lines, also newest first, capped
    at max_feed. Oldest entries are dropped from both when full.
    """

    def __init__(
        self,
        max_history: int,
        max_feed: int,
        entries: list[HistoryEntry] | None = None,
    ):
        self.max_history = max_history
        self.max_feed = max_feed
        self._history: list[HistoryEntry] = list(entries or [])[:max_history]
        self._feed: list[str] = []

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._history)

    @property
    def feed(self) -> tuple[str, ...]:
        return tuple(self._feed)

    def __len__(self) -> int:
        return len(self._history)

    def append(self, entry: HistoryEntry) -> None:
        self._history.insert(0, entry)
        del self._history[self.max_history:]

        self._feed.insert(0, feed_line(entry))
        del self._feed[self.max_feed:]


def feed_line(entry: HistoryEntry) -> str:
    """Format a history entry as a winners-feed line."""
    prize = entry.gift.name if entry.gift is not None else str(entry.payout)
    return f"Player won {prize} at {entry.timestamp.strftime('%H:%M:%S')}"

"""Round engine state models."""
import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from spinx.logic.segments import Gift


class RoundPhase(str, Enum):
    """Lifecycle phase of the current round."""
    IDLE = "IDLE"
    BETTING_OPEN = "BETTING_OPEN"
    LOCKED = "LOCKED"
    RESOLVING = "RESOLVING"
    POST_RESOLUTION_COOLDOWN = "POST_RESOLUTION_COOLDOWN"


class Bet(BaseModel):
    """
    A player's commitment to one round.

    stake_amount is 0 exactly when uses_free_spin is set. bet_id lets the
    ledger refuse to settle the same bet twice.
    """
    model_config = ConfigDict(frozen=True)

    stake_amount: float = Field(ge=0)
    uses_free_spin: bool = False
    bet_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class WalletState(BaseModel):
    """
    Player wallet.

    Tracks:
    - balance (never negative)
    - free_spins
    - bonus_badge_count (progress toward the badge threshold)
    - auto_play_enabled / sound_enabled preference flags
    """
    balance: float = Field(default=0.0, ge=0)
    free_spins: int = Field(default=0, ge=0)
    bonus_badge_count: int = Field(default=0, ge=0)
    auto_play_enabled: bool = False
    sound_enabled: bool = False


class Resolution(BaseModel):
    """Ledger outcome of settling one bet."""
    payout: int = 0
    gift: Gift | None = None
    is_win: bool = False
    threshold_reward: bool = False


class HistoryEntry(BaseModel):
    """Immutable record of one resolved round."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    segment_label: str
    stake: float = 0.0
    payout: int = 0
    gift: Gift | None = None
    is_win: bool = False


class RoundState(BaseModel):
    """State of the one active round."""
    phase: RoundPhase = RoundPhase.IDLE
    countdown_seconds: int = 0
    pending_bet: Bet | None = None
    segment_index: int | None = None  # drawn outcome while RESOLVING
    round_number: int = 0


class PersistedState(BaseModel):
    """Everything written through the persistence port after a mutation."""
    balance: float = 0.0
    free_spins: int = 0
    bonus_badge_count: int = 0
    history: list[HistoryEntry] = Field(default_factory=list)
    auto_play_enabled: bool = False
    sound_enabled: bool = False

    def wallet(self) -> WalletState:
        return WalletState(
            balance=max(self.balance, 0.0),
            free_spins=max(self.free_spins, 0),
            bonus_badge_count=max(self.bonus_badge_count, 0),
            auto_play_enabled=self.auto_play_enabled,
            sound_enabled=self.sound_enabled,
        )

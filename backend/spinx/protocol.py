"""Game API request/response models."""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from spinx.config import settings
from spinx.logic.engine import RoundEngine
from spinx.logic.models import Bet, HistoryEntry, RoundPhase, WalletState


# === Request Models ===


class BetRequest(BaseModel):
    """POST /bet body. stake may be any JSON value; it is validated server-side."""

    stake: Any = None
    useFreeSpin: bool = Field(default=False)


class StakeRequest(BaseModel):
    """POST /stake body: the stake auto-play uses."""

    stake: Any = None


class ToggleRequest(BaseModel):
    """POST /auto-play and /sound body; omit enabled to flip the flag."""

    enabled: bool | None = None


class WalletTransactionRequest(BaseModel):
    """POST /wallet/transaction body, forwarded to the account service."""

    username: str
    type: Literal["deposit", "withdraw"]
    amount: float


# === Response Models ===


class WalletView(BaseModel):
    balance: float
    freeSpins: int
    bonusBadgeCount: int
    badgeThreshold: int = settings.badge_threshold
    autoPlayEnabled: bool
    soundEnabled: bool

    @classmethod
    def from_wallet(cls, wallet: WalletState, badge_threshold: int) -> "WalletView":
        return cls(
            balance=wallet.balance,
            freeSpins=wallet.free_spins,
            bonusBadgeCount=wallet.bonus_badge_count,
            badgeThreshold=badge_threshold,
            autoPlayEnabled=wallet.auto_play_enabled,
            soundEnabled=wallet.sound_enabled,
        )


class BetView(BaseModel):
    betId: str
    stake: float
    useFreeSpin: bool

    @classmethod
    def from_bet(cls, bet: Bet) -> "BetView":
        return cls(betId=bet.bet_id, stake=bet.stake_amount, useFreeSpin=bet.uses_free_spin)


class RoundView(BaseModel):
    roundNumber: int
    phase: RoundPhase
    countdownSeconds: int
    pendingBet: BetView | None = None


class HistoryItem(BaseModel):
    timestamp: datetime
    segment: str
    stake: float
    payout: int
    gift: str | None = None
    isWin: bool

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistoryItem":
        return cls(
            timestamp=entry.timestamp,
            segment=entry.segment_label,
            stake=entry.stake,
            payout=entry.payout,
            gift=entry.gift.name if entry.gift else None,
            isWin=entry.is_win,
        )


class StateResponse(BaseModel):
    """GET /state response."""

    protocolVersion: str = settings.protocol_version
    wallet: WalletView
    round: RoundView
    history: list[HistoryItem] = Field(default_factory=list)
    feed: list[str] = Field(default_factory=list)
    lastMessage: str = ""

    @classmethod
    def from_engine(cls, engine: RoundEngine, history_limit: int = 50) -> "StateResponse":
        state = engine.state
        pending = state.pending_bet
        return cls(
            wallet=WalletView.from_wallet(engine.wallet, engine.config.badge_threshold),
            round=RoundView(
                roundNumber=state.round_number,
                phase=state.phase,
                countdownSeconds=state.countdown_seconds,
                pendingBet=BetView.from_bet(pending) if pending else None,
            ),
            history=[HistoryItem.from_entry(e) for e in engine.history[:history_limit]],
            feed=list(engine.feed),
            lastMessage=engine.last_message,
        )


class BetResponse(BaseModel):
    """POST /bet response."""

    protocolVersion: str = settings.protocol_version
    roundNumber: int
    bet: BetView
    wallet: WalletView


class ConfigResponse(BaseModel):
    """GET /config response."""

    protocolVersion: str = settings.protocol_version
    currency: str
    segments: list[dict[str, Any]]
    betWindowSeconds: int
    spinSeconds: int
    cooldownSeconds: int
    minStake: float
    referenceStakeUnit: int
    badgeThreshold: int
    maxAutoAttempts: int
    configHash: str


class EventsResponse(BaseModel):
    """GET /events response: notifications newer than ?since=."""

    protocolVersion: str = settings.protocol_version
    events: list[dict[str, Any]] = Field(default_factory=list)

"""Round engine: owns one player's wallet and round, driven by a timer."""
import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from datetime import datetime, timezone
from typing import Any

from spinx.config import Settings, settings as default_settings
from spinx.errors import GameError
from spinx.logic.autoplay import AutoPlayController
from spinx.logic.history import HistoryRecorder
from spinx.logic.ledger import Ledger, parse_stake
from spinx.logic.models import (
    Bet,
    HistoryEntry,
    PersistedState,
    Resolution,
    RoundPhase,
    RoundState,
    WalletState,
)
from spinx.logic.rng import RNGBase
from spinx.logic.segments import GiftKind, Segment, SegmentTable
from spinx.logic.selector import OutcomeSelector
from spinx.logic.state_machine import (
    AnimateSpin,
    BetPlaced,
    DrawOutcome,
    Effect,
    NotifyCountdown,
    OpenBetting,
    OutcomeDrawn,
    ResolveRound,
    RoundEvent,
    RoundTiming,
    Start,
    Tick,
    ensure_bet_allowed,
    step,
)
from spinx.notifications import (
    AutoPlayChangedEvent,
    BetRejectedEvent,
    CountdownEvent,
    Notifier,
    RoundResolvedEvent,
    SpinStartedEvent,
    ThresholdRewardEvent,
)
from spinx.persistence import MemoryStatePort, StatePort

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_segment_table(config: Settings) -> SegmentTable:
    """Default wheel, or the JSON table from configuration."""
    if config.segments_json:
        return SegmentTable.from_json(config.segments_json)
    return SegmentTable()


class RoundEngine:
    """
    The round engine for one player.

    Implements:
    - Round lifecycle (betting window, lock, spin, resolve, cooldown)
    - Bet submission through the ledger
    - Outcome selection with injected randomness
    - History/feed recording
    - Auto-play
    - Persistence after every wallet mutation (best effort)

    The phase only changes inside start() and on_timer(); submit_bet and the
    toggles mutate state reachable from the current phase and never force a
    transition.
    """

    def __init__(
        self,
        config: Settings | None = None,
        table: SegmentTable | None = None,
        rng: RNGBase | None = None,
        port: StatePort | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] | None = None,
        initial: PersistedState | None = None,
    ):
        self.config = config or default_settings
        self.table = table or build_segment_table(self.config)
        self.selector = OutcomeSelector(self.table, rng)
        self.port = port or MemoryStatePort()
        self.notifier = notifier or Notifier()
        self.clock = clock or utc_now
        self.timing = RoundTiming.from_settings(self.config)

        if initial is None:
            wallet = WalletState(
                balance=self.config.initial_balance,
                free_spins=self.config.initial_free_spins,
            )
            entries: list[HistoryEntry] = []
        else:
            wallet = initial.wallet()
            entries = list(initial.history)

        self.ledger = Ledger(wallet, self.config, on_change=self._wallet_changed)
        self.recorder = HistoryRecorder(
            self.config.max_history, self.config.max_feed, entries
        )
        self.autoplay = AutoPlayController(
            self.config.max_auto_attempts, stake=self.config.min_stake
        )
        self.state = RoundState()
        self.last_message = ""
        self.persist_failures = 0
        self._defer_depth = 0
        self._dirty = False

    @classmethod
    async def load(cls, port: StatePort, **kwargs: Any) -> "RoundEngine":
        """Build an engine from whatever the port has persisted."""
        initial = await port.load()
        return cls(port=port, initial=initial, **kwargs)

    # === Read-only views ===

    @property
    def wallet(self) -> WalletState:
        return self.ledger.wallet

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return self.recorder.history

    @property
    def feed(self) -> tuple[str, ...]:
        return self.recorder.feed

    @property
    def phase(self) -> RoundPhase:
        return self.state.phase

    # === Timer entry points ===

    def start(self) -> None:
        """IDLE -> BETTING_OPEN. No-op once running."""
        self._dispatch(Start())

    def on_timer(self) -> None:
        """One timer tick (one second in production)."""
        self._dispatch(Tick())

    # === Player actions ===

    def submit_bet(self, stake: Any = None, use_free_spin: bool = False) -> Bet:
        """
        Place a bet for the current round.

        Raises:
            GameError(BETTING_CLOSED) outside BETTING_OPEN
            GameError(DUPLICATE_BET) if a bet is already pending
            any Ledger.place_bet rejection
        """
        ensure_bet_allowed(self.state)
        bet = self.ledger.place_bet(stake, uses_free_spin=use_free_spin)
        self._dispatch(BetPlaced(bet))
        if not use_free_spin:
            self.autoplay.stake = bet.stake_amount
        return bet

    def set_stake(self, stake: Any) -> float:
        """Set the stake auto-play uses for cash bets."""
        amount = parse_stake(stake)
        self.autoplay.stake = amount
        return amount

    def toggle_auto_play(self, enabled: bool | None = None) -> bool:
        target = not self.wallet.auto_play_enabled if enabled is None else enabled
        if target and not self.wallet.auto_play_enabled:
            self.autoplay.reset()
        self._set_auto_play(target, "toggled")
        return target

    def toggle_sound(self, enabled: bool | None = None) -> bool:
        target = not self.wallet.sound_enabled if enabled is None else enabled
        self.ledger.set_sound(target)
        return target

    def ensure_wallet_settled(self) -> None:
        """Raise BETTING_CLOSED while this round's bet is unresolved."""
        self.ledger.ensure_settled()

    def apply_confirmed_balance(self, balance: Any) -> None:
        """Adopt the balance from a confirmed account transaction."""
        self.ledger.apply_confirmed_balance(balance)

    # === Internals ===

    def _dispatch(self, event: RoundEvent) -> None:
        self.state, effects = step(self.state, event, self.timing)
        for effect in effects:
            self._execute(effect)

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, NotifyCountdown):
            self.notifier.countdown(
                CountdownEvent(round_number=self.state.round_number, seconds=effect.seconds)
            )
        elif isinstance(effect, DrawOutcome):
            self._dispatch(OutcomeDrawn(self.selector.pick()))
        elif isinstance(effect, AnimateSpin):
            self.notifier.spin_started(
                SpinStartedEvent(
                    round_number=effect.round_number,
                    segment_index=effect.segment_index,
                    duration_seconds=effect.duration_seconds,
                    decorative=effect.decorative,
                )
            )
        elif isinstance(effect, ResolveRound):
            self._resolve_round(effect)
        elif isinstance(effect, OpenBetting):
            if effect.after_cooldown and self.wallet.auto_play_enabled:
                self._auto_play_round()

    def _resolve_round(self, effect: ResolveRound) -> None:
        segment = self.table.segment_at(effect.segment_index)
        bet = effect.bet

        with self._batched_persist():
            if bet is not None:
                resolution = self.ledger.resolve(bet, segment)
            else:
                resolution = Resolution()

            entry = HistoryEntry(
                timestamp=self.clock(),
                segment_label=segment.label,
                stake=bet.stake_amount if bet else 0.0,
                payout=resolution.payout,
                gift=resolution.gift,
                is_win=resolution.is_win,
            )
            self.recorder.append(entry)
            self._dirty = True

        message = self._result_message(bet, segment, resolution)
        self.last_message = message
        self.notifier.round_resolved(
            RoundResolvedEvent(
                round_number=effect.round_number,
                segment_index=effect.segment_index,
                segment_label=segment.label,
                stake=entry.stake,
                payout=resolution.payout,
                gift=resolution.gift.name if resolution.gift else None,
                is_win=resolution.is_win,
                message=message,
                balance=self.wallet.balance,
                free_spins=self.wallet.free_spins,
                bonus_badge_count=self.wallet.bonus_badge_count,
            )
        )
        if resolution.threshold_reward:
            threshold = self.config.badge_threshold
            self.notifier.threshold_reward(
                ThresholdRewardEvent(
                    threshold=threshold,
                    free_spins=self.wallet.free_spins,
                    message=(
                        f"You've won a free spin for reaching {threshold} "
                        f"{segment.gift.name}s!"
                    ),
                )
            )

    def _result_message(
        self, bet: Bet | None, segment: Segment, resolution: Resolution
    ) -> str:
        if bet is None:
            return f"No bet this round. The wheel landed on {segment.label}."

        parts: list[str] = []
        gift = resolution.gift
        if gift is not None:
            if gift.kind == GiftKind.FREE_SPIN:
                parts.append("Free spin awarded!")
            elif gift.kind == GiftKind.BONUS_BADGE:
                threshold = self.config.badge_threshold
                collected = (
                    threshold if resolution.threshold_reward else self.wallet.bonus_badge_count
                )
                parts.append(f"{gift.name} collected ({collected}/{threshold}).")
            else:
                parts.append(f"You received: {gift.name}!")

        if resolution.payout > 0:
            parts.append(f"You won {self.config.currency} {resolution.payout}!")
        elif gift is None:
            parts.append("Try again next time!")
        return " ".join(parts)

    def _auto_play_round(self) -> None:
        reason = self.autoplay.exhausted(self.wallet)
        if reason is not None:
            self._set_auto_play(False, reason)
            return

        decision = self.autoplay.next_decision(self.wallet)
        bet: Bet | None = None
        error: GameError | None = None
        try:
            bet = self.submit_bet(decision.stake, use_free_spin=decision.use_free_spin)
        except GameError as e:
            error = e
            self.notifier.bet_rejected(
                BetRejectedEvent(
                    round_number=self.state.round_number,
                    code=e.code.value,
                    message=e.message,
                )
            )
        self.autoplay.record_result(bet, error)

        if self.autoplay.attempts_used >= self.autoplay.max_attempts:
            self._set_auto_play(False, "attempt cap reached")

    def _set_auto_play(self, enabled: bool, reason: str) -> None:
        changed = enabled != self.wallet.auto_play_enabled
        self.ledger.set_auto_play(enabled)
        if changed:
            logger.info("Auto-play %s: %s", "enabled" if enabled else "disabled", reason)
            self.notifier.auto_play_changed(
                AutoPlayChangedEvent(enabled=enabled, reason=reason)
            )

    @contextmanager
    def _batched_persist(self) -> Iterator[None]:
        """Collapse the writes inside the block into one persistence write."""
        self._defer_depth += 1
        try:
            yield
        finally:
            self._defer_depth -= 1
            if self._defer_depth == 0 and self._dirty:
                self._persist()

    def _wallet_changed(self) -> None:
        if self._defer_depth:
            self._dirty = True
        else:
            self._persist()

    def persisted_state(self) -> PersistedState:
        wallet = self.wallet
        return PersistedState(
            balance=wallet.balance,
            free_spins=wallet.free_spins,
            bonus_badge_count=wallet.bonus_badge_count,
            history=list(self.recorder.history),
            auto_play_enabled=wallet.auto_play_enabled,
            sound_enabled=wallet.sound_enabled,
        )

    def _persist(self) -> None:
        self._dirty = False
        try:
            self.port.save(self.persisted_state())
        except Exception as e:
            # In-memory state stays authoritative; the next mutation writes again
            self.persist_failures += 1
            logger.warning(
                "PERSISTENCE_WRITE_FAILED (count=%d): %s",
                self.persist_failures,
                e,
            )


class RoundTimer:
    """Asyncio task that calls engine.on_timer() every tick_seconds."""

    def __init__(self, engine: RoundEngine, tick_seconds: float | None = None):
        self.engine = engine
        self.tick_seconds = (
            engine.config.tick_seconds if tick_seconds is None else tick_seconds
        )
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self.engine.start()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            try:
                self.engine.on_timer()
            except Exception:
                logger.exception("Round timer tick failed")

    async def stop(self) -> None:
        """Stop scheduling future ticks; a resolved round is never rolled back."""
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

"""
Round lifecycle as a pure transition function.

step(state, event, timing) -> (new_state, effects)

The function never performs I/O, draws randomness or touches the ledger.
The engine feeds it events (start, timer ticks, accepted bets, drawn
outcomes) and executes the effects it returns.

    IDLE --start--> BETTING_OPEN --countdown 0--> LOCKED --outcome--> RESOLVING
      --spin done--> POST_RESOLUTION_COOLDOWN --cooldown 0--> BETTING_OPEN
"""
from dataclasses import dataclass

from spinx.config import Settings
from spinx.errors import ErrorCode, GameError
from spinx.logic.models import Bet, RoundPhase, RoundState


@dataclass(frozen=True)
class RoundTiming:
    """Phase durations in timer ticks."""

    bet_window: int
    spin: int
    cooldown: int

    @classmethod
    def from_settings(cls, config: Settings) -> "RoundTiming":
        return cls(
            bet_window=max(config.bet_window_seconds, 1),
            spin=max(config.spin_seconds, 0),
            cooldown=max(config.cooldown_seconds, 0),
        )


# === Events ===


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class BetPlaced:
    bet: Bet


@dataclass(frozen=True)
class OutcomeDrawn:
    segment_index: int


RoundEvent = Start | Tick | BetPlaced | OutcomeDrawn


# === Effects ===


@dataclass(frozen=True)
class NotifyCountdown:
    seconds: int


@dataclass(frozen=True)
class DrawOutcome:
    decorative: bool  # no bet this round; the wheel spins for show


@dataclass(frozen=True)
class AnimateSpin:
    round_number: int
    segment_index: int
    duration_seconds: int
    decorative: bool


@dataclass(frozen=True)
class ResolveRound:
    round_number: int
    segment_index: int
    bet: Bet | None


@dataclass(frozen=True)
class OpenBetting:
    round_number: int
    after_cooldown: bool


Effect = NotifyCountdown | DrawOutcome | AnimateSpin | ResolveRound | OpenBetting


def ensure_bet_allowed(state: RoundState) -> None:
    """Raise unless a new bet may be recorded in this state."""
    if state.phase != RoundPhase.BETTING_OPEN:
        raise GameError(
            ErrorCode.BETTING_CLOSED,
            f"Betting is closed (phase {state.phase.value}).",
        )
    if state.pending_bet is not None:
        raise GameError(
            ErrorCode.DUPLICATE_BET,
            "A bet is already placed for this round.",
        )


def _open_betting(
    state: RoundState, timing: RoundTiming, after_cooldown: bool
) -> tuple[RoundState, list[Effect]]:
    new_state = state.model_copy(
        update={
            "phase": RoundPhase.BETTING_OPEN,
            "countdown_seconds": timing.bet_window,
            "pending_bet": None,
            "segment_index": None,
            "round_number": state.round_number + 1,
        }
    )
    return new_state, [
        OpenBetting(round_number=new_state.round_number, after_cooldown=after_cooldown),
        NotifyCountdown(seconds=timing.bet_window),
    ]


def _resolve(state: RoundState, timing: RoundTiming) -> tuple[RoundState, list[Effect]]:
    # The pending bet moves into the effect and leaves the state in the same
    # step, so a lock can only ever produce one ResolveRound.
    effects: list[Effect] = [
        ResolveRound(
            round_number=state.round_number,
            segment_index=state.segment_index,
            bet=state.pending_bet,
        )
    ]
    new_state = state.model_copy(
        update={
            "phase": RoundPhase.POST_RESOLUTION_COOLDOWN,
            "countdown_seconds": timing.cooldown,
            "pending_bet": None,
            "segment_index": None,
        }
    )
    if timing.cooldown <= 0:
        new_state, open_effects = _open_betting(new_state, timing, after_cooldown=True)
        effects.extend(open_effects)
    return new_state, effects


def step(
    state: RoundState, event: RoundEvent, timing: RoundTiming
) -> tuple[RoundState, list[Effect]]:
    """Apply one event to the round state."""
    phase = state.phase

    if isinstance(event, Start):
        if phase != RoundPhase.IDLE:
            return state, []
        return _open_betting(state, timing, after_cooldown=False)

    if isinstance(event, BetPlaced):
        ensure_bet_allowed(state)
        return state.model_copy(update={"pending_bet": event.bet}), []

    if isinstance(event, OutcomeDrawn):
        if phase != RoundPhase.LOCKED:
            return state, []
        new_state = state.model_copy(
            update={
                "phase": RoundPhase.RESOLVING,
                "segment_index": event.segment_index,
                "countdown_seconds": timing.spin,
            }
        )
        effects: list[Effect] = [
            AnimateSpin(
                round_number=state.round_number,
                segment_index=event.segment_index,
                duration_seconds=timing.spin,
                decorative=state.pending_bet is None,
            )
        ]
        if timing.spin <= 0:
            new_state, resolve_effects = _resolve(new_state, timing)
            effects.extend(resolve_effects)
        return new_state, effects

    if isinstance(event, Tick):
        if phase == RoundPhase.BETTING_OPEN:
            remaining = state.countdown_seconds - 1
            if remaining > 0:
                return (
                    state.model_copy(update={"countdown_seconds": remaining}),
                    [NotifyCountdown(seconds=remaining)],
                )
            new_state = state.model_copy(
                update={"phase": RoundPhase.LOCKED, "countdown_seconds": 0}
            )
            return new_state, [
                NotifyCountdown(seconds=0),
                DrawOutcome(decorative=state.pending_bet is None),
            ]

        if phase == RoundPhase.RESOLVING:
            remaining = state.countdown_seconds - 1
            if remaining > 0:
                return state.model_copy(update={"countdown_seconds": remaining}), []
            return _resolve(state, timing)

        if phase == RoundPhase.POST_RESOLUTION_COOLDOWN:
            remaining = state.countdown_seconds - 1
            if remaining > 0:
                return state.model_copy(update={"countdown_seconds": remaining}), []
            return _open_betting(state, timing, after_cooldown=True)

        # IDLE waits for Start; LOCKED waits for OutcomeDrawn
        return state, []

    raise TypeError(f"Unknown round event: {event!r}")

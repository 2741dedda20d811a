"""Round lifecycle transition tests (pure step function)."""
import pytest

from spinx.errors import ErrorCode, GameError
from spinx.logic.models import Bet, RoundPhase, RoundState
from spinx.logic.state_machine import (
    AnimateSpin,
    BetPlaced,
    DrawOutcome,
    NotifyCountdown,
    OpenBetting,
    OutcomeDrawn,
    ResolveRound,
    RoundTiming,
    Start,
    Tick,
    step,
)

TIMING = RoundTiming(bet_window=5, spin=3, cooldown=2)


def started() -> RoundState:
    state, _ = step(RoundState(), Start(), TIMING)
    return state


def locked(bet: Bet | None = None) -> RoundState:
    state = started()
    if bet is not None:
        state, _ = step(state, BetPlaced(bet), TIMING)
    for _ in range(TIMING.bet_window):
        state, _ = step(state, Tick(), TIMING)
    return state


class TestStart:

    def test_start_opens_first_round(self):
        state, effects = step(RoundState(), Start(), TIMING)
        assert state.phase == RoundPhase.BETTING_OPEN
        assert state.countdown_seconds == 5
        assert state.round_number == 1
        assert effects == [
            OpenBetting(round_number=1, after_cooldown=False),
            NotifyCountdown(seconds=5),
        ]

    def test_start_is_noop_once_running(self):
        state = started()
        again, effects = step(state, Start(), TIMING)
        assert again == state
        assert effects == []

    def test_idle_ignores_ticks(self):
        state, effects = step(RoundState(), Tick(), TIMING)
        assert state.phase == RoundPhase.IDLE
        assert effects == []


class TestBettingWindow:

    def test_countdown_decrements_each_tick(self):
        state, effects = step(started(), Tick(), TIMING)
        assert state.countdown_seconds == 4
        assert effects == [NotifyCountdown(seconds=4)]

    def test_window_closes_at_zero(self):
        state = started()
        for _ in range(4):
            state, _ = step(state, Tick(), TIMING)
        state, effects = step(state, Tick(), TIMING)
        assert state.phase == RoundPhase.LOCKED
        assert effects == [NotifyCountdown(seconds=0), DrawOutcome(decorative=True)]

    def test_lock_with_bet_is_not_decorative(self):
        state = started()
        state, _ = step(state, BetPlaced(Bet(stake_amount=10)), TIMING)
        for _ in range(4):
            state, _ = step(state, Tick(), TIMING)
        _, effects = step(state, Tick(), TIMING)
        assert DrawOutcome(decorative=False) in effects

    def test_bet_recorded_as_pending(self):
        bet = Bet(stake_amount=10)
        state, effects = step(started(), BetPlaced(bet), TIMING)
        assert state.pending_bet == bet
        assert effects == []

    def test_duplicate_bet_rejected(self):
        state, _ = step(started(), BetPlaced(Bet(stake_amount=10)), TIMING)
        with pytest.raises(GameError) as exc:
            step(state, BetPlaced(Bet(stake_amount=20)), TIMING)
        assert exc.value.code == ErrorCode.DUPLICATE_BET

    def test_bet_while_locked_rejected_and_pending_unchanged(self):
        bet = Bet(stake_amount=10)
        state = locked(bet)
        with pytest.raises(GameError) as exc:
            step(state, BetPlaced(Bet(stake_amount=99)), TIMING)
        assert exc.value.code == ErrorCode.BETTING_CLOSED
        assert state.pending_bet == bet

    def test_bet_while_idle_rejected(self):
        with pytest.raises(GameError) as exc:
            step(RoundState(), BetPlaced(Bet(stake_amount=10)), TIMING)
        assert exc.value.code == ErrorCode.BETTING_CLOSED


class TestResolution:

    def test_outcome_starts_spin(self):
        state, effects = step(locked(), OutcomeDrawn(segment_index=3), TIMING)
        assert state.phase == RoundPhase.RESOLVING
        assert state.segment_index == 3
        assert effects == [
            AnimateSpin(round_number=1, segment_index=3, duration_seconds=3, decorative=True)
        ]

    def test_outcome_ignored_outside_locked(self):
        state = started()
        again, effects = step(state, OutcomeDrawn(segment_index=1), TIMING)
        assert again == state
        assert effects == []

    def test_spin_resolves_after_spin_ticks(self):
        bet = Bet(stake_amount=10)
        state, _ = step(locked(bet), OutcomeDrawn(segment_index=1), TIMING)
        state, effects = step(state, Tick(), TIMING)
        state, effects = step(state, Tick(), TIMING)
        assert effects == []
        state, effects = step(state, Tick(), TIMING)
        assert effects == [ResolveRound(round_number=1, segment_index=1, bet=bet)]
        assert state.phase == RoundPhase.POST_RESOLUTION_COOLDOWN
        assert state.pending_bet is None

    def test_cooldown_reopens_betting(self):
        state, _ = step(locked(), OutcomeDrawn(segment_index=0), TIMING)
        for _ in range(TIMING.spin):
            state, _ = step(state, Tick(), TIMING)
        state, _ = step(state, Tick(), TIMING)
        state, effects = step(state, Tick(), TIMING)
        assert state.phase == RoundPhase.BETTING_OPEN
        assert state.round_number == 2
        assert effects[0] == OpenBetting(round_number=2, after_cooldown=True)

    def test_zero_spin_and_cooldown_resolve_immediately(self):
        timing = RoundTiming(bet_window=1, spin=0, cooldown=0)
        state, _ = step(RoundState(), Start(), timing)
        state, _ = step(state, Tick(), timing)
        state, effects = step(state, OutcomeDrawn(segment_index=2), timing)
        kinds = [type(e) for e in effects]
        assert kinds == [AnimateSpin, ResolveRound, OpenBetting, NotifyCountdown]
        assert state.phase == RoundPhase.BETTING_OPEN
        assert state.round_number == 2

    def test_one_resolution_per_round(self):
        """A full cycle emits exactly one ResolveRound."""
        state, _ = step(RoundState(), Start(), TIMING)
        resolves = 0
        for _ in range(TIMING.bet_window):
            state, effects = step(state, Tick(), TIMING)
        state, effects = step(state, OutcomeDrawn(segment_index=0), TIMING)
        for _ in range(TIMING.spin + TIMING.cooldown):
            state, effects = step(state, Tick(), TIMING)
            resolves += sum(isinstance(e, ResolveRound) for e in effects)
        assert resolves == 1

    def test_unknown_event_raises(self):
        with pytest.raises(TypeError):
            step(RoundState(), object(), TIMING)


class TestTiming:

    def test_bet_window_at_least_one(self):
        from spinx.config import Settings

        timing = RoundTiming.from_settings(Settings(bet_window_seconds=0, spin_seconds=-1))
        assert timing.bet_window == 1
        assert timing.spin == 0

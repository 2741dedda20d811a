"""Auto-play: one bet per round on the player's behalf."""
import logging
from dataclasses import dataclass

from spinx.errors import GameError
from spinx.logic.models import Bet, WalletState

logger = logging.getLogger(__name__)


@dataclass
class AutoPlayDecision:
    """What the controller wants the engine to submit this round."""

    stake: float
    use_free_spin: bool


class AutoPlayController:
    """
    Tracks auto-play attempts and chooses each round's bet.

    The engine asks for a decision each time betting reopens after a
    cooldown. A free spin is preferred over cash. The controller reports
    when it must switch itself off: attempt cap reached, or nothing left to
    bet with. Disabling never touches a bet already placed.
    """

    def __init__(self, max_attempts: int, stake: float):
        self.max_attempts = max_attempts
        self.stake = stake
        self.attempts_used = 0

    def reset(self) -> None:
        self.attempts_used = 0

    def exhausted(self, wallet: WalletState) -> str | None:
        """Return why auto-play must stop, or None to keep going."""
        if self.attempts_used >= self.max_attempts:
            return "attempt cap reached"
        if wallet.balance <= 0 and wallet.free_spins <= 0:
            return "no balance or free spins left"
        return None

    def next_decision(self, wallet: WalletState) -> AutoPlayDecision:
        self.attempts_used += 1
        if wallet.free_spins > 0:
            return AutoPlayDecision(stake=0, use_free_spin=True)
        return AutoPlayDecision(stake=self.stake, use_free_spin=False)

    def record_result(self, bet: Bet | None, error: GameError | None) -> None:
        if error is not None:
            logger.warning(
                "Auto-play bet rejected (attempt %d/%d): %s",
                self.attempts_used,
                self.max_attempts,
                error.code.value,
            )
        elif bet is not None:
            logger.debug(
                "Auto-play bet placed (attempt %d/%d): stake=%s free=%s",
                self.attempts_used,
                self.max_attempts,
                bet.stake_amount,
                bet.uses_free_spin,
            )

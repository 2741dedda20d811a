"""Ledger: the only code that mutates wallet balances and bonus counters."""
import logging
import math
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from spinx.config import Settings, settings as default_settings
from spinx.errors import ErrorCode, GameError
from spinx.logic.models import Bet, Resolution, WalletState
from spinx.logic.segments import GiftKind, Segment

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def parse_stake(stake: Any) -> float:
    """Coerce a stake to float, raising INVALID_STAKE for junk input."""
    if isinstance(stake, bool):
        raise GameError(ErrorCode.INVALID_STAKE, "Stake must be a number.")
    try:
        value = float(stake)
    except (TypeError, ValueError):
        raise GameError(ErrorCode.INVALID_STAKE, f"Stake {stake!r} is not a number.")
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise GameError(ErrorCode.INVALID_STAKE, f"Stake {stake!r} is not a valid amount.")
    return value


class Ledger:
    """
    Applies bet and payout rules to a WalletState.

    Rules:
    - placing a cash bet deducts the stake immediately
    - placing a free-spin bet consumes one free spin, stake 0
    - resolving credits the gross payout and applies gift side effects
    - BonusBadge progress converts into one free spin at the threshold

    Every method either completes its whole mutation or raises GameError
    before touching the wallet. After each mutation `on_change` is called
    so the owner can write the new state through the persistence port.
    """

    def __init__(
        self,
        wallet: WalletState,
        config: Settings | None = None,
        on_change: Callable[[], None] | None = None,
    ):
        self.wallet = wallet
        self.config = config or default_settings
        self._on_change = on_change
        self._outstanding: set[str] = set()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def is_outstanding(self, bet: Bet) -> bool:
        return bet.bet_id in self._outstanding

    def place_bet(self, stake: Any, uses_free_spin: bool = False) -> Bet:
        """
        Validate and accept a bet.

        Raises:
            GameError(NO_FREE_SPINS) for a free-spin bet with none left
            GameError(INVALID_STAKE) for non-numeric or sub-minimum stakes
            GameError(INSUFFICIENT_FUNDS) when the stake exceeds the balance
        """
        if uses_free_spin:
            if self.wallet.free_spins <= 0:
                raise GameError(ErrorCode.NO_FREE_SPINS, "No free spins available.")
            bet = Bet(stake_amount=0, uses_free_spin=True)
            self.wallet.free_spins -= 1
        else:
            amount = parse_stake(stake)
            if amount < self.config.min_stake:
                raise GameError(
                    ErrorCode.INVALID_STAKE,
                    f"Stake {amount} is below the minimum of {self.config.min_stake}.",
                )
            if amount > self.wallet.balance:
                raise GameError(
                    ErrorCode.INSUFFICIENT_FUNDS,
                    f"Stake {amount} exceeds balance {self.wallet.balance}.",
                )
            bet = Bet(stake_amount=amount, uses_free_spin=False)
            self.wallet.balance -= amount

        self._outstanding.add(bet.bet_id)
        self._changed()
        return bet

    def compute_payout(self, bet: Bet, segment: Segment) -> int:
        """Cash payout for a bet landing on segment (no side effects)."""
        if segment.cash_value <= 0:
            return 0
        if bet.uses_free_spin:
            return segment.cash_value
        unit = self.config.reference_stake_unit
        return round_half_up(bet.stake_amount * segment.cash_value / unit)

    def resolve(self, bet: Bet, segment: Segment) -> Resolution:
        """
        Settle an outstanding bet against the drawn segment.

        Raises GameError(ROUND_ALREADY_RESOLVED) if the bet was already
        settled or was never placed through this ledger.
        """
        if bet.bet_id not in self._outstanding:
            raise GameError(
                ErrorCode.ROUND_ALREADY_RESOLVED,
                f"Bet {bet.bet_id} is not outstanding.",
            )

        payout = self.compute_payout(bet, segment)
        gift = segment.gift
        threshold_reward = False

        self._outstanding.discard(bet.bet_id)
        self.wallet.balance += payout

        if gift is not None and gift.kind == GiftKind.FREE_SPIN:
            self.wallet.free_spins += 1
        elif gift is not None and gift.kind == GiftKind.BONUS_BADGE:
            self.wallet.bonus_badge_count += 1
            if self.wallet.bonus_badge_count >= self.config.badge_threshold:
                self.wallet.bonus_badge_count = 0
                self.wallet.free_spins += 1
                threshold_reward = True

        self._changed()
        return Resolution(
            payout=payout,
            gift=gift,
            is_win=payout > 0 or gift is not None,
            threshold_reward=threshold_reward,
        )

    def ensure_settled(self) -> None:
        """Raise BETTING_CLOSED while a placed bet is still unresolved."""
        if self._outstanding:
            raise GameError(
                ErrorCode.BETTING_CLOSED,
                "Wallet transactions wait until the pending bet is settled.",
            )

    def apply_confirmed_balance(self, balance: Any) -> None:
        """
        Adopt the balance returned by a confirmed deposit/withdraw.

        Refused while a bet is outstanding: the confirmed balance does not
        include the stake already deducted for it.
        """
        self.ensure_settled()
        try:
            value = float(balance)
        except (TypeError, ValueError):
            raise GameError(ErrorCode.INVALID_REQUEST, f"Balance {balance!r} is not a number.")
        if math.isnan(value) or math.isinf(value) or value < 0:
            raise GameError(ErrorCode.INVALID_REQUEST, f"Balance {balance!r} is not valid.")
        logger.info("Adopting confirmed balance %s (was %s)", value, self.wallet.balance)
        self.wallet.balance = value
        self._changed()

    def set_auto_play(self, enabled: bool) -> None:
        self.wallet.auto_play_enabled = enabled
        self._changed()

    def set_sound(self, enabled: bool) -> None:
        self.wallet.sound_enabled = enabled
        self._changed()

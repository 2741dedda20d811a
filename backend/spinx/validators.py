"""Request validators for the game API."""
from spinx.errors import ErrorCode, GameError
from spinx.logic.ledger import parse_stake
from spinx.protocol import BetRequest, WalletTransactionRequest


def validate_bet_request(request: BetRequest) -> None:
    """
    Cash bets need a numeric, non-negative stake.

    The stake of a free-spin bet is ignored. Minimum stake and funds are
    checked by the ledger.
    """
    if request.useFreeSpin:
        return
    if request.stake is None:
        raise GameError(ErrorCode.INVALID_STAKE, "Stake is required for a cash bet.")
    parse_stake(request.stake)


def validate_transaction_request(request: WalletTransactionRequest) -> None:
    """Deposit/withdraw requests need a positive amount."""
    if request.amount <= 0:
        raise GameError(
            ErrorCode.INVALID_REQUEST,
            f"Amount {request.amount} must be positive.",
        )

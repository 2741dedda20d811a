"""SpinX FastAPI application: wheel game API plus the account service."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from spinx.accounts.client import AccountClient
from spinx.accounts.database import init_db
from spinx.accounts.routes import router as accounts_router
from spinx.config import settings
from spinx.config_hash import get_config_hash
from spinx.errors import GameError
from spinx.logic.engine import build_segment_table
from spinx.middleware import ErrorHandlerMiddleware, PlayerIdMiddleware
from spinx.notifications import BufferedNotificationSink
from spinx.persistence import redis_connection
from spinx.protocol import (
    BetRequest,
    BetResponse,
    BetView,
    ConfigResponse,
    EventsResponse,
    StakeRequest,
    StateResponse,
    ToggleRequest,
    WalletTransactionRequest,
    WalletView,
)
from spinx.registry import EngineRegistry
from spinx.validators import validate_bet_request, validate_transaction_request

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage Redis, the accounts database and the per-player engines."""
    await redis_connection.connect()
    init_db()
    yield
    await app.state.registry.close()
    await app.state.account_client.close()
    await redis_connection.close()


app = FastAPI(
    title="SpinX",
    version="0.1.0",
    description="Wheel-spin round engine and account/wallet service",
    lifespan=lifespan,
)

app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(PlayerIdMiddleware)
app.include_router(accounts_router)

app.state.registry = EngineRegistry()
app.state.account_client = AccountClient()


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    return exc.to_response()


async def _engine(request: Request):
    return await request.app.state.registry.get(request.state.player_id)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/config")
async def config() -> dict:
    """Wheel layout and round rules for the renderer."""
    table = build_segment_table(settings)
    response = ConfigResponse(
        currency=settings.currency,
        segments=table.to_list(),
        betWindowSeconds=settings.bet_window_seconds,
        spinSeconds=settings.spin_seconds,
        cooldownSeconds=settings.cooldown_seconds,
        minStake=settings.min_stake,
        referenceStakeUnit=settings.reference_stake_unit,
        badgeThreshold=settings.badge_threshold,
        maxAutoAttempts=settings.max_auto_attempts,
        configHash=get_config_hash(table, settings),
    )
    return response.model_dump()


@app.get("/state")
async def state(request: Request) -> dict:
    """Wallet, round phase, history and feed for the calling player."""
    engine = await _engine(request)
    return StateResponse.from_engine(engine).model_dump(mode="json")


@app.get("/events")
async def events(request: Request, since: int = 0) -> dict:
    """Notifications (countdown, spins, results) newer than `since`."""
    engine = await _engine(request)
    sink = engine.notifier.sink
    items = sink.since(since) if isinstance(sink, BufferedNotificationSink) else []
    return EventsResponse(events=items).model_dump()


@app.post("/bet")
async def bet(request: Request, body: BetRequest) -> dict:
    """
    Place a bet for the current round.

    Rejected with BETTING_CLOSED, DUPLICATE_BET, INVALID_STAKE,
    INSUFFICIENT_FUNDS or NO_FREE_SPINS; a rejection changes nothing.
    """
    validate_bet_request(body)
    engine = await _engine(request)
    placed = engine.submit_bet(body.stake, use_free_spin=body.useFreeSpin)
    response = BetResponse(
        roundNumber=engine.state.round_number,
        bet=BetView.from_bet(placed),
        wallet=WalletView.from_wallet(engine.wallet, engine.config.badge_threshold),
    )
    return response.model_dump()


@app.post("/stake")
async def stake(request: Request, body: StakeRequest) -> dict:
    """Set the stake auto-play bets with."""
    engine = await _engine(request)
    amount = engine.set_stake(body.stake)
    return {"stake": amount}


@app.post("/auto-play")
async def auto_play(request: Request, body: ToggleRequest) -> dict:
    engine = await _engine(request)
    enabled = engine.toggle_auto_play(body.enabled)
    return {"autoPlayEnabled": enabled, "attemptsUsed": engine.autoplay.attempts_used}


@app.post("/sound")
async def sound(request: Request, body: ToggleRequest) -> dict:
    engine = await _engine(request)
    return {"soundEnabled": engine.toggle_sound(body.enabled)}


@app.post("/wallet/transaction")
async def wallet_transaction(request: Request, body: WalletTransactionRequest) -> dict:
    """
    Deposit/withdraw through the account service.

    The local balance changes only after the service confirms; a
    RemoteServiceError leaves the wallet untouched. Refused with
    BETTING_CLOSED while a bet is pending.
    """
    validate_transaction_request(body)
    engine = await _engine(request)
    engine.ensure_wallet_settled()
    client: AccountClient = request.app.state.account_client
    balance = await client.transact(body.username, body.type, body.amount)
    engine.apply_confirmed_balance(balance)
    return WalletView.from_wallet(engine.wallet, engine.config.badge_threshold).model_dump()

"""Application configuration for the SpinX wheel and account service."""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Server settings; every value can be overridden with a SPINX_ env var."""

    model_config = ConfigDict(env_prefix="SPINX_")

    # Server
    debug: bool = False
    redis_url: str = "redis://localhost:6379/0"
    database_url: str = "sqlite:///./spinx.db"
    account_service_url: str = "http://localhost:3000"

    # Protocol
    protocol_version: str = "1.0"

    # Round timing (seconds)
    tick_seconds: float = 1.0
    bet_window_seconds: int = 5
    spin_seconds: int = 3
    cooldown_seconds: int = 2

    # Ledger rules
    min_stake: float = 1
    reference_stake_unit: int = 50
    badge_threshold: int = 5

    # Starting wallet for players without persisted state
    initial_balance: float = 20000
    initial_free_spins: int = 1

    # History / feed caps
    max_history: int = 2000
    max_feed: int = 50

    # Auto-play
    max_auto_attempts: int = 1000

    # Display currency for result messages
    currency: str = "KSh"

    # Optional JSON list overriding the default segment table
    segments_json: str | None = None

    # Password reset tokens expire after one hour
    reset_token_ttl_seconds: int = 3600


settings = Settings()

"""Error codes and exceptions for the round engine and account service."""
from enum import Enum

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from spinx.config import settings


class ErrorCode(str, Enum):
    """Error codes reported to callers of the engine and game API."""

    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_STAKE = "INVALID_STAKE"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    NO_FREE_SPINS = "NO_FREE_SPINS"
    BETTING_CLOSED = "BETTING_CLOSED"
    DUPLICATE_BET = "DUPLICATE_BET"
    ROUND_ALREADY_RESOLVED = "ROUND_ALREADY_RESOLVED"
    PERSISTENCE_WRITE_FAILED = "PERSISTENCE_WRITE_FAILED"
    REMOTE_SERVICE_ERROR = "REMOTE_SERVICE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_STAKE: 400,
    ErrorCode.INSUFFICIENT_FUNDS: 402,
    ErrorCode.NO_FREE_SPINS: 409,
    ErrorCode.BETTING_CLOSED: 409,
    ErrorCode.DUPLICATE_BET: 409,
    ErrorCode.ROUND_ALREADY_RESOLVED: 409,
    ErrorCode.PERSISTENCE_WRITE_FAILED: 500,
    ErrorCode.REMOTE_SERVICE_ERROR: 502,
    ErrorCode.INTERNAL_ERROR: 500,
}

# Recoverable errors may succeed if the caller retries in a later round
ERROR_RECOVERABLE: dict[ErrorCode, bool] = {
    ErrorCode.INVALID_REQUEST: False,
    ErrorCode.INVALID_STAKE: False,
    ErrorCode.INSUFFICIENT_FUNDS: True,
    ErrorCode.NO_FREE_SPINS: True,
    ErrorCode.BETTING_CLOSED: True,
    ErrorCode.DUPLICATE_BET: False,
    ErrorCode.ROUND_ALREADY_RESOLVED: False,
    ErrorCode.PERSISTENCE_WRITE_FAILED: True,
    ErrorCode.REMOTE_SERVICE_ERROR: True,
    ErrorCode.INTERNAL_ERROR: True,
}


class ErrorBody(BaseModel):
    """Error body of the game API envelope."""

    code: str
    message: str
    recoverable: bool


class ErrorResponse(BaseModel):
    """Full error response of the game API."""

    protocolVersion: str = settings.protocol_version
    error: ErrorBody


class GameError(Exception):
    """Engine/ledger rejection that maps to a game API error response."""

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or f"Error: {code.value}"
        self.status_code = ERROR_HTTP_STATUS[code]
        self.recoverable = ERROR_RECOVERABLE[code]
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        """Convert to the game API error envelope."""
        return JSONResponse(
            status_code=self.status_code,
            content=ErrorResponse(
                error=ErrorBody(
                    code=self.code.value,
                    message=self.message,
                    recoverable=self.recoverable,
                )
            ).model_dump(),
        )


class AccountError(Exception):
    """
    Account service rejection.

    Rendered as {"success": false, "message": ...}; 400 for validation
    failures, 500 for unexpected ones.
    """

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content={"success": False, "message": self.message},
        )


class RemoteServiceError(GameError):
    """Account service call failed (network, HTTP status or success=false)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(ErrorCode.REMOTE_SERVICE_ERROR, message)
        self.remote_status = status_code

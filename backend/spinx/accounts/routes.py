"""Account/wallet HTTP routes (/auth/* and /api/*)."""
import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from spinx.errors import AccountError

from spinx.accounts import schemas
from spinx.accounts.database import get_db
from spinx.accounts.service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter()


def _handle(failure_message: str, action: Callable[[], Any]) -> Any:
    """Run action, mapping AccountError to 400 and anything else to 500."""
    try:
        return action()
    except AccountError as e:
        return e.to_response()
    except Exception:
        logger.exception(failure_message)
        return AccountError(failure_message, status_code=500).to_response()


@router.post("/auth/register", response_model=schemas.UserResponse)
def register(body: schemas.RegisterRequest, db: Session = Depends(get_db)):
    def action():
        user = AccountService(db).register(body.username, body.email, body.password)
        return schemas.UserResponse(user=schemas.UserOut.model_validate(user))

    return _handle("Registration failed", action)


@router.post("/auth/login", response_model=schemas.UserResponse)
def login(body: schemas.LoginRequest, db: Session = Depends(get_db)):
    def action():
        user = AccountService(db).login(body.username, body.password)
        return schemas.UserResponse(user=schemas.UserOut.model_validate(user))

    return _handle("Login failed", action)


@router.post("/auth/forgot-password", response_model=schemas.MessageResponse)
def forgot_password(body: schemas.ForgotPasswordRequest, db: Session = Depends(get_db)):
    def action():
        AccountService(db).forgot_password(body.email)
        return schemas.MessageResponse(
            message="Reset token generated. Check server log for demo purposes."
        )

    return _handle("Forgot password failed", action)


@router.post("/auth/reset-password", response_model=schemas.MessageResponse)
def reset_password(body: schemas.ResetPasswordRequest, db: Session = Depends(get_db)):
    def action():
        AccountService(db).reset_password(body.token, body.newPassword)
        return schemas.MessageResponse(message="Password reset successfully")

    return _handle("Reset password failed", action)


@router.post("/api/transaction", response_model=schemas.BalanceResponse)
def transaction(body: schemas.TransactionRequest, db: Session = Depends(get_db)):
    def action():
        balance = AccountService(db).transact(body.username, body.type, body.amount)
        return schemas.BalanceResponse(balance=balance)

    return _handle("Transaction failed", action)


@router.get("/api/transactions/{username}", response_model=list[schemas.TransactionOut])
def transactions(username: str, db: Session = Depends(get_db)):
    def action():
        records = AccountService(db).transactions(username)
        return [schemas.TransactionOut.model_validate(r) for r in records]

    return _handle("Fetch transactions failed", action)


@router.get("/api/users/{username}", response_model=schemas.UserOut | None)
def get_user(username: str, db: Session = Depends(get_db)):
    def action():
        user = AccountService(db).get_user(username)
        return schemas.UserOut.model_validate(user) if user is not None else None

    return _handle("Fetch user failed", action)

"""Account and wallet operations behind the /auth and /api routes."""
import logging
import math
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from passlib.hash import pbkdf2_sha256
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from spinx.config import settings
from spinx.errors import AccountError

from spinx.accounts import models

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ("deposit", "withdraw")


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_password(password: str) -> str:
    return pbkdf2_sha256.hash(password)


def verify_password(hashed_password: str, password: str) -> bool:
    return pbkdf2_sha256.verify(password, hashed_password)


class AccountService:
    """
    Registration, login, password reset and deposit/withdraw.

    Each call validates everything before it mutates and commits once, so
    a request either applies fully or is rejected with AccountError.
    """

    def __init__(self, db: Session, now: Callable[[], datetime] = utcnow):
        self.db = db
        self.now = now

    def _get_user(self, username: str) -> models.User | None:
        return self.db.query(models.User).filter(models.User.username == username).first()

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def register(self, username: str | None, email: str | None, password: str | None) -> models.User:
        if not username or not email or not password:
            raise AccountError("All fields required")

        existing = (
            self.db.query(models.User)
            .filter(or_(models.User.username == username, models.User.email == email))
            .first()
        )
        if existing is not None:
            raise AccountError("Username or email already taken")

        user = models.User(
            username=username,
            email=email,
            password=hash_password(password),
            balance=0.0,
        )
        self.db.add(user)
        try:
            self._commit()
        except IntegrityError:
            raise AccountError("Username or email already taken")
        self.db.refresh(user)
        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return user

    def login(self, username: str | None, password: str | None) -> models.User:
        if not username or not password:
            raise AccountError("Username and password required")
        user = self._get_user(username)
        if user is None:
            raise AccountError("User not found")
        if not verify_password(user.password, password):
            raise AccountError("Wrong password")
        return user

    def forgot_password(self, email: str | None) -> str:
        """Issue a reset token valid for reset_token_ttl_seconds."""
        if not email:
            raise AccountError("Email required")
        user = self.db.query(models.User).filter(models.User.email == email).first()
        if user is None:
            raise AccountError("Email not found")

        token = secrets.token_hex(20)
        user.reset_token = token
        user.reset_expires = self.now() + timedelta(seconds=settings.reset_token_ttl_seconds)
        self._commit()

        logger.info("Password reset token for %s: %s", email, token)
        return token

    def reset_password(self, token: str | None, new_password: str | None) -> None:
        if not token or not new_password:
            raise AccountError("Token and new password required")
        user = (
            self.db.query(models.User)
            .filter(models.User.reset_token == token, models.User.reset_expires > self.now())
            .first()
        )
        if user is None:
            raise AccountError("Invalid or expired token")

        user.password = hash_password(new_password)
        user.reset_token = None
        user.reset_expires = None
        self._commit()

    def transact(self, username: str | None, type_: str | None, amount: Any) -> float:
        """Apply a deposit or withdrawal and return the new balance."""
        if not username or not type_ or not amount:
            raise AccountError("All fields required")
        try:
            value = float(amount)
        except (TypeError, ValueError):
            raise AccountError("Invalid amount")
        if math.isnan(value) or math.isinf(value) or value <= 0:
            raise AccountError("Invalid amount")

        user = self._get_user(username)
        if user is None:
            raise AccountError("User not found")
        if type_ not in TRANSACTION_TYPES:
            raise AccountError("Invalid transaction type")

        balance = float(user.balance)
        if type_ == "deposit":
            balance += value
        else:
            if value > balance:
                raise AccountError("Insufficient balance")
            balance -= value

        user.balance = balance
        self.db.add(
            models.Transaction(username=username, type=type_, amount=value, timestamp=self.now())
        )
        self._commit()
        logger.info("%s %s %.2f -> balance %.2f", username, type_, value, balance)
        return balance

    def transactions(self, username: str) -> list[models.Transaction]:
        return (
            self.db.query(models.Transaction)
            .filter(models.Transaction.username == username)
            .order_by(models.Transaction.timestamp.desc(), models.Transaction.id.desc())
            .all()
        )

    def get_user(self, username: str) -> models.User | None:
        return self._get_user(username)

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

# Request fields are optional so that missing values are reported as the
# service's 400 {"success": false} envelope rather than a 422.


class RegisterRequest(BaseModel):
    username: str | None = None
    email: str | None = None
    password: str | None = None


class LoginRequest(BaseModel):
    username: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    token: str | None = None
    newPassword: str | None = None


class TransactionRequest(BaseModel):
    username: str | None = None
    type: str | None = None
    amount: Any = None


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    balance: float

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    success: bool = True
    user: UserOut


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class BalanceResponse(BaseModel):
    success: bool = True
    balance: float


class TransactionOut(BaseModel):
    id: int
    type: Literal["deposit", "withdraw"]
    amount: float
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)

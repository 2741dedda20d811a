"""HTTP client for the account/wallet service."""
import logging
from typing import Any

import httpx

from spinx.config import settings
from spinx.errors import RemoteServiceError

logger = logging.getLogger(__name__)


class AccountClient:
    """
    Thin async wrapper over the /auth and /api endpoints.

    Any network failure, non-2xx status or success=false body raises
    RemoteServiceError with the server's message. Calls are never retried
    and never touch local wallet state.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.account_service_url,
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AccountClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, path: str, json: dict | None = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning("Account service %s %s failed: %s", method, path, e)
            raise RemoteServiceError(f"Account service unreachable: {e}")

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400 or (isinstance(data, dict) and data.get("success") is False):
            message = "Account service error"
            if isinstance(data, dict) and data.get("message"):
                message = data["message"]
            logger.info(
                "Account service %s %s rejected (%d): %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise RemoteServiceError(message, status_code=response.status_code)
        return data

    async def register(self, username: str, email: str, password: str) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/auth/register",
            {"username": username, "email": email, "password": password},
        )
        return data["user"]

    async def login(self, username: str, password: str) -> dict[str, Any]:
        data = await self._request(
            "POST", "/auth/login", {"username": username, "password": password}
        )
        return data["user"]

    async def forgot_password(self, email: str) -> str:
        data = await self._request("POST", "/auth/forgot-password", {"email": email})
        return data.get("message", "")

    async def reset_password(self, token: str, new_password: str) -> str:
        data = await self._request(
            "POST",
            "/auth/reset-password",
            {"token": token, "newPassword": new_password},
        )
        return data.get("message", "")

    async def transact(self, username: str, type_: str, amount: float) -> float:
        """Deposit or withdraw; returns the confirmed balance."""
        data = await self._request(
            "POST",
            "/api/transaction",
            {"username": username, "type": type_, "amount": amount},
        )
        return float(data["balance"])

    async def transactions(self, username: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/api/transactions/{username}")

    async def get_user(self, username: str) -> dict[str, Any] | None:
        return await self._request("GET", f"/api/users/{username}")

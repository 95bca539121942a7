"""
Backend authentication endpoints.

Wraps ``/auth/login`` and ``/auth/refresh`` and classifies failures so the
session manager can tell a rejected credential from a flaky network.
"""

from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Dict, Optional

import httpx

from pocketledger.core.config import BackendSettings


class AuthAPIError(Exception):
    """Raised when an auth endpoint fails in a way that is not retryable."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientAuthError(AuthAPIError):
    """Network failure, timeout or 5xx response; safe to retry."""


class RefreshTokenRejectedError(AuthAPIError):
    """The backend rejected the credential itself (401/403)."""


@dataclass(slots=True)
class AuthTokens:
    """Token payload returned by the auth endpoints."""

    access_token: str
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None


_REJECTED_STATUSES = (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN)


class AuthAPIClient:
    """Call the backend's login and refresh endpoints."""

    LOGIN_PATH = "/auth/login"
    REFRESH_PATH = "/auth/refresh"

    def __init__(
        self,
        settings: BackendSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.root,
            timeout=timeout or self._settings.timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )

    async def _post(
        self, path: str, payload: Dict[str, Any], *, timeout: float | None = None
    ) -> Dict[str, Any]:
        try:
            async with self._client(timeout) as client:
                response = await client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            raise TransientAuthError(f"Timed out calling {path}") from exc
        except httpx.TransportError as exc:
            raise TransientAuthError(f"Network error calling {path}: {exc}") from exc

        if response.status_code in _REJECTED_STATUSES:
            raise RefreshTokenRejectedError(
                f"{path} rejected the supplied credential",
                status_code=response.status_code,
            )
        if response.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            raise TransientAuthError(
                f"{path} returned {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code >= HTTPStatus.BAD_REQUEST:
            raise AuthAPIError(
                f"{path} returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise AuthAPIError(f"{path} returned a non-JSON body") from exc

    async def login(self, username: str, password: str) -> AuthTokens:
        """Exchange credentials for a full token set."""
        body = await self._post(
            self.LOGIN_PATH, {"username": username, "password": password}
        )
        access_token = body.get("accessToken")
        refresh_token = body.get("refreshToken")
        if not access_token or not refresh_token:
            raise AuthAPIError("Incomplete token payload returned from login.")
        return AuthTokens(
            access_token=access_token,
            id_token=body.get("idToken"),
            refresh_token=refresh_token,
        )

    async def refresh(
        self, refresh_token: str, *, timeout: float | None = None
    ) -> AuthTokens:
        """Mint a new access token; ``refresh_token`` is set only when rotated."""
        body = await self._post(
            self.REFRESH_PATH, {"refreshToken": refresh_token}, timeout=timeout
        )
        access_token = body.get("accessToken")
        if not access_token:
            raise AuthAPIError("No access token in refresh response.")
        return AuthTokens(
            access_token=access_token,
            id_token=body.get("idToken"),
            refresh_token=body.get("refreshToken"),
        )


__all__ = [
    "AuthAPIClient",
    "AuthAPIError",
    "AuthTokens",
    "RefreshTokenRejectedError",
    "TransientAuthError",
]

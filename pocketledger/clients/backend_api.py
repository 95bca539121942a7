"""
Thin authenticated wrapper over the finance backend's CRUD endpoints.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import httpx

from pocketledger.core.config import BackendSettings
from pocketledger.utils.http import RetryConfig, request_with_retry

if TYPE_CHECKING:
    from pocketledger.services.session_manager import SessionLifecycleManager

logger = logging.getLogger(__name__)


class BackendAPIError(Exception):
    """Raised when the backend answers with an unexpected error status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionExpiredError(BackendAPIError):
    """No usable access token could be obtained; the user must sign in again."""


class BackendUnavailableError(BackendAPIError):
    """Backend unreachable or still failing once retries ran out."""


class BackendAPIClient:
    """Attach bearer tokens to backend calls and retry once after a 401."""

    def __init__(
        self,
        settings: BackendSettings,
        session_manager: "SessionLifecycleManager",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._settings = settings
        self._session = session_manager
        self._transport = transport
        self._retry = retry_config or RetryConfig()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.root,
            timeout=self._settings.timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send an authenticated request and return the decoded JSON body."""
        token = await self._session.get_valid_access_token()
        if token is None:
            raise SessionExpiredError(f"No access token available for {path}")

        async with self._client() as client:
            response = await self._send(client, method, path, token, json, params)
            if response.status_code == HTTPStatus.UNAUTHORIZED:
                logger.info("401 from %s; refreshing token and retrying once", path)
                # The server refused this token, so skip the local expiry check.
                token = await self._session.refresh_token_if_needed(force=True)
                if token is None:
                    raise SessionExpiredError("Session expired - please log in again")
                response = await self._send(client, method, path, token, json, params)

        if response.status_code >= HTTPStatus.BAD_REQUEST:
            raise BackendAPIError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        return response.json()

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        token: str,
        json: Any,
        params: Optional[Dict[str, Any]],
    ) -> httpx.Response:
        try:
            return await request_with_retry(
                client.request,
                method,
                path,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
                retry_config=self._retry,
            )
        except httpx.HTTPStatusError as exc:
            logger.warning("%s %s kept failing with %s", method, path, exc.response.status_code)
            raise BackendUnavailableError(
                f"{method} {path} returned {exc.response.status_code} after retries",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.TransportError as exc:
            logger.warning("%s %s unreachable: %s", method, path, exc)
            raise BackendUnavailableError(f"{method} {path} unreachable: {exc}") from exc

    async def get_profile(self) -> Dict[str, Any]:
        return await self.request("GET", "/profile")

    async def update_profile(self, profile: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("PUT", "/profile", json=profile)

    async def get_bill_preferences(self, *, ignored_only: bool = True) -> List[Dict[str, Any]]:
        """Return bill preferences; by default only the bills the user dismissed."""
        try:
            body = await self.request("GET", "/bills/preferences")
        except BackendAPIError as exc:
            if exc.status_code == HTTPStatus.NOT_FOUND:
                return []
            raise
        preferences = (body or {}).get("preferences") or []
        if ignored_only:
            return [pref for pref in preferences if pref.get("isIgnored")]
        return preferences

    async def update_bill_preferences(self, preference: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("PUT", "/bills/preferences", json=preference)

    async def get_goals(self) -> List[Dict[str, Any]]:
        body = await self.request("GET", "/goals")
        if isinstance(body, dict):
            return body.get("goals") or []
        return body or []


__all__ = [
    "BackendAPIClient",
    "BackendAPIError",
    "BackendUnavailableError",
    "SessionExpiredError",
]

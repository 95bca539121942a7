"""
Session lifecycle management.

Keeps the stored token pair usable: decides when a refresh is due, performs
it (one at a time), and falls back to the trusted-device persistent session
when the primary refresh token is rejected. Callers get either a usable access
token or ``None``; ``None`` means "no token right now", and a cleared session
(``SessionState.LOGGED_OUT``) means the user has to sign in again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pocketledger.clients.auth_api import (
    AuthAPIClient,
    AuthAPIError,
    RefreshTokenRejectedError,
    TransientAuthError,
)
from pocketledger.core.config import SessionSettings
from pocketledger.models.session import (
    PersistentSession,
    SessionInfo,
    SessionState,
    TokenPair,
    compute_session_state,
)
from pocketledger.services.banking_callback import BankingCallbackTracker
from pocketledger.services.device_trust import DeviceTrustStore
from pocketledger.services.token_store import TokenStore, decode_expiry
from pocketledger.utils.http import RetryConfig, retry_async

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionLifecycleManager:
    """Owns the token pair and every refresh of it.

    Construct one per process and share it; retry state lives on the instance.
    """

    def __init__(
        self,
        *,
        token_store: TokenStore,
        device_trust: DeviceTrustStore,
        banking_callbacks: BankingCallbackTracker,
        auth_client: AuthAPIClient,
        settings: SessionSettings,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._tokens = token_store
        self._device_trust = device_trust
        self._banking = banking_callbacks
        self._auth = auth_client
        self._settings = settings
        self._clock = clock
        self._monotonic = monotonic

        self._refresh_task: Optional[asyncio.Task[Optional[str]]] = None
        self._refresh_attempts = 0
        self._last_refresh_attempt: Optional[float] = None
        self._last_resume_check: Optional[float] = None
        self._resume_in_progress = False

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    def _grace_period(self, *, touch: bool) -> timedelta:
        if self._device_trust.is_device_trusted():
            if self._device_trust.get_persistent_session(touch=touch) is not None:
                return timedelta(seconds=self._settings.trusted_grace_period_seconds)
        return timedelta(seconds=self._settings.grace_period_seconds)

    def _describe(self, tokens: Optional[TokenPair], *, touch: bool) -> SessionInfo:
        has_remember_me = self._device_trust.is_remember_me_enabled()
        if tokens is None:
            return SessionInfo(
                state=SessionState.LOGGED_OUT, has_remember_me=has_remember_me
            )

        now = self._clock()
        expires_at = tokens.expires_at or decode_expiry(tokens.access_token)
        state = compute_session_state(
            expires_at=expires_at,
            now=now,
            has_tokens=True,
            has_refresh_token=bool(tokens.refresh_token),
            expiring_soon=timedelta(seconds=self._settings.expiring_soon_seconds),
            grace_period=self._grace_period(touch=touch),
        )
        time_until_expiry = None
        if expires_at is not None:
            time_until_expiry = max(expires_at - now, timedelta(0))
        return SessionInfo(
            state=state,
            expires_at=expires_at,
            time_until_expiry=time_until_expiry,
            can_refresh=bool(tokens.refresh_token),
            has_remember_me=has_remember_me,
        )

    def get_session_info(self) -> SessionInfo:
        """Recompute the session state from storage and the current time."""
        return self._describe(self._tokens.get_tokens(), touch=False)

    def is_logged_in(self) -> bool:
        state = self.get_session_info().state
        return state not in (SessionState.LOGGED_OUT, SessionState.EXPIRED)

    # ------------------------------------------------------------------
    # Token access
    # ------------------------------------------------------------------

    async def get_valid_access_token(self) -> Optional[str]:
        """Return a token usable for the next request, or ``None``.

        Never blocks for longer than ``token_timeout_seconds``.
        """
        try:
            return await asyncio.wait_for(
                self._resolve_access_token(),
                timeout=self._settings.token_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Timed out resolving a valid access token")
            return None

    async def _resolve_access_token(self) -> Optional[str]:
        tokens = self._tokens.get_tokens()
        if tokens is None:
            return None
        if self._describe(tokens, touch=False).state is SessionState.ACTIVE:
            return tokens.access_token
        return await self.refresh_token_if_needed()

    async def refresh_token_if_needed(self, *, force: bool = False) -> Optional[str]:
        """Refresh the stored session, sharing any refresh already in flight.

        At most ``retry_budget`` refreshes start per ``retry_window_seconds``;
        past that the call returns ``None`` without touching the network.
        ``force`` refreshes even a locally unexpired token, for when the backend
        has already refused it.
        """
        if self._refresh_task is not None and not self._refresh_task.done():
            return await asyncio.shield(self._refresh_task)

        now = self._monotonic()
        if (
            self._last_refresh_attempt is not None
            and now - self._last_refresh_attempt < self._settings.retry_window_seconds
        ):
            if self._refresh_attempts >= self._settings.retry_budget:
                logger.warning(
                    "Refresh budget of %d attempts exhausted; skipping refresh",
                    self._settings.retry_budget,
                )
                return None
        else:
            self._refresh_attempts = 0

        self._refresh_attempts += 1
        self._last_refresh_attempt = now
        task = asyncio.create_task(self._run_refresh(force=force))
        self._refresh_task = task
        try:
            result = await asyncio.shield(task)
        finally:
            if self._refresh_task is task and task.done():
                self._refresh_task = None
        return result

    async def _run_refresh(self, *, force: bool = False) -> Optional[str]:
        try:
            result = await asyncio.wait_for(
                self._perform_refresh(force=force),
                timeout=self._settings.refresh_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Token refresh timed out after %.0fs",
                self._settings.refresh_timeout_seconds,
            )
            return None
        # Reset here so the budget recovers even when the starting caller was cancelled.
        if result:
            self._refresh_attempts = 0
        return result

    async def _perform_refresh(self, *, force: bool = False) -> Optional[str]:
        tokens = self._tokens.get_tokens()
        if tokens is None:
            return None

        # Must run before anything that could clear tokens.
        if self._banking.is_active():
            logger.info("Banking callback in progress; deferring token refresh")
            return None

        state = self._describe(tokens, touch=True).state
        if state is SessionState.ACTIVE and not force:
            return tokens.access_token
        if state is SessionState.EXPIRED:
            return await self._recover_expired_session()

        retry_config = RetryConfig(
            attempts=self._settings.refresh_attempts,
            backoff_seconds=self._settings.backoff_base_seconds,
            max_backoff_seconds=self._settings.backoff_max_seconds,
        )
        try:
            result = await retry_async(
                self._auth.refresh,
                tokens.refresh_token,
                retry_config=retry_config,
                retry_on=(TransientAuthError,),
            )
        except RefreshTokenRejectedError:
            logger.info("Primary refresh token rejected")
            return await self._recover_rejected_refresh(tokens)
        except TransientAuthError as exc:
            logger.warning("Token refresh failed after retries: %s", exc)
            return None
        except AuthAPIError as exc:
            logger.warning("Token refresh failed: %s", exc)
            return None

        self._tokens.store_tokens(
            access_token=result.access_token,
            refresh_token=result.refresh_token or tokens.refresh_token,
            id_token=result.id_token or tokens.id_token,
        )
        logger.info("Access token refreshed")
        return result.access_token

    # ------------------------------------------------------------------
    # Fallbacks
    # ------------------------------------------------------------------

    def _trusted_persistent_session(self) -> Optional[PersistentSession]:
        if not self._device_trust.is_device_trusted():
            return None
        return self._device_trust.get_persistent_session()

    async def _refresh_with_persistent_session(
        self, session: PersistentSession
    ) -> Optional[str]:
        """Single refresh attempt using the persistent session's credential.

        Success promotes that credential to the primary refresh token.
        ``TransientAuthError`` propagates so callers can avoid a logout.
        """
        try:
            result = await self._auth.refresh(session.refresh_token)
        except RefreshTokenRejectedError:
            logger.info("Persistent session credential rejected; invalidating it")
            self._device_trust.clear_persistent_session()
            return None
        except TransientAuthError:
            raise
        except AuthAPIError as exc:
            logger.warning("Persistent session refresh failed: %s", exc)
            return None

        previous = self._tokens.get_tokens()
        self._tokens.store_tokens(
            access_token=result.access_token,
            refresh_token=result.refresh_token or session.refresh_token,
            id_token=result.id_token or (previous.id_token if previous else None),
        )
        logger.info("Session restored from persistent session")
        return result.access_token

    async def _recover_rejected_refresh(self, tokens: TokenPair) -> Optional[str]:
        session = self._trusted_persistent_session()
        if session is not None:
            if session.refresh_token != tokens.refresh_token:
                try:
                    access_token = await self._refresh_with_persistent_session(session)
                except TransientAuthError as exc:
                    logger.warning("Persistent session refresh hit a network error: %s", exc)
                    return None
                if access_token:
                    return access_token
            else:
                # Same credential was just rejected; it cannot work either.
                logger.info("Persistent session holds the rejected token; invalidating it")
                self._device_trust.clear_persistent_session()
        return self._end_session("refresh token rejected")

    async def _recover_expired_session(self) -> Optional[str]:
        session = self._trusted_persistent_session()
        if session is not None:
            try:
                access_token = await self._refresh_with_persistent_session(session)
            except TransientAuthError as exc:
                logger.warning("Persistent session refresh hit a network error: %s", exc)
                return None
            if access_token:
                return access_token
        return self._end_session("session expired beyond grace period")

    def _end_session(self, reason: str) -> None:
        if self._banking.is_active():
            logger.info("Banking callback in progress; keeping tokens (%s)", reason)
            return None
        logger.info("Clearing session: %s", reason)
        self.clear_all_tokens()
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear_all_tokens(self) -> None:
        self._tokens.clear_tokens()

    async def login(
        self,
        username: str,
        password: str,
        *,
        remember_me: bool = False,
        user_id: str | None = None,
    ) -> TokenPair:
        """Sign in and store the resulting token pair.

        With ``remember_me`` the device becomes trusted and gets a persistent
        session built from the login refresh token.
        """
        result = await self._auth.login(username, password)
        refresh_token = result.refresh_token or ""
        tokens = self._tokens.store_tokens(
            access_token=result.access_token,
            refresh_token=refresh_token,
            id_token=result.id_token,
        )
        self._refresh_attempts = 0
        self._last_refresh_attempt = None
        if remember_me:
            self._device_trust.create_persistent_session(
                user_id=user_id or username,
                refresh_token=refresh_token,
                remember_me=True,
            )
        logger.info("Session started (remember_me=%s)", remember_me)
        return tokens

    def logout(self, *, forget_device: bool = False) -> None:
        self.clear_all_tokens()
        if forget_device:
            self._device_trust.untrust_device()
        logger.info("Logged out (forget_device=%s)", forget_device)

    async def on_resume(self) -> SessionInfo:
        """Opportunistic check for when the host wakes up.

        Throttled to one check per ``resume_throttle_seconds`` and never
        re-entered while a check is running.
        """
        now = self._monotonic()
        throttled = (
            self._last_resume_check is not None
            and now - self._last_resume_check < self._settings.resume_throttle_seconds
        )
        if throttled or self._resume_in_progress:
            return self.get_session_info()

        self._last_resume_check = now
        self._resume_in_progress = True
        try:
            info = self.get_session_info()
            logger.info("Session state on resume: %s", info.state.value)
            if info.state in (
                SessionState.EXPIRING_SOON,
                SessionState.REFRESH_NEEDED,
                SessionState.EXPIRED,
            ):
                await self.get_valid_access_token()
                info = self.get_session_info()
            return info
        finally:
            self._resume_in_progress = False


__all__ = ["SessionLifecycleManager"]

"""
Domain models for session and device-trust persistence.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Derived state of the stored token pair."""

    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    REFRESH_NEEDED = "refresh_needed"
    EXPIRED = "expired"
    LOGGED_OUT = "logged_out"


class TokenPair(BaseModel):
    """Token material held by the session manager."""

    access_token: str
    refresh_token: str
    id_token: Optional[str] = None
    expires_at: Optional[datetime] = Field(
        None, description="Decoded from the access token's exp claim."
    )


class PersistentSession(BaseModel):
    """Long-lived refresh credential bound to a trusted device."""

    device_id: str
    user_id: str
    refresh_token: str
    device_fingerprint: str
    created_at: datetime
    last_refreshed: datetime
    expires_at: datetime
    remember_me: bool = True


class BankingCallbackMarker(BaseModel):
    """Marker left while an external bank-linking redirect is in progress."""

    kind: str = "banking_callback"
    reference: Optional[str] = None
    created_at: datetime

    def is_recent(self, now: datetime, window: timedelta) -> bool:
        return now - self.created_at < window


class SessionInfo(BaseModel):
    """Snapshot of the session state plus metadata for callers."""

    state: SessionState
    expires_at: Optional[datetime] = None
    time_until_expiry: Optional[timedelta] = None
    can_refresh: bool = False
    has_remember_me: bool = False


def compute_session_state(
    *,
    expires_at: Optional[datetime],
    now: datetime,
    has_tokens: bool,
    has_refresh_token: bool,
    expiring_soon: timedelta,
    grace_period: timedelta,
) -> SessionState:
    """Derive the session state from token expiry and the current time.

    A missing expiry (undecodable token) is treated as already expired. The
    expiring-soon boundary is inclusive.
    """
    if not has_tokens:
        return SessionState.LOGGED_OUT
    if expires_at is not None and expires_at > now:
        if expires_at - now <= expiring_soon:
            return SessionState.EXPIRING_SOON
        return SessionState.ACTIVE
    if not has_refresh_token:
        return SessionState.EXPIRED
    if expires_at is None or now - expires_at > grace_period:
        return SessionState.EXPIRED
    return SessionState.REFRESH_NEEDED


__all__ = [
    "BankingCallbackMarker",
    "PersistentSession",
    "SessionInfo",
    "SessionState",
    "TokenPair",
    "compute_session_state",
]

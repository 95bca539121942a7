"""Schemas for the session and banking-callback endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from pocketledger.models.session import SessionState


class LoginRequest(BaseModel):
    username: str
    password: str
    remember_me: bool = Field(False, description="Trust this device and keep a persistent session.")


class SessionStatus(BaseModel):
    """Session snapshot; never carries token material."""

    state: SessionState
    logged_in: bool
    expires_at: Optional[datetime] = None
    seconds_until_expiry: Optional[int] = None
    can_refresh: bool = False
    has_remember_me: bool = False


class RefreshOutcome(BaseModel):
    refreshed: bool
    session: SessionStatus


class BankingConnectRequest(BaseModel):
    reference: Optional[str] = Field(
        None, description="Requisition or link identifier issued by the bank aggregator."
    )


class BankingCallbackStatus(BaseModel):
    active: bool
    reference: Optional[str] = None
    created_at: Optional[datetime] = None


__all__ = [
    "BankingCallbackStatus",
    "BankingConnectRequest",
    "LoginRequest",
    "RefreshOutcome",
    "SessionStatus",
]

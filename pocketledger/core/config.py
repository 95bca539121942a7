"""
Application configuration models and helpers.

Centralizes settings management so the session manager, the storage layer and
the local HTTP surface share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class BackendSettings(BaseSettings):
    """Location of the remote finance backend."""

    base_url: AnyHttpUrl = Field(..., description="Root URL of the backend API.")
    timeout_seconds: float = Field(30.0, description="Per-request HTTP timeout.")

    model_config = SettingsConfigDict(env_prefix="BACKEND_", extra="ignore")

    @property
    def root(self) -> str:
        return str(self.base_url).rstrip("/")


class SessionSettings(BaseSettings):
    """Timing policy for the session lifecycle manager."""

    expiring_soon_seconds: int = Field(
        300, description="Window before expiry in which tokens are refreshed."
    )
    grace_period_seconds: int = Field(
        2 * 60 * 60,
        description="How long an expired token stays recoverable by refresh.",
    )
    trusted_grace_period_seconds: int = Field(
        7 * 24 * 60 * 60,
        description="Grace period for trusted devices holding a persistent session.",
    )
    token_timeout_seconds: float = Field(
        35.0, description="Ceiling for resolving a valid access token."
    )
    refresh_timeout_seconds: float = Field(
        35.0, description="Ceiling for a single refresh operation, retries included."
    )
    refresh_attempts: int = Field(3, description="Attempts per refresh on transient errors.")
    backoff_base_seconds: float = Field(1.0)
    backoff_max_seconds: float = Field(5.0)
    retry_budget: int = Field(
        5, description="Refresh operations allowed inside one retry window."
    )
    retry_window_seconds: int = Field(60)
    resume_throttle_seconds: float = Field(5.0)
    banking_callback_window_seconds: int = Field(
        15 * 60,
        description="Age under which a banking callback marker counts as in flight.",
    )
    persistent_session_days: int = Field(30, description="Lifetime with remember-me.")
    short_session_days: int = Field(7, description="Lifetime without remember-me.")

    model_config = SettingsConfigDict(env_prefix="SESSION_", extra="ignore")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    storage_encryption_secret: str = Field(
        ...,
        description="Secret used to derive the key for the encrypted device store.",
    )
    previous_storage_secrets: List[str] = Field(
        default_factory=list,
        description="Retired secrets still accepted for reading (JSON list).",
    )

    model_config = SettingsConfigDict(env_prefix="SECURITY_", extra="ignore")


class StorageSettings(BaseSettings):
    """Where device storage lives on disk."""

    db_path: str = Field("data/device_store.db")

    model_config = SettingsConfigDict(env_prefix="STORAGE_", extra="ignore")


class AppSettings(BaseSettings):
    """Root settings object for the client and the companion HTTP service."""

    environment: str = Field("development")
    log_level: str = Field("INFO")
    backend: BackendSettings = Field(default_factory=BackendSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "BackendSettings",
    "SecuritySettings",
    "SessionSettings",
    "StorageSettings",
    "get_settings",
]

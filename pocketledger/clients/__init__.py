"""Expose constructed client wrappers."""

from .auth_api import (
    AuthAPIClient,
    AuthAPIError,
    AuthTokens,
    RefreshTokenRejectedError,
    TransientAuthError,
)
from .backend_api import (
    BackendAPIClient,
    BackendAPIError,
    BackendUnavailableError,
    SessionExpiredError,
)
from .secure_store import SecureKeyValueStore
from .sqlite_store import SQLiteKeyValueStore

__all__ = [
    "AuthAPIClient",
    "AuthAPIError",
    "AuthTokens",
    "BackendAPIClient",
    "BackendAPIError",
    "BackendUnavailableError",
    "RefreshTokenRejectedError",
    "SQLiteKeyValueStore",
    "SecureKeyValueStore",
    "SessionExpiredError",
    "TransientAuthError",
]

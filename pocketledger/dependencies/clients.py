"""
Factory functions to provide shared stores and services as FastAPI dependencies.

Each factory is cached so the process holds exactly one session manager.
"""

from datetime import timedelta
from functools import lru_cache

from pocketledger.clients import (
    AuthAPIClient,
    BackendAPIClient,
    SecureKeyValueStore,
    SQLiteKeyValueStore,
)
from pocketledger.core.config import get_settings
from pocketledger.services import (
    BankingCallbackTracker,
    DeviceTrustStore,
    SessionLifecycleManager,
    StorageMigrationRunner,
    StorageCipher,
    TokenStore,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_device_store() -> SQLiteKeyValueStore:
    """Provide the plaintext device store."""
    return SQLiteKeyValueStore(_settings().storage.db_path, namespace="device")


@lru_cache()
def get_storage_cipher() -> StorageCipher:
    """Provide symmetric encryption helper for secure storage."""
    security = _settings().security
    return StorageCipher(
        secret=security.storage_encryption_secret,
        previous_secrets=security.previous_storage_secrets,
    )


@lru_cache()
def get_secure_store() -> SecureKeyValueStore:
    """Provide the encrypted device store."""
    raw = SQLiteKeyValueStore(_settings().storage.db_path, namespace="secure")
    return SecureKeyValueStore(raw, get_storage_cipher())


@lru_cache()
def get_token_store() -> TokenStore:
    return TokenStore(get_secure_store())


@lru_cache()
def get_device_trust_store() -> DeviceTrustStore:
    return DeviceTrustStore(get_secure_store(), _settings().session)


@lru_cache()
def get_banking_callback_tracker() -> BankingCallbackTracker:
    window = timedelta(seconds=_settings().session.banking_callback_window_seconds)
    return BankingCallbackTracker(get_device_store(), window=window)


@lru_cache()
def get_auth_api_client() -> AuthAPIClient:
    return AuthAPIClient(_settings().backend)


@lru_cache()
def get_session_manager() -> SessionLifecycleManager:
    """Provide the process-wide session lifecycle manager."""
    return SessionLifecycleManager(
        token_store=get_token_store(),
        device_trust=get_device_trust_store(),
        banking_callbacks=get_banking_callback_tracker(),
        auth_client=get_auth_api_client(),
        settings=_settings().session,
    )


@lru_cache()
def get_backend_api_client() -> BackendAPIClient:
    return BackendAPIClient(_settings().backend, get_session_manager())


def get_migration_runner() -> StorageMigrationRunner:
    """Build a migration runner over the plaintext and encrypted stores."""
    return StorageMigrationRunner(get_device_store(), get_secure_store())


__all__ = [
    "get_auth_api_client",
    "get_backend_api_client",
    "get_banking_callback_tracker",
    "get_device_store",
    "get_device_trust_store",
    "get_migration_runner",
    "get_secure_store",
    "get_session_manager",
    "get_storage_cipher",
    "get_token_store",
]

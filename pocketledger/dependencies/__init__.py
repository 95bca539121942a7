"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_auth_api_client,
    get_backend_api_client,
    get_banking_callback_tracker,
    get_device_store,
    get_device_trust_store,
    get_migration_runner,
    get_secure_store,
    get_session_manager,
    get_storage_cipher,
    get_token_store,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
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

"""Service layer exports."""

from .banking_callback import BankingCallbackTracker
from .categorizer import CategoryLabel, categorize
from .device_trust import DeviceTrustStore
from .migrations import MigrationResult, StorageMigrationRunner
from .session_manager import SessionLifecycleManager
from .storage_cipher import StorageCipher
from .token_store import TokenStore

__all__ = [
    "BankingCallbackTracker",
    "CategoryLabel",
    "DeviceTrustStore",
    "MigrationResult",
    "SessionLifecycleManager",
    "StorageMigrationRunner",
    "StorageCipher",
    "TokenStore",
    "categorize",
]

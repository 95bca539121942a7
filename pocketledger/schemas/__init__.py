"""Public schema exports."""

from .session import (
    BankingCallbackStatus,
    BankingConnectRequest,
    LoginRequest,
    RefreshOutcome,
    SessionStatus,
)
from .transactions import (
    CategorizedTransaction,
    CategorizeRequest,
    CategorizeResponse,
    CategoryOut,
    MigrationRunOut,
    MigrationStatusOut,
    TransactionText,
)

__all__ = [
    "BankingCallbackStatus",
    "BankingConnectRequest",
    "CategorizeRequest",
    "CategorizeResponse",
    "CategorizedTransaction",
    "CategoryOut",
    "LoginRequest",
    "MigrationRunOut",
    "MigrationStatusOut",
    "RefreshOutcome",
    "SessionStatus",
    "TransactionText",
]

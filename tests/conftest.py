"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

import jwt
import pytest

from pocketledger.clients import SecureKeyValueStore, SQLiteKeyValueStore
from pocketledger.services import StorageCipher

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_token():
    """Build a signed JWT whose ``exp`` claim is the given datetime."""

    def _make(expires_at: datetime, **claims) -> str:
        payload = {"sub": "user-1", "exp": int(expires_at.timestamp()), **claims}
        return jwt.encode(payload, "test-signing-key", algorithm="HS256")

    return _make


@pytest.fixture
def device_store(tmp_path) -> SQLiteKeyValueStore:
    return SQLiteKeyValueStore(str(tmp_path / "device.db"), namespace="device")


@pytest.fixture
def secure_store(tmp_path) -> SecureKeyValueStore:
    raw = SQLiteKeyValueStore(str(tmp_path / "device.db"), namespace="secure")
    return SecureKeyValueStore(raw, StorageCipher(secret="test-secret"))

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from pocketledger.clients import SecureKeyValueStore, SQLiteKeyValueStore
from pocketledger.services.storage_cipher import StorageCipher


def test_cipher_roundtrip_hides_plaintext() -> None:
    cipher = StorageCipher(secret="device-secret")

    encrypted = cipher.encrypt("1234")
    assert "1234" not in encrypted
    assert cipher.decrypt(encrypted) == "1234"


def test_cipher_requires_secret() -> None:
    with pytest.raises(ValueError):
        StorageCipher(secret="")


def test_cipher_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        StorageCipher(secret="device-secret").decrypt("not-valid")


def test_previous_secret_still_decrypts() -> None:
    legacy = StorageCipher(secret="old-secret").encrypt("refresh-token")

    with pytest.raises(ValueError):
        StorageCipher(secret="new-secret").decrypt(legacy)

    rotated = StorageCipher(secret="new-secret", previous_secrets=["old-secret"])
    assert rotated.decrypt(legacy) == "refresh-token"


def test_rotate_moves_value_to_current_secret() -> None:
    legacy = StorageCipher(secret="old-secret").encrypt("refresh-token")
    cipher = StorageCipher(secret="new-secret", previous_secrets=["old-secret"])

    rekeyed = cipher.rotate(legacy)

    assert StorageCipher(secret="new-secret").decrypt(rekeyed) == "refresh-token"


def test_secure_store_reencrypt_all(tmp_path) -> None:
    raw = SQLiteKeyValueStore(str(tmp_path / "store.db"), namespace="secure")
    SecureKeyValueStore(raw, StorageCipher(secret="old")).set_item("app_pin", "1234")
    SecureKeyValueStore(raw, StorageCipher(secret="lost")).set_item("orphan", "x")

    store = SecureKeyValueStore(
        raw, StorageCipher(secret="new", previous_secrets=["old"])
    )
    unreadable = store.reencrypt_all()

    assert unreadable == ["orphan"]
    only_new = SecureKeyValueStore(raw, StorageCipher(secret="new"))
    assert only_new.get_item("app_pin") == "1234"

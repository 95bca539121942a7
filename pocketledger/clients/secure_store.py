"""Encrypted key-value store layered over the SQLite device store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from pocketledger.clients.sqlite_store import SQLiteKeyValueStore

if TYPE_CHECKING:
    from pocketledger.services.storage_cipher import StorageCipher

logger = logging.getLogger(__name__)


class SecureKeyValueStore:
    """Same surface as ``SQLiteKeyValueStore`` with values encrypted at rest."""

    def __init__(
        self,
        store: SQLiteKeyValueStore,
        cipher: StorageCipher,
    ) -> None:
        self._store = store
        self._cipher = cipher

    def set_item(self, key: str, value: str) -> None:
        self._store.set_item(key, self._cipher.encrypt(value))

    def get_item(self, key: str) -> Optional[str]:
        """Return the decrypted value, or ``None`` when missing or unreadable."""
        ciphertext = self._store.get_item(key)
        if ciphertext is None:
            return None
        try:
            return self._cipher.decrypt(ciphertext)
        except ValueError:
            logger.warning("Discarding undecryptable value stored under %s", key)
            return None

    def remove_item(self, key: str) -> None:
        self._store.remove_item(key)

    def multi_remove(self, keys: Iterable[str]) -> None:
        self._store.multi_remove(keys)

    def get_all_keys(self) -> list[str]:
        return self._store.get_all_keys()

    def reencrypt_all(self) -> list[str]:
        """Re-encrypt every readable value under the current secret.

        Returns the keys that could not be decrypted; those are left untouched.
        """
        unreadable: list[str] = []
        for key in self._store.get_all_keys():
            ciphertext = self._store.get_item(key)
            if ciphertext is None:
                continue
            try:
                self._store.set_item(key, self._cipher.rotate(ciphertext))
            except ValueError:
                unreadable.append(key)
        if unreadable:
            logger.warning("%d stored values could not be re-encrypted", len(unreadable))
        return unreadable


__all__ = ["SecureKeyValueStore"]

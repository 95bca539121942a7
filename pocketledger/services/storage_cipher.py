"""Fernet encryption for values kept in the secure device store."""

from __future__ import annotations

import base64
import hashlib
from typing import Iterable

from cryptography.fernet import Fernet, InvalidToken, MultiFernet


def _derive_key(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class StorageCipher:
    """Encrypts with ``secret``; also decrypts values written under ``previous_secrets``.

    Keeping retired secrets around lets a rotated install still read what it
    stored before, until :meth:`rotate` re-encrypts each value under the
    current key.
    """

    def __init__(self, *, secret: str, previous_secrets: Iterable[str] = ()) -> None:
        if not secret:
            raise ValueError("Storage encryption secret must be provided.")
        keys = [secret, *(old for old in previous_secrets if old and old != secret)]
        self._fernet = MultiFernet([Fernet(_derive_key(key)) for key in keys])

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError("Stored value cannot be decrypted with any known secret.") from exc
        return plaintext.decode("utf-8")

    def rotate(self, ciphertext: str) -> str:
        """Return ``ciphertext`` re-encrypted under the current secret."""
        try:
            return self._fernet.rotate(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Stored value cannot be decrypted with any known secret.") from exc


__all__ = ["StorageCipher"]

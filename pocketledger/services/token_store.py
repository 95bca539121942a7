"""Persistence of the access/refresh token pair in encrypted device storage."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

import jwt
from pydantic import ValidationError

from pocketledger.clients.secure_store import SecureKeyValueStore
from pocketledger.models.session import TokenPair

logger = logging.getLogger(__name__)


def decode_expiry(token: str) -> Optional[datetime]:
    """Return the ``exp`` claim of a JWT as an aware datetime.

    The signature is not verified; the backend does that. Unparseable tokens
    and tokens without ``exp`` yield ``None``.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


class TokenStore:
    """Reads and writes the token pair as a single encrypted record."""

    TOKENS_KEY = "auth_tokens"
    PROFILE_KEY = "user_data"

    def __init__(self, store: SecureKeyValueStore) -> None:
        self._store = store

    def get_tokens(self) -> Optional[TokenPair]:
        raw = self._store.get_item(self.TOKENS_KEY)
        if raw is None:
            return None
        try:
            tokens = TokenPair.model_validate(json.loads(raw))
        except (ValueError, ValidationError):
            logger.warning("Stored token record is malformed; treating as absent")
            return None
        if not tokens.access_token or not tokens.refresh_token:
            return None
        return tokens

    def store_tokens(
        self,
        *,
        access_token: str,
        refresh_token: str,
        id_token: Optional[str] = None,
    ) -> TokenPair:
        """Replace the stored pair wholesale, deriving expiry from the access token."""
        tokens = TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            id_token=id_token,
            expires_at=decode_expiry(access_token),
        )
        self._store.set_item(self.TOKENS_KEY, tokens.model_dump_json())
        return tokens

    def set_refresh_token(self, refresh_token: str) -> None:
        tokens = self.get_tokens()
        if tokens is None:
            return
        self.store_tokens(
            access_token=tokens.access_token,
            refresh_token=refresh_token,
            id_token=tokens.id_token,
        )

    def clear_tokens(self) -> None:
        self._store.multi_remove([self.TOKENS_KEY, self.PROFILE_KEY])


__all__ = ["TokenStore", "decode_expiry"]

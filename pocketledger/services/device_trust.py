"""
Device trust and persistent ("remember me") sessions.

A trusted device may hold a second, longer-lived refresh credential that the
session manager falls back on when the primary refresh token is rejected.
"""

from __future__ import annotations

import hashlib
import json
import logging
import platform
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from pocketledger.clients.secure_store import SecureKeyValueStore
from pocketledger.core.config import SessionSettings
from pocketledger.models.session import PersistentSession

logger = logging.getLogger(__name__)


def default_device_fingerprint() -> str:
    """Hash of stable host attributes identifying this installation."""
    components = [
        platform.system(),
        platform.release(),
        platform.machine(),
        platform.node(),
    ]
    return hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeviceTrustStore:
    """Tracks whether this device is remembered and holds its persistent session."""

    DEVICE_ID_KEY = "device_id"
    TRUSTED_DEVICES_KEY = "trusted_devices"
    REMEMBER_ME_KEY = "remember_me"
    PERSISTENT_SESSION_KEY = "persistent_session"

    def __init__(
        self,
        store: SecureKeyValueStore,
        settings: SessionSettings,
        *,
        fingerprint: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._settings = settings
        self._fingerprint = fingerprint or default_device_fingerprint()
        self._clock = clock
        self._device_id: Optional[str] = None

    @property
    def fingerprint(self) -> str:
        return self._fingerprint

    def get_device_id(self) -> str:
        if self._device_id is None:
            device_id = self._store.get_item(self.DEVICE_ID_KEY)
            if not device_id:
                device_id = f"{platform.system().lower()}_{uuid.uuid4().hex}"
                self._store.set_item(self.DEVICE_ID_KEY, device_id)
            self._device_id = device_id
        return self._device_id

    def _trusted_devices(self) -> list[str]:
        raw = self._store.get_item(self.TRUSTED_DEVICES_KEY)
        if not raw:
            return []
        try:
            devices = json.loads(raw)
        except ValueError:
            return []
        return [str(device) for device in devices] if isinstance(devices, list) else []

    def is_device_trusted(self) -> bool:
        return self.get_device_id() in self._trusted_devices()

    def is_remember_me_enabled(self) -> bool:
        return self._store.get_item(self.REMEMBER_ME_KEY) == "true"

    def trust_device(self, remember_me: bool = True) -> None:
        device_id = self.get_device_id()
        devices = self._trusted_devices()
        if device_id not in devices:
            devices.append(device_id)
            self._store.set_item(self.TRUSTED_DEVICES_KEY, json.dumps(devices))
        self._store.set_item(self.REMEMBER_ME_KEY, "true" if remember_me else "false")
        logger.info("Device marked as trusted")

    def untrust_device(self) -> None:
        device_id = self.get_device_id()
        devices = [device for device in self._trusted_devices() if device != device_id]
        self._store.set_item(self.TRUSTED_DEVICES_KEY, json.dumps(devices))
        self._store.multi_remove([self.REMEMBER_ME_KEY, self.PERSISTENT_SESSION_KEY])
        logger.info("Device trust revoked")

    def create_persistent_session(
        self, *, user_id: str, refresh_token: str, remember_me: bool = True
    ) -> PersistentSession:
        now = self._clock()
        days = (
            self._settings.persistent_session_days
            if remember_me
            else self._settings.short_session_days
        )
        session = PersistentSession(
            device_id=self.get_device_id(),
            user_id=user_id,
            refresh_token=refresh_token,
            device_fingerprint=self._fingerprint,
            created_at=now,
            last_refreshed=now,
            expires_at=now + timedelta(days=days),
            remember_me=remember_me,
        )
        self._store.set_item(self.PERSISTENT_SESSION_KEY, session.model_dump_json())
        if remember_me:
            self.trust_device(True)
        return session

    def get_persistent_session(self, *, touch: bool = True) -> Optional[PersistentSession]:
        """Return the persistent session if it is still valid for this device.

        With ``touch`` (the default) expired or foreign sessions are removed and
        ``last_refreshed`` is updated; ``expires_at`` never moves. ``touch=False``
        performs no writes.
        """
        raw = self._store.get_item(self.PERSISTENT_SESSION_KEY)
        if not raw:
            return None
        try:
            session = PersistentSession.model_validate_json(raw)
        except ValidationError:
            logger.warning("Persistent session record is malformed; discarding")
            if touch:
                self.clear_persistent_session()
            return None

        now = self._clock()
        if session.expires_at < now:
            logger.info("Persistent session expired; discarding")
            if touch:
                self.clear_persistent_session()
            return None
        if session.device_fingerprint != self._fingerprint:
            logger.warning("Persistent session fingerprint mismatch; discarding")
            if touch:
                self.clear_persistent_session()
            return None

        if touch:
            session.last_refreshed = now
            self._store.set_item(self.PERSISTENT_SESSION_KEY, session.model_dump_json())
        return session

    def clear_persistent_session(self) -> None:
        self._store.remove_item(self.PERSISTENT_SESSION_KEY)


__all__ = ["DeviceTrustStore", "default_device_fingerprint"]

"""Tracks in-flight bank-linking redirects."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from pocketledger.clients.sqlite_store import SQLiteKeyValueStore
from pocketledger.models.session import BankingCallbackMarker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BankingCallbackTracker:
    """Stores a structured marker while the user is away at their bank."""

    MARKER_KEY = "banking_callback"

    def __init__(
        self,
        store: SQLiteKeyValueStore,
        *,
        window: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._window = window
        self._clock = clock

    def mark_started(self, reference: str | None = None) -> BankingCallbackMarker:
        marker = BankingCallbackMarker(reference=reference, created_at=self._clock())
        self._store.set_item(self.MARKER_KEY, marker.model_dump_json())
        logger.info("Banking callback started (reference=%s)", reference)
        return marker

    def get_marker(self) -> Optional[BankingCallbackMarker]:
        raw = self._store.get_item(self.MARKER_KEY)
        if not raw:
            return None
        try:
            return BankingCallbackMarker.model_validate_json(raw)
        except ValidationError:
            logger.warning("Banking callback marker is malformed; ignoring")
            return None

    def is_active(self) -> bool:
        marker = self.get_marker()
        if marker is None:
            return False
        return marker.is_recent(self._clock(), self._window)

    def clear(self) -> Optional[BankingCallbackMarker]:
        marker = self.get_marker()
        self._store.remove_item(self.MARKER_KEY)
        return marker


__all__ = ["BankingCallbackTracker"]

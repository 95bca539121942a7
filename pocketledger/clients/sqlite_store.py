"""SQLite-backed key-value store standing in for device storage."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable, Optional


class SQLiteKeyValueStore:
    """Simple string key-value store using a table keyed by (namespace, key)."""

    def __init__(self, db_path: str, *, namespace: str = "device") -> None:
        self._db_path = Path(db_path)
        self._namespace = namespace
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @property
    def namespace(self) -> str:
        return self._namespace

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_items (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )

    def set_item(self, key: str, value: str) -> None:
        if not key:
            raise ValueError("Storage key must be a non-empty string")
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_items (namespace, key, value)
                VALUES (?, ?, ?)
                ON CONFLICT(namespace, key) DO UPDATE SET value = excluded.value
                """,
                (self._namespace, key, value),
            )

    def get_item(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_items WHERE namespace = ? AND key = ?",
                (self._namespace, key),
            ).fetchone()
        if not row:
            return None
        return row["value"]

    def remove_item(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM kv_items WHERE namespace = ? AND key = ?",
                (self._namespace, key),
            )

    def multi_remove(self, keys: Iterable[str]) -> None:
        with self._connect() as conn:
            conn.executemany(
                "DELETE FROM kv_items WHERE namespace = ? AND key = ?",
                [(self._namespace, key) for key in keys],
            )

    def get_all_keys(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_items WHERE namespace = ? ORDER BY key",
                (self._namespace,),
            ).fetchall()
        return [row["key"] for row in rows]


__all__ = ["SQLiteKeyValueStore"]

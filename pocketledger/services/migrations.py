"""
One-time moves of sensitive values from plaintext to encrypted device storage.

Steps are versioned. A run executes every step above the stored version; the
version only advances, and the superseded plaintext keys are only deleted,
when every step attempted in that run succeeded.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from pocketledger.clients.secure_store import SecureKeyValueStore
from pocketledger.clients.sqlite_store import SQLiteKeyValueStore

logger = logging.getLogger(__name__)


class MigrationStepError(Exception):
    """Raised by a migration step that could not complete."""


@dataclass(slots=True)
class MigrationResult:
    success: bool = True
    migrations_run: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    cleaned_keys: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MigrationStep:
    version: int
    name: str
    error_key: str
    legacy_keys: Tuple[str, ...]
    apply: Callable[[], None]


@dataclass(frozen=True, slots=True)
class MigrationStatus:
    current_version: int
    target_version: int
    needs_migration: bool


class StorageMigrationRunner:
    """Runs the versioned plaintext-to-encrypted storage migrations."""

    VERSION_KEY = "migration_version"

    def __init__(
        self,
        legacy_store: SQLiteKeyValueStore,
        secure_store: SecureKeyValueStore,
    ) -> None:
        self._legacy = legacy_store
        self._secure = secure_store
        self._steps: Tuple[MigrationStep, ...] = (
            MigrationStep(
                version=1,
                name="PIN encryption (v1)",
                error_key="PIN migration",
                legacy_keys=(
                    "app_password",
                    "has_pin",
                    "last_unlock",
                    "app_locked",
                    "pin_removed",
                ),
                apply=self._migrate_pin,
            ),
            MigrationStep(
                version=2,
                name="User data encryption (v2)",
                error_key="User data migration",
                legacy_keys=("user", "profile"),
                apply=self._migrate_user_data,
            ),
        )

    @property
    def target_version(self) -> int:
        return max(step.version for step in self._steps)

    def get_migration_version(self) -> int:
        raw = self._legacy.get_item(self.VERSION_KEY)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            logger.warning("Unreadable migration version %r; assuming 0", raw)
            return 0

    def _set_migration_version(self, version: int) -> None:
        self._legacy.set_item(self.VERSION_KEY, str(version))

    def reset_migration_version(self) -> None:
        self._legacy.remove_item(self.VERSION_KEY)

    def get_migration_status(self) -> MigrationStatus:
        current = self.get_migration_version()
        return MigrationStatus(
            current_version=current,
            target_version=self.target_version,
            needs_migration=current < self.target_version,
        )

    def run_migrations(self) -> MigrationResult:
        """Run pending steps; failures are reported in ``errors``, never raised."""
        result = MigrationResult()
        try:
            self._run_pending(result)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Storage migration aborted")
            result.errors["fatal"] = str(exc)
            result.success = False
        return result

    def _run_pending(self, result: MigrationResult) -> None:
        current = self.get_migration_version()
        logger.info(
            "Migration version %d, target %d", current, self.target_version
        )

        completed: List[MigrationStep] = []
        for step in self._steps:
            if step.version <= current:
                continue
            logger.info("Running migration v%d: %s", step.version, step.name)
            try:
                step.apply()
            except Exception as exc:  # pylint: disable=broad-except
                logger.error("Migration v%d failed: %s", step.version, exc)
                result.errors[step.error_key] = str(exc)
                result.success = False
                continue
            result.migrations_run.append(step.name)
            completed.append(step)

        if not result.success:
            logger.warning("Some migrations failed; version stays at %d", current)
            return

        if completed:
            result.cleaned_keys = self._cleanup(completed)
            self._set_migration_version(completed[-1].version)
            logger.info("Migrated storage to version %d", completed[-1].version)

    def _cleanup(self, steps: List[MigrationStep]) -> List[str]:
        """Remove migrated plaintext keys; a key that cannot be removed is left behind."""
        cleaned: List[str] = []
        for step in steps:
            for key in step.legacy_keys:
                try:
                    if self._legacy.get_item(key) is None:
                        continue
                    self._legacy.remove_item(key)
                except Exception as exc:  # pylint: disable=broad-except
                    logger.warning("Could not remove legacy key %s: %s", key, exc)
                    continue
                cleaned.append(key)
        return cleaned

    def _copy(self, legacy_key: str, secure_key: str) -> bool:
        value = self._legacy.get_item(legacy_key)
        if value is None:
            return False
        self._secure.set_item(secure_key, value)
        return True

    def _migrate_pin(self) -> None:
        try:
            if not self._copy("app_password", "app_pin"):
                logger.info("No plaintext PIN found; nothing to migrate")
                return
            self._copy("has_pin", "has_pin")
            self._copy("last_unlock", "last_unlock")
        except Exception as exc:  # pylint: disable=broad-except
            raise MigrationStepError(f"PIN migration failed: {exc}") from exc

    def _migrate_user_data(self) -> None:
        raw = self._legacy.get_item("user")
        if raw is None:
            logger.info("No plaintext user data found; nothing to migrate")
            return
        try:
            json.loads(raw)
        except ValueError:
            logger.warning("Plaintext user data is not valid JSON; skipping")
            return
        try:
            self._secure.set_item("user_data", raw)
            self._copy("profile", "user_profile")
        except Exception as exc:  # pylint: disable=broad-except
            raise MigrationStepError(f"User data migration failed: {exc}") from exc


__all__ = [
    "MigrationResult",
    "MigrationStatus",
    "MigrationStep",
    "MigrationStepError",
    "StorageMigrationRunner",
]

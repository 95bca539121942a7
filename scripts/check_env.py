"""Operational checks for a pocketledger device install.

Subcommands:

``check``
    Load ``AppSettings`` from the given ``.env`` file and report missing or
    malformed entries (``BACKEND_BASE_URL``, ``SECURITY_STORAGE_ENCRYPTION_SECRET``).
``record`` / ``verify``
    Store, then later compare, a SHA256 baseline of the ``.env`` file. A storage
    secret changed without listing the old one makes the encrypted store
    unreadable, so drift is worth catching before the service restarts.
``migrate``
    Run the pending plaintext-to-encrypted storage migrations.
``reencrypt``
    After rotating ``SECURITY_STORAGE_ENCRYPTION_SECRET``, rewrite every secure
    value under the new secret (old ones listed in
    ``SECURITY_PREVIOUS_STORAGE_SECRETS``).

Example::

    python -m scripts.check_env record --env-file .env --hash-file .env.sha256
    python -m scripts.check_env verify --env-file .env --hash-file .env.sha256
    python -m scripts.check_env migrate --env-file .env
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from pocketledger.clients import SecureKeyValueStore, SQLiteKeyValueStore
from pocketledger.core.config import AppSettings, _load_env_file
from pocketledger.services import StorageCipher, StorageMigrationRunner

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_STORAGE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _digest(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Populate the environment from ``env_file`` and build settings from it."""
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Create it or pass --env-file with the correct path."
        )
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _record(env_file: Path, hash_file: Path) -> int:
    checksum = _digest(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"No baseline at {hash_file}; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _digest(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "If the storage secret changed, list the old one in SECURITY_PREVIOUS_STORAGE_SECRETS.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _secure_store(settings: AppSettings) -> SecureKeyValueStore:
    cipher = StorageCipher(
        secret=settings.security.storage_encryption_secret,
        previous_secrets=settings.security.previous_storage_secrets,
    )
    raw = SQLiteKeyValueStore(settings.storage.db_path, namespace="secure")
    return SecureKeyValueStore(raw, cipher)


def _migrate(settings: AppSettings) -> int:
    runner = StorageMigrationRunner(
        SQLiteKeyValueStore(settings.storage.db_path, namespace="device"),
        _secure_store(settings),
    )
    status = runner.get_migration_status()
    if not status.needs_migration:
        print(f"Storage already at version {status.current_version}.")
        return EXIT_OK

    result = runner.run_migrations()
    for name in result.migrations_run:
        print(f"Applied: {name}")
    if not result.success:
        for step, message in result.errors.items():
            print(f"{step} failed: {message}", file=sys.stderr)
        return EXIT_STORAGE_ERROR
    print(f"Removed {len(result.cleaned_keys)} plaintext keys.")
    return EXIT_OK


def _reencrypt(settings: AppSettings) -> int:
    unreadable = _secure_store(settings).reencrypt_all()
    if unreadable:
        print(
            "Could not decrypt: " + ", ".join(unreadable) + "\n"
            "Add the secret they were written with to SECURITY_PREVIOUS_STORAGE_SECRETS.",
            file=sys.stderr,
        )
        return EXIT_STORAGE_ERROR
    print("Encrypted store re-keyed under the current secret.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate pocketledger settings, detect .env drift and migrate storage."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_env_file(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: ./.env).",
        )

    def add_hash_file(subparser: argparse.ArgumentParser, help_text: str) -> None:
        subparser.add_argument("--hash-file", required=True, type=Path, help=help_text)

    add_env_file(subparsers.add_parser("check", help="Validate settings only."))

    record_parser = subparsers.add_parser(
        "record", help="Validate settings and store the checksum baseline."
    )
    add_env_file(record_parser)
    add_hash_file(record_parser, "Where to write the checksum baseline.")

    verify_parser = subparsers.add_parser(
        "verify", help="Validate settings and compare against the baseline."
    )
    add_env_file(verify_parser)
    add_hash_file(verify_parser, "Previously recorded checksum baseline.")

    add_env_file(
        subparsers.add_parser("migrate", help="Run pending storage migrations.")
    )
    add_env_file(
        subparsers.add_parser(
            "reencrypt", help="Re-encrypt secure storage under the current secret."
        )
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    try:
        settings = _load_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: EXIT_OK,
        "record": lambda: _record(env_file, args.hash_file),
        "verify": lambda: _verify(env_file, args.hash_file),
        "migrate": lambda: _migrate(settings),
        "reencrypt": lambda: _reencrypt(settings),
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

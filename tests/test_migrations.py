import sqlite3

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pocketledger.services.migrations import StorageMigrationRunner


def _seed_legacy(device_store) -> None:
    device_store.set_item("app_password", "1234")
    device_store.set_item("has_pin", "true")
    device_store.set_item("last_unlock", "2024-05-01T12:00:00Z")
    device_store.set_item("app_locked", "false")
    device_store.set_item("user", '{"id": "u1", "name": "Sam"}')
    device_store.set_item("profile", '{"currency": "GBP"}')


def test_migrations_move_values_and_clean_plaintext(device_store, secure_store) -> None:
    _seed_legacy(device_store)
    runner = StorageMigrationRunner(device_store, secure_store)

    result = runner.run_migrations()

    assert result.success is True
    assert result.migrations_run == ["PIN encryption (v1)", "User data encryption (v2)"]
    assert secure_store.get_item("app_pin") == "1234"
    assert secure_store.get_item("has_pin") == "true"
    assert secure_store.get_item("user_data") == '{"id": "u1", "name": "Sam"}'
    assert secure_store.get_item("user_profile") == '{"currency": "GBP"}'
    assert set(result.cleaned_keys) == {
        "app_password",
        "has_pin",
        "last_unlock",
        "app_locked",
        "user",
        "profile",
    }
    assert device_store.get_item("app_password") is None
    assert runner.get_migration_version() == 2


def test_second_run_is_a_no_op(device_store, secure_store) -> None:
    _seed_legacy(device_store)
    runner = StorageMigrationRunner(device_store, secure_store)
    runner.run_migrations()

    device_store.set_item("app_password", "9999")
    again = runner.run_migrations()

    assert again.success is True
    assert again.migrations_run == []
    assert again.cleaned_keys == []
    assert secure_store.get_item("app_pin") == "1234"
    assert device_store.get_item("app_password") == "9999"


def test_failed_step_keeps_version_and_plaintext(device_store, secure_store) -> None:
    _seed_legacy(device_store)
    runner = StorageMigrationRunner(device_store, secure_store)
    original_set = secure_store.set_item

    def failing_set(key, value):
        if key == "user_data":
            raise RuntimeError("keychain unavailable")
        original_set(key, value)

    secure_store.set_item = failing_set
    result = runner.run_migrations()

    assert result.success is False
    assert "User data migration" in result.errors
    assert result.migrations_run == ["PIN encryption (v1)"]
    assert result.cleaned_keys == []
    assert runner.get_migration_version() == 0
    assert device_store.get_item("app_password") == "1234"

    secure_store.set_item = original_set
    retried = runner.run_migrations()

    assert retried.success is True
    assert "User data encryption (v2)" in retried.migrations_run
    assert runner.get_migration_version() == 2


def test_invalid_user_json_is_skipped_and_cleaned(device_store, secure_store) -> None:
    device_store.set_item("user", "{not json")
    runner = StorageMigrationRunner(device_store, secure_store)

    result = runner.run_migrations()

    assert result.success is True
    assert secure_store.get_item("user_data") is None
    assert "user" in result.cleaned_keys


def test_status_reflects_pending_work(device_store, secure_store) -> None:
    runner = StorageMigrationRunner(device_store, secure_store)

    status = runner.get_migration_status()
    assert (status.current_version, status.target_version) == (0, 2)
    assert status.needs_migration is True

    runner.run_migrations()
    assert runner.get_migration_status().needs_migration is False

    runner.reset_migration_version()
    assert runner.get_migration_version() == 0


def test_unreadable_version_is_treated_as_zero(device_store, secure_store) -> None:
    device_store.set_item(StorageMigrationRunner.VERSION_KEY, "v-two")

    assert StorageMigrationRunner(device_store, secure_store).get_migration_version() == 0


def test_locked_legacy_key_is_left_behind(device_store, secure_store, monkeypatch) -> None:
    _seed_legacy(device_store)
    runner = StorageMigrationRunner(device_store, secure_store)
    original_remove = device_store.remove_item

    def locked_remove(key):
        if key == "app_password":
            raise sqlite3.OperationalError("database is locked")
        original_remove(key)

    monkeypatch.setattr(device_store, "remove_item", locked_remove)
    result = runner.run_migrations()

    assert result.success is True
    assert "app_password" not in result.cleaned_keys
    assert "user" in result.cleaned_keys
    assert device_store.get_item("app_password") == "1234"
    assert runner.get_migration_version() == 2


def test_storage_failure_outside_a_step_is_reported_as_fatal(
    device_store, secure_store, monkeypatch
) -> None:
    _seed_legacy(device_store)
    runner = StorageMigrationRunner(device_store, secure_store)

    def broken_set(key, value):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(device_store, "set_item", broken_set)
    result = runner.run_migrations()

    assert result.success is False
    assert result.errors["fatal"] == "disk I/O error"
    assert runner.get_migration_version() == 0


def test_unreadable_version_store_is_reported_as_fatal(
    device_store, secure_store, monkeypatch
) -> None:
    runner = StorageMigrationRunner(device_store, secure_store)

    def broken_get(key):
        raise sqlite3.OperationalError("no such table: kv")

    monkeypatch.setattr(device_store, "get_item", broken_get)
    result = runner.run_migrations()

    assert result.success is False
    assert "fatal" in result.errors
    assert result.migrations_run == []

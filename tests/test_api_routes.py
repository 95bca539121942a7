try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import timedelta

import httpx
import pytest

from pocketledger.clients import (
    AuthAPIError,
    BackendAPIError,
    BackendUnavailableError,
    SessionExpiredError,
)
from pocketledger.dependencies import (
    get_backend_api_client,
    get_banking_callback_tracker,
    get_migration_runner,
    get_session_manager,
)
from pocketledger.main import app
from pocketledger.models.session import SessionInfo, SessionState
from pocketledger.services.banking_callback import BankingCallbackTracker
from pocketledger.services.migrations import StorageMigrationRunner

pytestmark = pytest.mark.anyio("asyncio")


class StubManager:
    def __init__(self, info: SessionInfo, token: str | None = "access") -> None:
        self.info = info
        self.token = token
        self.logins = []
        self.logouts = []
        self.login_error: Exception | None = None

    def get_session_info(self) -> SessionInfo:
        return self.info

    async def get_valid_access_token(self):
        return self.token

    async def on_resume(self) -> SessionInfo:
        return self.info

    async def login(self, username, password, *, remember_me=False):
        if self.login_error is not None:
            raise self.login_error
        self.logins.append((username, remember_me))
        self.info = SessionInfo(
            state=SessionState.ACTIVE,
            time_until_expiry=timedelta(hours=1),
            can_refresh=True,
            has_remember_me=remember_me,
        )

    def logout(self, *, forget_device=False):
        self.logouts.append(forget_device)


class StubBackend:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    async def get_profile(self):
        if self.error is not None:
            raise self.error
        return {"name": "Sam"}


@pytest.fixture()
def manager():
    stub = StubManager(
        SessionInfo(
            state=SessionState.EXPIRING_SOON,
            time_until_expiry=timedelta(minutes=2),
            can_refresh=True,
        )
    )
    app.dependency_overrides[get_session_manager] = lambda: stub
    yield stub
    app.dependency_overrides.clear()


@pytest.fixture()
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


async def test_health(client) -> None:
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_session_status_never_exposes_tokens(client, manager) -> None:
    response = await client.get("/api/session")

    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "expiring_soon"
    assert body["logged_in"] is True
    assert body["seconds_until_expiry"] == 120
    assert "access" not in response.text


async def test_refresh_reports_outcome(client, manager) -> None:
    response = await client.post("/api/session/refresh")
    assert response.json()["refreshed"] is True

    manager.token = None
    response = await client.post("/api/session/refresh")
    assert response.json()["refreshed"] is False


async def test_login_and_logout(client, manager) -> None:
    response = await client.post(
        "/api/session",
        json={"username": "sam", "password": "pw", "remember_me": True},
    )
    assert response.status_code == 201
    assert response.json()["has_remember_me"] is True
    assert manager.logins == [("sam", True)]

    response = await client.delete("/api/session", params={"forget_device": "true"})
    assert response.status_code == 204
    assert manager.logouts == [True]


async def test_login_rejected_maps_to_401(client, manager) -> None:
    manager.login_error = AuthAPIError("nope", status_code=401)

    response = await client.post(
        "/api/session", json={"username": "sam", "password": "bad"}
    )

    assert response.status_code == 401


async def test_resume_returns_session(client, manager) -> None:
    response = await client.post("/api/session/resume")

    assert response.status_code == 200
    assert response.json()["state"] == "expiring_soon"


async def test_banking_connect_and_callback(client, device_store) -> None:
    tracker = BankingCallbackTracker(device_store)
    app.dependency_overrides[get_banking_callback_tracker] = lambda: tracker

    response = await client.post("/api/banking/connect", json={"reference": "req-9"})
    assert response.status_code == 201
    assert tracker.is_active() is True

    response = await client.get("/api/banking/callback")
    assert response.json()["reference"] == "req-9"
    assert response.json()["active"] is False
    assert tracker.is_active() is False


async def test_categories_and_categorize(client) -> None:
    response = await client.get("/api/categories")
    assert len(response.json()) == 13

    response = await client.post(
        "/api/transactions/categorize",
        json={
            "transactions": [
                {"description": "TESCO GROCERY SHOPPING 12/05/2024"},
                {"description": "Card payment", "merchant": "Netflix"},
            ]
        },
    )
    results = response.json()["results"]
    assert results[0]["category"] == "groceries"
    assert results[0]["category_name"] == "Groceries"
    assert len(results) == 2


async def test_categorize_requires_transactions(client) -> None:
    response = await client.post("/api/transactions/categorize", json={"transactions": []})

    assert response.status_code == 422


async def test_migrations_status_and_run(client, device_store, secure_store) -> None:
    device_store.set_item("app_password", "1234")
    runner = StorageMigrationRunner(device_store, secure_store)
    app.dependency_overrides[get_migration_runner] = lambda: runner

    status = (await client.get("/api/migrations/status")).json()
    assert status == {"current_version": 0, "target_version": 2, "needs_migration": True}

    run = (await client.post("/api/migrations/run")).json()
    assert run["success"] is True
    assert "app_password" in run["cleaned_keys"]
    assert secure_store.get_item("app_pin") == "1234"


async def test_profile_proxy_maps_expired_session(client) -> None:
    app.dependency_overrides[get_backend_api_client] = lambda: StubBackend()
    response = await client.get("/api/profile")
    assert response.json() == {"name": "Sam"}

    app.dependency_overrides[get_backend_api_client] = lambda: StubBackend(
        SessionExpiredError("expired")
    )
    response = await client.get("/api/profile")
    assert response.status_code == 401


async def test_profile_proxy_maps_backend_outages(client) -> None:
    app.dependency_overrides[get_backend_api_client] = lambda: StubBackend(
        BackendUnavailableError("GET /profile unreachable: connection refused")
    )
    response = await client.get("/api/profile")
    assert response.status_code == 503

    app.dependency_overrides[get_backend_api_client] = lambda: StubBackend(
        BackendAPIError("GET /profile returned 422", status_code=422)
    )
    response = await client.get("/api/profile")
    assert response.status_code == 502


async def test_migration_run_reports_fatal_storage_error(
    client, device_store, secure_store, monkeypatch
) -> None:
    def broken_get(key):
        raise RuntimeError("storage offline")

    monkeypatch.setattr(device_store, "get_item", broken_get)
    runner = StorageMigrationRunner(device_store, secure_store)
    app.dependency_overrides[get_migration_runner] = lambda: runner

    response = await client.post("/api/migrations/run")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["errors"] == {"fatal": "storage offline"}

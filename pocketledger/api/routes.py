"""
FastAPI routes for the pocketledger companion service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException

from pocketledger.clients import (
    AuthAPIError,
    BackendAPIError,
    BackendUnavailableError,
    SessionExpiredError,
)
from pocketledger.core.config import AppSettings
from pocketledger.dependencies import (
    SettingsDependency,
    get_backend_api_client,
    get_banking_callback_tracker,
    get_migration_runner,
    get_session_manager,
)
from pocketledger.models.session import SessionInfo, SessionState
from pocketledger.schemas import (
    BankingCallbackStatus,
    BankingConnectRequest,
    CategorizedTransaction,
    CategorizeRequest,
    CategorizeResponse,
    CategoryOut,
    LoginRequest,
    MigrationRunOut,
    MigrationStatusOut,
    RefreshOutcome,
    SessionStatus,
)
from pocketledger.services.categorizer import all_categories, categorize, category_name

router = APIRouter()
logger = logging.getLogger(__name__)


def _session_status(info: SessionInfo) -> SessionStatus:
    seconds = None
    if info.time_until_expiry is not None:
        seconds = int(info.time_until_expiry.total_seconds())
    return SessionStatus(
        state=info.state,
        logged_in=info.state not in (SessionState.LOGGED_OUT, SessionState.EXPIRED),
        expires_at=info.expires_at,
        seconds_until_expiry=seconds,
        can_refresh=info.can_refresh,
        has_remember_me=info.has_remember_me,
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: AppSettings = SettingsDependency) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.post("/session", response_model=SessionStatus, status_code=HTTPStatus.CREATED)
async def login(
    payload: LoginRequest,
    manager: Annotated[Any, Depends(get_session_manager)],
) -> SessionStatus:
    """Sign in against the backend and store the resulting tokens."""
    try:
        await manager.login(
            payload.username, payload.password, remember_me=payload.remember_me
        )
    except AuthAPIError as exc:
        status = (
            HTTPStatus.UNAUTHORIZED
            if exc.status_code in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN)
            else HTTPStatus.BAD_GATEWAY
        )
        raise HTTPException(status_code=status, detail="Login failed.") from exc
    return _session_status(manager.get_session_info())


@router.get("/session", response_model=SessionStatus)
async def get_session(
    manager: Annotated[Any, Depends(get_session_manager)],
) -> SessionStatus:
    return _session_status(manager.get_session_info())


@router.post("/session/refresh", response_model=RefreshOutcome)
async def refresh_session(
    manager: Annotated[Any, Depends(get_session_manager)],
) -> RefreshOutcome:
    """Make sure a usable access token exists, refreshing when due."""
    token = await manager.get_valid_access_token()
    return RefreshOutcome(
        refreshed=token is not None,
        session=_session_status(manager.get_session_info()),
    )


@router.post("/session/resume", response_model=SessionStatus)
async def resume_session(
    manager: Annotated[Any, Depends(get_session_manager)],
) -> SessionStatus:
    """Hook for the host to call when the app returns to the foreground."""
    return _session_status(await manager.on_resume())


@router.delete("/session", status_code=HTTPStatus.NO_CONTENT)
async def logout(
    manager: Annotated[Any, Depends(get_session_manager)],
    forget_device: bool = False,
) -> None:
    manager.logout(forget_device=forget_device)


@router.post(
    "/banking/connect",
    response_model=BankingCallbackStatus,
    status_code=HTTPStatus.CREATED,
)
async def start_bank_connection(
    payload: BankingConnectRequest,
    tracker: Annotated[Any, Depends(get_banking_callback_tracker)],
) -> BankingCallbackStatus:
    """Record that the user is being redirected to their bank."""
    marker = tracker.mark_started(payload.reference)
    return BankingCallbackStatus(
        active=True, reference=marker.reference, created_at=marker.created_at
    )


@router.get("/banking/callback", response_model=BankingCallbackStatus)
async def complete_bank_connection(
    tracker: Annotated[Any, Depends(get_banking_callback_tracker)],
) -> BankingCallbackStatus:
    """Bank redirect landed; session expiry handling may resume."""
    marker = tracker.clear()
    if marker is None:
        return BankingCallbackStatus(active=False)
    return BankingCallbackStatus(
        active=False, reference=marker.reference, created_at=marker.created_at
    )


@router.get("/categories", response_model=list[CategoryOut])
async def list_categories() -> list[CategoryOut]:
    return [
        CategoryOut(id=category.label, name=category.name, emoji=category.emoji)
        for category in all_categories()
    ]


@router.post("/transactions/categorize", response_model=CategorizeResponse)
async def categorize_transactions(payload: CategorizeRequest) -> CategorizeResponse:
    results = []
    for item in payload.transactions:
        label = categorize(item.description, item.merchant)
        results.append(
            CategorizedTransaction(
                description=item.description,
                merchant=item.merchant,
                category=label,
                category_name=category_name(label),
            )
        )
    return CategorizeResponse(results=results)


@router.get("/migrations/status", response_model=MigrationStatusOut)
async def migration_status(
    runner: Annotated[Any, Depends(get_migration_runner)],
) -> MigrationStatusOut:
    status = runner.get_migration_status()
    return MigrationStatusOut(
        current_version=status.current_version,
        target_version=status.target_version,
        needs_migration=status.needs_migration,
    )


@router.post("/migrations/run", response_model=MigrationRunOut)
async def run_migrations(
    runner: Annotated[Any, Depends(get_migration_runner)],
) -> MigrationRunOut:
    result = runner.run_migrations()
    if not result.success:
        logger.warning("Storage migration incomplete: %s", result.errors)
    return MigrationRunOut(
        success=result.success,
        migrations_run=result.migrations_run,
        errors=result.errors,
        cleaned_keys=result.cleaned_keys,
    )


@router.get("/profile")
async def get_profile(
    backend: Annotated[Any, Depends(get_backend_api_client)],
) -> dict:
    """Proxy the backend profile through the managed session."""
    try:
        return await backend.get_profile()
    except SessionExpiredError as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Session expired - please log in again.",
        ) from exc
    except BackendUnavailableError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Backend unavailable - try again shortly.",
        ) from exc
    except BackendAPIError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=str(exc),
        ) from exc

"""
FastAPI application entrypoint for the pocketledger companion service.
"""

from __future__ import annotations

from fastapi import FastAPI

from pocketledger.api.routes import router as api_router
from pocketledger.core.config import get_settings
from pocketledger.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="pocketledger",
        version="0.1.0",
        description="Local session, categorization and device-storage service.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]

"""
FastAPI application entrypoint for the CRM lead bridge.
"""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from lead_bridge.api.routes import router as api_router
from lead_bridge.core.config import get_settings
from lead_bridge.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="CRM Lead Bridge",
        version="0.1.0",
        description="Stores CRM OAuth credentials and turns website leads into CRM contacts.",
    )
    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "lead_bridge.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


__all__ = ["app", "create_app", "run"]

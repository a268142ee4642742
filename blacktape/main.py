"""
FastAPI application entrypoint for the BlackTape analysis service.
"""

from __future__ import annotations

from fastapi import FastAPI

from blacktape import __version__
from blacktape.api.routes import router as api_router
from blacktape.core.config import get_settings
from blacktape.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="BlackTape",
        version=__version__,
        description="Streaming plan stress-test analysis with progressive section delivery.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]

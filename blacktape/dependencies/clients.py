"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from blacktape.clients import GeminiClient
from blacktape.core.config import AppSettings, get_settings
from blacktape.services import (
    AnalysisStreamController,
    InMemorySessionStore,
    SQLiteSessionStore,
    SessionStore,
    TokenSource,
)

from .config import get_app_settings

logger = logging.getLogger(__name__)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_session_store() -> SessionStore:
    """Provide the process-wide session store for the configured backend."""
    settings = _settings()
    if settings.storage.backend == "sqlite":
        logger.info("Using SQLite session store at %s", settings.storage.sqlite_path)
        return SQLiteSessionStore(settings.storage.sqlite_path)
    return InMemorySessionStore()


@lru_cache()
def get_gemini_client() -> GeminiClient:
    """Provide Gemini client instance."""
    settings = _settings()
    return GeminiClient(settings.gemini)


def get_token_source(
    gemini: Annotated[GeminiClient, Depends(get_gemini_client)],
) -> TokenSource:
    """Upstream text source used by streaming runs."""
    return gemini


def get_analysis_stream_controller(
    token_source: Annotated[TokenSource, Depends(get_token_source)],
    store: Annotated[SessionStore, Depends(get_session_store)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> AnalysisStreamController:
    """Build a controller for one streaming request."""
    return AnalysisStreamController(
        token_source,
        store,
        max_stream_seconds=settings.streaming.max_stream_seconds,
    )


__all__ = [
    "get_analysis_stream_controller",
    "get_gemini_client",
    "get_session_store",
    "get_token_source",
]

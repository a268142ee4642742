"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_analysis_stream_controller,
    get_gemini_client,
    get_session_store,
    get_token_source,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_analysis_stream_controller",
    "get_app_settings",
    "get_gemini_client",
    "get_session_store",
    "get_token_source",
]

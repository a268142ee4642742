"""Pytest configuration shared across the suite."""

import pytest

from blacktape.services.session_store import InMemorySessionStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def store() -> InMemorySessionStore:
    """Fresh process-local session store."""
    return InMemorySessionStore()

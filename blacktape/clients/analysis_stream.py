"""Async HTTP client for consuming analysis streams from a BlackTape server."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx

from blacktape.services.analysis_document import loaded_sections
from blacktape.services.stream_events import decode_event_line, is_terminal
from blacktape.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class AnalysisStreamError(RuntimeError):
    """Raised when the server rejects a stream request before it starts."""


@dataclass(slots=True)
class SessionSnapshot:
    """What a poll of the session revealed."""

    status: str
    loaded: List[str] = field(default_factory=list)
    session: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return self.status == "completed"


class AnalysisStreamClient:
    """Start analysis runs, decode their event streams and poll sessions."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        # Streams stay open as long as the model keeps producing; only
        # connecting is bounded.
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout, read=None),
            transport=self._transport,
        )

    async def stream_analysis(
        self,
        user_input: str = "",
        *,
        action: str = "new",
        analysis_id: str | None = None,
        additional_context: str | None = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        payload: Dict[str, Any] = {"userInput": user_input, "action": action}
        if analysis_id:
            payload["analysisId"] = analysis_id
        if additional_context:
            payload["additionalContext"] = additional_context
        async for event in self._stream("/api/analyze", payload):
            yield event

    async def stream_chat(
        self,
        analysis_id: str,
        message: str,
        *,
        action: str = "question",
    ) -> AsyncIterator[Dict[str, Any]]:
        payload = {"analysisId": analysis_id, "message": message, "action": action}
        async for event in self._stream("/api/chat", payload):
            yield event

    async def _stream(self, path: str, payload: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
        async with self._client() as client:
            async with client.stream("POST", path, json=payload) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise AnalysisStreamError(
                        f"{path} rejected with {response.status_code}: {response.text}"
                    )
                async for line in response.aiter_lines():
                    event = decode_event_line(line)
                    if event is None:
                        continue
                    yield event
                    if is_terminal(event):
                        return
        logger.warning("Stream from %s ended without a terminal event.", path)

    async def fetch_session(self, analysis_id: str) -> Dict[str, Any]:
        """Return ``{"analysis": ..., "messages": [...]}`` for one session."""
        async with self._client() as client:
            response = await request_with_retry(
                client.get,
                f"/api/analyses/{analysis_id}",
                retry_config=RetryConfig(),
            )
        return response.json()

    async def poll_until_complete(
        self,
        analysis_id: str,
        *,
        interval: float = 2.0,
        timeout: float = 300.0,
        on_progress: Optional[Callable[[SessionSnapshot], None]] = None,
    ) -> SessionSnapshot:
        """Re-fetch the session until its status is ``completed``.

        Loaded sections are judged by the document's placeholder predicate, not
        by presence, since unpopulated sections hold non-null placeholders.
        ``on_progress`` is called whenever the set of loaded sections or the
        status changes. Raises ``TimeoutError`` when ``timeout`` elapses first.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        previous: tuple[str, tuple[str, ...]] | None = None
        while True:
            session = await self.fetch_session(analysis_id)
            analysis = session.get("analysis") or {}
            snapshot = SessionSnapshot(
                status=str(analysis.get("status", "pending")),
                loaded=loaded_sections(analysis),
                session=session,
            )
            marker = (snapshot.status, tuple(snapshot.loaded))
            if marker != previous:
                previous = marker
                if on_progress is not None:
                    on_progress(snapshot)
            if snapshot.is_complete:
                return snapshot
            if loop.time() + interval > deadline:
                raise TimeoutError(
                    f"Analysis {analysis_id} not completed within {timeout:.0f}s "
                    f"(status {snapshot.status})."
                )
            await asyncio.sleep(interval)


__all__ = ["AnalysisStreamClient", "AnalysisStreamError", "SessionSnapshot"]

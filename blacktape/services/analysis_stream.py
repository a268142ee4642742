"""
Streaming session controller.

Drives one upstream model stream for an analysis session, forwarding raw text
to the client while completed top-level fields are extracted, broadcast and
merged into the stored document as soon as they close.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Protocol, Sequence

from blacktape.services.progressive_parser import extract_sections
from blacktape.services.prompts import PASS_SEPARATOR, AnalysisPass
from blacktape.services.session_store import SessionNotFoundError, SessionStore
from blacktape.services.stream_events import (
    analysis_id_event,
    chunk_event,
    done_event,
    error_event,
    section_event,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_STREAM_SECONDS = 600.0


class StreamState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_TOKEN = "awaiting_first_token"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


class TokenSource(Protocol):
    """Anything that can stream model text for a prompt."""

    def stream_text(
        self,
        *,
        system_prompt: str,
        prompt: str,
        history: Sequence[Mapping[str, str]],
    ) -> AsyncIterator[str]:
        ...


class AnalysisStreamController:
    """Run analysis passes against a token source and keep the session in sync.

    ``run`` yields transport payloads in emission order: the analysis id, then
    raw chunks interleaved with section events (a chunk always precedes the
    sections it completed), then exactly one of ``{"done": True}`` or
    ``{"error": ...}``. A session that vanished before the run started yields
    only the error payload. No exception escapes apart from cancellation.
    """

    def __init__(
        self,
        token_source: TokenSource,
        store: SessionStore,
        *,
        max_stream_seconds: float = DEFAULT_MAX_STREAM_SECONDS,
    ) -> None:
        self._token_source = token_source
        self._store = store
        self._max_stream_seconds = max_stream_seconds
        self.state = StreamState.IDLE

    async def run(
        self,
        *,
        analysis_id: str,
        user_message: str,
        passes: Sequence[AnalysisPass],
    ) -> AsyncIterator[Dict[str, Any]]:
        self.state = StreamState.IDLE
        try:
            session = self._store.require(analysis_id)
            history = [
                {"role": message.role, "content": message.content}
                for message in session.messages
            ]
            self._store.add_message(analysis_id, "user", user_message)
            self._store.update_analysis(analysis_id, {"status": "in_progress"})
        except SessionNotFoundError:
            logger.warning("Analysis %s disappeared before streaming started.", analysis_id)
            self.state = StreamState.FAILED
            yield error_event()
            return
        yield analysis_id_event(analysis_id)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._max_stream_seconds
        completed: set[str] = set()
        buffers: List[str] = []

        try:
            self.state = StreamState.AWAITING_FIRST_TOKEN
            for stream_pass in passes:
                previous = PASS_SEPARATOR.join(buffers)
                buffers.append("")
                tokens = self._token_source.stream_text(
                    system_prompt=stream_pass.system_prompt,
                    prompt=stream_pass.prompt(previous),
                    history=history,
                )
                try:
                    while True:
                        token = await self._next_token(tokens, deadline, loop)
                        if token is None:
                            break
                        self.state = StreamState.STREAMING
                        buffers[-1] += token
                        yield chunk_event(token)
                        for event in self._merge_new_sections(
                            analysis_id, buffers[-1], stream_pass.tag, completed
                        ):
                            yield event
                finally:
                    await _close(tokens)

            self.state = StreamState.FINALIZING
            self._store.add_message(analysis_id, "assistant", PASS_SEPARATOR.join(buffers))
            for stream_pass, buffer in zip(passes, buffers):
                for event in self._merge_new_sections(
                    analysis_id, buffer, stream_pass.tag, completed
                ):
                    yield event
            self._store.advance_status(analysis_id, "completed")
        except asyncio.TimeoutError:
            logger.warning(
                "Analysis %s exceeded %.0fs streaming limit; %d section(s) merged.",
                analysis_id,
                self._max_stream_seconds,
                len(completed),
            )
            self.state = StreamState.FAILED
            yield error_event()
            return
        except Exception:
            logger.exception(
                "Analysis %s stream failed after %d section(s).", analysis_id, len(completed)
            )
            self.state = StreamState.FAILED
            yield error_event()
            return

        self.state = StreamState.DONE
        logger.info("Analysis %s completed with %d section(s).", analysis_id, len(completed))
        yield done_event()

    async def _next_token(
        self,
        tokens: AsyncIterator[str],
        deadline: float,
        loop: asyncio.AbstractEventLoop,
    ) -> Optional[str]:
        """Wait for the next token within the remaining budget; ``None`` at end."""
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise asyncio.TimeoutError
        try:
            return await asyncio.wait_for(tokens.__anext__(), timeout=remaining)
        except StopAsyncIteration:
            return None

    def _merge_new_sections(
        self,
        analysis_id: str,
        buffer: str,
        tag: str,
        completed: set[str],
    ) -> List[Dict[str, Any]]:
        """Merge each newly complete section and return its event.

        Merging happens before the events are handed out so a client that
        disconnects on receipt still leaves the section stored.
        """
        extraction = extract_sections(buffer, completed, tag=tag)
        events: List[Dict[str, Any]] = []
        for name in extraction.newly_reported:
            value = extraction.fields[name]
            completed.add(name)
            self._store.merge_update(analysis_id, {name: value})
            logger.debug("Merged section %s into analysis %s.", name, analysis_id)
            events.append(section_event(name, value))
        return events


async def _close(tokens: AsyncIterator[str]) -> None:
    aclose = getattr(tokens, "aclose", None)
    if aclose is not None:
        await aclose()


__all__ = [
    "AnalysisStreamController",
    "DEFAULT_MAX_STREAM_SECONDS",
    "StreamState",
    "TokenSource",
]

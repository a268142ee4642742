"""Wire format for analysis stream events.

Each event is one ``data: <json>`` line followed by a blank line. Payloads are
one of ``{"analysisId"}``, ``{"chunk"}``, ``{"section", "data"}``,
``{"done": true}`` or ``{"error"}``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
STREAM_FAILED_MESSAGE = "Analysis streaming failed"


def analysis_id_event(analysis_id: str) -> Dict[str, Any]:
    return {"analysisId": analysis_id}


def chunk_event(chunk: str) -> Dict[str, Any]:
    return {"chunk": chunk}


def section_event(section: str, data: Any) -> Dict[str, Any]:
    return {"section": section, "data": data}


def done_event() -> Dict[str, Any]:
    return {"done": True}


def error_event(message: str = STREAM_FAILED_MESSAGE) -> Dict[str, Any]:
    return {"error": message}


def is_terminal(event: Dict[str, Any]) -> bool:
    return event.get("done") is True or "error" in event


def encode_event(event: Dict[str, Any]) -> str:
    return f"{DATA_PREFIX}{json.dumps(event)}\n\n"


def decode_event_line(line: str) -> Optional[Dict[str, Any]]:
    """Parse one transport line.

    Returns ``None`` for blank lines, lines without the data prefix and lines
    whose payload is not a JSON object, so a single bad line can be skipped
    without losing the rest of the stream.
    """
    line = line.strip()
    if not line.startswith(DATA_PREFIX.strip()):
        return None
    payload = line[len(DATA_PREFIX.strip()):].strip()
    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed stream line: %r", line[:200])
        return None
    if not isinstance(event, dict):
        return None
    return event


__all__ = [
    "STREAM_FAILED_MESSAGE",
    "analysis_id_event",
    "chunk_event",
    "decode_event_line",
    "done_event",
    "encode_event",
    "error_event",
    "is_terminal",
    "section_event",
]

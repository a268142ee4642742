"""Service layer exports."""

from .sections import ALL_SECTIONS, SECTION_GROUPS, SECTION_LABELS
from .progressive_parser import FieldExtraction, extract_sections, strip_tagged_json
from .analysis_document import (
    create_analysis,
    is_section_loaded,
    loaded_sections,
    merge_analysis_update,
)
from .session_store import (
    AnalysisSession,
    ChatMessage,
    InMemorySessionStore,
    SQLiteSessionStore,
    SessionNotFoundError,
    SessionStore,
)
from .stream_events import decode_event_line, encode_event
from .prompts import AnalysisPass, build_passes
from .export import export_analysis
from .analysis_stream import AnalysisStreamController, StreamState, TokenSource

__all__ = [
    "ALL_SECTIONS",
    "AnalysisPass",
    "AnalysisSession",
    "AnalysisStreamController",
    "ChatMessage",
    "FieldExtraction",
    "InMemorySessionStore",
    "SECTION_GROUPS",
    "SECTION_LABELS",
    "SQLiteSessionStore",
    "SessionNotFoundError",
    "SessionStore",
    "StreamState",
    "TokenSource",
    "build_passes",
    "create_analysis",
    "decode_event_line",
    "encode_event",
    "export_analysis",
    "extract_sections",
    "is_section_loaded",
    "loaded_sections",
    "merge_analysis_update",
    "strip_tagged_json",
]

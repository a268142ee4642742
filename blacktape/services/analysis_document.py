"""
Versioned analysis documents: creation, partial merges and load detection.

Documents are plain JSON-compatible dictionaries keyed in camelCase so they can
be stored and served without translation. Every function here returns a new
dictionary and leaves its input untouched.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping
from uuid import uuid4

from blacktape.schemas import section_placeholder
from blacktape.services.sections import ALL_SECTIONS

STATUS_ORDER: tuple[str, ...] = ("pending", "in_progress", "completed")

BASELINE_VERSION = "1.0"
PENDING_NOTES = "Pending analysis"
MERGE_CHANGE_SUMMARY = "Analysis updated based on new input"
MERGE_REASON = "User refinement or AI analysis update"

_IMMUTABLE_KEYS = ("id", "createdAt")
_TITLE_LIMIT = 100


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _next_timestamp(previous: Any) -> str:
    """Current time, never earlier than ``previous``."""
    now = utc_timestamp()
    if isinstance(previous, str) and previous > now:
        return previous
    return now


def create_analysis(user_input: str) -> Dict[str, Any]:
    """Build the zero-state document for a new analysis."""
    now = utc_timestamp()
    title = user_input[:_TITLE_LIMIT] + ("..." if len(user_input) > _TITLE_LIMIT else "")
    document: Dict[str, Any] = {
        "id": str(uuid4()),
        "createdAt": now,
        "updatedAt": now,
        "title": title,
        "userInput": user_input,
        "mode": "idea-only",
        "status": "pending",
        "version": BASELINE_VERSION,
    }
    for field in ALL_SECTIONS:
        document[field] = section_placeholder(field)
    document["decisionLog"] = [
        {
            "version": BASELINE_VERSION,
            "timestamp": now,
            "changeSummary": "Initial baseline model created",
            "reason": "User initiated new analysis",
        }
    ]
    return document


def increment_version(version: Any) -> str:
    """Bump the minor component: ``"1.4"`` becomes ``"1.5"``.

    A missing or non-numeric minor counts as 0.
    """
    major, _, minor = str(version or "").partition(".")
    try:
        minor_number = int(minor)
    except ValueError:
        minor_number = 0
    return f"{major or '1'}.{minor_number + 1}"


def merge_analysis_update(
    document: Mapping[str, Any],
    update: Mapping[str, Any],
    *,
    author: str | None = None,
) -> Dict[str, Any]:
    """Overlay ``update`` onto ``document`` as one audited version bump."""
    timestamp = _next_timestamp(document.get("updatedAt"))
    new_version = increment_version(document.get("version"))

    merged: Dict[str, Any] = {**copy.deepcopy(dict(document)), **copy.deepcopy(dict(update))}
    for key in _IMMUTABLE_KEYS:
        if key in document:
            merged[key] = document[key]
        else:
            merged.pop(key, None)
    merged["updatedAt"] = timestamp
    merged["version"] = new_version

    entry: Dict[str, Any] = {
        "version": new_version,
        "timestamp": timestamp,
        "changeSummary": MERGE_CHANGE_SUMMARY,
        "reason": MERGE_REASON,
    }
    if author:
        entry["author"] = author
    merged["decisionLog"] = [*copy.deepcopy(list(document.get("decisionLog") or [])), entry]
    return merged


def apply_analysis_fields(
    document: Mapping[str, Any], updates: Mapping[str, Any]
) -> Dict[str, Any]:
    """Patch metadata such as ``status`` without creating a new version."""
    patched: Dict[str, Any] = {**copy.deepcopy(dict(document)), **copy.deepcopy(dict(updates))}
    for key in (*_IMMUTABLE_KEYS, "version", "decisionLog"):
        if key in document:
            patched[key] = copy.deepcopy(document[key])
    patched["updatedAt"] = _next_timestamp(document.get("updatedAt"))
    return patched


def advance_status(document: Mapping[str, Any], status: str) -> Dict[str, Any]:
    """Move ``status`` forward; a request to move backwards is a no-op."""
    if status not in STATUS_ORDER:
        raise ValueError(f"Unknown analysis status: {status!r}")
    current = document.get("status")
    if current in STATUS_ORDER and STATUS_ORDER.index(current) >= STATUS_ORDER.index(status):
        return dict(document)
    return apply_analysis_fields(document, {"status": status})


def _has_text(key: str) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return isinstance(value, dict) and bool(value.get(key))

    return check


def _ethics_loaded(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    bias = value.get("biasRisk")
    if not isinstance(bias, dict):
        return False
    return bias.get("notes") != PENDING_NOTES


def _differs_from_placeholder(field: str) -> Callable[[Any], bool]:
    placeholder = section_placeholder(field)

    def check(value: Any) -> bool:
        return bool(value) and value != placeholder

    return check


_LOADED_CHECKS: Dict[str, Callable[[Any], bool]] = {
    field: _differs_from_placeholder(field) for field in ALL_SECTIONS
}
_LOADED_CHECKS.update(
    {
        "executiveSummary": _has_text("tldr"),
        "planSummary": _has_text("objective"),
        "ethicsCheck": _ethics_loaded,
    }
)


def is_section_loaded(document: Mapping[str, Any], field: str) -> bool:
    """Whether ``field`` holds real content rather than its placeholder.

    Placeholders are non-null, so readers must use this check instead of a
    ``None`` test to decide whether a section has arrived.
    """
    if field not in _LOADED_CHECKS:
        raise ValueError(f"Unknown analysis section: {field!r}")
    value = document.get(field)
    if value is None:
        return False
    return _LOADED_CHECKS[field](value)


def loaded_sections(document: Mapping[str, Any]) -> List[str]:
    return [field for field in ALL_SECTIONS if is_section_loaded(document, field)]


__all__ = [
    "BASELINE_VERSION",
    "MERGE_CHANGE_SUMMARY",
    "MERGE_REASON",
    "STATUS_ORDER",
    "advance_status",
    "apply_analysis_fields",
    "create_analysis",
    "increment_version",
    "is_section_loaded",
    "loaded_sections",
    "merge_analysis_update",
    "utc_timestamp",
]

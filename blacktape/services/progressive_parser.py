"""
Progressive extraction of completed top-level fields from streamed JSON.

The model answers with narrative text wrapping a JSON object between
``<analysis_json>`` and ``</analysis_json>``. While tokens are still arriving
the object is incomplete, so ``extract_sections`` reports each top-level field
as soon as its value is fully present in the buffer. The function is pure: the
caller keeps the set of already reported fields and passes it back in on the
next call with the (longer) buffer.

A field value, once reported, is always the exact slice that a full parse of
the finished object would produce for it. Duplicate keys resolve to their
first occurrence in both modes. Incomplete values are never
reported and transient parse failures are never raised.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Iterable, Iterator, Optional

from blacktape.services.sections import ALL_SECTIONS

DEFAULT_TAG = "analysis_json"

_FENCE_RE = re.compile(r"^\s*```(?:json)?|```\s*$", re.IGNORECASE)
_WHITESPACE = " \t\r\n"
_PRIMITIVE_TERMINATORS = frozenset(",}]" + _WHITESPACE)


@dataclass(slots=True)
class FieldExtraction:
    """Fields that became complete in one extraction call."""

    fields: dict[str, Any] = field(default_factory=dict)
    newly_reported: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.newly_reported)


def extract_sections(
    buffer: str,
    already_reported: AbstractSet[str],
    *,
    tag: str = DEFAULT_TAG,
    known_fields: Iterable[str] = ALL_SECTIONS,
) -> FieldExtraction:
    """Return the known fields whose values are complete and not yet reported.

    Fields come back in ``known_fields`` order regardless of where they sit in
    the buffer.
    """
    result = FieldExtraction()
    open_tag = f"<{tag}>"
    open_idx = buffer.find(open_tag)
    if open_idx == -1:
        return result
    body_start = open_idx + len(open_tag)
    catalogue = list(known_fields)

    close_idx = buffer.find(f"</{tag}>", body_start)
    if close_idx != -1:
        parsed = _parse_complete_object(buffer[body_start:close_idx])
        if parsed is not None:
            for name in catalogue:
                if name in parsed and name not in already_reported:
                    result.fields[name] = parsed[name]
                    result.newly_reported.append(name)
            return result
        # The first close tag may sit inside a string value; scan instead.

    pending = {name for name in catalogue if name not in already_reported}
    if not pending:
        return result

    found: dict[str, Any] = {}
    seen: set[str] = set()
    for key, raw_value in _iter_top_level_values(buffer, body_start):
        if key in seen:
            continue
        seen.add(key)
        if key not in pending:
            continue
        try:
            found[key] = _loads(raw_value)
        except json.JSONDecodeError:
            continue

    for name in catalogue:
        if name in found:
            result.fields[name] = found[name]
            result.newly_reported.append(name)
    return result


def strip_tagged_json(text: str, tag: str = DEFAULT_TAG) -> str:
    """Remove the first delimited JSON block from a narrative."""
    pattern = re.compile(rf"<{re.escape(tag)}>[\s\S]*?</{re.escape(tag)}>")
    return pattern.sub("", text, count=1).strip()


def _first_occurrence(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    for key, value in pairs:
        obj.setdefault(key, value)
    return obj


def _loads(raw: str) -> Any:
    return json.loads(raw, object_pairs_hook=_first_occurrence)


def _parse_complete_object(raw: str) -> Optional[dict[str, Any]]:
    cleaned = _FENCE_RE.sub("", raw).strip()
    try:
        parsed = _loads(cleaned)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _iter_top_level_values(text: str, start: int) -> Iterator[tuple[str, str]]:
    """Yield ``(key, raw_value)`` for each complete member of the first object.

    Stops at the first member whose key or value is still incomplete, or when
    the object closes.
    """
    pos = text.find("{", start)
    if pos == -1:
        return
    pos += 1
    length = len(text)
    while True:
        pos = _skip(text, pos, _WHITESPACE + ",")
        if pos >= length or text[pos] == "}":
            return
        if text[pos] != '"':
            return
        key_end = _find_string_end(text, pos)
        if key_end == -1:
            return
        try:
            key = json.loads(text[pos:key_end])
        except json.JSONDecodeError:
            return
        pos = _skip(text, key_end, _WHITESPACE)
        if pos >= length or text[pos] != ":":
            return
        value_start = _skip(text, pos + 1, _WHITESPACE)
        if value_start >= length:
            return
        value_end = _find_value_end(text, value_start)
        if value_end == -1:
            return
        yield key, text[value_start:value_end]
        pos = value_end


def _skip(text: str, pos: int, chars: str) -> int:
    length = len(text)
    while pos < length and text[pos] in chars:
        pos += 1
    return pos


def _find_value_end(text: str, start: int) -> int:
    """Return the index just past the value starting at ``start``, or -1."""
    first = text[start]
    if first in "{[":
        closer = _find_matching_bracket(text, start)
        return -1 if closer == -1 else closer + 1
    if first == '"':
        return _find_string_end(text, start)

    # Primitives only count once a terminator shows they stopped growing.
    end = start
    length = len(text)
    while end < length and text[end] not in _PRIMITIVE_TERMINATORS:
        end += 1
    return end if end < length else -1


def _find_matching_bracket(text: str, start: int) -> int:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return index
    return -1


def _find_string_end(text: str, start: int) -> int:
    """Return the index just past the closing quote of the string at ``start``."""
    escaped = False
    for index in range(start + 1, len(text)):
        char = text[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            return index + 1
    return -1


__all__ = [
    "DEFAULT_TAG",
    "FieldExtraction",
    "extract_sections",
    "strip_tagged_json",
]

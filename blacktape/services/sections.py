"""Catalogue of the structured analysis sections and their UI groups."""

from __future__ import annotations

from typing import Iterable

ALL_SECTIONS: tuple[str, ...] = (
    "executiveSummary",
    "planSummary",
    "riskScores",
    "riskDetails",
    "assumptions",
    "unknowns",
    "scenarios",
    "nextBestActions",
    "evidenceLocker",
    "ethicsCheck",
)

SECTION_LABELS: dict[str, str] = {
    "executiveSummary": "Executive Summary",
    "planSummary": "Plan Summary",
    "riskScores": "Risk Scores",
    "riskDetails": "Risk Details",
    "assumptions": "Assumptions",
    "unknowns": "Unknowns",
    "scenarios": "Scenarios",
    "nextBestActions": "Next Best Actions",
    "evidenceLocker": "Evidence Locker",
    "ethicsCheck": "Ethics & Governance",
}

SECTION_GROUPS: dict[str, str] = {
    "executiveSummary": "overview",
    "planSummary": "overview",
    "riskScores": "risks",
    "riskDetails": "risks",
    "assumptions": "risks",
    "unknowns": "risks",
    "scenarios": "scenarios",
    "nextBestActions": "scenarios",
    "evidenceLocker": "evidence",
    "ethicsCheck": "audit",
}

GROUPS: tuple[str, ...] = ("overview", "risks", "scenarios", "evidence", "audit")


def all_fields() -> list[str]:
    """Return the section names in their declared reveal order."""
    return list(ALL_SECTIONS)


def is_section(field: str) -> bool:
    return field in SECTION_LABELS


def label_of(field: str) -> str:
    try:
        return SECTION_LABELS[field]
    except KeyError:
        raise ValueError(f"Unknown analysis section: {field!r}") from None


def group_of(field: str) -> str:
    try:
        return SECTION_GROUPS[field]
    except KeyError:
        raise ValueError(f"Unknown analysis section: {field!r}") from None


def fields_in_group(group: str) -> list[str]:
    if group not in GROUPS:
        raise ValueError(f"Unknown section group: {group!r}")
    return [field for field in ALL_SECTIONS if SECTION_GROUPS[field] == group]


def is_group_loaded(group: str, loaded: Iterable[str]) -> bool:
    """True when every section mapped to ``group`` is in ``loaded``."""
    loaded_set = set(loaded)
    return all(field in loaded_set for field in fields_in_group(group))


def group_has_data(group: str, loaded: Iterable[str]) -> bool:
    """True when at least one section mapped to ``group`` is in ``loaded``."""
    loaded_set = set(loaded)
    return any(field in loaded_set for field in fields_in_group(group))


__all__ = [
    "ALL_SECTIONS",
    "GROUPS",
    "SECTION_GROUPS",
    "SECTION_LABELS",
    "all_fields",
    "fields_in_group",
    "group_has_data",
    "group_of",
    "is_group_loaded",
    "is_section",
    "label_of",
]

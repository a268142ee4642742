"""Render analysis documents as JSON or Markdown reports."""

from __future__ import annotations

import json
from typing import Any, Iterable, List, Literal, Mapping

from blacktape.schemas import DecisionLogEntry, coerce_section

ExportFormat = Literal["json", "markdown"]

_RISK_DIMENSIONS = (
    ("Cost", "cost"),
    ("Timeline", "timeline"),
    ("Compliance", "compliance"),
    ("Consensus", "consensus"),
    ("Execution Capacity", "execution_capacity"),
    ("Adoption", "adoption"),
    ("Trust", "trust"),
)


def export_analysis(document: Mapping[str, Any], fmt: ExportFormat = "markdown") -> str:
    if fmt == "json":
        return json.dumps(document, indent=2)
    if fmt == "markdown":
        return _render_markdown(document)
    raise ValueError(f"Unsupported export format: {fmt!r}")


def _bullets(items: Iterable[str]) -> List[str]:
    return [f"- {item}" for item in items]


def _numbered(items: Iterable[str]) -> List[str]:
    return [f"{index}. {item}" for index, item in enumerate(items, start=1)]


def _cell(value: Any) -> str:
    return str(value if value is not None else "").replace("|", "\\|").replace("\n", " ")


def _render_markdown(document: Mapping[str, Any]) -> str:
    summary = coerce_section("executiveSummary", document.get("executiveSummary"))
    plan = coerce_section("planSummary", document.get("planSummary"))
    scores = coerce_section("riskScores", document.get("riskScores"))
    ethics = coerce_section("ethicsCheck", document.get("ethicsCheck"))

    lines: List[str] = [f"# {document.get('title', 'Untitled analysis')}", ""]

    lines += [
        "## Executive Summary",
        summary.tldr,
        "",
        f"**Confidence Level:** {summary.confidence_level}",
        f"**Mode:** {summary.mode_detected}",
        "",
        "### Top Risks",
        *_numbered(summary.top_risks),
        "",
        "### Top Actions",
        *_numbered(summary.top_actions),
        "",
        "---",
        "",
    ]

    lines += [
        "## Plan Summary",
        "",
        f"**Objective:** {plan.objective}",
        f"**Scope:** {plan.scope}",
        f"**Timeline:** {plan.timeline}",
        f"**Budget:** {plan.budget}",
        "",
        "### Stakeholders",
    ]
    for stakeholder in plan.stakeholders:
        note = f": {stakeholder.notes}" if stakeholder.notes else ""
        lines.append(f"- **{stakeholder.name}** ({stakeholder.role}){note}")
    lines += ["", "### Dependencies", *_bullets(plan.dependencies)]
    lines += ["", "### Success Metrics", *_bullets(plan.success_metrics)]
    lines += ["", "### Constraints", *_bullets(plan.constraints), "", "---", ""]

    lines += ["## Risk Overview", "", "| Dimension | Level |", "|-----------|-------|"]
    for label, attr in _RISK_DIMENSIONS:
        lines.append(f"| {label} | {getattr(scores, attr)} |")
    for detail in coerce_section("riskDetails", document.get("riskDetails")):
        lines += ["", f"### {detail.dimension} ({detail.level})", detail.rationale]
        lines.append(f"- **Evidence:** {detail.evidence_type}")
        lines += _bullets(detail.mitigations)
    lines += ["", "---", ""]

    lines += ["## Assumptions Register", ""]
    for assumption in coerce_section("assumptions", document.get("assumptions")):
        lines += [
            f"### {assumption.id}: {assumption.statement}",
            f"- **Confidence:** {assumption.confidence}",
            f"- **Category:** {assumption.category}",
            f"- **Rationale:** {assumption.rationale}",
        ]
        if assumption.validation_needed:
            lines.append(f"- **Validation Needed:** {assumption.validation_needed}")
        lines.append("")
    lines += ["---", ""]

    lines += ["## Unknowns / Missing Inputs", ""]
    for unknown in coerce_section("unknowns", document.get("unknowns")):
        lines += [
            f"### {unknown.id}: {unknown.description}",
            f"- **Impact:** {unknown.impact}",
            f"- **Priority:** {unknown.priority}",
        ]
        if unknown.data_to_harvest:
            lines.append(f"- **Data to Harvest:** {unknown.data_to_harvest}")
        lines.append("")
    lines += ["---", ""]

    lines += ["## Scenarios", ""]
    for scenario in coerce_section("scenarios", document.get("scenarios")):
        heading = f"### {scenario.name}" + (" (Baseline)" if scenario.is_baseline else "")
        lines += [heading, scenario.description, ""]
        for label, items in (
            ("Changes", scenario.changes),
            ("Predicted Benefits", scenario.predicted_benefits),
            ("Predicted Risks", scenario.predicted_risks),
            ("Second-Order Effects", scenario.second_order_effects),
            ("Validations Needed", scenario.validations_needed),
        ):
            lines += [f"**{label}:**", *_bullets(items), ""]
    lines += ["---", ""]

    lines += ["## Next Best Actions", ""]
    actions = coerce_section("nextBestActions", document.get("nextBestActions"))
    for index, action in enumerate(actions, start=1):
        lines += [
            f"### {index}. {action.action}",
            f"- **Why it matters:** {action.why_it_matters}",
            f"- **Expected Impact:** {action.expected_impact}",
            f"- **Feasibility:** {action.feasibility}",
            f"- **Dependencies:** {', '.join(action.dependencies) or 'None'}",
            f"- **First Step:** {action.first_step}",
            "",
        ]
    lines += ["---", ""]

    lines += [
        "## Evidence Locker",
        "",
        "| Claim | Source Type | Provenance | Category |",
        "|-------|-------------|------------|----------|",
    ]
    for entry in coerce_section("evidenceLocker", document.get("evidenceLocker")):
        lines.append(
            f"| {_cell(entry.claim)} | {entry.source_type} | "
            f"{_cell(entry.provenance)} | {_cell(entry.category)} |"
        )
    lines += ["", "---", ""]

    lines += [
        "## Ethics & Governance Check",
        "",
        f"- **Bias Risk:** {ethics.bias_risk.level} - {ethics.bias_risk.notes}",
        f"- **Overreliance Risk:** {ethics.overreliance_risk.level} - {ethics.overreliance_risk.notes}",
        f"- **Dual-Use Risk:** {ethics.dual_use_risk.level} - {ethics.dual_use_risk.notes}",
        f"- **Accountability Clarity:** {ethics.accountability_clarity.level} - "
        f"{ethics.accountability_clarity.notes}",
        "",
        f"**Purpose Limits:** {ethics.purpose_limits}",
        f"**Required Reviews:** {', '.join(ethics.required_reviews) or 'None specified'}",
        f"**Reminder:** {ethics.human_decide_reminder}",
        "",
        "---",
        "",
    ]

    lines += [
        "## Decision Log",
        "",
        "| Version | Timestamp | Change | Reason |",
        "|---------|-----------|--------|--------|",
    ]
    for raw_entry in document.get("decisionLog") or []:
        try:
            entry = DecisionLogEntry.model_validate(raw_entry)
        except ValueError:
            continue
        lines.append(
            f"| {entry.version} | {entry.timestamp} | "
            f"{_cell(entry.change_summary)} | {_cell(entry.reason)} |"
        )

    lines += [
        "",
        "---",
        "",
        "*Generated by BlackTape*",
        f"*Analysis ID: {document.get('id', '')}*",
        f"*Version: {document.get('version', '')}*",
        f"*Last Updated: {document.get('updatedAt', '')}*",
        "",
    ]
    return "\n".join(lines)


__all__ = ["ExportFormat", "export_analysis"]

"""
Pydantic models for analysis requests and the structured analysis sections.

The streaming core treats every section as an opaque JSON value. These models
are only used at the edges: validating inbound requests, describing the output
schema to the model, seeding placeholder values and rendering exports.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

RiskLevel = Literal["low", "medium", "high"]
ConfidenceLevel = Literal["low", "medium", "high"]
AnalysisMode = Literal["plan-in-hand", "idea-only"]
EvidenceType = Literal["source-backed", "pattern-based-inference", "assumption", "unknown"]
AnalysisAction = Literal["new", "refine", "scenario", "question", "deep-analysis"]


class _CamelModel(BaseModel):
    """Base model speaking camelCase JSON while exposing snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class ExecutiveSummary(_CamelModel):
    tldr: str = ""
    top_risks: List[str] = Field(default_factory=list)
    top_actions: List[str] = Field(default_factory=list)
    confidence_level: ConfidenceLevel = "low"
    confidence_rationale: str = ""
    mode_detected: AnalysisMode = "idea-only"


class Stakeholder(_CamelModel):
    name: str
    role: str = Field(..., description="accountable, responsible, consulted or informed")
    notes: Optional[str] = None


class PlanSummary(_CamelModel):
    objective: str = ""
    scope: str = ""
    stakeholders: List[Stakeholder] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    timeline: str = ""
    budget: str = ""
    success_metrics: List[str] = Field(default_factory=list)
    constraints: List[str] = Field(default_factory=list)


class RiskScores(_CamelModel):
    cost: RiskLevel = "medium"
    timeline: RiskLevel = "medium"
    compliance: RiskLevel = "medium"
    consensus: RiskLevel = "medium"
    execution_capacity: RiskLevel = "medium"
    adoption: RiskLevel = "medium"
    trust: RiskLevel = "medium"


class RiskDetail(_CamelModel):
    dimension: str
    level: RiskLevel
    rationale: str
    evidence_type: EvidenceType
    mitigations: List[str] = Field(default_factory=list)


class Assumption(_CamelModel):
    id: str
    statement: str
    confidence: ConfidenceLevel
    rationale: str
    category: str
    validation_needed: Optional[str] = None


class Unknown(_CamelModel):
    id: str
    description: str
    impact: str
    priority: Literal["high", "medium", "low"] = "medium"
    data_to_harvest: Optional[str] = None


class Scenario(_CamelModel):
    id: str
    name: str
    description: str = ""
    changes: List[str] = Field(default_factory=list)
    predicted_benefits: List[str] = Field(default_factory=list)
    predicted_risks: List[str] = Field(default_factory=list)
    second_order_effects: List[str] = Field(default_factory=list)
    validations_needed: List[str] = Field(default_factory=list)
    is_baseline: bool = False


class NextBestAction(_CamelModel):
    id: str
    action: str
    why_it_matters: str = ""
    expected_impact: Literal["high", "medium", "low"] = "medium"
    feasibility: Literal["high", "medium", "low"] = "medium"
    dependencies: List[str] = Field(default_factory=list)
    first_step: str = ""
    time_to_effect: Optional[str] = None
    risk_reduction_potential: Optional[str] = None


class EvidenceEntry(_CamelModel):
    id: str
    claim: str
    source_type: EvidenceType
    provenance: str = ""
    category: str = ""
    source_tier: Optional[str] = None
    link: Optional[str] = None
    publish_date: Optional[str] = None
    publisher: Optional[str] = None
    notes: Optional[str] = None


class RiskNote(_CamelModel):
    level: RiskLevel = "medium"
    notes: str = "Pending analysis"


class AccountabilityNote(_CamelModel):
    level: Literal["clear", "partial", "unclear"] = "partial"
    notes: str = "Pending analysis"


class EthicsCheck(_CamelModel):
    bias_risk: RiskNote = Field(default_factory=RiskNote)
    overreliance_risk: RiskNote = Field(default_factory=RiskNote)
    dual_use_risk: RiskNote = Field(default_factory=lambda: RiskNote(level="low"))
    accountability_clarity: AccountabilityNote = Field(default_factory=AccountabilityNote)
    purpose_limits: str = (
        "This analysis is for decision support only. "
        "Human judgment required for all final decisions."
    )
    required_reviews: List[str] = Field(default_factory=list)
    human_decide_reminder: str = (
        "All recommendations require human review and approval before action."
    )


class DecisionLogEntry(_CamelModel):
    version: str
    timestamp: str
    change_summary: str
    reason: str
    author: Optional[str] = None


_SECTION_MODELS: Dict[str, Tuple[Type[_CamelModel], bool]] = {
    "executiveSummary": (ExecutiveSummary, False),
    "planSummary": (PlanSummary, False),
    "riskScores": (RiskScores, False),
    "riskDetails": (RiskDetail, True),
    "assumptions": (Assumption, True),
    "unknowns": (Unknown, True),
    "scenarios": (Scenario, True),
    "nextBestActions": (NextBestAction, True),
    "evidenceLocker": (EvidenceEntry, True),
    "ethicsCheck": (EthicsCheck, False),
}


def section_placeholder(field: str) -> Any:
    """Return the inert JSON value a section holds before it is populated."""
    model, is_list = _SECTION_MODELS[field]
    if is_list:
        return []
    return model().model_dump(by_alias=True)


def coerce_section(field: str, value: Any) -> Any:
    """Best-effort conversion of a raw section into its model(s).

    List sections keep the items that validate and drop the rest. Object
    sections drop the top-level keys that fail validation and keep the others;
    anything that is not an object falls back to the placeholder model.
    """
    model, is_list = _SECTION_MODELS[field]
    if is_list:
        items: List[_CamelModel] = []
        for raw in value if isinstance(value, list) else []:
            try:
                items.append(model.model_validate(raw))
            except ValidationError as exc:
                logger.debug("Dropping %s item that did not validate: %s", field, exc)
        return items
    if not isinstance(value, dict):
        return model()
    payload = dict(value)
    while True:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            bad_keys = {error["loc"][0] for error in exc.errors() if error["loc"]}.intersection(
                payload
            )
            if not bad_keys:
                logger.debug("Section %s did not match its schema: %s", field, exc)
                return model()
            logger.debug("Dropping invalid %s keys %s", field, sorted(bad_keys))
            for key in bad_keys:
                payload.pop(key)


def analysis_output_schema() -> Dict[str, Any]:
    """JSON schema of the structured analysis object the model must emit."""
    properties: Dict[str, Any] = {}
    for field, (model, is_list) in _SECTION_MODELS.items():
        schema = model.model_json_schema(by_alias=True)
        properties[field] = {"type": "array", "items": schema} if is_list else schema
    return {"type": "object", "properties": properties}


class AnalyzeRequest(_CamelModel):
    """Payload that starts or continues an analysis run."""

    model_config = ConfigDict(extra="ignore")

    user_input: str = Field("", description="Plan or idea text supplied by the user.")
    action: AnalysisAction = Field("new", description="What kind of run to perform.")
    additional_context: Optional[str] = Field(
        None, description="Extra information used by refinement runs."
    )
    analysis_id: Optional[str] = Field(
        None, description="Existing analysis to continue; ignored for new runs."
    )


class ChatRequest(_CamelModel):
    """Follow-up message on an existing analysis."""

    model_config = ConfigDict(extra="ignore")

    analysis_id: str = Field("", description="Analysis the message belongs to.")
    message: str = Field("", description="User message text.")
    action: AnalysisAction = Field("question")


__all__ = [
    "AnalyzeRequest",
    "AnalysisAction",
    "Assumption",
    "ChatRequest",
    "DecisionLogEntry",
    "EthicsCheck",
    "EvidenceEntry",
    "ExecutiveSummary",
    "NextBestAction",
    "PlanSummary",
    "RiskDetail",
    "RiskScores",
    "Scenario",
    "Stakeholder",
    "Unknown",
    "analysis_output_schema",
    "coerce_section",
    "section_placeholder",
]

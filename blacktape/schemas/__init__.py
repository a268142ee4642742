"""Public schema exports."""

from .analysis import (
    AnalysisAction,
    AnalyzeRequest,
    Assumption,
    ChatRequest,
    DecisionLogEntry,
    EthicsCheck,
    EvidenceEntry,
    ExecutiveSummary,
    NextBestAction,
    PlanSummary,
    RiskDetail,
    RiskScores,
    Scenario,
    Stakeholder,
    Unknown,
    analysis_output_schema,
    coerce_section,
    section_placeholder,
)

__all__ = [
    "AnalysisAction",
    "AnalyzeRequest",
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

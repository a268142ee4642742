"""Prompt construction for each kind of analysis run."""

from __future__ import annotations

import json
from dataclasses import dataclass
from textwrap import dedent
from typing import Callable

from blacktape.schemas import AnalysisAction, analysis_output_schema
from blacktape.services.progressive_parser import DEFAULT_TAG, strip_tagged_json

PASS_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT = dedent(
    """
    You are BlackTape, a foresight copilot that stress-tests plans and ideas
    before people commit resources to them. Be specific to the plan in front
    of you: name concrete stakeholders, dependencies, failure modes and the
    evidence (or lack of it) behind every claim.

    Rules:
    - Separate source-backed facts, pattern-based inference, assumptions and
      unknowns, and label each claim accordingly.
    - Prefer ranked, actionable recommendations with a concrete first step.
    - Flag ethical, dual-use and over-reliance risks honestly.
    - You support decisions; humans make them. Say so where it matters.
    """
).strip()


def structured_system_prompt(tag: str = DEFAULT_TAG) -> str:
    """System prompt that also pins down the JSON contract for one pass."""
    schema = json.dumps(analysis_output_schema(), indent=2)
    return (
        f"{SYSTEM_PROMPT}\n\n---\n\n## STRUCTURED OUTPUT REQUIREMENT\n\n"
        f"Return a JSON object matching this schema:\n\n{schema}\n\n"
        f"Wrap the JSON in <{tag}></{tag}> tags and emit the JSON before any "
        "narrative commentary."
    )


@dataclass(frozen=True, slots=True)
class AnalysisPass:
    """One upstream model call within a run.

    ``render_prompt`` receives the narrative produced by earlier passes of the
    same run (empty for the first pass).
    """

    name: str
    tag: str
    system_prompt: str
    render_prompt: Callable[[str], str]

    def prompt(self, previous_text: str = "") -> str:
        return self.render_prompt(previous_text)


def build_passes(
    action: AnalysisAction,
    user_input: str,
    additional_context: str | None = None,
) -> list[AnalysisPass]:
    """Return the ordered passes that make up a run for ``action``."""
    if action == "question":
        question = user_input or additional_context or ""
        return [
            AnalysisPass(
                name="question",
                tag=DEFAULT_TAG,
                system_prompt=SYSTEM_PROMPT,
                render_prompt=lambda _previous: question,
            )
        ]

    if action == "deep-analysis":
        return _deep_analysis_passes(user_input)

    if action == "refine":
        details = additional_context or user_input
        body = (
            "Refine the current analysis with this additional information and "
            f"return the updated JSON:\n\n{details}"
        )
    elif action == "scenario":
        details = user_input or additional_context or ""
        body = f"Explore this scenario variation and return the analysis as JSON:\n\n{details}"
    else:
        body = (
            "Stress-test the following plan or idea and produce a complete "
            f"analysis.\n\nPlan/Idea to analyze:\n{user_input}"
        )

    prompt = f"{body}\n\nReturn the JSON analysis first, wrapped in <{DEFAULT_TAG}> tags, then your narrative commentary."
    return [
        AnalysisPass(
            name=action,
            tag=DEFAULT_TAG,
            system_prompt=structured_system_prompt(DEFAULT_TAG),
            render_prompt=lambda _previous: prompt,
        )
    ]


def _deep_analysis_passes(user_input: str) -> list[AnalysisPass]:
    def first(_previous: str) -> str:
        return dedent(
            """
            Analyze the plan or idea below. In this pass produce ONLY these
            sections, in full depth:

            1) executiveSummary: TL;DR, top risks, top actions, confidence and mode
            2) planSummary: objective, scope, RACI stakeholders, dependencies,
               timeline, budget, success metrics, constraints
            3) riskScores and riskDetails: all seven dimensions with rationale,
               evidence type and mitigations for medium or high risks
            4) assumptions: at least six, each with confidence and validation path
            5) unknowns: at least three, each with the data needed to resolve it

            Return the JSON wrapped in <pass1_json> tags, then narrative commentary.

            Plan/Idea:
            """
        ).strip() + f"\n{user_input}"

    def second(previous: str) -> str:
        summary = strip_tagged_json(previous, "pass1_json") or previous
        return dedent(
            """
            Continue the analysis of the plan or idea below. The first pass
            covered the plan summary, risks, assumptions and unknowns.

            Now produce the remaining sections in full depth:

            1) scenarios: at least three, including the baseline
            2) nextBestActions: at least four, ranked, each with a first step
            3) evidenceLocker: an entry for every claim made so far
            4) ethicsCheck: bias, over-reliance, dual-use and accountability,
               specific to this plan

            Return the JSON wrapped in <pass2_json> tags, then narrative commentary.
            """
        ).strip() + f"\n\nPlan/Idea:\n{user_input}\n\nFirst pass:\n{summary}"

    return [
        AnalysisPass(
            name="deep-analysis:1",
            tag="pass1_json",
            system_prompt=structured_system_prompt("pass1_json"),
            render_prompt=first,
        ),
        AnalysisPass(
            name="deep-analysis:2",
            tag="pass2_json",
            system_prompt=structured_system_prompt("pass2_json"),
            render_prompt=second,
        ),
    ]


__all__ = [
    "AnalysisPass",
    "PASS_SEPARATOR",
    "SYSTEM_PROMPT",
    "build_passes",
    "structured_system_prompt",
]

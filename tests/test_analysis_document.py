try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import copy

import pytest

from blacktape.services.analysis_document import (
    MERGE_CHANGE_SUMMARY,
    advance_status,
    apply_analysis_fields,
    create_analysis,
    increment_version,
    is_section_loaded,
    loaded_sections,
    merge_analysis_update,
)


def test_create_analysis_zero_state():
    document = create_analysis("Launch a community tool library in our town")

    assert document["status"] == "pending"
    assert document["version"] == "1.0"
    assert document["mode"] == "idea-only"
    assert document["createdAt"] == document["updatedAt"]
    assert document["executiveSummary"]["tldr"] == ""
    assert document["riskScores"]["cost"] == "medium"
    assert document["scenarios"] == []
    assert document["ethicsCheck"]["biasRisk"]["notes"] == "Pending analysis"
    assert len(document["decisionLog"]) == 1
    assert document["decisionLog"][0]["changeSummary"] == "Initial baseline model created"
    assert loaded_sections(document) == []


def test_title_is_truncated_for_long_input():
    document = create_analysis("x" * 150)
    assert document["title"] == "x" * 100 + "..."
    assert document["userInput"] == "x" * 150


def test_three_merges_bump_minor_version_and_log():
    document = create_analysis("plan")
    versions = []
    for index in range(3):
        document = merge_analysis_update(document, {"unknowns": [{"id": f"U{index}"}]})
        versions.append(document["version"])

    assert versions == ["1.1", "1.2", "1.3"]
    assert len(document["decisionLog"]) == 4
    assert [entry["version"] for entry in document["decisionLog"]] == ["1.0", "1.1", "1.2", "1.3"]
    assert document["decisionLog"][-1]["changeSummary"] == MERGE_CHANGE_SUMMARY


def test_merge_preserves_identity_and_leaves_input_untouched():
    document = create_analysis("plan")
    snapshot = copy.deepcopy(document)

    merged = merge_analysis_update(
        document,
        {"id": "forged", "createdAt": "1999-01-01T00:00:00+00:00", "planSummary": {"objective": "Go"}},
    )

    assert document == snapshot
    assert merged["id"] == document["id"]
    assert merged["createdAt"] == document["createdAt"]
    assert merged["updatedAt"] >= document["updatedAt"]
    assert merged["planSummary"] == {"objective": "Go"}
    assert merged["executiveSummary"] == document["executiveSummary"]


def test_updated_at_never_moves_backwards():
    document = create_analysis("plan")
    document["updatedAt"] = "2999-01-01T00:00:00+00:00"

    merged = merge_analysis_update(document, {"unknowns": []})
    patched = apply_analysis_fields(merged, {"status": "in_progress"})

    assert merged["updatedAt"] == "2999-01-01T00:00:00+00:00"
    assert patched["updatedAt"] == "2999-01-01T00:00:00+00:00"


def test_merge_records_author_when_given():
    merged = merge_analysis_update(create_analysis("plan"), {"unknowns": []}, author="analyst")
    assert merged["decisionLog"][-1]["author"] == "analyst"


@pytest.mark.parametrize(
    ("version", "expected"),
    [("1.0", "1.1"), ("1.9", "1.10"), ("2", "2.1"), ("1.x", "1.1"), (None, "1.1")],
)
def test_increment_version(version, expected):
    assert increment_version(version) == expected


def test_placeholder_predicate_tracks_real_content():
    document = create_analysis("plan")
    assert not is_section_loaded(document, "executiveSummary")
    assert not is_section_loaded(document, "planSummary")

    summary = dict(document["executiveSummary"], tldr="Risky plan")
    document = merge_analysis_update(document, {"executiveSummary": summary})

    assert is_section_loaded(document, "executiveSummary")
    assert not is_section_loaded(document, "planSummary")


def test_placeholder_predicate_for_scores_lists_and_ethics():
    document = create_analysis("plan")
    assert not is_section_loaded(document, "riskScores")
    assert not is_section_loaded(document, "ethicsCheck")

    document = merge_analysis_update(
        document,
        {
            "riskScores": dict(document["riskScores"], cost="high"),
            "assumptions": [{"id": "A1", "statement": "Demand exists"}],
            "ethicsCheck": {"biasRisk": {"level": "low", "notes": "Reviewed"}},
        },
    )

    assert loaded_sections(document) == ["riskScores", "assumptions", "ethicsCheck"]

    document = merge_analysis_update(document, {"assumptions": None})
    assert not is_section_loaded(document, "assumptions")

    with pytest.raises(ValueError):
        is_section_loaded(document, "decisionLog")


def test_status_only_moves_forward():
    document = create_analysis("plan")
    document = advance_status(document, "in_progress")
    document = advance_status(document, "completed")
    assert document["status"] == "completed"

    assert advance_status(document, "in_progress")["status"] == "completed"
    with pytest.raises(ValueError):
        advance_status(document, "archived")


def test_metadata_patch_does_not_version():
    document = create_analysis("plan")
    patched = apply_analysis_fields(document, {"status": "in_progress", "version": "9.9"})

    assert patched["status"] == "in_progress"
    assert patched["version"] == "1.0"
    assert len(patched["decisionLog"]) == 1

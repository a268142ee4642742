try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from blacktape.services.prompts import SYSTEM_PROMPT, build_passes


def test_single_pass_actions_request_tagged_json():
    (new_pass,) = build_passes("new", "Open a bakery")
    (refine_pass,) = build_passes("refine", "", "Budget doubled")

    assert new_pass.tag == "analysis_json"
    assert "Open a bakery" in new_pass.prompt()
    assert "<analysis_json>" in new_pass.system_prompt
    assert '"executiveSummary"' in new_pass.system_prompt
    assert "Budget doubled" in refine_pass.prompt()


def test_question_is_sent_verbatim_with_plain_system_prompt():
    (question,) = build_passes("question", "What about permits?")
    assert question.prompt() == "What about permits?"
    assert question.system_prompt == SYSTEM_PROMPT


def test_question_falls_back_to_additional_context():
    (question,) = build_passes("question", "", "Do we need a liquor licence?")
    assert question.prompt() == "Do we need a liquor licence?"


def test_deep_analysis_second_pass_sees_first_pass_narrative():
    first, second = build_passes("deep-analysis", "Open a bakery")

    assert (first.tag, second.tag) == ("pass1_json", "pass2_json")
    prompt = second.prompt('<pass1_json>{"unknowns": []}</pass1_json> Demand looks soft.')
    assert "Demand looks soft." in prompt
    assert '"unknowns": []' not in prompt

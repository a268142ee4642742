try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from blacktape.services.analysis_document import create_analysis
from blacktape.services.analysis_stream import AnalysisStreamController, StreamState
from blacktape.services.prompts import build_passes
from blacktape.services.session_store import AnalysisSession
from blacktape.services.stream_events import STREAM_FAILED_MESSAGE


class UpstreamFailure(RuntimeError):
    pass


class ScriptedTokenSource:
    """Replays one scripted token list per call; exceptions in a script are raised."""

    def __init__(self, *scripts, delay: float = 0.0) -> None:
        self.scripts = [list(script) for script in scripts]
        self.delay = delay
        self.calls: list[dict] = []
        self.closed = 0

    async def stream_text(self, *, system_prompt, prompt, history):
        self.calls.append(
            {"system_prompt": system_prompt, "prompt": prompt, "history": list(history)}
        )
        script = self.scripts.pop(0)
        try:
            for item in script:
                if isinstance(item, Exception):
                    raise item
                await asyncio.sleep(self.delay)
                yield item
        finally:
            self.closed += 1


class StallingTokenSource(ScriptedTokenSource):
    async def stream_text(self, *, system_prompt, prompt, history):
        self.calls.append({"prompt": prompt})
        try:
            yield '<analysis_json>{"executiveSummary": {"tldr": "Early"}, '
            await asyncio.sleep(30)
            yield "never"
        finally:
            self.closed += 1


def _seed(store, text: str = "Open a cafe next to the university") -> str:
    analysis = create_analysis(text)
    store.put(AnalysisSession(analysis=analysis))
    return analysis["id"]


async def _collect(events) -> list[dict]:
    return [event async for event in events]


TOKENS = [
    'Thinking it through. <analysis_json>{"executiveSummary": {"tldr": "Risky"}, ',
    '"planSummary": {"objective": "Go"}, "riskScores": {"cost": "high"}',
    "}</analysis_json> Closing notes.",
]


@pytest.mark.asyncio
async def test_stream_emits_ordered_events_and_completes(store):
    analysis_id = _seed(store)
    source = ScriptedTokenSource(TOKENS)
    controller = AnalysisStreamController(source, store)

    events = await _collect(
        controller.run(
            analysis_id=analysis_id,
            user_message="Open a cafe next to the university",
            passes=build_passes("new", "Open a cafe next to the university"),
        )
    )

    assert events == [
        {"analysisId": analysis_id},
        {"chunk": TOKENS[0]},
        {"section": "executiveSummary", "data": {"tldr": "Risky"}},
        {"chunk": TOKENS[1]},
        {"section": "planSummary", "data": {"objective": "Go"}},
        {"section": "riskScores", "data": {"cost": "high"}},
        {"chunk": TOKENS[2]},
        {"done": True},
    ]
    assert controller.state is StreamState.DONE
    assert source.closed == 1

    session = store.require(analysis_id)
    assert session.analysis["status"] == "completed"
    assert session.analysis["version"] == "1.3"
    assert len(session.analysis["decisionLog"]) == 4
    assert session.analysis["planSummary"] == {"objective": "Go"}
    assert [message.role for message in session.messages] == ["user", "assistant"]
    assert session.messages[1].content == "".join(TOKENS)


@pytest.mark.asyncio
async def test_upstream_failure_keeps_partial_progress(store):
    analysis_id = _seed(store)
    source = ScriptedTokenSource(
        [
            '<analysis_json>{"executiveSummary": {"tldr": "Risky"}, ',
            '"planSummary": {"objective": "Go"}, "scen',
            UpstreamFailure("connection reset"),
        ]
    )
    controller = AnalysisStreamController(source, store)

    events = await _collect(
        controller.run(
            analysis_id=analysis_id,
            user_message="plan",
            passes=build_passes("new", "plan"),
        )
    )

    terminal = [event for event in events if "error" in event or "done" in event]
    assert terminal == [{"error": STREAM_FAILED_MESSAGE}]
    assert events[-1] == {"error": STREAM_FAILED_MESSAGE}
    assert "connection reset" not in events[-1]["error"]
    assert controller.state is StreamState.FAILED

    analysis = store.require(analysis_id).analysis
    assert analysis["status"] == "in_progress"
    assert analysis["executiveSummary"] == {"tldr": "Risky"}
    assert analysis["planSummary"] == {"objective": "Go"}
    assert analysis["version"] == "1.2"


@pytest.mark.asyncio
async def test_stream_deadline_produces_error_event(store):
    analysis_id = _seed(store)
    source = StallingTokenSource()
    controller = AnalysisStreamController(source, store, max_stream_seconds=0.2)

    events = await _collect(
        controller.run(analysis_id=analysis_id, user_message="plan", passes=build_passes("new", "plan"))
    )

    assert events[-1] == {"error": STREAM_FAILED_MESSAGE}
    assert {"section": "executiveSummary", "data": {"tldr": "Early"}} in events
    assert source.closed == 1
    assert store.require(analysis_id).analysis["status"] == "in_progress"


@pytest.mark.asyncio
async def test_history_excludes_current_message(store):
    analysis_id = _seed(store)
    store.add_message(analysis_id, "user", "First question")
    store.add_message(analysis_id, "assistant", "First answer")
    source = ScriptedTokenSource(["Plain answer without structure."])
    controller = AnalysisStreamController(source, store)

    events = await _collect(
        controller.run(
            analysis_id=analysis_id,
            user_message="Second question",
            passes=build_passes("question", "Second question"),
        )
    )

    assert events[-1] == {"done": True}
    assert source.calls[0]["history"] == [
        {"role": "user", "content": "First question"},
        {"role": "assistant", "content": "First answer"},
    ]
    assert source.calls[0]["prompt"] == "Second question"
    assert not any("section" in event for event in events)
    assert store.require(analysis_id).analysis["version"] == "1.0"


@pytest.mark.asyncio
async def test_deep_analysis_runs_two_passes_in_one_stream(store):
    analysis_id = _seed(store)
    pass_one = [
        '<pass1_json>{"executiveSummary": {"tldr": "Pass one"}}</pass1_json>',
        " narrative one",
    ]
    pass_two = ['<pass2_json>{"scenarios": [{"id": "S1"}]}</pass2_json> narrative two']
    source = ScriptedTokenSource(pass_one, pass_two)
    controller = AnalysisStreamController(source, store)

    events = await _collect(
        controller.run(
            analysis_id=analysis_id,
            user_message="plan",
            passes=build_passes("deep-analysis", "plan"),
        )
    )

    sections = [event["section"] for event in events if "section" in event]
    assert sections == ["executiveSummary", "scenarios"]
    assert events[-1] == {"done": True}
    assert "narrative one" in source.calls[1]["prompt"]
    assert "pass1_json" not in source.calls[1]["prompt"].split("First pass:")[-1]

    session = store.require(analysis_id)
    assert session.analysis["version"] == "1.2"
    assert session.messages[-1].content == "".join(pass_one) + "\n\n---\n\n" + "".join(pass_two)


@pytest.mark.asyncio
async def test_disconnect_closes_upstream_and_keeps_merged_sections(store):
    analysis_id = _seed(store)
    source = ScriptedTokenSource(TOKENS)
    controller = AnalysisStreamController(source, store)

    run = controller.run(analysis_id=analysis_id, user_message="plan", passes=build_passes("new", "plan"))
    received = []
    async for event in run:
        received.append(event)
        if "section" in event:
            break
    await run.aclose()

    assert received[-1]["section"] == "executiveSummary"
    assert source.closed == 1
    analysis = store.require(analysis_id).analysis
    assert analysis["executiveSummary"] == {"tldr": "Risky"}
    assert analysis["status"] == "in_progress"


@pytest.mark.asyncio
async def test_session_deleted_before_run_yields_only_error(store):
    analysis_id = _seed(store)
    source = ScriptedTokenSource(TOKENS)
    controller = AnalysisStreamController(source, store)
    run = controller.run(analysis_id=analysis_id, user_message="plan", passes=build_passes("new", "plan"))
    store.delete(analysis_id)

    events = await _collect(run)

    assert events == [{"error": STREAM_FAILED_MESSAGE}]
    assert controller.state is StreamState.FAILED
    assert source.calls == []

"""Tests for the streaming analysis command-line client."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from blacktape.clients.analysis_stream import AnalysisStreamClient
from scripts import stream_analysis


def _install_transport(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    def factory(base_url: str, *, timeout: float) -> AnalysisStreamClient:
        return AnalysisStreamClient(
            base_url, timeout=timeout, transport=httpx.MockTransport(handler)
        )

    monkeypatch.setattr(stream_analysis, "AnalysisStreamClient", factory)


def test_main_reports_sections_until_done(monkeypatch, capsys) -> None:
    body = (
        'data: {"analysisId": "a-1"}\n\n'
        'data: {"chunk": "<analysis_json>"}\n\n'
        'data: {"section": "riskScores", "data": {"cost": "high"}}\n\n'
        'data: {"done": true}\n\n'
    )
    _install_transport(
        monkeypatch,
        lambda request: httpx.Response(200, text=body, headers={"content-type": "text/event-stream"}),
    )

    exit_code = stream_analysis.main(["Open a bakery"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "analysis id: a-1" in output
    assert "section ready: Risk Scores" in output
    assert "analysis complete" in output


def test_main_falls_back_to_polling_when_stream_drops(monkeypatch, capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, text='data: {"analysisId": "a-2"}\n\n')
        analysis = {"id": "a-2", "status": "completed", "executiveSummary": {"tldr": "Done"}}
        return httpx.Response(200, json={"analysis": analysis, "messages": []})

    _install_transport(monkeypatch, handler)

    exit_code = stream_analysis.main(["Open a bakery", "--poll-interval", "0"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "polling session" in output
    assert "status=completed loaded: Executive Summary" in output


def test_main_reports_stream_errors(monkeypatch) -> None:
    _install_transport(
        monkeypatch,
        lambda request: httpx.Response(200, text='data: {"error": "Analysis streaming failed"}\n\n'),
    )
    assert stream_analysis.main(["Open a bakery"]) == 1


def test_new_analysis_requires_text() -> None:
    with pytest.raises(SystemExit):
        stream_analysis.main([])

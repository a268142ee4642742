#!/usr/bin/env python
"""Stream an analysis from a running BlackTape server and show sections as they land."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

import httpx

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from blacktape.clients.analysis_stream import (  # noqa: E402
    AnalysisStreamClient,
    AnalysisStreamError,
    SessionSnapshot,
)
from blacktape.services.sections import label_of  # noqa: E402

ACTIONS = ("new", "refine", "scenario", "question", "deep-analysis")


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _print_header(title: str) -> None:
    line = "=" * len(title)
    print(f"\n{title}\n{line}")


def _report_progress(snapshot: SessionSnapshot) -> None:
    labels = ", ".join(label_of(name) for name in snapshot.loaded) or "none"
    print(f"[{_timestamp()}] status={snapshot.status} loaded: {labels}")


async def run(args: argparse.Namespace) -> int:
    client = AnalysisStreamClient(args.base_url, timeout=args.timeout)
    analysis_id = args.analysis_id
    outcome = None

    _print_header(f"BlackTape {args.action} analysis")
    try:
        async for event in client.stream_analysis(
            args.text,
            action=args.action,
            analysis_id=analysis_id,
            additional_context=args.context,
        ):
            if "analysisId" in event:
                analysis_id = event["analysisId"]
                print(f"[{_timestamp()}] analysis id: {analysis_id}")
            elif "chunk" in event:
                if args.show_text:
                    print(event["chunk"], end="", flush=True)
            elif "section" in event:
                print(f"\n[{_timestamp()}] section ready: {label_of(event['section'])}")
            elif event.get("done"):
                outcome = "done"
            elif "error" in event:
                outcome = "error"
                print(f"\n[{_timestamp()}] stream failed: {event['error']}", file=sys.stderr)
    except AnalysisStreamError as exc:
        print(f"Request rejected: {exc}", file=sys.stderr)
        return 2
    except httpx.HTTPError as exc:
        print(f"\n[{_timestamp()}] stream interrupted: {exc}", file=sys.stderr)

    if outcome == "done":
        print(f"\n[{_timestamp()}] analysis complete.")
        return 0
    if outcome == "error" or not analysis_id:
        return 1

    _print_header("Stream dropped; polling session")
    try:
        await client.poll_until_complete(
            analysis_id,
            interval=args.poll_interval,
            timeout=args.poll_timeout,
            on_progress=_report_progress,
        )
    except TimeoutError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run a BlackTape analysis and follow its progress from the terminal."
    )
    parser.add_argument("text", nargs="?", default="", help="Plan, idea or question text.")
    parser.add_argument("--action", choices=ACTIONS, default="new")
    parser.add_argument("--analysis-id", default=None, help="Existing analysis to continue.")
    parser.add_argument("--context", default=None, help="Additional context for refinements.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--timeout", type=float, default=30.0, help="Connect timeout in seconds.")
    parser.add_argument(
        "--show-text",
        action="store_true",
        help="Echo the raw model text while it streams.",
    )
    parser.add_argument("--poll-interval", type=float, default=2.0)
    parser.add_argument("--poll-timeout", type=float, default=300.0)
    args = parser.parse_args(argv)

    if args.action in ("new", "deep-analysis") and not args.analysis_id and not args.text:
        parser.error("text is required when starting a new analysis")

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())

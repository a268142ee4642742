"""
FastAPI routes for the BlackTape analysis service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, AsyncIterator, Dict, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import PlainTextResponse, StreamingResponse

from blacktape.dependencies import get_analysis_stream_controller, get_session_store
from blacktape.schemas import AnalyzeRequest, ChatRequest
from blacktape.services import (
    AnalysisSession,
    SessionNotFoundError,
    build_passes,
    create_analysis,
    encode_event,
    export_analysis,
    loaded_sections,
)
from blacktape.services.sections import GROUPS, group_has_data, is_group_loaded

router = APIRouter()
logger = logging.getLogger(__name__)

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _require_session(store: Any, analysis_id: str) -> AnalysisSession:
    try:
        return store.require(analysis_id)
    except SessionNotFoundError as exc:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND, detail="Analysis session not found"
        ) from exc


def _event_stream(events: AsyncIterator[Dict[str, Any]]) -> StreamingResponse:
    async def body() -> AsyncIterator[str]:
        async for event in events:
            yield encode_event(event)

    return StreamingResponse(body(), media_type="text/event-stream", headers=_STREAM_HEADERS)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/analyze")
async def start_analysis(
    payload: AnalyzeRequest,
    store: Annotated[Any, Depends(get_session_store)],
    controller: Annotated[Any, Depends(get_analysis_stream_controller)],
) -> StreamingResponse:
    """Create or continue an analysis and stream the model's progress."""
    user_input = payload.user_input.strip()
    continuing = payload.action != "new" and bool(payload.analysis_id)

    if continuing:
        session = _require_session(store, payload.analysis_id)
        analysis_id = session.analysis_id
        if payload.action == "deep-analysis" and not user_input:
            user_input = session.analysis.get("userInput", "")
    elif payload.action in ("new", "deep-analysis"):
        if not user_input:
            raise HTTPException(
                status_code=HTTPStatus.BAD_REQUEST,
                detail="userInput is required for a new analysis",
            )
        analysis = create_analysis(user_input)
        store.put(AnalysisSession(analysis=analysis))
        analysis_id = analysis["id"]
        logger.info("Created analysis %s", analysis_id)
    else:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"analysisId is required for action '{payload.action}'",
        )

    user_message = user_input or (payload.additional_context or "").strip()
    if not user_message:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="userInput or additionalContext is required",
        )

    passes = build_passes(payload.action, user_input, payload.additional_context)
    return _event_stream(
        controller.run(analysis_id=analysis_id, user_message=user_message, passes=passes)
    )


@router.get("/analyze")
async def get_analysis_by_query(
    store: Annotated[Any, Depends(get_session_store)],
    analysis_id: str | None = Query(default=None, alias="id", description="Analysis id."),
) -> dict:
    if not analysis_id:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Analysis ID is required"
        )
    return _require_session(store, analysis_id).to_dict()


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    store: Annotated[Any, Depends(get_session_store)],
    controller: Annotated[Any, Depends(get_analysis_stream_controller)],
) -> StreamingResponse:
    """Stream a follow-up turn on an existing analysis."""
    message = payload.message.strip()
    if not payload.analysis_id or not message:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="analysisId and message are required",
        )
    session = _require_session(store, payload.analysis_id)
    passes = build_passes(payload.action, message)
    return _event_stream(
        controller.run(analysis_id=session.analysis_id, user_message=message, passes=passes)
    )


@router.get("/analyses")
async def list_analyses(store: Annotated[Any, Depends(get_session_store)]) -> list:
    """Summaries of every stored analysis, most recently updated first."""
    return [
        {
            "id": session.analysis_id,
            "title": session.analysis.get("title", ""),
            "status": session.analysis.get("status"),
            "version": session.analysis.get("version"),
            "createdAt": session.analysis.get("createdAt"),
            "updatedAt": session.analysis.get("updatedAt"),
        }
        for session in store.list_sessions()
    ]


@router.get("/analyses/{analysis_id}")
async def get_analysis(
    analysis_id: str,
    store: Annotated[Any, Depends(get_session_store)],
) -> dict:
    return _require_session(store, analysis_id).to_dict()


@router.get("/analyses/{analysis_id}/sections")
async def get_section_status(
    analysis_id: str,
    store: Annotated[Any, Depends(get_session_store)],
) -> dict:
    """Which sections hold real content, judged by the placeholder predicate."""
    analysis = _require_session(store, analysis_id).analysis
    loaded = loaded_sections(analysis)
    return {
        "id": analysis_id,
        "status": analysis.get("status"),
        "version": analysis.get("version"),
        "loaded": loaded,
        "groups": {
            group: {
                "loaded": is_group_loaded(group, loaded),
                "hasData": group_has_data(group, loaded),
            }
            for group in GROUPS
        },
    }


@router.get("/analyses/{analysis_id}/export")
async def export(
    analysis_id: str,
    store: Annotated[Any, Depends(get_session_store)],
    export_format: Literal["json", "markdown"] = Query(default="markdown", alias="format"),
) -> Response:
    analysis = _require_session(store, analysis_id).analysis
    content = export_analysis(analysis, export_format)
    if export_format == "json":
        return Response(content=content, media_type="application/json")
    return PlainTextResponse(content=content, media_type="text/markdown")


@router.delete("/analyses/{analysis_id}", status_code=HTTPStatus.NO_CONTENT)
async def delete_analysis(
    analysis_id: str,
    store: Annotated[Any, Depends(get_session_store)],
) -> Response:
    if not store.delete(analysis_id):
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND, detail="Analysis session not found"
        )
    logger.info("Deleted analysis %s", analysis_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)


__all__ = ["router"]

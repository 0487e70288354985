"""REST API routes for the investigation workspace.

All endpoints are under /api/v1. Routes read the store and settings from
app.state; the graph is rebuilt from stored signals on every request.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, Field, ValidationError

from casegraph.briefing import build_briefing_payload, format_briefing_as_text
from casegraph.db.repositories import UNSET
from casegraph.graph.builder import build_graph_from_signals
from casegraph.models import (
    Assessment,
    Credibility,
    Impact,
    InvestigationGraph,
    InvestigationSignal,
    InvestigationThread,
    MessageRole,
)
from casegraph.selection import SelectionState, resolve_details
from casegraph.views import VIEWS, ViewProps, create_view

router = APIRouter(prefix="/api/v1")


# -- Request models -----------------------------------------------------------

class CreateThreadRequest(BaseModel):
    title: str = Field(min_length=1)
    initial_hypothesis: str = Field(min_length=1)
    scope: str | None = None
    investigative_axes: list[str] = Field(default_factory=list)


class UpdateAssessmentRequest(BaseModel):
    current_assessment: Assessment | None = None
    confidence_score: float | None = Field(default=None, ge=0, le=100)
    blind_spots: list[str] | None = None


class SignalIn(BaseModel):
    id: str | None = None
    type: str = Field(default="event", min_length=1)
    source: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    impact_on_hypothesis: Impact
    url: str | None = None
    date: str | None = None
    credibility_score: Credibility | None = None
    confidence: float | None = None


class AppendSignalsRequest(BaseModel):
    signals: list[SignalIn]


class AppendMessageRequest(BaseModel):
    role: MessageRole
    content: str = Field(min_length=1)
    citations: list[str] = Field(default_factory=list)


# -- Helpers ------------------------------------------------------------------

def _get_state(request: Request) -> Any:
    return request.app.state


def _require_thread(request: Request, thread_id: str) -> InvestigationThread:
    thread = _get_state(request).store.get_thread(thread_id)
    if thread is None:
        raise HTTPException(status_code=404, detail="Thread not found")
    return thread


def _thread_graph(request: Request, thread_id: str) -> tuple[InvestigationThread, InvestigationGraph]:
    state = _get_state(request)
    thread = _require_thread(request, thread_id)
    graph = build_graph_from_signals(
        thread,
        state.store.list_signals(thread_id),
        default_confidence=state.settings.DEFAULT_NODE_CONFIDENCE,
        dead_path_threshold=state.settings.DEAD_PATH_STRENGTH_THRESHOLD,
    )
    return thread, graph


# -- Thread endpoints ---------------------------------------------------------

@router.post("/threads")
async def create_thread(body: CreateThreadRequest, request: Request) -> dict[str, Any]:
    """Create a new investigation thread."""
    return _get_state(request).store.threads.create(
        title=body.title,
        initial_hypothesis=body.initial_hypothesis,
        scope=body.scope,
        investigative_axes=body.investigative_axes,
    )


@router.get("/threads")
async def list_threads(request: Request) -> list[dict[str, Any]]:
    return _get_state(request).store.threads.list_all()


@router.get("/threads/{thread_id}")
async def get_thread(thread_id: str, request: Request) -> dict[str, Any]:
    """Thread with its signals and messages."""
    store = _get_state(request).store
    thread = _require_thread(request, thread_id)
    return {
        "thread": thread.model_dump(),
        "confidence_percent": thread.confidence_percent(),
        "signals": [s.model_dump() for s in store.list_signals(thread_id)],
        "messages": [m.model_dump() for m in store.list_messages(thread_id)],
    }


@router.patch("/threads/{thread_id}/assessment")
async def update_assessment(
    thread_id: str, body: UpdateAssessmentRequest, request: Request,
) -> dict[str, Any]:
    """Store assessment, confidence and blind spots from a chat turn."""
    _require_thread(request, thread_id)
    return _get_state(request).store.threads.update_assessment(
        thread_id,
        current_assessment=(
            body.current_assessment if "current_assessment" in body.model_fields_set else UNSET
        ),
        confidence_score=body.confidence_score,
        blind_spots=body.blind_spots,
    )


# -- Signals and messages -----------------------------------------------------

@router.post("/threads/{thread_id}/signals")
async def append_signals(
    thread_id: str, body: AppendSignalsRequest, request: Request,
) -> dict[str, Any]:
    """Append new signals. Signals are never edited or deleted."""
    store = _get_state(request).store
    _require_thread(request, thread_id)
    try:
        signals = [
            InvestigationSignal(**item.model_dump(exclude={"id"}), id=item.id or store.signals.new_id())
            for item in body.signals
        ]
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    try:
        created = store.signals.append_many(thread_id, signals)
    except sqlite3.IntegrityError as exc:
        raise HTTPException(status_code=409, detail=f"Signal already recorded: {exc}") from exc
    return {"thread_id": thread_id, "signals": created, "total": len(created)}


@router.get("/threads/{thread_id}/messages")
async def get_messages(thread_id: str, request: Request) -> list[dict[str, Any]]:
    _require_thread(request, thread_id)
    return _get_state(request).store.messages.get_history(thread_id)


@router.post("/threads/{thread_id}/messages")
async def append_message(
    thread_id: str, body: AppendMessageRequest, request: Request,
) -> dict[str, Any]:
    _require_thread(request, thread_id)
    return _get_state(request).store.messages.append(
        thread_id, role=body.role, content=body.content, citations=body.citations,
    )


# -- Graph, views, details ----------------------------------------------------

@router.get("/threads/{thread_id}/graph")
async def get_graph(thread_id: str, request: Request) -> dict[str, Any]:
    """Evidence graph with ``from``/``to`` edge keys."""
    _, graph = _thread_graph(request, thread_id)
    return graph.to_dict()


@router.get("/threads/{thread_id}/views/{view_name}", response_model=None)
async def get_view(
    thread_id: str,
    view_name: str,
    request: Request,
    selected_node_id: str | None = None,
    selected_edge_key: str | None = None,
    selected_path_id: str | None = None,
    show_dead_paths: bool | None = None,
    format: Literal["json", "svg"] = "json",
) -> dict[str, Any] | Response:
    """Layout of one view for the given selection, as JSON or SVG."""
    if view_name not in VIEWS:
        raise HTTPException(status_code=404, detail=f"Unknown view '{view_name}'")
    _, graph = _thread_graph(request, thread_id)
    if show_dead_paths is None:
        show_dead_paths = _get_state(request).settings.SHOW_DEAD_PATHS
    view = create_view(view_name, ViewProps(
        graph=graph,
        selected_node_id=selected_node_id,
        selected_edge_key=selected_edge_key,
        selected_path_id=selected_path_id,
        show_dead_paths=show_dead_paths,
    ))
    if format == "svg":
        return Response(content=view.to_svg(), media_type="image/svg+xml")
    return view.render().model_dump()


@router.get("/threads/{thread_id}/details")
async def get_details(
    thread_id: str,
    request: Request,
    selected_node_id: str | None = None,
    selected_edge_key: str | None = None,
    selected_path_id: str | None = None,
) -> dict[str, Any]:
    """Details panel data for the selection; ``details`` is null when stale."""
    _, graph = _thread_graph(request, thread_id)
    details = resolve_details(graph, SelectionState(
        selected_node_id=selected_node_id,
        selected_edge_key=selected_edge_key,
        selected_path_id=selected_path_id,
    ))
    return {"details": details.model_dump(by_alias=True) if details is not None else None}


# -- Briefing -----------------------------------------------------------------

@router.get("/threads/{thread_id}/briefing")
async def get_briefing(thread_id: str, request: Request) -> dict[str, Any]:
    thread, graph = _thread_graph(request, thread_id)
    return build_briefing_payload(thread, graph).model_dump()


@router.get("/threads/{thread_id}/brief")
async def export_brief(thread_id: str, request: Request) -> PlainTextResponse:
    """Plain-text brief as a download."""
    thread, graph = _thread_graph(request, thread_id)
    text = format_briefing_as_text(build_briefing_payload(thread, graph))
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="brief-{thread_id[:8]}.txt"'},
    )

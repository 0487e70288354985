"""Pydantic models for investigations, their signals, and the derived evidence graph.

Thread, signal and message models mirror the persisted records handed over by
the signal store. Graph models are the disposable view-model produced by the
graph builder and read by the three views.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Assessment = Literal["supported", "partially_supported", "unclear", "contradicted"]
ThreadStatus = Literal["active", "dormant", "closed"]
Impact = Literal["supports", "weakens", "neutral"]
EdgeRelation = Literal["supports", "weakens", "neutral"]
PathStatus = Literal["active", "dead"]
Credibility = Literal["A", "B", "C", "D"]
MessageRole = Literal["user", "assistant"]


def parse_iso_instant(value: str) -> datetime:
    """Parse an ISO 8601 date or datetime into a naive UTC datetime.

    Date-only strings resolve to midnight. Raises ValueError when the
    string is neither, or when its UTC instant falls outside the
    datetime range.
    """
    try:
        day = date.fromisoformat(value)
        return datetime(day.year, day.month, day.day)
    except (ValueError, TypeError):
        pass
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except OverflowError as exc:
            raise ValueError(f"Date out of range in UTC: {value}") from exc
    return parsed


def _normalize_fraction(value: float | None) -> float | None:
    """Coerce a 0-100 percentage or a 0-1 fraction to a 0-1 fraction."""
    if value is None:
        return None
    if value > 1:
        value = value / 100
    return max(0.0, min(1.0, float(value)))


class InvestigationThread(BaseModel):
    """A named investigation pursuing one hypothesis.

    ``confidence_score`` is stored as a 0-1 fraction. Upstream values on the
    0-100 scale are converted on the way in; use ``confidence_percent`` at
    the display boundary.
    """

    id: str
    title: str
    initial_hypothesis: str
    investigative_axes: list[str] = Field(default_factory=list)
    current_assessment: Assessment | None = None
    confidence_score: float | None = None
    blind_spots: list[str] = Field(default_factory=list)
    scope: str | None = None
    status: ThreadStatus = "active"
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _fraction(cls, value: float | None) -> float | None:
        return _normalize_fraction(value)

    @field_validator("investigative_axes", "blind_spots", mode="before")
    @classmethod
    def _none_as_empty(cls, value: list[str] | None) -> list[str]:
        return value or []

    def confidence_percent(self) -> int | None:
        """Thread confidence on the 0-100 display scale."""
        if self.confidence_score is None:
            return None
        return round(self.confidence_score * 100)


class InvestigationSignal(BaseModel):
    """One piece of evidence attached to a thread.

    ``id``, ``source``, ``summary`` and ``impact_on_hypothesis`` are required;
    records missing any of them fail validation and are skipped by the graph
    builder. ``type`` falls back to ``"event"``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: str = Field(default="event", min_length=1)
    source: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    impact_on_hypothesis: Impact
    url: str | None = None
    date: str | None = None
    credibility_score: Credibility | None = None
    confidence: float | None = None
    thread_id: str | None = None
    created_at: str | None = None

    @field_validator("url", "date", mode="before")
    @classmethod
    def _blank_as_none(cls, value: str | None) -> str | None:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("date")
    @classmethod
    def _iso_date(cls, value: str | None) -> str | None:
        if value is not None:
            parse_iso_instant(value)
        return value

    @field_validator("confidence")
    @classmethod
    def _confidence_range(cls, value: float | None) -> float | None:
        if value is not None and not 0 <= value <= 100:
            raise ValueError("confidence must be within 0-100 (or 0-1)")
        return value


class InvestigationMessage(BaseModel):
    """A chat message in a thread. Carried through, never read by the graph."""

    id: str
    thread_id: str
    role: MessageRole
    content: str
    citations: list[str] = Field(default_factory=list)
    created_at: str | None = None


# -- Derived graph -------------------------------------------------------------


class InvestigationGraphNode(BaseModel):
    """Graph projection of one signal."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    type: str = "event"
    date: str | None = None
    confidence: int = Field(ge=0, le=100)
    sources: list[str] = Field(min_length=1)


class InvestigationGraphEdge(BaseModel):
    """Inferred link from an earlier node to a later one.

    Serialized with ``from``/``to`` keys; ``from_id``/``to_id`` in Python.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")
    relation: EdgeRelation
    strength: float = Field(ge=0, le=1)
    confidence: float = Field(ge=0, le=1)

    @property
    def key(self) -> str:
        """Selection key in ``from|to`` form."""
        return edge_key(self.from_id, self.to_id)


class InvestigationPath(BaseModel):
    """A candidate narrative: an ordered chain of node ids."""

    model_config = ConfigDict(frozen=True)

    id: str
    hypothesis_label: str
    nodes: list[str]
    status: PathStatus
    confidence: int = Field(ge=0, le=100)


class InvestigationGraph(BaseModel):
    """Nodes, edges and paths derived from a thread's signals."""

    model_config = ConfigDict(frozen=True)

    nodes: list[InvestigationGraphNode] = Field(default_factory=list)
    edges: list[InvestigationGraphEdge] = Field(default_factory=list)
    paths: list[InvestigationPath] = Field(default_factory=list)

    def node_by_id(self) -> dict[str, InvestigationGraphNode]:
        return {node.id: node for node in self.nodes}

    def find_path(self, path_id: str | None) -> InvestigationPath | None:
        if path_id is None:
            return None
        return next((p for p in self.paths if p.id == path_id), None)

    def find_edge(self, key: str | None) -> InvestigationGraphEdge | None:
        if key is None:
            return None
        return next((e for e in self.edges if e.key == key), None)

    def to_dict(self) -> dict:
        """JSON-ready dict with ``from``/``to`` edge keys."""
        return self.model_dump(by_alias=True)


def edge_key(from_id: str, to_id: str) -> str:
    return f"{from_id}|{to_id}"


def split_edge_key(key: str) -> tuple[str, str] | None:
    """Split ``from|to`` on the first separator; None when malformed."""
    from_id, sep, to_id = key.partition("|")
    if not sep or not from_id or not to_id:
        return None
    return from_id, to_id

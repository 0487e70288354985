"""Read-only briefing built from a thread and its evidence graph.

The briefing summarizes the strongest path, the turning points, competing
paths and what remains uncertain. It never modifies the thread or graph.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from casegraph.graph.builder import to_networkx
from casegraph.models import (
    InvestigationGraph,
    InvestigationGraphNode,
    InvestigationThread,
    PathStatus,
    edge_key,
)

MAX_TURNING_POINTS = 4
MAX_KEY_NODES_PRIMARY = 4
LOW_CONFIDENCE_THRESHOLD = 50
WEAK_EDGE_STRENGTH = 0.5
DISCLAIMER = (
    "This briefing is subject to change as new signals are integrated. It reflects "
    "current paths and uncertainties, not a final conclusion."
)


class BriefingNode(BaseModel):
    node_id: str
    label: str
    date: str | None = None
    confidence: int


class InvestigationSection(BaseModel):
    title: str
    hypothesis: str
    status: str
    updated_at: str | None = None
    investigative_axes: list[str] = Field(default_factory=list)
    current_assessment: str | None = None
    confidence_percent: int | None = None


class PrimaryPathSection(BaseModel):
    path_id: str
    hypothesis_label: str
    confidence: int
    status: PathStatus
    key_nodes: list[BriefingNode] = Field(default_factory=list)

    @property
    def key_node_ids(self) -> list[str]:
        return [n.node_id for n in self.key_nodes]


class AlternativePath(BaseModel):
    path_id: str
    hypothesis_label: str
    status: PathStatus
    confidence: int


class UncertaintySection(BaseModel):
    blind_spots: list[str] = Field(default_factory=list)
    low_confidence_node_ids: list[str] = Field(default_factory=list)
    has_contradictions: bool = False


class BriefingPayload(BaseModel):
    investigation: InvestigationSection
    primary_path: PrimaryPathSection | None = None
    turning_points: list[BriefingNode] = Field(default_factory=list)
    alternative_paths: list[AlternativePath] = Field(default_factory=list)
    uncertainty: UncertaintySection
    disclaimer: str = DISCLAIMER


def _as_briefing_node(node: InvestigationGraphNode) -> BriefingNode:
    return BriefingNode(node_id=node.id, label=node.label, date=node.date, confidence=node.confidence)


def _sample_key_nodes(nodes: list[InvestigationGraphNode]) -> list[InvestigationGraphNode]:
    """All nodes if few, else first, middle, three-quarter and last."""
    if len(nodes) <= MAX_KEY_NODES_PRIMARY:
        return nodes
    picks = [0, len(nodes) // 2, int(len(nodes) * 0.75), len(nodes) - 1]
    seen: list[int] = []
    for index in picks:
        if index not in seen:
            seen.append(index)
    return [nodes[i] for i in seen][:MAX_KEY_NODES_PRIMARY]


def _primary_path(graph: InvestigationGraph) -> PrimaryPathSection | None:
    if not graph.paths:
        return None
    # max() keeps the first path among equal confidences.
    primary = max(graph.paths, key=lambda p: p.confidence)
    by_id = graph.node_by_id()
    members = [by_id[n] for n in primary.nodes if n in by_id]
    if not members:
        return None
    return PrimaryPathSection(
        path_id=primary.id,
        hypothesis_label=primary.hypothesis_label or primary.id,
        confidence=primary.confidence,
        status=primary.status,
        key_nodes=[_as_briefing_node(n) for n in _sample_key_nodes(members)],
    )


def _turning_points(graph: InvestigationGraph) -> list[BriefingNode]:
    """Nodes shared by two or more paths, or where the graph branches."""
    digraph = to_networkx(graph)
    path_count: dict[str, int] = {}
    for path in graph.paths:
        for node_id in path.nodes:
            path_count[node_id] = path_count.get(node_id, 0) + 1

    candidates = [
        node for node in graph.nodes
        if path_count.get(node.id, 0) >= 2
        or digraph.in_degree(node.id) > 1
        or digraph.out_degree(node.id) > 1
    ]
    candidates.sort(key=lambda n: n.confidence, reverse=True)
    return [_as_briefing_node(n) for n in candidates[:MAX_TURNING_POINTS]]


def _uncertainty(
    thread: InvestigationThread, graph: InvestigationGraph, primary_path_id: str | None,
) -> UncertaintySection:
    has_contradictions = any(p.status == "dead" for p in graph.paths)
    primary = graph.find_path(primary_path_id)
    if primary is not None:
        primary_edges = {edge_key(a, b) for a, b in zip(primary.nodes, primary.nodes[1:])}
        if any(e.key in primary_edges and e.strength < WEAK_EDGE_STRENGTH for e in graph.edges):
            has_contradictions = True
    return UncertaintySection(
        blind_spots=list(thread.blind_spots),
        low_confidence_node_ids=[n.id for n in graph.nodes if n.confidence < LOW_CONFIDENCE_THRESHOLD],
        has_contradictions=has_contradictions,
    )


def build_briefing_payload(thread: InvestigationThread, graph: InvestigationGraph) -> BriefingPayload:
    """Assemble the briefing sections for a thread and its graph."""
    primary = _primary_path(graph)
    primary_id = primary.path_id if primary else None
    return BriefingPayload(
        investigation=InvestigationSection(
            title=thread.title,
            hypothesis=thread.initial_hypothesis,
            status=thread.status,
            updated_at=thread.updated_at,
            investigative_axes=list(thread.investigative_axes),
            current_assessment=thread.current_assessment,
            confidence_percent=thread.confidence_percent(),
        ),
        primary_path=primary,
        turning_points=_turning_points(graph),
        alternative_paths=[
            AlternativePath(
                path_id=p.id,
                hypothesis_label=p.hypothesis_label or p.id,
                status=p.status,
                confidence=p.confidence,
            )
            for p in graph.paths
            if p.id != primary_id
        ],
        uncertainty=_uncertainty(thread, graph, primary_id),
    )


def _node_line(node: BriefingNode) -> str:
    date = f"[{node.date}] " if node.date else ""
    return f"  - {date}{node.label} ({node.confidence}%)"


def format_briefing_as_text(payload: BriefingPayload) -> str:
    """Plain-text rendering of a briefing, for download."""
    inv = payload.investigation
    lines = [
        f"BRIEFING: {inv.title}",
        "",
        f"Hypothesis: {inv.hypothesis}",
        f"Status: {inv.status}",
    ]
    if inv.current_assessment:
        lines.append(f"Assessment: {inv.current_assessment}")
    if inv.confidence_percent is not None:
        lines.append(f"Confidence: {inv.confidence_percent}%")
    if inv.updated_at:
        lines.append(f"Updated: {inv.updated_at}")
    if inv.investigative_axes:
        lines.append("Investigative axes:")
        lines.extend(f"  - {axis}" for axis in inv.investigative_axes)

    lines += ["", "PRIMARY PATH"]
    if payload.primary_path is None:
        lines.append("  No path yet.")
    else:
        primary = payload.primary_path
        lines.append(f"  {primary.hypothesis_label} ({primary.status}, {primary.confidence}%)")
        lines.extend(_node_line(n) for n in primary.key_nodes)

    if payload.turning_points:
        lines += ["", "TURNING POINTS"]
        lines.extend(_node_line(n) for n in payload.turning_points)

    if payload.alternative_paths:
        lines += ["", "ALTERNATIVE PATHS"]
        lines.extend(
            f"  - {p.hypothesis_label} ({p.status}, {p.confidence}%)" for p in payload.alternative_paths
        )

    unc = payload.uncertainty
    lines += ["", "UNCERTAINTY"]
    if unc.blind_spots:
        lines.append("  Blind spots:")
        lines.extend(f"    - {spot}" for spot in unc.blind_spots)
    lines.append(f"  Low-confidence events: {len(unc.low_confidence_node_ids)}")
    lines.append(f"  Contradictions: {'yes' if unc.has_contradictions else 'no'}")

    lines += ["", payload.disclaimer, ""]
    return "\n".join(lines)

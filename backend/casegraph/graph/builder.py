"""Evidence graph construction from investigation signals.

``build_graph_from_signals`` is a pure function: the same thread and signals
always produce the same graph, node for node and edge for edge. It never
raises on bad input; malformed signals are dropped whole.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

import networkx as nx
from pydantic import ValidationError

from casegraph.graph.paths import derive_paths
from casegraph.models import (
    InvestigationGraph,
    InvestigationGraphEdge,
    InvestigationGraphNode,
    InvestigationSignal,
    InvestigationThread,
    parse_iso_instant,
)

logger = logging.getLogger(__name__)

DEFAULT_NODE_CONFIDENCE = 50
CREDIBILITY_CONFIDENCE = {"A": 90, "B": 75, "C": 55, "D": 35}
LABEL_MAX_LENGTH = 60
MIN_EDGE_STRENGTH = 0.2
NEUTRAL_STRENGTH_FACTOR = 0.75


def parse_signals(raw_signals: Iterable[Any]) -> list[InvestigationSignal]:
    """Validate raw signal records, skipping the malformed ones.

    Accepts already-built ``InvestigationSignal`` instances or mappings.
    Input order is preserved.
    """
    signals: list[InvestigationSignal] = []
    for index, raw in enumerate(raw_signals):
        if isinstance(raw, InvestigationSignal):
            signals.append(raw)
            continue
        if not isinstance(raw, Mapping):
            logger.warning("Skipping signal #%d: not a record (%s)", index, type(raw).__name__)
            continue
        try:
            signals.append(InvestigationSignal.model_validate(dict(raw)))
        except ValidationError as exc:
            fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
            logger.warning("Skipping malformed signal #%d (id=%s): %s", index, raw.get("id"), fields)
    return signals


def derive_label(signal: InvestigationSignal) -> str:
    """Headline of the summary (first sentence, truncated), else the source."""
    headline = signal.summary.strip().splitlines()[0] if signal.summary.strip() else ""
    for stop in (". ", "? ", "! "):
        cut = headline.find(stop)
        if cut > 0:
            headline = headline[: cut + 1]
    headline = headline.strip()
    if not headline:
        return signal.source
    if len(headline) > LABEL_MAX_LENGTH:
        headline = headline[: LABEL_MAX_LENGTH - 1].rstrip() + "…"
    return headline


def node_confidence(signal: InvestigationSignal, default: int = DEFAULT_NODE_CONFIDENCE) -> int:
    """Explicit confidence, then credibility grade, then the neutral default."""
    if signal.confidence is not None:
        value = signal.confidence * 100 if signal.confidence <= 1 else signal.confidence
        return max(0, min(100, round(value)))
    if signal.credibility_score is not None:
        return CREDIBILITY_CONFIDENCE[signal.credibility_score]
    return default


def _node_sources(signal: InvestigationSignal) -> list[str]:
    sources = [signal.source]
    if signal.url and signal.url not in sources:
        sources.append(signal.url)
    return sources


def _date_key(node: InvestigationGraphNode) -> datetime:
    # Only called for dated nodes; dates are validated at parse time.
    return parse_iso_instant(node.date)  # type: ignore[arg-type]


def order_nodes_by_date(nodes: list[InvestigationGraphNode]) -> list[InvestigationGraphNode]:
    """Dated nodes ascending, then dateless nodes in input order.

    ``sorted`` is stable, so equal dates keep their input order as well.
    """
    dated = [n for n in nodes if n.date]
    undated = [n for n in nodes if not n.date]
    return sorted(dated, key=_date_key) + undated


def edge_strength(from_conf: int, to_conf: int, relation: str) -> float:
    """Monotonic in both confidences, weighted toward the destination."""
    weight = (from_conf + 2 * to_conf) / 300
    strength = MIN_EDGE_STRENGTH + (1 - MIN_EDGE_STRENGTH) * weight
    if relation == "neutral":
        strength *= NEUTRAL_STRENGTH_FACTOR
    return round(max(0.0, min(1.0, strength)), 3)


def _derive_nodes(
    signals: list[InvestigationSignal], default_confidence: int,
) -> tuple[list[InvestigationGraphNode], dict[str, InvestigationSignal]]:
    """One node per signal id; repeated ids merge their sources into the first."""
    nodes: dict[str, InvestigationGraphNode] = {}
    origin: dict[str, InvestigationSignal] = {}
    for signal in signals:
        existing = nodes.get(signal.id)
        if existing is not None:
            merged = existing.sources + [s for s in _node_sources(signal) if s not in existing.sources]
            nodes[signal.id] = existing.model_copy(update={"sources": merged})
            continue
        nodes[signal.id] = InvestigationGraphNode(
            id=signal.id,
            label=derive_label(signal),
            type=signal.type,
            date=signal.date,
            confidence=node_confidence(signal, default_confidence),
            sources=_node_sources(signal),
        )
        origin[signal.id] = signal
    return list(nodes.values()), origin


def _infer_edges(
    nodes: list[InvestigationGraphNode], origin: dict[str, InvestigationSignal],
) -> list[InvestigationGraphEdge]:
    """Link consecutive dated nodes; the relation comes from the later signal."""
    chain = [n for n in order_nodes_by_date(nodes) if n.date]
    edges: list[InvestigationGraphEdge] = []
    for earlier, later in zip(chain, chain[1:]):
        relation = origin[later.id].impact_on_hypothesis
        edges.append(InvestigationGraphEdge(
            from_id=earlier.id,
            to_id=later.id,
            relation=relation,
            strength=edge_strength(earlier.confidence, later.confidence, relation),
            confidence=round(later.confidence / 100, 3),
        ))
    return edges


def build_graph_from_signals(
    thread: InvestigationThread,
    signals: Iterable[Any],
    *,
    default_confidence: int = DEFAULT_NODE_CONFIDENCE,
    dead_path_threshold: float | None = None,
) -> InvestigationGraph:
    """Build the evidence graph for a thread.

    Parameters
    ----------
    thread : InvestigationThread
        Read for the hypothesis label of derived paths; never modified.
    signals : iterable
        Signals or raw signal mappings, in any order, possibly malformed.
    default_confidence : int
        Node confidence for signals carrying neither a confidence nor a
        credibility grade.
    dead_path_threshold : float, optional
        Minimum strength of a ``weakens`` edge that kills a supports path.

    Returns
    -------
    InvestigationGraph
        Empty graph when no signal is well-formed.
    """
    parsed = parse_signals(signals)
    if not parsed:
        return InvestigationGraph()

    nodes, origin = _derive_nodes(parsed, default_confidence)
    edges = _infer_edges(nodes, origin)
    path_kwargs = {} if dead_path_threshold is None else {"dead_threshold": dead_path_threshold}
    paths = derive_paths(thread, order_nodes_by_date(nodes), edges, **path_kwargs)

    logger.debug(
        "Built graph for thread %s: %d nodes, %d edges, %d paths",
        thread.id, len(nodes), len(edges), len(paths),
    )
    return InvestigationGraph(nodes=nodes, edges=edges, paths=paths)


def to_networkx(graph: InvestigationGraph) -> nx.DiGraph:
    """Project the graph onto a networkx DiGraph.

    Node attributes carry label, date and confidence; edge attributes carry
    relation, strength and confidence. Dangling edges are dropped.
    """
    digraph = nx.DiGraph()
    for node in graph.nodes:
        digraph.add_node(node.id, label=node.label, date=node.date, confidence=node.confidence)
    for edge in graph.edges:
        if edge.from_id not in digraph or edge.to_id not in digraph:
            logger.debug("Dropping dangling edge %s", edge.key)
            continue
        digraph.add_edge(
            edge.from_id, edge.to_id,
            relation=edge.relation,
            strength=edge.strength,
            confidence=edge.confidence,
        )
    return digraph

"""Candidate narrative paths over the chronological evidence chain.

Dated nodes, in date order, form a single chain. Walking it edge by edge:

- a path extends while edges keep its polarity; ``neutral`` edges never
  change polarity, and a path with no polarity yet adopts the first
  non-neutral relation it meets;
- an edge of the opposite polarity closes the current path and starts a new
  one at the shared node;
- a closed ``supports`` path holding two or more ``supports`` edges is marked
  ``dead`` when the edge that closes it is a ``weakens`` edge at or above the
  dead-path strength threshold.

Every other path stays ``active``. Dead paths are kept.
"""

from __future__ import annotations

from dataclasses import dataclass

from casegraph.models import (
    InvestigationGraphEdge,
    InvestigationGraphNode,
    InvestigationPath,
    InvestigationThread,
)

DEAD_PATH_STRENGTH_THRESHOLD = 0.5
MIN_SUPPORTS_BEFORE_DEATH = 2
HYPOTHESIS_LABEL_MAX_LENGTH = 80


@dataclass
class _Run:
    nodes: list[str]
    polarity: str | None = None
    supports_edges: int = 0
    dead: bool = False


def _hypothesis_label(thread: InvestigationThread, polarity: str | None) -> str:
    hypothesis = " ".join(thread.initial_hypothesis.split()) or thread.title
    if len(hypothesis) > HYPOTHESIS_LABEL_MAX_LENGTH:
        hypothesis = hypothesis[: HYPOTHESIS_LABEL_MAX_LENGTH - 1].rstrip() + "…"
    if polarity == "supports":
        return hypothesis
    if polarity == "weakens":
        return f"Against: {hypothesis}"
    return "Context"


def _kills(run: _Run, edge: InvestigationGraphEdge, threshold: float) -> bool:
    return (
        run.polarity == "supports"
        and run.supports_edges >= MIN_SUPPORTS_BEFORE_DEATH
        and edge.relation == "weakens"
        and edge.strength >= threshold
    )


def derive_paths(
    thread: InvestigationThread,
    ordered_nodes: list[InvestigationGraphNode],
    edges: list[InvestigationGraphEdge],
    dead_threshold: float = DEAD_PATH_STRENGTH_THRESHOLD,
) -> list[InvestigationPath]:
    """Split the dated chain into paths.

    ``ordered_nodes`` must be in date order (dateless nodes are ignored);
    ``edges`` must link consecutive dated nodes, as the builder emits them.
    """
    chain = [n for n in ordered_nodes if n.date]
    if not chain:
        return []
    confidence = {n.id: n.confidence for n in chain}
    outgoing = {e.from_id: e for e in reversed(edges)}

    runs: list[_Run] = []
    current = _Run(nodes=[chain[0].id])
    for node in chain[:-1]:
        edge = outgoing.get(node.id)
        if edge is None or edge.to_id not in confidence:
            continue
        relation = edge.relation
        if relation == "neutral" or current.polarity in (None, relation):
            current.nodes.append(edge.to_id)
            if relation != "neutral":
                current.polarity = relation
            if relation == "supports":
                current.supports_edges += 1
            continue
        current.dead = _kills(current, edge, dead_threshold)
        runs.append(current)
        current = _Run(
            nodes=[edge.from_id, edge.to_id],
            polarity=relation,
            supports_edges=1 if relation == "supports" else 0,
        )
    runs.append(current)

    paths = []
    for index, run in enumerate(runs):
        members = [confidence[node_id] for node_id in run.nodes]
        paths.append(InvestigationPath(
            id=f"path-{index}",
            hypothesis_label=_hypothesis_label(thread, run.polarity),
            nodes=run.nodes,
            status="dead" if run.dead else "active",
            confidence=round(sum(members) / len(members)),
        ))
    return paths

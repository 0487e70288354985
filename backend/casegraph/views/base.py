"""Shared input contract and selection semantics for the graph views.

Every view takes the same ``ViewProps``: the graph, the host's selection
state and click callbacks. Selection ids that do not match anything in the
graph (for example after a rebuild) resolve to "nothing selected".
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from html import escape

from pydantic import BaseModel, Field

from casegraph.models import InvestigationGraph, PathStatus

logger = logging.getLogger(__name__)

ACCENT = "#E1463E"
MUTED = "#6b7280"
NODE_FILL = "#374151"
TEXT = "#e5e7eb"

NodeCallback = Callable[[str], None]
EdgeCallback = Callable[[str, str], None]
PathCallback = Callable[[str], None]


@dataclass
class ViewProps:
    """What the host page hands to whichever view is mounted."""

    graph: InvestigationGraph
    selected_node_id: str | None = None
    selected_edge_key: str | None = None
    selected_path_id: str | None = None
    show_dead_paths: bool = True
    on_node_click: NodeCallback | None = None
    on_edge_click: EdgeCallback | None = None
    on_path_click: PathCallback | None = None


@dataclass(frozen=True)
class ResolvedSelection:
    node_id: str | None = None
    edge_key: str | None = None
    path_id: str | None = None
    path_node_ids: frozenset[str] = frozenset()


def resolve_selection(props: ViewProps) -> ResolvedSelection:
    """Drop selection ids the graph does not contain."""
    graph = props.graph
    node_ids = {n.id for n in graph.nodes}
    node_id = props.selected_node_id if props.selected_node_id in node_ids else None
    edge = graph.find_edge(props.selected_edge_key)
    path = graph.find_path(props.selected_path_id)
    if props.selected_node_id is not None and node_id is None:
        logger.debug("Stale node selection %s", props.selected_node_id)
    return ResolvedSelection(
        node_id=node_id,
        edge_key=edge.key if edge is not None else None,
        path_id=path.id if path is not None else None,
        path_node_ids=frozenset(path.nodes) if path is not None else frozenset(),
    )


class PathChip(BaseModel):
    id: str
    label: str
    status: PathStatus
    confidence: int
    selected: bool = False


def path_chips(props: ViewProps, selection: ResolvedSelection) -> list[PathChip]:
    """Path chips in graph order; dead paths are left out unless shown."""
    return [
        PathChip(
            id=path.id,
            label=path.hypothesis_label or path.id,
            status=path.status,
            confidence=path.confidence,
            selected=path.id == selection.path_id,
        )
        for path in props.graph.paths
        if props.show_dead_paths or path.status != "dead"
    ]


class ViewLayout(BaseModel):
    """Common layout header: which view, empty state, canvas size, chips."""

    view: str
    empty: bool = False
    empty_message: str | None = None
    width: int = 0
    height: int = 0
    path_chips: list[PathChip] = Field(default_factory=list)

    def highlighted_node_ids(self) -> set[str]:
        """Ids flagged as members of the selected path."""
        raise NotImplementedError


class GraphView:
    """Base class for the three renderers.

    Subclasses implement ``render`` and ``_svg_body``; click dispatch and the
    empty state are shared.
    """

    name = "graph"
    title = "Graph"
    empty_message = "No nodes yet. Add signals to build the graph."

    def __init__(self, props: ViewProps) -> None:
        self.props = props
        self.selection = resolve_selection(props)

    @property
    def is_empty(self) -> bool:
        return not self.props.graph.nodes

    def render(self) -> ViewLayout:
        raise NotImplementedError

    def empty_layout(self, layout_cls: type[ViewLayout]) -> ViewLayout:
        return layout_cls(view=self.name, empty=True, empty_message=self.empty_message)

    # -- Clicks ---------------------------------------------------------------

    def click_node(self, node_id: str) -> bool:
        """Invoke the node callback for a rendered node. Returns True if dispatched."""
        if self.props.on_node_click is None:
            return False
        if node_id not in {n.id for n in self.props.graph.nodes}:
            return False
        self.props.on_node_click(node_id)
        return True

    def click_edge(self, from_id: str, to_id: str) -> bool:
        """Views without clickable edges ignore edge clicks."""
        return False

    def click_path(self, path_id: str) -> bool:
        """Invoke the path callback for a visible path chip."""
        if self.props.on_path_click is None:
            return False
        if path_id not in {chip.id for chip in path_chips(self.props, self.selection)}:
            return False
        self.props.on_path_click(path_id)
        return True

    # -- Markup ---------------------------------------------------------------

    def to_svg(self) -> str:
        """Standalone SVG document for the current layout."""
        layout = self.render()
        if layout.empty:
            return (
                '<svg xmlns="http://www.w3.org/2000/svg" width="360" height="60" '
                f'data-view="{self.name}" data-empty="true">'
                f'<text x="180" y="34" text-anchor="middle" font-size="13" fill="{MUTED}">'
                f"{escape(layout.empty_message or '')}</text></svg>"
            )
        chips, chips_height = _chips_svg(layout.path_chips)
        width = max(layout.width, 8 + len(layout.path_chips) * (CHIP_WIDTH + 6))
        height = layout.height + chips_height
        return (
            '<svg xmlns="http://www.w3.org/2000/svg" '
            f'width="{width}" height="{height}" '
            f'viewBox="0 0 {width} {height}" data-view="{self.name}">'
            f"{chips}"
            f'<g transform="translate(0,{chips_height})">{self._svg_body(layout)}</g>'
            "</svg>"
        )

    def _svg_body(self, layout: ViewLayout) -> str:
        raise NotImplementedError


CHIP_HEIGHT = 22
CHIP_WIDTH = 180


def _chips_svg(chips: list[PathChip]) -> tuple[str, int]:
    if not chips:
        return "", 0
    parts = []
    for i, chip in enumerate(chips):
        x = 8 + i * (CHIP_WIDTH + 6)
        fill = ACCENT if chip.selected else NODE_FILL
        opacity = 0.7 if chip.status == "dead" else 1
        text = f"{chip.label} ({chip.status} {chip.confidence}%)"
        parts.append(
            f'<g data-path-id="{escape(chip.id)}" opacity="{opacity}">'
            f'<rect x="{x}" y="6" width="{CHIP_WIDTH}" height="{CHIP_HEIGHT - 6}" rx="4" fill="{fill}"/>'
            f'<text x="{x + 6}" y="{CHIP_HEIGHT - 4}" font-size="10" fill="{TEXT}">'
            f"{escape(truncate(text, 32))}</text></g>"
        )
    return "".join(parts), CHIP_HEIGHT + 8


def truncate(text: str, length: int) -> str:
    return text if len(text) <= length else text[: length - 1] + "…"

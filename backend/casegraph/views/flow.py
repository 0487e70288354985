"""Flow view: events left to right in date order, linked by arrows.

Arrow thickness and opacity follow edge strength. The linear layout draws at
most one arrow per node: ``edge_by_from`` keeps the first outgoing edge of
each node in edge order and ignores the rest.
"""

from __future__ import annotations

from html import escape

from pydantic import BaseModel, Field

from casegraph.graph.builder import order_nodes_by_date
from casegraph.models import EdgeRelation, InvestigationGraphEdge, edge_key
from casegraph.views.base import (
    ACCENT,
    MUTED,
    NODE_FILL,
    TEXT,
    GraphView,
    ViewLayout,
    path_chips,
    truncate,
)

BOX_WIDTH = 112
BOX_HEIGHT = 64
CONNECTOR_WIDTH = 40
PADDING = 16

MIN_STROKE_WIDTH = 1.0
MAX_STROKE_WIDTH = 4.0
MIN_OPACITY = 0.4
MAX_OPACITY = 0.9


def stroke_width(strength: float) -> float:
    return round(MIN_STROKE_WIDTH + (MAX_STROKE_WIDTH - MIN_STROKE_WIDTH) * strength, 2)


def stroke_opacity(strength: float) -> float:
    return round(MIN_OPACITY + (MAX_OPACITY - MIN_OPACITY) * strength, 2)


def edge_by_from(edges: list[InvestigationGraphEdge]) -> dict[str, InvestigationGraphEdge]:
    """First outgoing edge per source node, in edge insertion order."""
    reduced: dict[str, InvestigationGraphEdge] = {}
    for edge in edges:
        reduced.setdefault(edge.from_id, edge)
    return reduced


class FlowNodeBox(BaseModel):
    id: str
    label: str
    date: str | None = None
    confidence: int
    x: int
    y: int
    selected: bool = False
    in_path: bool = False


class FlowConnector(BaseModel):
    """Gap between two consecutive boxes: an edge arrow or a plain marker."""

    from_id: str
    to_id: str | None = None
    x: int
    relation: EdgeRelation | None = None
    stroke_width: float = MIN_STROKE_WIDTH
    opacity: float = MIN_OPACITY
    selected: bool = False
    clickable: bool = False

    @property
    def edge_key(self) -> str | None:
        return edge_key(self.from_id, self.to_id) if self.to_id else None


class FlowLayout(ViewLayout):
    nodes: list[FlowNodeBox] = Field(default_factory=list)
    connectors: list[FlowConnector] = Field(default_factory=list)
    edge_count: int = 0
    caption: str | None = None

    def highlighted_node_ids(self) -> set[str]:
        return {n.id for n in self.nodes if n.in_path}


class FlowView(GraphView):
    """Chronological flow. Exposes node, edge and path clicks."""

    name = "flow"
    title = "Flow View"

    def render(self) -> FlowLayout:
        if self.is_empty:
            return self.empty_layout(FlowLayout)  # type: ignore[return-value]

        graph = self.props.graph
        sel = self.selection
        known = {n.id for n in graph.nodes}
        ordered = order_nodes_by_date(graph.nodes)
        reduced = edge_by_from(graph.edges)

        boxes: list[FlowNodeBox] = []
        connectors: list[FlowConnector] = []
        step = BOX_WIDTH + CONNECTOR_WIDTH
        for i, node in enumerate(ordered):
            x = PADDING + i * step
            boxes.append(FlowNodeBox(
                id=node.id,
                label=node.label,
                date=node.date,
                confidence=node.confidence,
                x=x,
                y=PADDING,
                selected=node.id == sel.node_id,
                in_path=node.id in sel.path_node_ids,
            ))
            if i == len(ordered) - 1:
                break
            edge = reduced.get(node.id)
            if edge is None or edge.to_id not in known:
                connectors.append(FlowConnector(from_id=node.id, x=x + BOX_WIDTH))
                continue
            connectors.append(FlowConnector(
                from_id=node.id,
                to_id=edge.to_id,
                x=x + BOX_WIDTH,
                relation=edge.relation,
                stroke_width=stroke_width(edge.strength),
                opacity=stroke_opacity(edge.strength),
                selected=edge.key == sel.edge_key,
                clickable=self.props.on_edge_click is not None,
            ))

        edge_count = len(graph.edges)
        return FlowLayout(
            view=self.name,
            width=2 * PADDING + len(ordered) * step - CONNECTOR_WIDTH,
            height=2 * PADDING + BOX_HEIGHT,
            path_chips=path_chips(self.props, sel),
            nodes=boxes,
            connectors=connectors,
            edge_count=edge_count,
            caption=f"{edge_count} link(s) between events." if edge_count else None,
        )

    def click_edge(self, from_id: str, to_id: str) -> bool:
        """Dispatch only for arrows the layout actually draws."""
        if self.props.on_edge_click is None or self.is_empty:
            return False
        drawn = {c.edge_key for c in self.render().connectors if c.to_id}
        if edge_key(from_id, to_id) not in drawn:
            return False
        self.props.on_edge_click(from_id, to_id)
        return True

    def _svg_body(self, layout: FlowLayout) -> str:  # type: ignore[override]
        parts = []
        mid_y = PADDING + BOX_HEIGHT // 2
        for box in layout.nodes:
            stroke = ACCENT if box.selected or box.in_path else MUTED
            fill = ACCENT if box.selected else NODE_FILL
            fill_opacity = 0.15 if box.selected else 1
            parts.append(
                f'<g data-node-id="{escape(box.id)}">'
                f'<rect x="{box.x}" y="{box.y}" width="{BOX_WIDTH}" height="{BOX_HEIGHT}" rx="8" '
                f'fill="{fill}" fill-opacity="{fill_opacity}" stroke="{stroke}" '
                f'stroke-width="{2 if box.selected or box.in_path else 1}"/>'
                f'<text x="{box.x + 8}" y="{box.y + 18}" font-size="11" fill="{TEXT}">'
                f"{escape(truncate(box.label, 16))}</text>"
            )
            if box.date:
                parts.append(
                    f'<text x="{box.x + 8}" y="{box.y + 36}" font-size="10" fill="{MUTED}">'
                    f"{escape(box.date)}</text>"
                )
            parts.append(
                f'<text x="{box.x + 8}" y="{box.y + 54}" font-size="10" fill="{MUTED}">'
                f"{box.confidence} %</text></g>"
            )
        for conn in layout.connectors:
            x1, x2 = conn.x + 4, conn.x + CONNECTOR_WIDTH - 4
            if conn.to_id is None:
                parts.append(
                    f'<text x="{(x1 + x2) // 2}" y="{mid_y + 5}" text-anchor="middle" '
                    f'font-size="16" fill="{MUTED}">→</text>'
                )
                continue
            ring = f' stroke="{ACCENT}" stroke-width="2"' if conn.selected else ' stroke="none"'
            parts.append(
                f'<g data-edge-key="{escape(conn.edge_key or "")}">'
                f'<rect x="{conn.x + 1}" y="{mid_y - 12}" width="{CONNECTOR_WIDTH - 2}" height="24" '
                f'rx="3" fill="none"{ring}/>'
                f'<line x1="{x1}" y1="{mid_y}" x2="{x2 - 8}" y2="{mid_y}" stroke="{ACCENT}" '
                f'stroke-width="{conn.stroke_width}" stroke-opacity="{conn.opacity}"/>'
                f'<path d="M {x2 - 8} {mid_y - 4} L {x2} {mid_y} L {x2 - 8} {mid_y + 4} Z" '
                f'fill="{ACCENT}" opacity="{conn.opacity}"/></g>'
            )
        if layout.caption:
            parts.append(
                f'<text x="{PADDING}" y="{layout.height - 2}" font-size="10" fill="{MUTED}">'
                f"{escape(layout.caption)}</text>"
            )
        return "".join(parts)

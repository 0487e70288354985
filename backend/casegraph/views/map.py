"""Map view: every node on a square-ish grid, edges as straight lines.

The layout ignores dates. Cells follow graph node order, row by row, with
``ceil(sqrt(n))`` columns.
"""

from __future__ import annotations

import logging
import math
from html import escape

from pydantic import BaseModel, Field

from casegraph.views.base import ACCENT, MUTED, NODE_FILL, TEXT, GraphView, ViewLayout, path_chips

logger = logging.getLogger(__name__)

CELL_SIZE = 80
NODE_RADIUS = 18
SHORT_LABEL_LENGTH = 8


class MapNodeCircle(BaseModel):
    id: str
    short_label: str
    cx: float
    cy: float
    fill: str
    stroke: str
    stroke_width: int
    selected: bool = False
    in_path: bool = False


class MapEdgeLine(BaseModel):
    from_id: str
    to_id: str
    x1: float
    y1: float
    x2: float
    y2: float


class MapLayout(ViewLayout):
    columns: int = 0
    rows: int = 0
    nodes: list[MapNodeCircle] = Field(default_factory=list)
    edges: list[MapEdgeLine] = Field(default_factory=list)

    def highlighted_node_ids(self) -> set[str]:
        return {n.id for n in self.nodes if n.in_path}


def grid_columns(node_count: int) -> int:
    return math.ceil(math.sqrt(node_count)) if node_count else 0


def cell_center(index: int, columns: int) -> tuple[float, float]:
    col, row = index % columns, index // columns
    return col * CELL_SIZE + CELL_SIZE / 2, row * CELL_SIZE + CELL_SIZE / 2


class MapView(GraphView):
    """Structural node-link map. Exposes node and path clicks."""

    name = "map"
    title = "Map View"
    empty_message = "No nodes yet. Add signals to build the map."

    def render(self) -> MapLayout:
        if self.is_empty:
            return self.empty_layout(MapLayout)  # type: ignore[return-value]

        graph = self.props.graph
        sel = self.selection
        columns = grid_columns(len(graph.nodes))
        rows = math.ceil(len(graph.nodes) / columns)
        index = {node.id: i for i, node in enumerate(graph.nodes)}

        lines: list[MapEdgeLine] = []
        for edge in graph.edges:
            if edge.from_id not in index or edge.to_id not in index:
                logger.debug("Skipping dangling edge %s on map", edge.key)
                continue
            x1, y1 = cell_center(index[edge.from_id], columns)
            x2, y2 = cell_center(index[edge.to_id], columns)
            lines.append(MapEdgeLine(from_id=edge.from_id, to_id=edge.to_id, x1=x1, y1=y1, x2=x2, y2=y2))

        circles: list[MapNodeCircle] = []
        for i, node in enumerate(graph.nodes):
            cx, cy = cell_center(i, columns)
            selected = node.id == sel.node_id
            in_path = node.id in sel.path_node_ids
            circles.append(MapNodeCircle(
                id=node.id,
                short_label=node.label[:SHORT_LABEL_LENGTH],
                cx=cx,
                cy=cy,
                fill=ACCENT if selected else NODE_FILL,
                stroke=ACCENT if selected or in_path else MUTED,
                stroke_width=2 if selected or in_path else 1,
                selected=selected,
                in_path=in_path,
            ))

        return MapLayout(
            view=self.name,
            width=columns * CELL_SIZE,
            height=rows * CELL_SIZE,
            path_chips=path_chips(self.props, sel),
            columns=columns,
            rows=rows,
            nodes=circles,
            edges=lines,
        )

    def _svg_body(self, layout: MapLayout) -> str:  # type: ignore[override]
        parts = [
            f'<line x1="{e.x1}" y1="{e.y1}" x2="{e.x2}" y2="{e.y2}" stroke="{MUTED}" '
            f'stroke-width="1" stroke-opacity="0.6"/>'
            for e in layout.edges
        ]
        for n in layout.nodes:
            parts.append(
                f'<g data-node-id="{escape(n.id)}">'
                f'<circle cx="{n.cx}" cy="{n.cy}" r="{NODE_RADIUS}" fill="{n.fill}" '
                f'stroke="{n.stroke}" stroke-width="{n.stroke_width}"/>'
                f'<text x="{n.cx}" y="{n.cy + 4}" text-anchor="middle" font-size="10" fill="{TEXT}">'
                f"{escape(n.short_label)}</text></g>"
            )
        return "".join(parts)

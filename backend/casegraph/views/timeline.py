"""Timeline view: nodes grouped under their exact date string.

Groups run chronologically; the "no date" bucket always comes last. Inside
a group nodes keep graph order. There are no edge controls in this view.
"""

from __future__ import annotations

from html import escape

from pydantic import BaseModel, Field

from casegraph.models import InvestigationGraphNode, parse_iso_instant
from casegraph.views.base import ACCENT, MUTED, NODE_FILL, TEXT, GraphView, ViewLayout, path_chips, truncate

NO_DATE_KEY = ""
NO_DATE_LABEL = "No date"

GROUP_HEADER_HEIGHT = 24
ROW_HEIGHT = 36
ROW_WIDTH = 320
AXIS_X = 24
PADDING = 12


class TimelineItem(BaseModel):
    id: str
    label: str
    confidence: int
    y: int
    selected: bool = False
    in_path: bool = False


class TimelineGroup(BaseModel):
    key: str
    label: str
    undated: bool = False
    y: int
    items: list[TimelineItem] = Field(default_factory=list)


class TimelineLayout(ViewLayout):
    groups: list[TimelineGroup] = Field(default_factory=list)

    def highlighted_node_ids(self) -> set[str]:
        return {item.id for group in self.groups for item in group.items if item.in_path}


def group_by_date(nodes: list[InvestigationGraphNode]) -> list[tuple[str, list[InvestigationGraphNode]]]:
    """Bucket nodes by exact date string, buckets in chronological order.

    Buckets whose dates resolve to the same instant keep first-seen order.
    The dateless bucket, keyed ``NO_DATE_KEY``, is appended last.
    """
    buckets: dict[str, list[InvestigationGraphNode]] = {}
    undated: list[InvestigationGraphNode] = []
    for node in nodes:
        if node.date:
            buckets.setdefault(node.date, []).append(node)
        else:
            undated.append(node)
    grouped = sorted(buckets.items(), key=lambda item: parse_iso_instant(item[0]))
    if undated:
        grouped.append((NO_DATE_KEY, undated))
    return grouped


class TimelineView(GraphView):
    """Date-grouped list. Exposes node and path clicks."""

    name = "timeline"
    title = "Timeline View"
    empty_message = "No nodes yet. Add signals to build the timeline."

    def render(self) -> TimelineLayout:
        if self.is_empty:
            return self.empty_layout(TimelineLayout)  # type: ignore[return-value]

        sel = self.selection
        groups: list[TimelineGroup] = []
        y = PADDING
        for key, members in group_by_date(self.props.graph.nodes):
            group = TimelineGroup(
                key=key,
                label=key or NO_DATE_LABEL,
                undated=key == NO_DATE_KEY,
                y=y,
            )
            y += GROUP_HEADER_HEIGHT
            for node in members:
                group.items.append(TimelineItem(
                    id=node.id,
                    label=node.label,
                    confidence=node.confidence,
                    y=y,
                    selected=node.id == sel.node_id,
                    in_path=node.id in sel.path_node_ids,
                ))
                y += ROW_HEIGHT
            groups.append(group)

        return TimelineLayout(
            view=self.name,
            width=AXIS_X + ROW_WIDTH + 2 * PADDING,
            height=y + PADDING,
            path_chips=path_chips(self.props, sel),
            groups=groups,
        )

    def _svg_body(self, layout: TimelineLayout) -> str:  # type: ignore[override]
        parts = [
            f'<line x1="{AXIS_X}" y1="{PADDING}" x2="{AXIS_X}" y2="{layout.height - PADDING}" '
            f'stroke="{MUTED}" stroke-opacity="0.5"/>'
        ]
        for group in layout.groups:
            parts.append(
                f'<g data-date="{escape(group.key)}">'
                f'<text x="{AXIS_X + 12}" y="{group.y + 16}" font-size="11" font-weight="600" '
                f'fill="{MUTED}">{escape(group.label)}</text>'
            )
            for item in group.items:
                # Path membership shows as a stroke; selection adds the fill.
                stroke = ACCENT if item.in_path or item.selected else MUTED
                fill = ACCENT if item.selected else NODE_FILL
                parts.append(
                    f'<g data-node-id="{escape(item.id)}">'
                    f'<circle cx="{AXIS_X}" cy="{item.y + ROW_HEIGHT // 2}" r="5" fill="{fill}" '
                    f'stroke="{stroke}" stroke-width="{2 if item.in_path else 1}"/>'
                    f'<rect x="{AXIS_X + 12}" y="{item.y + 2}" width="{ROW_WIDTH}" height="{ROW_HEIGHT - 4}" '
                    f'rx="6" fill="{fill}" fill-opacity="{0.15 if item.selected else 1}" stroke="{stroke}" '
                    f'stroke-width="{2 if item.in_path else 1}"/>'
                    f'<text x="{AXIS_X + 20}" y="{item.y + 22}" font-size="11" fill="{TEXT}">'
                    f"{escape(truncate(item.label, 44))} · {item.confidence} %</text></g>"
                )
            parts.append("</g>")
        return "".join(parts)

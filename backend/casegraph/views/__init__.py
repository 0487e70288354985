"""The three renderers over one shared graph and selection state."""

from casegraph.views.base import GraphView, PathChip, ViewLayout, ViewProps, resolve_selection
from casegraph.views.flow import FlowLayout, FlowView
from casegraph.views.map import MapLayout, MapView
from casegraph.views.timeline import TimelineLayout, TimelineView

VIEWS: dict[str, type[GraphView]] = {
    FlowView.name: FlowView,
    TimelineView.name: TimelineView,
    MapView.name: MapView,
}


def create_view(name: str, props: ViewProps) -> GraphView:
    """Instantiate a view by name. Raises KeyError for unknown names."""
    return VIEWS[name](props)


__all__ = [
    "VIEWS",
    "FlowLayout",
    "FlowView",
    "GraphView",
    "MapLayout",
    "MapView",
    "PathChip",
    "TimelineLayout",
    "TimelineView",
    "ViewLayout",
    "ViewProps",
    "create_view",
    "resolve_selection",
]

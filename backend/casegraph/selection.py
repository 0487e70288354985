"""Selection controller for the investigation workspace.

Holds the one selection state (node, edge, path) that every view tab reads,
the active tab, and the graph built from the current thread and signals.
Switching tabs never touches the selection; rebuilding the graph never
touches it either, and views treat ids that disappeared as unselected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Literal, get_args

from pydantic import BaseModel, Field

from casegraph.config import Settings
from casegraph.graph.builder import build_graph_from_signals
from casegraph.models import (
    InvestigationGraph,
    InvestigationGraphEdge,
    InvestigationGraphNode,
    InvestigationPath,
    InvestigationThread,
    edge_key,
    split_edge_key,
)
from casegraph.views import ViewLayout, ViewProps, create_view
from casegraph.views.base import GraphView

logger = logging.getLogger(__name__)

ViewMode = Literal["flow", "timeline", "map"]
VIEW_MODES: tuple[str, ...] = get_args(ViewMode)


class ViewPreferences(BaseModel):
    """Startup view preferences. Persisting them is the host's business."""

    view_mode: ViewMode = "flow"
    show_dead_paths: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ViewPreferences":
        mode = settings.DEFAULT_VIEW if settings.DEFAULT_VIEW in VIEW_MODES else "flow"
        return cls(view_mode=mode, show_dead_paths=settings.SHOW_DEAD_PATHS)


class SelectionState(BaseModel):
    selected_node_id: str | None = None
    selected_edge_key: str | None = None
    selected_path_id: str | None = None


# -- Details panel -------------------------------------------------------------


class EdgeRef(BaseModel):
    edge: InvestigationGraphEdge
    neighbour_label: str | None = None


class NodeDetails(BaseModel):
    kind: Literal["node"] = "node"
    node: InvestigationGraphNode
    paths: list[InvestigationPath] = Field(default_factory=list)
    incoming: list[EdgeRef] = Field(default_factory=list)
    outgoing: list[EdgeRef] = Field(default_factory=list)


class EdgeDetails(BaseModel):
    kind: Literal["edge"] = "edge"
    edge: InvestigationGraphEdge
    from_node: InvestigationGraphNode
    to_node: InvestigationGraphNode


class PathDetails(BaseModel):
    kind: Literal["path"] = "path"
    path: InvestigationPath
    nodes: list[InvestigationGraphNode] = Field(default_factory=list)


Details = NodeDetails | EdgeDetails | PathDetails


def resolve_details(graph: InvestigationGraph, state: SelectionState) -> Details | None:
    """Details for the selection, node first, then edge, then path.

    A selection that no longer matches the graph yields None.
    """
    nodes = graph.node_by_id()
    if state.selected_node_id:
        node = nodes.get(state.selected_node_id)
        if node is None:
            return None
        return NodeDetails(
            node=node,
            paths=[p for p in graph.paths if node.id in p.nodes],
            incoming=[
                EdgeRef(edge=e, neighbour_label=getattr(nodes.get(e.from_id), "label", None))
                for e in graph.edges if e.to_id == node.id
            ],
            outgoing=[
                EdgeRef(edge=e, neighbour_label=getattr(nodes.get(e.to_id), "label", None))
                for e in graph.edges if e.from_id == node.id
            ],
        )
    if state.selected_edge_key:
        parts = split_edge_key(state.selected_edge_key)
        edge = graph.find_edge(edge_key(*parts)) if parts else None
        if edge is None or edge.from_id not in nodes or edge.to_id not in nodes:
            return None
        return EdgeDetails(edge=edge, from_node=nodes[edge.from_id], to_node=nodes[edge.to_id])
    if state.selected_path_id:
        path = graph.find_path(state.selected_path_id)
        if path is None:
            return None
        return PathDetails(path=path, nodes=[nodes[n] for n in path.nodes if n in nodes])
    return None


# -- Controller ----------------------------------------------------------------


class SelectionController:
    """Workspace host state: inputs, derived graph, active tab and selection.

    Click rules: a node click selects the node and clears the edge; an edge
    click selects the edge and clears the node; a path click toggles the
    path and clears the edge. Node and path selections compose.
    """

    def __init__(
        self,
        preferences: ViewPreferences | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings()
        prefs = preferences or ViewPreferences.from_settings(self._settings)
        self.view_mode: str = prefs.view_mode
        self.show_dead_paths: bool = prefs.show_dead_paths
        self.state = SelectionState()
        self.thread: InvestigationThread | None = None
        self.signals: list[Any] = []
        self._graph: InvestigationGraph = InvestigationGraph()

    # -- Inputs ---------------------------------------------------------------

    @property
    def graph(self) -> InvestigationGraph:
        return self._graph

    def load(self, thread: InvestigationThread, signals: Iterable[Any]) -> InvestigationGraph:
        """Replace thread and signals and rebuild the graph."""
        self.thread = thread
        self.signals = list(signals)
        return self._rebuild()

    def update_thread(self, thread: InvestigationThread) -> InvestigationGraph:
        """New derived thread fields after a chat turn."""
        self.thread = thread
        return self._rebuild()

    def append_signals(self, new_signals: Iterable[Any]) -> InvestigationGraph:
        """Newest signals go first, as the chat loop delivers them."""
        fresh = list(new_signals)
        if not fresh:
            return self._graph
        self.signals = fresh + self.signals
        return self._rebuild()

    def _rebuild(self) -> InvestigationGraph:
        if self.thread is None:
            logger.debug("No thread loaded; serving an empty graph")
            self._graph = InvestigationGraph()
            return self._graph
        self._graph = build_graph_from_signals(
            self.thread,
            self.signals,
            default_confidence=self._settings.DEFAULT_NODE_CONFIDENCE,
            dead_path_threshold=self._settings.DEAD_PATH_STRENGTH_THRESHOLD,
        )
        return self._graph

    # -- Tabs and toggles -----------------------------------------------------

    def select_view(self, mode: str) -> None:
        """Switch tab. Selection is left as is."""
        if mode not in VIEW_MODES:
            raise ValueError(f"Unknown view '{mode}'. Must be one of: {', '.join(VIEW_MODES)}")
        self.view_mode = mode

    def set_show_dead_paths(self, show: bool) -> None:
        self.show_dead_paths = show

    def preferences(self) -> ViewPreferences:
        """Current preferences, for the host to persist."""
        return ViewPreferences(view_mode=self.view_mode, show_dead_paths=self.show_dead_paths)  # type: ignore[arg-type]

    # -- Clicks ---------------------------------------------------------------

    def on_node_click(self, node_id: str) -> None:
        self.state = self.state.model_copy(update={
            "selected_node_id": node_id,
            "selected_edge_key": None,
        })

    def on_edge_click(self, from_id: str, to_id: str) -> None:
        self.state = self.state.model_copy(update={
            "selected_edge_key": edge_key(from_id, to_id),
            "selected_node_id": None,
        })

    def on_path_click(self, path_id: str) -> None:
        current = self.state.selected_path_id
        self.state = self.state.model_copy(update={
            "selected_path_id": None if current == path_id else path_id,
            "selected_edge_key": None,
        })

    def clear_selection(self) -> None:
        self.state = SelectionState()

    # -- Rendering ------------------------------------------------------------

    def props(self) -> ViewProps:
        return ViewProps(
            graph=self._graph,
            selected_node_id=self.state.selected_node_id,
            selected_edge_key=self.state.selected_edge_key,
            selected_path_id=self.state.selected_path_id,
            show_dead_paths=self.show_dead_paths,
            on_node_click=self.on_node_click,
            on_edge_click=self.on_edge_click,
            on_path_click=self.on_path_click,
        )

    def view(self, mode: str | None = None) -> GraphView:
        """The active view, or ``mode`` when given, bound to current state."""
        return create_view(mode or self.view_mode, self.props())

    def render(self, mode: str | None = None) -> ViewLayout:
        return self.view(mode).render()

    def details(self) -> Details | None:
        return resolve_details(self._graph, self.state)


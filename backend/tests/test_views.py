"""Tests for the Flow, Timeline and Map views."""

from __future__ import annotations

import pytest

from casegraph.graph.builder import build_graph_from_signals
from casegraph.models import (
    InvestigationGraph,
    InvestigationGraphEdge,
    InvestigationGraphNode,
    InvestigationPath,
    InvestigationThread,
)
from casegraph.views import VIEWS, ViewProps, create_view
from casegraph.views.base import ACCENT, NODE_FILL, resolve_selection, truncate
from casegraph.views.flow import FlowView, edge_by_from, stroke_opacity, stroke_width
from casegraph.views.map import CELL_SIZE, MapView, cell_center, grid_columns
from casegraph.views.timeline import NO_DATE_LABEL, TimelineView, group_by_date


def node(node_id: str, date: str | None = None, confidence: int = 50, label: str | None = None):
    return InvestigationGraphNode(
        id=node_id, label=label or f"Event {node_id}", date=date, confidence=confidence, sources=["S"],
    )


def edge(from_id: str, to_id: str, relation: str = "supports", strength: float = 0.5):
    return InvestigationGraphEdge(
        from_id=from_id, to_id=to_id, relation=relation, strength=strength, confidence=0.5,
    )


def signal(signal_id: str, date: str | None, impact: str) -> dict:
    return {
        "id": signal_id, "type": "article", "source": "Wire", "summary": f"Event {signal_id}.",
        "impact_on_hypothesis": impact, "date": date,
    }


@pytest.fixture
def thread() -> InvestigationThread:
    return InvestigationThread(id="t1", title="Hormuz", initial_hypothesis="Tanker traffic is restricted")


@pytest.fixture
def split_graph(thread) -> InvestigationGraph:
    """p1 -> p2 supports, p2 -> p3 weakens: two active paths sharing p2."""
    return build_graph_from_signals(thread, [
        signal("p1", "2024-01-01", "supports"),
        signal("p2", "2024-01-02", "supports"),
        signal("p3", "2024-01-03", "weakens"),
    ])


@pytest.fixture
def dead_graph(thread) -> InvestigationGraph:
    return build_graph_from_signals(thread, [
        signal("d1", "2024-01-01", "supports"),
        signal("d2", "2024-01-02", "supports"),
        signal("d3", "2024-01-03", "supports"),
        signal("d4", "2024-01-04", "weakens"),
    ])


class TestRegistry:
    def test_three_views(self):
        assert set(VIEWS) == {"flow", "timeline", "map"}

    def test_create_view(self):
        view = create_view("map", ViewProps(graph=InvestigationGraph()))
        assert isinstance(view, MapView)

    def test_unknown_view(self):
        with pytest.raises(KeyError):
            create_view("radar", ViewProps(graph=InvestigationGraph()))


class TestEmptyStates:
    @pytest.mark.parametrize("name", ["flow", "timeline", "map"])
    def test_empty_graph_renders_placeholder(self, name):
        layout = create_view(name, ViewProps(graph=InvestigationGraph())).render()
        assert layout.empty is True
        assert layout.empty_message.startswith("No nodes yet")
        assert layout.view == name

    def test_timeline_message_names_the_view(self):
        layout = TimelineView(ViewProps(graph=InvestigationGraph())).render()
        assert "timeline" in layout.empty_message

    @pytest.mark.parametrize("name", ["flow", "timeline", "map"])
    def test_empty_svg(self, name):
        svg = create_view(name, ViewProps(graph=InvestigationGraph())).to_svg()
        assert 'data-empty="true"' in svg
        assert "No nodes yet" in svg

    def test_empty_graph_ignores_clicks(self):
        clicks = []
        view = FlowView(ViewProps(
            graph=InvestigationGraph(), on_node_click=clicks.append,
            on_edge_click=lambda a, b: clicks.append((a, b)), on_path_click=clicks.append,
        ))
        assert not view.click_node("x")
        assert not view.click_edge("x", "y")
        assert not view.click_path("path-0")
        assert clicks == []


class TestSelectionResolution:
    def test_stale_ids_resolve_to_nothing(self, split_graph):
        sel = resolve_selection(ViewProps(
            graph=split_graph, selected_node_id="gone", selected_edge_key="a|b", selected_path_id="path-9",
        ))
        assert sel.node_id is None and sel.edge_key is None and sel.path_id is None
        assert sel.path_node_ids == frozenset()

    def test_live_ids_resolve(self, split_graph):
        sel = resolve_selection(ViewProps(
            graph=split_graph, selected_node_id="p1", selected_edge_key="p1|p2", selected_path_id="path-1",
        ))
        assert sel.node_id == "p1"
        assert sel.edge_key == "p1|p2"
        assert sel.path_node_ids == {"p2", "p3"}

    @pytest.mark.parametrize("name", ["flow", "timeline", "map"])
    def test_stale_selection_renders_without_highlight(self, name, split_graph):
        layout = create_view(name, ViewProps(
            graph=split_graph, selected_node_id="gone", selected_path_id="path-9",
        )).render()
        assert layout.highlighted_node_ids() == set()
        assert not any(chip.selected for chip in layout.path_chips)


class TestSelectionConsistency:
    def test_same_path_highlight_in_every_view(self, split_graph):
        """Switching views keeps the same nodes highlighted."""
        props = ViewProps(graph=split_graph, selected_path_id="path-0")
        highlighted = {name: create_view(name, props).render().highlighted_node_ids() for name in VIEWS}
        assert highlighted == {"flow": {"p1", "p2"}, "timeline": {"p1", "p2"}, "map": {"p1", "p2"}}

    def test_node_and_path_highlights_compose(self, split_graph):
        props = ViewProps(graph=split_graph, selected_node_id="p3", selected_path_id="path-0")
        layout = FlowView(props).render()
        flags = {box.id: (box.selected, box.in_path) for box in layout.nodes}
        assert flags == {"p1": (False, True), "p2": (False, True), "p3": (True, False)}


class TestPathChips:
    def test_chips_in_path_order(self, split_graph):
        layout = MapView(ViewProps(graph=split_graph, selected_path_id="path-1")).render()
        assert [c.id for c in layout.path_chips] == ["path-0", "path-1"]
        assert [c.selected for c in layout.path_chips] == [False, True]

    def test_dead_paths_hidden_unless_shown(self, dead_graph):
        hidden = TimelineView(ViewProps(graph=dead_graph, show_dead_paths=False)).render()
        shown = TimelineView(ViewProps(graph=dead_graph, show_dead_paths=True)).render()
        assert [c.id for c in hidden.path_chips] == ["path-1"]
        assert [(c.id, c.status) for c in shown.path_chips] == [("path-0", "dead"), ("path-1", "active")]

    def test_hidden_dead_path_not_clickable(self, dead_graph):
        clicked = []
        view = MapView(ViewProps(graph=dead_graph, show_dead_paths=False, on_path_click=clicked.append))
        assert not view.click_path("path-0")
        assert view.click_path("path-1")
        assert clicked == ["path-1"]


class TestFlowView:
    @pytest.fixture
    def graph(self) -> InvestigationGraph:
        return InvestigationGraph(
            nodes=[node("c", "2024-03-01"), node("u"), node("a", "2024-01-01"), node("b", "2024-02-01")],
            edges=[edge("a", "b", strength=0.0), edge("b", "c", "weakens", strength=1.0)],
        )

    def test_boxes_in_date_order_with_dateless_last(self, graph):
        layout = FlowView(ViewProps(graph=graph)).render()
        assert [box.id for box in layout.nodes] == ["a", "b", "c", "u"]
        assert [box.x for box in layout.nodes] == [16, 168, 320, 472]

    def test_connectors_between_consecutive_boxes(self, graph):
        layout = FlowView(ViewProps(graph=graph)).render()
        assert [(c.from_id, c.to_id) for c in layout.connectors] == [("a", "b"), ("b", "c"), ("c", None)]

    def test_stroke_follows_strength(self, graph):
        first, second, _ = FlowView(ViewProps(graph=graph)).render().connectors
        assert (first.stroke_width, first.opacity) == (1.0, 0.4)
        assert (second.stroke_width, second.opacity) == (4.0, 0.9)
        assert second.relation == "weakens"

    def test_stroke_helpers(self):
        assert stroke_width(0.5) == 2.5
        assert stroke_opacity(0.5) == 0.65

    def test_caption_counts_edges(self, graph):
        layout = FlowView(ViewProps(graph=graph)).render()
        assert layout.edge_count == 2
        assert layout.caption == "2 link(s) between events."

    def test_no_caption_without_edges(self):
        layout = FlowView(ViewProps(graph=InvestigationGraph(nodes=[node("a", "2024-01-01")]))).render()
        assert layout.caption is None
        assert layout.connectors == []

    def test_selected_edge_flagged(self, graph):
        layout = FlowView(ViewProps(graph=graph, selected_edge_key="b|c")).render()
        assert [c.selected for c in layout.connectors] == [False, True, False]

    def test_first_outgoing_edge_wins(self):
        edges = [edge("x", "y"), edge("x", "z")]
        assert edge_by_from(edges)["x"].to_id == "y"

    def test_dangling_edge_draws_placeholder(self):
        graph = InvestigationGraph(
            nodes=[node("x", "2024-01-01"), node("y", "2024-01-02")],
            edges=[edge("x", "ghost")],
        )
        layout = FlowView(ViewProps(graph=graph)).render()
        assert layout.connectors[0].to_id is None

    def test_edge_click_dispatches_drawn_arrow(self, graph):
        clicks = []
        view = FlowView(ViewProps(graph=graph, on_edge_click=lambda f, t: clicks.append((f, t))))
        assert view.click_edge("b", "c")
        assert not view.click_edge("a", "c")
        assert clicks == [("b", "c")]

    def test_connectors_clickable_only_with_callback(self, graph):
        assert not any(c.clickable for c in FlowView(ViewProps(graph=graph)).render().connectors)
        with_callback = FlowView(ViewProps(graph=graph, on_edge_click=lambda f, t: None)).render()
        assert [c.clickable for c in with_callback.connectors] == [True, True, False]

    def test_node_click(self, graph):
        clicks = []
        view = FlowView(ViewProps(graph=graph, on_node_click=clicks.append))
        assert view.click_node("u")
        assert not view.click_node("ghost")
        assert clicks == ["u"]

    def test_svg_markup(self, graph):
        svg = FlowView(ViewProps(graph=graph, selected_node_id="a")).to_svg()
        assert svg.startswith("<svg")
        assert 'data-view="flow"' in svg
        assert 'data-node-id="a"' in svg
        assert 'data-edge-key="b|c"' in svg
        assert "2 link(s) between events." in svg

    def test_svg_escapes_labels(self):
        graph = InvestigationGraph(nodes=[node("a", "2024-01-01", label="<b>&</b>")])
        svg = FlowView(ViewProps(graph=graph)).to_svg()
        assert "<b>" not in svg
        assert "&lt;b&gt;" in svg


class TestTimelineView:
    @pytest.fixture
    def graph(self) -> InvestigationGraph:
        return InvestigationGraph(nodes=[
            node("late", "2024-03-01"),
            node("u1"),
            node("a", "2024-01-01"),
            node("noon", "2024-01-01T12:00:00Z"),
            node("a2", "2024-01-01"),
            node("u2"),
        ])

    def test_groups_chronological_with_no_date_last(self, graph):
        layout = TimelineView(ViewProps(graph=graph)).render()
        assert [g.label for g in layout.groups] == ["2024-01-01", "2024-01-01T12:00:00Z", "2024-03-01", NO_DATE_LABEL]
        assert layout.groups[-1].undated is True

    def test_group_members_keep_graph_order(self, graph):
        grouped = dict(group_by_date(graph.nodes))
        assert [n.id for n in grouped["2024-01-01"]] == ["a", "a2"]
        assert [n.id for n in grouped[""]] == ["u1", "u2"]

    def test_no_undated_group_when_all_dated(self):
        grouped = group_by_date([node("a", "2024-01-01")])
        assert [key for key, _ in grouped] == ["2024-01-01"]

    def test_every_node_listed_once(self, graph):
        layout = TimelineView(ViewProps(graph=graph)).render()
        ids = [item.id for group in layout.groups for item in group.items]
        assert sorted(ids) == sorted(n.id for n in graph.nodes)

    def test_rows_move_down(self, graph):
        layout = TimelineView(ViewProps(graph=graph)).render()
        ys = [item.y for group in layout.groups for item in group.items]
        assert ys == sorted(ys)

    def test_edges_not_clickable(self, split_graph):
        clicks = []
        view = TimelineView(ViewProps(graph=split_graph, on_edge_click=lambda f, t: clicks.append((f, t))))
        assert not view.click_edge("p1", "p2")
        assert clicks == []

    def test_svg_has_date_headers(self, graph):
        svg = TimelineView(ViewProps(graph=graph)).to_svg()
        assert 'data-date="2024-03-01"' in svg
        assert NO_DATE_LABEL in svg


class TestMapView:
    @pytest.fixture
    def graph(self) -> InvestigationGraph:
        return InvestigationGraph(
            nodes=[node(n, label="Longlabel text") for n in ("n0", "n1", "n2", "n3", "n4")],
            edges=[edge("n0", "n4"), edge("n4", "ghost")],
            paths=[InvestigationPath(
                id="path-0", hypothesis_label="H", nodes=["n0", "n4"], status="active", confidence=50,
            )],
        )

    def test_grid_dimensions(self, graph):
        layout = MapView(ViewProps(graph=graph)).render()
        assert (layout.columns, layout.rows) == (3, 2)
        assert (layout.width, layout.height) == (3 * CELL_SIZE, 2 * CELL_SIZE)

    def test_grid_helpers(self):
        assert grid_columns(0) == 0
        assert grid_columns(1) == 1
        assert grid_columns(4) == 2
        assert grid_columns(5) == 3
        assert cell_center(4, 3) == (120, 120)

    def test_nodes_in_graph_order(self, graph):
        layout = MapView(ViewProps(graph=graph)).render()
        assert [n.id for n in layout.nodes] == ["n0", "n1", "n2", "n3", "n4"]
        assert (layout.nodes[4].cx, layout.nodes[4].cy) == (120, 120)

    def test_short_labels(self, graph):
        layout = MapView(ViewProps(graph=graph)).render()
        assert layout.nodes[0].short_label == "Longlabe"

    def test_dangling_edge_skipped(self, graph):
        layout = MapView(ViewProps(graph=graph)).render()
        assert [(e.from_id, e.to_id) for e in layout.edges] == [("n0", "n4")]
        line = layout.edges[0]
        assert (line.x1, line.y1, line.x2, line.y2) == (40, 40, 120, 120)

    def test_selection_styles(self, graph):
        layout = MapView(ViewProps(graph=graph, selected_node_id="n0", selected_path_id="path-0")).render()
        by_id = {n.id: n for n in layout.nodes}
        assert (by_id["n0"].fill, by_id["n0"].stroke) == (ACCENT, ACCENT)
        assert (by_id["n4"].fill, by_id["n4"].stroke) == (NODE_FILL, ACCENT)
        assert by_id["n1"].stroke_width == 1

    def test_svg_markup(self, graph):
        svg = MapView(ViewProps(graph=graph)).to_svg()
        assert 'data-view="map"' in svg
        assert svg.count("<circle") == 5
        assert 'data-path-id="path-0"' in svg


def test_truncate():
    assert truncate("short", 8) == "short"
    assert truncate("much longer text", 8) == "much lo…"

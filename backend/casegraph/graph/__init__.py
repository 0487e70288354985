"""Evidence graph builder and path derivation."""

from casegraph.graph.builder import (
    build_graph_from_signals,
    order_nodes_by_date,
    parse_signals,
    to_networkx,
)
from casegraph.graph.paths import derive_paths

__all__ = [
    "build_graph_from_signals",
    "derive_paths",
    "order_nodes_by_date",
    "parse_signals",
    "to_networkx",
]

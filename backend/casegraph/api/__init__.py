"""HTTP surface of the workspace host."""

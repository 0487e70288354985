"""Casegraph: evidence-graph construction and rendering for investigation threads."""

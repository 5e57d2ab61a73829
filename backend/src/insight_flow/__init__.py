"""Insight Flow: staged, traced retrieval-augmented chat pipeline."""

__version__ = "0.1.0"

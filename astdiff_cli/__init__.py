"""Structural diffs for JavaScript sources, computed over syntax trees."""

__version__ = "0.3.0"

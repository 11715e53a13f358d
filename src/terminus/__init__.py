"""Terminus: narrative-state engine for branching character dialogue."""

__version__ = "0.4.0"

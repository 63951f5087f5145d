"""Canopy: forum, topic and reply hierarchy with recomputed aggregates."""

__version__ = "0.1.0"

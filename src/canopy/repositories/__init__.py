"""Data access layer."""

from .node_repo import NodeRepository

__all__ = ["NodeRepository"]

# src/canopy/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import forums_router, nodes_router, replies_router, topics_router

__all__ = [
    "forums_router",
    "topics_router",
    "replies_router",
    "nodes_router",
]

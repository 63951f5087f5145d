"""API endpoint modules for version 1."""

from .forums import router as forums_router
from .nodes import router as nodes_router
from .replies import router as replies_router
from .topics import router as topics_router

__all__ = [
    "forums_router",
    "topics_router",
    "replies_router",
    "nodes_router",
]

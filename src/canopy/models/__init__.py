# src/canopy/models/__init__.py
"""SQLAlchemy models for the Canopy application."""

from .activity import PosterActivity
from .meta import NodeMeta
from .node import HIDDEN_STATUSES, ContentNode, NodeKind, NodeStatus
from .revision import NodeRevision
from .subscription import TopicSubscription

__all__ = [
    "ContentNode", "NodeKind", "NodeStatus", "HIDDEN_STATUSES",
    "NodeMeta",
    "NodeRevision",
    "PosterActivity",
    "TopicSubscription",
]

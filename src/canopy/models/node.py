# src/canopy/models/node.py
"""SQLAlchemy model for forum, topic and reply nodes."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from canopy.db.session import Base
from canopy.db.time import utcnow


class NodeKind(str, enum.Enum):
    """Closed set of node types in the hierarchy."""

    FORUM = "forum"
    TOPIC = "topic"
    REPLY = "reply"


class NodeStatus(str, enum.Enum):
    """Lifecycle states of a node.

    ``DELETED`` is terminal: deleted rows are removed from the table, so the
    value only ever appears as a transition target or result.
    """

    PUBLISHED = "publish"
    SPAM = "spam"
    TRASHED = "trash"
    DELETED = "deleted"


HIDDEN_STATUSES = (NodeStatus.SPAM, NodeStatus.TRASHED)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class ContentNode(Base):
    """One forum, topic or reply.

    Canonical payload (title, content, author, creation time) belongs to the
    store; derived state lives in :class:`canopy.models.meta.NodeMeta`.
    """

    __tablename__ = "content_node"
    __table_args__ = (
        Index("ix_content_node_parent_kind_status", "parent_id", "kind", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[NodeKind] = mapped_column(
        Enum(NodeKind, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
    )
    # Structural parent; NULL only for root forums.
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("content_node.id"),
        nullable=True,
    )
    # NULL marks an anonymous author; their details are node attachments.
    author_user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    status: Mapped[NodeStatus] = mapped_column(
        Enum(NodeStatus, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=NodeStatus.PUBLISHED,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    meta: Mapped[list["NodeMeta"]] = relationship(  # noqa: F821
        "NodeMeta",
        cascade="all, delete-orphan",
    )
    revisions: Mapped[list["NodeRevision"]] = relationship(  # noqa: F821
        "NodeRevision",
        cascade="all, delete-orphan",
    )

    @property
    def is_anonymous(self) -> bool:
        """Return True when the node was written by an anonymous author."""
        return self.author_user_id is None

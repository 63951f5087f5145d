"""Data access helpers for the forum/topic/reply hierarchy."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from canopy.db.time import utcnow
from canopy.models import (
    ContentNode,
    NodeKind,
    NodeMeta,
    NodeRevision,
    NodeStatus,
    TopicSubscription,
)
from canopy.core.errors import StoreError

__all__ = ["NodeRepository"]

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as err:
        logger.error("Store failure during %s: %s", action, err, exc_info=True)
        raise StoreError(f"Store failure during {action}") from err


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, NodeStatus):
        return value.value
    return value


class NodeRepository:
    """Thin wrapper around database access for content nodes.

    Every method either reads canonical rows or writes a single node's
    attachments; there is no aggregation logic here. SQLAlchemy failures are
    surfaced as :class:`StoreError`.
    """

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    # --- Canonical content ---------------------------------------------------------
    def get_node(self, node_id: int | None) -> ContentNode | None:
        """Return a node by identifier, or None when it does not exist."""
        if node_id is None:
            return None
        with _store_errors("get_node"):
            return self.session.get(ContentNode, node_id)

    def lock_node(self, node_id: int) -> ContentNode | None:
        """Return a node with its row locked until the surrounding transaction ends.

        Emits ``SELECT ... FOR UPDATE`` on backends that support it. SQLite
        ignores the clause; its single writer lock already spans the transaction.
        """
        stmt = select(ContentNode).where(ContentNode.id == node_id).with_for_update()
        with _store_errors("lock_node"):
            return self.session.execute(stmt).scalar_one_or_none()

    def get_ancestors(self, node_id: int) -> list[int]:
        """Return the ids above ``node_id``, nearest first and root last.

        The walk stops on the first repeated id, so a corrupted parent chain
        cannot loop forever. A dangling parent id is still returned so callers
        can notice the gap.
        """
        ancestors: list[int] = []
        seen = {node_id}
        node = self.get_node(node_id)
        parent_id = node.parent_id if node is not None else None
        while parent_id is not None:
            if parent_id in seen:
                logger.warning("Parent cycle above node %s at node %s", node_id, parent_id)
                break
            seen.add(parent_id)
            ancestors.append(parent_id)
            parent = self.get_node(parent_id)
            if parent is None:
                break
            parent_id = parent.parent_id
        return ancestors

    def get_children_nodes(
        self,
        parent_id: int,
        kind: NodeKind,
        statuses: Iterable[NodeStatus] | None = None,
    ) -> list[ContentNode]:
        """Return child nodes of one kind, oldest first."""
        stmt = select(ContentNode).where(
            ContentNode.parent_id == parent_id,
            ContentNode.kind == kind,
        )
        if statuses is not None:
            stmt = stmt.where(ContentNode.status.in_(list(statuses)))
        stmt = stmt.order_by(ContentNode.created_at, ContentNode.id)
        with _store_errors("get_children"):
            return list(self.session.execute(stmt).scalars())

    def get_children(
        self,
        parent_id: int,
        kind: NodeKind,
        statuses: Iterable[NodeStatus] | None = None,
    ) -> list[int]:
        """Return child ids of one kind, oldest first."""
        return [node.id for node in self.get_children_nodes(parent_id, kind, statuses)]

    def list_ids(self, kind: NodeKind) -> list[int]:
        """Return every node id of one kind, oldest first."""
        stmt = (
            select(ContentNode.id)
            .where(ContentNode.kind == kind)
            .order_by(ContentNode.created_at, ContentNode.id)
        )
        with _store_errors("list_ids"):
            return list(self.session.execute(stmt).scalars())

    def find_candidates(
        self,
        *,
        kind: NodeKind,
        parent_id: int,
        content: str,
        author_user_id: int | None,
        since: datetime | None = None,
    ) -> list[ContentNode]:
        """Return non-trashed nodes with identical content under the same parent."""
        stmt = select(ContentNode).where(
            ContentNode.kind == kind,
            ContentNode.parent_id == parent_id,
            ContentNode.content == content,
            ContentNode.status != NodeStatus.TRASHED,
        )
        if author_user_id is None:
            stmt = stmt.where(ContentNode.author_user_id.is_(None))
        else:
            stmt = stmt.where(ContentNode.author_user_id == author_user_id)
        if since is not None:
            stmt = stmt.where(ContentNode.created_at >= since)
        with _store_errors("find_candidates"):
            return list(self.session.execute(stmt).scalars())

    def create_node(
        self,
        *,
        kind: NodeKind,
        parent_id: int | None,
        title: str = "",
        content: str = "",
        author_user_id: int | None = None,
        status: NodeStatus = NodeStatus.PUBLISHED,
        created_at: datetime | None = None,
    ) -> ContentNode:
        """Insert a new node and return the persisted ORM instance."""
        node = ContentNode(
            kind=kind,
            parent_id=parent_id,
            title=title,
            content=content,
            author_user_id=author_user_id,
            status=status,
            created_at=created_at or utcnow(),
        )
        with _store_errors("create_node"):
            self.session.add(node)
            self.session.flush()
        return node

    def update_node(self, node: ContentNode, **fields: Any) -> ContentNode:
        """Overwrite canonical fields of a node."""
        for name, value in fields.items():
            setattr(node, name, value)
        node.updated_at = utcnow()
        with _store_errors("update_node"):
            self.session.flush()
        return node

    def save_revision(self, node: ContentNode, author_user_id: int | None = None) -> int:
        """Snapshot a node's title and content; return the new revision id."""
        revision = NodeRevision(
            node_id=node.id,
            author_user_id=author_user_id,
            title=node.title,
            content=node.content,
        )
        with _store_errors("save_revision"):
            self.session.add(revision)
            self.session.flush()
        return revision.id

    def set_status(self, node: ContentNode, status: NodeStatus) -> None:
        """Persist a node's lifecycle status."""
        node.status = status
        with _store_errors("set_status"):
            self.session.flush()

    def delete_node(self, node_id: int) -> bool:
        """Remove a node together with all of its attachments."""
        node = self.get_node(node_id)
        if node is None:
            return False
        with _store_errors("delete_node"):
            self.session.execute(
                delete(TopicSubscription).where(TopicSubscription.topic_id == node_id)
            )
            self.session.delete(node)
            self.session.flush()
        return True

    # --- Attachments ---------------------------------------------------------------
    def get_field(self, node_id: int, key: str, default: Any = None) -> Any:
        """Return an attachment value, or ``default`` when absent."""
        with _store_errors("get_field"):
            row = self.session.get(NodeMeta, (node_id, key))
        if row is None or row.meta_value is None:
            return default
        return row.meta_value

    def set_field(self, node_id: int, key: str, value: Any) -> None:
        """Create or overwrite one attachment value."""
        with _store_errors("set_field"):
            row = self.session.get(NodeMeta, (node_id, key))
            if row is None:
                self.session.add(NodeMeta(node_id=node_id, meta_key=key, meta_value=_to_json(value)))
            else:
                row.meta_value = _to_json(value)
            self.session.flush()

    def delete_field(self, node_id: int, key: str) -> None:
        """Remove an attachment if present."""
        with _store_errors("delete_field"):
            row = self.session.get(NodeMeta, (node_id, key))
            if row is not None:
                self.session.delete(row)
                self.session.flush()

    def append_to_log(self, node_id: int, log_name: str, key: str, value: Any) -> dict[str, Any]:
        """Insert ``value`` under ``key`` in a JSON-object attachment.

        Existing keys are overwritten in place, so insertion order is kept.
        """
        log = dict(self.get_field(node_id, log_name) or {})
        log[str(key)] = _to_json(value)
        self.set_field(node_id, log_name, log)
        return log

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run a block inside a savepoint; the block's writes land together or not at all."""
        with _store_errors("begin savepoint"):
            savepoint = self.session.begin_nested()
        try:
            yield
        except Exception:
            if savepoint.is_active:
                savepoint.rollback()
            raise
        with _store_errors("release savepoint"):
            savepoint.commit()

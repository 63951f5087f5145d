"""Pipelines run for each content mutation.

Every pipeline touches the leaf first (guard, persistence, status) and then
hands over to the aggregation engine. The session is committed once at the
end. If the ancestor walk fails part-way, the ancestors already written are
committed before the error is re-raised; a later walk repairs the rest.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

from sqlalchemy.orm import Session

from canopy.core.settings import Settings
from canopy.db.time import utcnow
from canopy.models import ContentNode, NodeKind, NodeStatus
from canopy.models.meta import (
    META_ANONYMOUS_EMAIL,
    META_ANONYMOUS_NAME,
    META_ANONYMOUS_WEBSITE,
    META_AUTHOR_IP,
    META_FORUM_ID,
    META_TOPIC_ID,
)
from canopy.repositories.node_repo import NodeRepository
from canopy.schemas.author import Actor, AnonymousAuthor
from canopy.services.aggregation import AggregationEngine, PropagationReport
from canopy.core.errors import NotFoundError, PropagationError
from canopy.services.guard import SubmissionCandidate, SubmissionGuard
from canopy.services.locks import NodeLockRegistry
from canopy.services.revisions import RevisionLogService
from canopy.services.status import StatusService
from canopy.services.subscriptions import SubscriptionService

__all__ = ["DispatchResult", "ReplyDispatcher", "TrashAction"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TrashAction(str, enum.Enum):
    """Sub-actions accepted by the trash toggle."""

    TRASH = "trash"
    UNTRASH = "untrash"
    DELETE = "delete"


@dataclass
class DispatchResult:
    """What a pipeline did: the node (None once deleted), its status and the walk."""

    node: ContentNode | None
    status: NodeStatus
    report: PropagationReport


class ReplyDispatcher:
    """Sequence guard, status machine, aggregation and revision log."""

    def __init__(
        self,
        session: Session,
        config: Settings,
        *,
        locks: NodeLockRegistry | None = None,
    ) -> None:
        """Initialize the dispatcher and the services it drives.

        Args:
            session: Request-scoped database session.
            config: Explicit configuration for the guard and subscriptions.
            locks: Optional lock registry for the aggregation engine.
        """
        self.session = session
        self.config = config
        self.repo = NodeRepository(session)
        self.engine = AggregationEngine(self.repo, locks)
        self.status = StatusService(self.repo)
        self.revisions = RevisionLogService(self.repo)
        self.guard = SubmissionGuard(self.repo, config)
        self.subscriptions = SubscriptionService(session)

    # --- Helpers -------------------------------------------------------------------
    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
        except PropagationError:
            # Keep the ancestors that were written; the walk is safe to re-run.
            self.session.commit()
            raise
        except Exception:
            self.session.rollback()
            raise
        self.session.commit()

    def _require(self, node_id: int, kind: NodeKind | None = None) -> ContentNode:
        node = self.repo.get_node(node_id)
        if node is None or (kind is not None and node.kind is not kind):
            label = kind.value.capitalize() if kind is not None else "Node"
            raise NotFoundError(node_id, f"{label} {node_id} not found")
        return node

    def _attach_author(self, node: ContentNode, actor: Actor, *, record_address: bool = True) -> None:
        author = actor.author
        if not isinstance(author, AnonymousAuthor):
            return
        self.repo.set_field(node.id, META_ANONYMOUS_NAME, author.name)
        self.repo.set_field(node.id, META_ANONYMOUS_EMAIL, author.email)
        if author.website:
            self.repo.set_field(node.id, META_ANONYMOUS_WEBSITE, author.website)
        if record_address:
            self.repo.set_field(node.id, META_AUTHOR_IP, author.origin_address)

    def _store_position(self, reply_id: int, forum_id: int | None, topic_id: int | None) -> None:
        self.repo.set_field(reply_id, META_FORUM_ID, forum_id)
        self.repo.set_field(reply_id, META_TOPIC_ID, topic_id)

    def _run(self, work: Callable[[], T]) -> T:
        with self._unit_of_work():
            return work()

    # --- Creation ------------------------------------------------------------------
    def create_forum(self, *, title: str, content: str = "", parent_id: int | None = None) -> DispatchResult:
        """Create a forum, optionally nested in another forum."""

        def work() -> DispatchResult:
            if parent_id is not None:
                self._require(parent_id, NodeKind.FORUM)
            forum = self.repo.create_node(
                kind=NodeKind.FORUM, parent_id=parent_id, title=title, content=content
            )
            report = self.engine.propagate(forum.id, full_refresh=True)
            return DispatchResult(forum, forum.status, report)

        return self._run(work)

    def create_topic(
        self,
        forum_id: int,
        *,
        title: str,
        content: str,
        actor: Actor,
        now: datetime | None = None,
    ) -> DispatchResult:
        """Create a topic with no replies yet and refresh its forums."""

        def work() -> DispatchResult:
            self._require(forum_id, NodeKind.FORUM)
            created_at = now or utcnow()
            self.guard.enforce(SubmissionCandidate(NodeKind.TOPIC, forum_id, content, actor), created_at)
            topic = self.repo.create_node(
                kind=NodeKind.TOPIC,
                parent_id=forum_id,
                title=title,
                content=content,
                author_user_id=actor.user_id,
                created_at=created_at,
            )
            self._attach_author(topic, actor)
            self.guard.record_post(actor, created_at)
            self.repo.set_field(topic.id, META_FORUM_ID, forum_id)
            report = self.engine.propagate(
                topic.id, hint_time=created_at, hint_forum_id=forum_id, hint_topic_id=topic.id
            )
            return DispatchResult(topic, topic.status, report)

        return self._run(work)

    def create_reply(
        self,
        topic_id: int,
        *,
        title: str,
        content: str,
        actor: Actor,
        subscribe: bool | None = None,
        forum_id: int | None = None,
        now: datetime | None = None,
    ) -> DispatchResult:
        """Store a new reply and bring its topic and forums up to date.

        Raises:
            NotFoundError: If the topic does not exist.
            GuardRejectedError: If the flood or duplicate check fails; nothing
                is written in that case.
        """

        def work() -> DispatchResult:
            topic = self._require(topic_id, NodeKind.TOPIC)
            created_at = now or utcnow()
            self.guard.enforce(
                SubmissionCandidate(NodeKind.REPLY, topic_id, content, actor), created_at
            )
            resolved_forum_id = forum_id or self.engine.resolve_forum_id(topic)

            reply = self.repo.create_node(
                kind=NodeKind.REPLY,
                parent_id=topic_id,
                title=title,
                content=content,
                author_user_id=actor.user_id,
                created_at=created_at,
            )
            self._attach_author(reply, actor)
            self.guard.record_post(actor, created_at)

            if (
                subscribe is not None
                and actor.user_id is not None
                and self.config.subscriptions_enabled
            ):
                self.subscriptions.apply(actor.user_id, topic_id, subscribe)

            self._store_position(reply.id, resolved_forum_id, topic_id)

            # Replies posted into a trashed or spammed topic inherit its state.
            if topic.status is NodeStatus.TRASHED:
                self.status.trash(reply.id)
                self.status.record_pre_trashed(topic_id, [reply.id])
            elif topic.status is NodeStatus.SPAM:
                self.status.spam(reply.id)

            report = self.engine.propagate(
                reply.id,
                hint_time=created_at,
                hint_forum_id=resolved_forum_id,
                hint_topic_id=topic_id,
            )
            logger.info("Created reply %s in topic %s", reply.id, topic_id)
            return DispatchResult(reply, reply.status, report)

        return self._run(work)

    # --- Editing -------------------------------------------------------------------
    def edit_reply(
        self,
        reply_id: int,
        *,
        title: str,
        content: str,
        actor: Actor,
        edit_reason: str = "",
        log_revision: bool = False,
        revision_id: int | None = None,
    ) -> DispatchResult:
        """Update a reply's content and optionally log the edit.

        With ``log_revision`` the previous content is snapshotted first and the
        snapshot id becomes the revision id; an explicit ``revision_id`` is
        logged as-is.
        """

        def work() -> DispatchResult:
            reply = self._require(reply_id, NodeKind.REPLY)
            topic_id = self.engine.resolve_topic_id(reply)
            forum_id = self.engine.resolve_forum_id(reply)

            logged_id = revision_id
            if logged_id is None and log_revision:
                logged_id = self.revisions.snapshot(reply, actor.user_id)

            self.repo.update_node(reply, title=title, content=content)
            if reply.is_anonymous:
                # The origin address belongs to the original post, not the edit.
                self._attach_author(reply, actor, record_address=False)
            self._store_position(reply.id, forum_id, topic_id)

            if logged_id is not None:
                self.revisions.append(reply.id, logged_id, actor.user_id, edit_reason)

            report = self.engine.propagate(
                reply.id, hint_forum_id=forum_id, hint_topic_id=topic_id
            )
            logger.info("Edited reply %s", reply.id)
            return DispatchResult(reply, reply.status, report)

        return self._run(work)

    # --- Toggles -------------------------------------------------------------------
    def _position(self, node: ContentNode) -> tuple[int | None, int | None]:
        return self.engine.resolve_topic_id(node), self.engine.resolve_forum_id(node)

    def toggle_spam(self, node_id: int) -> DispatchResult:
        """Spam a node, or unspam it if it already is spam."""

        def work() -> DispatchResult:
            node = self._require(node_id)
            topic_id, forum_id = self._position(node)
            if node.status is NodeStatus.SPAM:
                new_status = self.status.unspam(node_id)
            else:
                new_status = self.status.spam(node_id)
            report = self.engine.propagate(
                node_id, hint_topic_id=topic_id, hint_forum_id=forum_id, full_refresh=True
            )
            return DispatchResult(node, new_status, report)

        return self._run(work)

    def toggle_trash(self, node_id: int, action: TrashAction | str) -> DispatchResult:
        """Trash, untrash or delete a node and recompute its ancestors."""
        action = TrashAction(action)

        def work() -> DispatchResult:
            node = self._require(node_id)
            topic_id, forum_id = self._position(node)
            result_node: ContentNode | None = node

            if action is TrashAction.TRASH:
                new_status = self.status.trash(node_id)
            elif action is TrashAction.UNTRASH:
                new_status = self.status.untrash(node_id)
            else:
                if node.kind is NodeKind.TOPIC:
                    # The topic itself disappears; walk from its forum.
                    topic_id = None
                new_status = self.status.delete(node_id)
                result_node = None

            report = self.engine.propagate(
                node_id, hint_topic_id=topic_id, hint_forum_id=forum_id, full_refresh=True
            )
            return DispatchResult(result_node, new_status, report)

        return self._run(work)

    def transition(self, node_id: int, target: NodeStatus) -> DispatchResult:
        """Apply an explicit status transition followed by a full refresh."""

        def work() -> DispatchResult:
            node = self._require(node_id)
            topic_id, forum_id = self._position(node)
            if target is NodeStatus.DELETED and node.kind is NodeKind.TOPIC:
                topic_id = None
            new_status = self.status.transition(node_id, target)
            report = self.engine.propagate(
                node_id, hint_topic_id=topic_id, hint_forum_id=forum_id, full_refresh=True
            )
            result_node = None if new_status is NodeStatus.DELETED else node
            return DispatchResult(result_node, new_status, report)

        return self._run(work)

    def refresh(self, node_id: int) -> PropagationReport:
        """Recompute every aggregate above ``node_id`` from scratch."""
        return self._run(lambda: self.engine.propagate(node_id, full_refresh=True))

    def reconcile(self) -> list[PropagationReport]:
        """Full-refresh every topic and forum in the store."""
        return self._run(self.engine.reconcile)

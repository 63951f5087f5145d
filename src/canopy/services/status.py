"""Lifecycle transitions for topics and replies."""

from __future__ import annotations

import logging

from canopy.models import ContentNode, NodeKind, NodeStatus
from canopy.models.meta import (
    META_PRE_TRASHED_REPLIES,
    META_SPAM_STATUS,
    META_TRASH_SPAM_STATUS,
    META_TRASH_STATUS,
)
from canopy.repositories.node_repo import NodeRepository
from canopy.core.errors import InvalidTransitionError, NotFoundError

__all__ = ["StatusService"]

logger = logging.getLogger(__name__)


def _restored_status(value: object) -> NodeStatus:
    """Turn a stored shadow status back into a status, defaulting to published."""
    try:
        status = NodeStatus(value)
    except ValueError:
        return NodeStatus.PUBLISHED
    if status is NodeStatus.DELETED:
        return NodeStatus.PUBLISHED
    return status


class StatusService:
    """State machine moving nodes between published, spam, trash and deleted.

    Spam and trash both overwrite ``status``, so each keeps a shadow copy of
    the status it replaced (``spam_meta_status`` / ``trash_meta_status``) on
    the node itself. No transition writes another node's spam shadow.
    The spam shadow exists only while a node is spam: trashing a spam node
    parks it under ``trash_spam_meta_status`` and untrash puts it back.

    This service never touches ancestors; callers follow a transition with an
    aggregation walk.
    """

    def __init__(self, repo: NodeRepository) -> None:
        """Initialize the service with the store adapter."""
        self.repo = repo

    def _load(self, node_id: int, target: NodeStatus) -> ContentNode:
        node = self.repo.get_node(node_id)
        if node is None:
            raise NotFoundError(node_id)
        if node.kind is NodeKind.FORUM:
            raise InvalidTransitionError(node_id, node.status.value, target.value)
        return node

    def spam(self, node_id: int) -> NodeStatus:
        """Mark a node as spam, remembering its current status.

        Raises:
            InvalidTransitionError: If the node is already spam.
        """
        node = self._load(node_id, NodeStatus.SPAM)
        if node.status is NodeStatus.SPAM:
            raise InvalidTransitionError(node_id, node.status.value, NodeStatus.SPAM.value)

        logger.info("Spamming %s %s (was %s)", node.kind.value, node_id, node.status.value)
        with self.repo.atomic():
            self.repo.set_field(node_id, META_SPAM_STATUS, node.status.value)
            self.repo.set_status(node, NodeStatus.SPAM)
        logger.info("Spammed %s %s", node.kind.value, node_id)
        return node.status

    def unspam(self, node_id: int) -> NodeStatus:
        """Restore a spam node to the status it had before being spammed.

        Raises:
            InvalidTransitionError: If the node is not spam.
        """
        node = self._load(node_id, NodeStatus.PUBLISHED)
        if node.status is not NodeStatus.SPAM:
            raise InvalidTransitionError(node_id, node.status.value, "unspam")

        restored = _restored_status(self.repo.get_field(node_id, META_SPAM_STATUS))
        logger.info("Unspamming %s %s (restoring %s)", node.kind.value, node_id, restored.value)
        with self.repo.atomic():
            self.repo.delete_field(node_id, META_SPAM_STATUS)
            self.repo.set_status(node, restored)
        logger.info("Unspammed %s %s", node.kind.value, node_id)
        return node.status

    def trash(self, node_id: int) -> NodeStatus:
        """Move a node to the trash.

        Trashing a topic also trashes each of its published replies. Their ids
        are appended, oldest first, to the topic's pending-trash manifest so
        they can be restored together.

        Raises:
            InvalidTransitionError: If the node is already trashed.
        """
        node = self._load(node_id, NodeStatus.TRASHED)
        if node.status is NodeStatus.TRASHED:
            raise InvalidTransitionError(node_id, node.status.value, NodeStatus.TRASHED.value)

        logger.info("Trashing %s %s", node.kind.value, node_id)
        with self.repo.atomic():
            self.repo.set_field(node_id, META_TRASH_STATUS, node.status.value)
            if node.status is NodeStatus.SPAM:
                parked = self.repo.get_field(node_id, META_SPAM_STATUS)
                if parked is not None:
                    self.repo.set_field(node_id, META_TRASH_SPAM_STATUS, parked)
                    self.repo.delete_field(node_id, META_SPAM_STATUS)
            self.repo.set_status(node, NodeStatus.TRASHED)

            if node.kind is NodeKind.TOPIC:
                trashed = []
                for reply in self.repo.get_children_nodes(
                    node_id, NodeKind.REPLY, [NodeStatus.PUBLISHED]
                ):
                    self.repo.set_field(reply.id, META_TRASH_STATUS, reply.status.value)
                    self.repo.set_status(reply, NodeStatus.TRASHED)
                    trashed.append(reply.id)
                if trashed:
                    self.record_pre_trashed(node_id, trashed)
        logger.info("Trashed %s %s", node.kind.value, node_id)
        return node.status

    def record_pre_trashed(self, topic_id: int, reply_ids: list[int]) -> list[int]:
        """Append reply ids to a topic's pending-trash manifest."""
        manifest = list(self.repo.get_field(topic_id, META_PRE_TRASHED_REPLIES, []))
        manifest.extend(reply_ids)
        self.repo.set_field(topic_id, META_PRE_TRASHED_REPLIES, manifest)
        return manifest

    def untrash(self, node_id: int) -> NodeStatus:
        """Restore a trashed node to the status it had before.

        Replies trashed along with a topic stay trashed; bulk restoration from
        the manifest is left to the caller.

        Raises:
            InvalidTransitionError: If the node is not trashed.
        """
        node = self._load(node_id, NodeStatus.PUBLISHED)
        if node.status is not NodeStatus.TRASHED:
            raise InvalidTransitionError(node_id, node.status.value, "untrash")

        restored = _restored_status(self.repo.get_field(node_id, META_TRASH_STATUS))
        logger.info("Untrashing %s %s (restoring %s)", node.kind.value, node_id, restored.value)
        with self.repo.atomic():
            self.repo.delete_field(node_id, META_TRASH_STATUS)
            parked = self.repo.get_field(node_id, META_TRASH_SPAM_STATUS)
            if parked is not None:
                self.repo.delete_field(node_id, META_TRASH_SPAM_STATUS)
                if restored is NodeStatus.SPAM:
                    self.repo.set_field(node_id, META_SPAM_STATUS, parked)
            self.repo.set_status(node, restored)
        logger.info("Untrashed %s %s", node.kind.value, node_id)
        return node.status

    def delete(self, node_id: int) -> NodeStatus:
        """Remove a node and its attachments; a topic takes its replies with it."""
        node = self._load(node_id, NodeStatus.DELETED)
        kind = node.kind

        logger.info("Deleting %s %s", kind.value, node_id)
        with self.repo.atomic():
            if kind is NodeKind.TOPIC:
                for reply_id in self.repo.get_children(node_id, NodeKind.REPLY):
                    self.repo.delete_node(reply_id)
            self.repo.delete_node(node_id)
        logger.info("Deleted %s %s", kind.value, node_id)
        return NodeStatus.DELETED

    def transition(self, node_id: int, target: NodeStatus) -> NodeStatus:
        """Move a node towards ``target`` and return its new status.

        A ``PUBLISHED`` target reverses whichever of spam or trash the node is
        in; the result is the restored shadow status, which need not be
        ``PUBLISHED``.

        Raises:
            NotFoundError: If the node does not exist.
            InvalidTransitionError: If the node is already in, or cannot reach,
                the target state.
        """
        if target is NodeStatus.SPAM:
            return self.spam(node_id)
        if target is NodeStatus.TRASHED:
            return self.trash(node_id)
        if target is NodeStatus.DELETED:
            return self.delete(node_id)

        node = self._load(node_id, target)
        if node.status is NodeStatus.SPAM:
            return self.unspam(node_id)
        if node.status is NodeStatus.TRASHED:
            return self.untrash(node_id)
        raise InvalidTransitionError(node_id, node.status.value, target.value)

"""Ancestor walk that recomputes denormalized forum and topic state.

After any change to a reply (create, edit, spam, trash, delete) every topic
and forum above it must have its derived aggregate rebuilt. The engine never
increments counters: each field is recomputed from the current canonical
children, which makes a walk idempotent and lets a later walk repair whatever
an interrupted or racing one left behind.

Hints (reply id, active id, time, topic and forum ids) let the common "new
reply" path skip lookups. A full refresh drops them all and recomputes
purely from stored children.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from canopy.db.time import as_utc
from canopy.models import HIDDEN_STATUSES, ContentNode, NodeKind, NodeStatus
from canopy.models.meta import (
    META_FORUM_ID,
    META_LAST_ACTIVE_ID,
    META_LAST_ACTIVE_TIME,
    META_LAST_REPLY_ID,
    META_LAST_TOPIC_ID,
    META_REPLY_COUNT,
    META_REPLY_COUNT_HIDDEN,
    META_TOPIC_ID,
    META_VOICE_COUNT,
)
from canopy.repositories.node_repo import NodeRepository
from canopy.schemas.aggregate import ForumAggregate, PropagationReportOut, TopicAggregate
from canopy.core.errors import PropagationError, StoreError
from canopy.services.locks import NodeLockRegistry, node_locks

__all__ = ["AggregationEngine", "PropagationReport"]

logger = logging.getLogger(__name__)

_VISIBLE = (NodeStatus.PUBLISHED,)


def _sort_key(node: ContentNode) -> tuple[datetime, int]:
    return as_utc(node.created_at), node.id


def _fields(model: type[TopicAggregate] | type[ForumAggregate]) -> list[str]:
    return [name for name in model.model_fields if name != "kind"]


@dataclass
class PropagationReport:
    """Outcome of one ancestor walk.

    ``updated`` lists the ancestors whose aggregate was rewritten, in walk
    order. A walk that hits a store failure records the failing ancestor in
    ``failed_id``; one that meets a dangling parent records it in
    ``stopped_at``.
    """

    leaf_id: int
    full_refresh: bool = False
    ancestors: list[int] = field(default_factory=list)
    updated: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    stopped_at: int | None = None
    failed_id: int | None = None
    error: StoreError | None = None
    leaf_missing: bool = False

    @property
    def ok(self) -> bool:
        """Return True when no ancestor failed."""
        return self.failed_id is None

    def summary(self) -> str:
        """Return a one-line description of the walk."""
        text = f"updated {len(self.updated)} of {len(self.ancestors)} ancestors"
        if self.failed_id is not None:
            text += f"; node {self.failed_id} failed with {type(self.error).__name__}"
        if self.stopped_at is not None:
            text += f"; stopped at missing node {self.stopped_at}"
        if self.leaf_missing and not self.ancestors:
            text += "; leaf not found"
        return text

    def to_schema(self) -> PropagationReportOut:
        """Convert the report to its API schema."""
        return PropagationReportOut(
            leaf_id=self.leaf_id,
            full_refresh=self.full_refresh,
            updated=list(self.updated),
            skipped=list(self.skipped),
            stopped_at=self.stopped_at,
            failed_id=self.failed_id,
            leaf_missing=self.leaf_missing,
            summary=self.summary(),
        )


class AggregationEngine:
    """Recompute derived aggregates along a leaf's ancestor chain."""

    def __init__(self, repo: NodeRepository, locks: NodeLockRegistry | None = None) -> None:
        """Initialize the engine.

        Args:
            repo: Store adapter used for every read and write.
            locks: Registry serializing writes per ancestor id. Defaults to the
                process-wide registry.
        """
        self.repo = repo
        self.locks = locks or node_locks

    # --- Resolution ----------------------------------------------------------------
    def _nearest_ancestor(self, node_id: int, kind: NodeKind) -> int | None:
        for ancestor_id in self.repo.get_ancestors(node_id):
            ancestor = self.repo.get_node(ancestor_id)
            if ancestor is not None and ancestor.kind is kind:
                return ancestor_id
        return None

    def resolve_topic_id(self, node: ContentNode) -> int | None:
        """Return the topic a node belongs to.

        Stored associations win; otherwise the nearest topic ancestor is used.
        """
        if node.kind is NodeKind.TOPIC:
            return node.id
        if node.kind is NodeKind.FORUM:
            return None
        stored = self.repo.get_field(node.id, META_TOPIC_ID)
        if stored:
            return int(stored)
        return self._nearest_ancestor(node.id, NodeKind.TOPIC)

    def resolve_forum_id(self, node: ContentNode) -> int | None:
        """Return the forum a node belongs to (itself for a forum)."""
        if node.kind is NodeKind.FORUM:
            return node.id
        stored = self.repo.get_field(node.id, META_FORUM_ID)
        if stored:
            return int(stored)
        return self._nearest_ancestor(node.id, NodeKind.FORUM)

    def _created_at(self, node_id: int | None) -> datetime | None:
        node = self.repo.get_node(node_id)
        if node is None:
            return None
        return as_utc(node.created_at)

    # --- Walk ----------------------------------------------------------------------
    def propagate(
        self,
        leaf_id: int,
        *,
        hint_time: datetime | None = None,
        hint_forum_id: int | None = None,
        hint_topic_id: int | None = None,
        full_refresh: bool = False,
    ) -> PropagationReport:
        """Walk up from ``leaf_id`` and rewrite every ancestor's aggregate.

        Args:
            leaf_id: The reply (or topic/forum) that changed.
            hint_time: Authoritative last-active time, when already known.
            hint_forum_id: Forum of the leaf, when already known.
            hint_topic_id: Topic of the leaf, when already known.
            full_refresh: Ignore every hint and recompute from children only.

        Returns:
            A report naming the ancestors that were updated.

        Raises:
            PropagationError: If the store failed while writing an ancestor.
                Ancestors written before the failure keep their new values.
        """
        report = PropagationReport(leaf_id=leaf_id, full_refresh=full_refresh)
        topic_id, forum_id = hint_topic_id, hint_forum_id
        reply_id: int | None = None

        leaf = self.repo.get_node(leaf_id)
        if leaf is None:
            report.leaf_missing = True
            if topic_id is None and forum_id is None:
                logger.debug("Propagation skipped; node %s does not exist", leaf_id)
                return report
        else:
            if leaf.kind is NodeKind.REPLY:
                reply_id = leaf.id
            if topic_id is None:
                topic_id = self.resolve_topic_id(leaf)
            if forum_id is None:
                forum_id = self.resolve_forum_id(leaf)

        active_id = reply_id if reply_id is not None else topic_id

        chain: list[int | None] = [topic_id, forum_id]
        base_id = topic_id if topic_id is not None else forum_id
        if base_id is not None:
            chain.extend(self.repo.get_ancestors(base_id))
        report.ancestors = list(dict.fromkeys(a for a in chain if a is not None))

        if full_refresh:
            topic_id = reply_id = active_id = None
            hint_time = None
        elif hint_time is not None:
            hint_time = as_utc(hint_time)

        for ancestor_id in report.ancestors:
            try:
                # The row lock outlives this walk and is released by the
                # caller's commit, so concurrent walks see each other's children.
                ancestor = self.repo.lock_node(ancestor_id)
                if ancestor is None:
                    logger.warning(
                        "Ancestor %s of node %s is missing; stopping walk", ancestor_id, leaf_id
                    )
                    report.stopped_at = ancestor_id
                    break
                if ancestor.kind is NodeKind.REPLY:
                    # Hierarchical replies carry no aggregate yet.
                    report.skipped.append(ancestor_id)
                    continue
                with self.locks.hold(ancestor_id), self.repo.atomic():
                    if ancestor.kind is NodeKind.TOPIC:
                        self._update_topic(ancestor, reply_id, active_id, hint_time)
                    else:
                        self._update_forum(ancestor, topic_id, reply_id, active_id, hint_time)
            except StoreError as err:
                report.failed_id = ancestor_id
                report.error = err
                logger.error(
                    "Propagation from node %s failed at ancestor %s: %s", leaf_id, ancestor_id, err
                )
                raise PropagationError(report) from err
            report.updated.append(ancestor_id)

        logger.debug("Propagation from node %s: %s", leaf_id, report.summary())
        return report

    def _update_topic(
        self,
        topic: ContentNode,
        reply_id: int | None,
        active_id: int | None,
        hint_time: datetime | None,
    ) -> None:
        visible = self.repo.get_children_nodes(topic.id, NodeKind.REPLY, _VISIBLE)
        hidden = self.repo.get_children(topic.id, NodeKind.REPLY, HIDDEN_STATUSES)

        if reply_id is None and visible:
            reply_id = max(visible, key=_sort_key).id
        if active_id is None:
            active_id = reply_id if reply_id is not None else topic.id
        last_active_time = hint_time if hint_time is not None else self._created_at(active_id)
        # Anonymous replies share author_user_id=None and count as one voice.
        voices = {reply.author_user_id for reply in visible}

        logger.debug(
            "Topic %s: last_reply=%s active=%s replies=%d hidden=%d voices=%d",
            topic.id, reply_id, active_id, len(visible), len(hidden), len(voices),
        )
        self.repo.set_field(topic.id, META_LAST_REPLY_ID, reply_id)
        self.repo.set_field(topic.id, META_LAST_ACTIVE_ID, active_id)
        self.repo.set_field(topic.id, META_LAST_ACTIVE_TIME, last_active_time)
        self.repo.set_field(topic.id, META_VOICE_COUNT, len(voices))
        self.repo.set_field(topic.id, META_REPLY_COUNT, len(visible))
        self.repo.set_field(topic.id, META_REPLY_COUNT_HIDDEN, len(hidden))

    def _subtree_topics(self, forum_id: int) -> list[ContentNode]:
        topics: list[ContentNode] = []
        seen: set[int] = set()
        pending = [forum_id]
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            topics.extend(self.repo.get_children_nodes(current, NodeKind.TOPIC, _VISIBLE))
            pending.extend(self.repo.get_children(current, NodeKind.FORUM))
        return topics

    def _update_forum(
        self,
        forum: ContentNode,
        topic_id: int | None,
        reply_id: int | None,
        active_id: int | None,
        hint_time: datetime | None,
    ) -> None:
        topics = self._subtree_topics(forum.id)
        reply_count = 0
        latest_reply: ContentNode | None = None
        for topic in topics:
            replies = self.repo.get_children_nodes(topic.id, NodeKind.REPLY, _VISIBLE)
            reply_count += len(replies)
            for reply in replies:
                if latest_reply is None or _sort_key(reply) > _sort_key(latest_reply):
                    latest_reply = reply
        latest_topic = max(topics, key=_sort_key) if topics else None

        if topic_id is None and latest_topic is not None:
            topic_id = latest_topic.id
        if reply_id is None and latest_reply is not None:
            reply_id = latest_reply.id
        if active_id is None:
            candidates = [node for node in (latest_topic, latest_reply) if node is not None]
            if candidates:
                active_id = max(candidates, key=_sort_key).id
        last_active_time = hint_time if hint_time is not None else self._created_at(active_id)

        logger.debug(
            "Forum %s: last_topic=%s last_reply=%s active=%s replies=%d",
            forum.id, topic_id, reply_id, active_id, reply_count,
        )
        self.repo.set_field(forum.id, META_LAST_TOPIC_ID, topic_id)
        self.repo.set_field(forum.id, META_LAST_REPLY_ID, reply_id)
        self.repo.set_field(forum.id, META_LAST_ACTIVE_ID, active_id)
        self.repo.set_field(forum.id, META_LAST_ACTIVE_TIME, last_active_time)
        self.repo.set_field(forum.id, META_REPLY_COUNT, reply_count)

    # --- Reconciliation ------------------------------------------------------------
    def reconcile(self) -> list[PropagationReport]:
        """Full-refresh every topic, then every forum without topics.

        Used when drift is suspected across the whole tree rather than one chain.
        """
        reports = []
        refreshed: set[int] = set()
        for topic_id in self.repo.list_ids(NodeKind.TOPIC):
            report = self.propagate(topic_id, full_refresh=True)
            refreshed.update(report.updated)
            reports.append(report)
        for forum_id in self.repo.list_ids(NodeKind.FORUM):
            if forum_id not in refreshed:
                reports.append(self.propagate(forum_id, full_refresh=True))
        return reports

    # --- Readers -------------------------------------------------------------------
    def _read(self, node_id: int, names: list[str]) -> dict[str, object]:
        values = {}
        for name in names:
            value = self.repo.get_field(node_id, name)
            if value is not None:
                values[name] = value
        return values

    def read_topic_aggregate(self, topic_id: int) -> TopicAggregate:
        """Return the stored aggregate of a topic."""
        return TopicAggregate(**self._read(topic_id, _fields(TopicAggregate)))

    def read_forum_aggregate(self, forum_id: int) -> ForumAggregate:
        """Return the stored aggregate of a forum."""
        return ForumAggregate(**self._read(forum_id, _fields(ForumAggregate)))

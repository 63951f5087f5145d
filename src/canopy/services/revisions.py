"""Append-only edit history for content nodes."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from canopy.models import ContentNode
from canopy.models.meta import META_REVISION_LOG
from canopy.repositories.node_repo import NodeRepository

__all__ = ["RevisionEntry", "RevisionLogService", "format_revision_reason"]

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


def format_revision_reason(reason: str | None) -> str:
    """Strip markup and surrounding whitespace from an edit reason."""
    if not reason:
        return ""
    return _TAG_RE.sub("", str(reason)).strip()


@dataclass(frozen=True)
class RevisionEntry:
    """One revision log line."""

    author_id: int | None
    reason: str


class RevisionLogService:
    """Keep a per-node log mapping revision ids to author and reason."""

    def __init__(self, repo: NodeRepository) -> None:
        self.repo = repo

    def append(
        self,
        node_id: int,
        revision_id: int,
        author_id: int | None,
        reason: str | None = "",
    ) -> bool:
        """Record a revision, overwriting any entry with the same id.

        Returns:
            True when the log was written, False when ``revision_id`` is not a
            positive integer (nothing is written in that case).
        """
        if isinstance(revision_id, bool) or not isinstance(revision_id, int) or revision_id <= 0:
            logger.debug("Ignoring revision %r for node %s", revision_id, node_id)
            return False
        self.repo.append_to_log(
            node_id,
            META_REVISION_LOG,
            str(revision_id),
            {"author": author_id, "reason": format_revision_reason(reason)},
        )
        return True

    def get_log(self, node_id: int) -> dict[int, RevisionEntry]:
        """Return the log in insertion order."""
        raw = self.repo.get_field(node_id, META_REVISION_LOG, {})
        return {
            int(key): RevisionEntry(author_id=value.get("author"), reason=value.get("reason", ""))
            for key, value in raw.items()
        }

    def snapshot(self, node: ContentNode, author_id: int | None = None) -> int:
        """Save the node's current title and content and return the revision id."""
        return self.repo.save_revision(node, author_id)

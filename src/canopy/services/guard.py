"""Flood and duplicate checks applied before new content is stored."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from canopy.core.settings import Settings
from canopy.db.time import as_utc, utcnow
from canopy.models import NodeKind, PosterActivity
from canopy.models.meta import META_ANONYMOUS_NAME, META_AUTHOR_IP
from canopy.repositories.node_repo import NodeRepository
from canopy.schemas.author import THROTTLE_CAPABILITY, Actor, AnonymousAuthor
from canopy.core.errors import GuardRejectedError

__all__ = ["SubmissionCandidate", "SubmissionGuard"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionCandidate:
    """A submission about to be stored, as seen by the duplicate check."""

    kind: NodeKind
    parent_id: int
    content: str
    actor: Actor


class SubmissionGuard:
    """Advisory gates evaluated before a new reply is created."""

    def __init__(self, repo: NodeRepository, config: Settings) -> None:
        """Initialize the guard.

        Args:
            repo: Store adapter; its session also holds poster activity rows.
            config: Flood window and duplicate look-back configuration.
        """
        self.repo = repo
        self.config = config

    def _last_posted(self, actor: Actor) -> datetime | None:
        activity = self.repo.session.get(PosterActivity, actor.activity_key)
        if activity is None:
            return None
        return as_utc(activity.last_posted_at)

    def check_flood(self, actor: Actor, now: datetime | None = None) -> bool:
        """Return True if the actor is allowed to post now.

        Actors holding the ``throttle`` capability always pass, as does
        everyone when the throttle window is zero.
        """
        window = self.config.throttle_time_seconds
        if window <= 0 or actor.can(THROTTLE_CAPABILITY):
            return True
        last_posted = self._last_posted(actor)
        if last_posted is None:
            return True
        now = as_utc(now or utcnow())
        allowed = now - last_posted >= timedelta(seconds=window)
        if not allowed:
            logger.info("Flood check rejected %s", actor.activity_key)
        return allowed

    def check_duplicate(self, candidate: SubmissionCandidate, now: datetime | None = None) -> bool:
        """Return True unless the same author already posted identical content here."""
        since = None
        if self.config.duplicate_window_seconds > 0:
            now = as_utc(now or utcnow())
            since = now - timedelta(seconds=self.config.duplicate_window_seconds)

        matches = self.repo.find_candidates(
            kind=candidate.kind,
            parent_id=candidate.parent_id,
            content=candidate.content,
            author_user_id=candidate.actor.user_id,
            since=since,
        )
        author = candidate.actor.author
        if isinstance(author, AnonymousAuthor):
            matches = [
                node
                for node in matches
                if self.repo.get_field(node.id, META_ANONYMOUS_NAME) == author.name
                and self.repo.get_field(node.id, META_AUTHOR_IP) == author.origin_address
            ]
        if matches:
            logger.info(
                "Duplicate check rejected %s under node %s", candidate.actor.activity_key,
                candidate.parent_id,
            )
            return False
        return True

    def enforce(self, candidate: SubmissionCandidate, now: datetime | None = None) -> None:
        """Run both checks.

        Raises:
            GuardRejectedError: With reason ``flood`` or ``duplicate``.
        """
        if not self.check_flood(candidate.actor, now):
            raise GuardRejectedError(GuardRejectedError.FLOOD)
        if not self.check_duplicate(candidate, now):
            raise GuardRejectedError(GuardRejectedError.DUPLICATE)

    def record_post(self, actor: Actor, when: datetime | None = None) -> None:
        """Remember when the actor last posted.

        Registered actors holding the ``throttle`` capability are never
        throttled, so nothing is recorded for them.
        """
        if not actor.is_anonymous and actor.can(THROTTLE_CAPABILITY):
            return
        when = when or utcnow()
        activity = self.repo.session.get(PosterActivity, actor.activity_key)
        if activity is None:
            self.repo.session.add(PosterActivity(actor_key=actor.activity_key, last_posted_at=when))
        else:
            activity.last_posted_at = when
        self.repo.session.flush()

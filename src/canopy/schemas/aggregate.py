"""Read models for derived aggregates."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class TopicAggregate(BaseModel):
    """Derived state attached to a topic."""

    kind: Literal["topic"] = "topic"
    last_reply_id: int | None = None
    last_active_id: int | None = None
    last_active_time: datetime | None = None
    reply_count: int = 0
    reply_count_hidden: int = 0
    voice_count: int = 0


class ForumAggregate(BaseModel):
    """Derived state attached to a forum."""

    kind: Literal["forum"] = "forum"
    last_topic_id: int | None = None
    last_reply_id: int | None = None
    last_active_id: int | None = None
    last_active_time: datetime | None = None
    reply_count: int = 0


class PropagationReportOut(BaseModel):
    """API view of one ancestor walk."""

    leaf_id: int
    full_refresh: bool
    updated: list[int]
    skipped: list[int]
    stopped_at: int | None = None
    failed_id: int | None = None
    leaf_missing: bool = False
    summary: str

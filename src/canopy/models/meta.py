# src/canopy/models/meta.py
"""Key/value attachments carried by every content node."""

from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from canopy.db.session import Base

# Derived aggregate keys (topics and forums).
META_LAST_TOPIC_ID = "last_topic_id"
META_LAST_REPLY_ID = "last_reply_id"
META_LAST_ACTIVE_ID = "last_active_id"
META_LAST_ACTIVE_TIME = "last_active_time"
META_REPLY_COUNT = "reply_count"
META_REPLY_COUNT_HIDDEN = "reply_count_hidden"
META_VOICE_COUNT = "voice_count"

# Status machine bookkeeping.
META_SPAM_STATUS = "spam_meta_status"
META_TRASH_STATUS = "trash_meta_status"
# Spam shadow parked while a spam node sits in the trash.
META_TRASH_SPAM_STATUS = "trash_spam_meta_status"
META_PRE_TRASHED_REPLIES = "pre_trashed_replies"

META_REVISION_LOG = "revision_log"

# Reply position in the tree.
META_FORUM_ID = "forum_id"
META_TOPIC_ID = "topic_id"

# Anonymous author record.
META_ANONYMOUS_NAME = "anonymous_name"
META_ANONYMOUS_EMAIL = "anonymous_email"
META_ANONYMOUS_WEBSITE = "anonymous_website"
META_AUTHOR_IP = "author_ip"


class NodeMeta(Base):
    """Durable attachment addressed by ``(node_id, meta_key)``."""

    __tablename__ = "node_meta"

    node_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("content_node.id", ondelete="CASCADE"),
        primary_key=True,
    )
    meta_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    meta_value: Mapped[Any] = mapped_column(JSON, nullable=True)

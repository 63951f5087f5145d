# src/canopy/models/subscription.py
"""Topic subscriptions toggled when replying."""

from sqlalchemy import BigInteger, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from canopy.db.session import Base


class TopicSubscription(Base):
    """Join table mapping users onto the topics they follow."""

    __tablename__ = "topic_subscription"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    topic_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("content_node.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # Presence implies subscription.

# src/canopy/models/activity.py
"""Per-actor posting activity used by flood control."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from canopy.db.session import Base


class PosterActivity(Base):
    """Last time an actor submitted content.

    ``actor_key`` is ``user:<id>`` for registered authors and
    ``ip:<address>`` for anonymous ones.
    """

    __tablename__ = "poster_activity"

    actor_key: Mapped[str] = mapped_column(String(128), primary_key=True)
    last_posted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

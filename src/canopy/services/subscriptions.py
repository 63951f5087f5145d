"""Topic subscription bookkeeping."""

from __future__ import annotations

from sqlalchemy.orm import Session

from canopy.models import TopicSubscription


class SubscriptionService:
    """Add and remove users from a topic's subscriber list."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def is_subscribed(self, user_id: int, topic_id: int) -> bool:
        return self.session.get(TopicSubscription, (user_id, topic_id)) is not None

    def subscribe(self, user_id: int, topic_id: int) -> None:
        if not self.is_subscribed(user_id, topic_id):
            self.session.add(TopicSubscription(user_id=user_id, topic_id=topic_id))
            self.session.flush()

    def unsubscribe(self, user_id: int, topic_id: int) -> None:
        subscription = self.session.get(TopicSubscription, (user_id, topic_id))
        if subscription is not None:
            self.session.delete(subscription)
            self.session.flush()

    def apply(self, user_id: int, topic_id: int, wanted: bool) -> bool:
        """Bring the subscription in line with the checkbox and return the new state."""
        if wanted:
            self.subscribe(user_id, topic_id)
        else:
            self.unsubscribe(user_id, topic_id)
        return wanted

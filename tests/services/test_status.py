"""Tests for the node status state machine."""

import pytest

from canopy.core.errors import InvalidTransitionError, NotFoundError
from canopy.models import NodeKind, NodeStatus
from canopy.models.meta import (
    META_PRE_TRASHED_REPLIES,
    META_SPAM_STATUS,
    META_TRASH_SPAM_STATUS,
    META_TRASH_STATUS,
)
from canopy.services.status import StatusService


@pytest.fixture()
def status_service(repo) -> StatusService:
    return StatusService(repo)


def test_spam_round_trip_restores_published(status_service, repo, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2)

    assert status_service.transition(reply.id, NodeStatus.SPAM) is NodeStatus.SPAM
    assert repo.get_field(reply.id, META_SPAM_STATUS) == "publish"

    assert status_service.transition(reply.id, NodeStatus.PUBLISHED) is NodeStatus.PUBLISHED
    assert repo.get_field(reply.id, META_SPAM_STATUS) is None


def test_unspam_restores_the_shadow_not_a_default(status_service, repo, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2, status=NodeStatus.TRASHED)

    status_service.transition(reply.id, NodeStatus.SPAM)
    assert repo.get_field(reply.id, META_SPAM_STATUS) == "trash"

    assert status_service.transition(reply.id, NodeStatus.PUBLISHED) is NodeStatus.TRASHED
    assert repo.get_field(reply.id, META_SPAM_STATUS) is None


def test_unspam_without_shadow_falls_back_to_published(status_service, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2, status=NodeStatus.SPAM)

    assert status_service.unspam(reply.id) is NodeStatus.PUBLISHED


def test_double_spam_is_rejected(status_service, repo, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2)
    status_service.spam(reply.id)

    with pytest.raises(InvalidTransitionError):
        status_service.spam(reply.id)

    assert repo.get_node(reply.id).status is NodeStatus.SPAM
    assert repo.get_field(reply.id, META_SPAM_STATUS) == "publish"


def test_unspam_of_published_node_is_rejected(status_service, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2)

    with pytest.raises(InvalidTransitionError):
        status_service.unspam(reply.id)
    with pytest.raises(InvalidTransitionError):
        status_service.transition(reply.id, NodeStatus.PUBLISHED)


def test_trashing_a_topic_cascades_to_published_replies(
    status_service, repo, make_node, topic
) -> None:
    replies = [make_node(NodeKind.REPLY, topic, author_user_id=2) for _ in range(3)]
    spam = make_node(NodeKind.REPLY, topic, author_user_id=3, status=NodeStatus.SPAM)

    assert status_service.trash(topic.id) is NodeStatus.TRASHED

    assert [repo.get_node(reply.id).status for reply in replies] == [NodeStatus.TRASHED] * 3
    assert repo.get_node(spam.id).status is NodeStatus.SPAM
    assert repo.get_field(topic.id, META_PRE_TRASHED_REPLIES) == [reply.id for reply in replies]
    assert repo.get_field(replies[0].id, META_TRASH_STATUS) == "publish"


def test_untrash_restores_topic_only(status_service, repo, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2)
    status_service.trash(topic.id)

    assert status_service.untrash(topic.id) is NodeStatus.PUBLISHED
    assert repo.get_field(topic.id, META_TRASH_STATUS) is None
    assert repo.get_node(reply.id).status is NodeStatus.TRASHED
    assert repo.get_field(topic.id, META_PRE_TRASHED_REPLIES) == [reply.id]


def test_trash_round_trip_restores_spam(status_service, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2, status=NodeStatus.SPAM)

    status_service.trash(reply.id)

    assert status_service.transition(reply.id, NodeStatus.PUBLISHED) is NodeStatus.SPAM


def test_trashing_spam_parks_the_spam_shadow(status_service, repo, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2)
    status_service.spam(reply.id)

    status_service.trash(reply.id)
    assert repo.get_field(reply.id, META_SPAM_STATUS) is None
    assert repo.get_field(reply.id, META_TRASH_SPAM_STATUS) == "publish"

    assert status_service.untrash(reply.id) is NodeStatus.SPAM
    assert repo.get_field(reply.id, META_SPAM_STATUS) == "publish"
    assert repo.get_field(reply.id, META_TRASH_SPAM_STATUS) is None

    assert status_service.unspam(reply.id) is NodeStatus.PUBLISHED


def test_double_trash_is_rejected(status_service, make_node, topic) -> None:
    reply = make_node(NodeKind.REPLY, topic, author_user_id=2)
    status_service.trash(reply.id)

    with pytest.raises(InvalidTransitionError):
        status_service.trash(reply.id)


def test_deleting_a_topic_removes_its_replies(status_service, repo, make_node, topic) -> None:
    replies = [make_node(NodeKind.REPLY, topic, author_user_id=2) for _ in range(2)]
    repo.set_field(replies[0].id, META_SPAM_STATUS, "publish")
    topic_id = topic.id
    reply_ids = [reply.id for reply in replies]

    assert status_service.delete(topic_id) is NodeStatus.DELETED

    assert repo.get_node(topic_id) is None
    assert all(repo.get_node(reply_id) is None for reply_id in reply_ids)
    assert repo.get_field(reply_ids[0], META_SPAM_STATUS) is None


def test_forums_cannot_change_status(status_service, forum) -> None:
    with pytest.raises(InvalidTransitionError):
        status_service.spam(forum.id)
    with pytest.raises(InvalidTransitionError):
        status_service.transition(forum.id, NodeStatus.TRASHED)


def test_missing_node_raises_not_found(status_service) -> None:
    with pytest.raises(NotFoundError):
        status_service.transition(424242, NodeStatus.SPAM)

"""Unit tests for the ORM models defined in canopy.models.

These tests verify basic mapping correctness: table names, composite
primary keys, and that node attachments go away with their node.
"""

from canopy.models import (
    ContentNode,
    NodeKind,
    NodeMeta,
    NodeRevision,
    NodeStatus,
    PosterActivity,
    TopicSubscription,
)


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert ContentNode.__tablename__ == "content_node"
    assert NodeMeta.__tablename__ == "node_meta"
    assert NodeRevision.__tablename__ == "node_revision"
    assert TopicSubscription.__tablename__ == "topic_subscription"
    assert PosterActivity.__tablename__ == "poster_activity"


def test_meta_composite_primary_key():
    """Attachments are addressed by (node_id, meta_key)."""
    pk_names = {c.name for c in NodeMeta.__table__.primary_key}
    assert pk_names == {"node_id", "meta_key"}


def test_subscription_composite_primary_key():
    pk_names = {c.name for c in TopicSubscription.__table__.primary_key}
    assert pk_names == {"user_id", "topic_id"}


def test_status_values_are_stored_as_strings(db_session, forum):
    """Enum columns store the lowercase value, not the member name."""
    from sqlalchemy import text

    stored = db_session.execute(
        text("SELECT kind, status FROM content_node WHERE id = :id"), {"id": forum.id}
    ).one()
    assert tuple(stored) == ("forum", "publish")


def test_new_node_defaults(repo, forum):
    reply = repo.create_node(kind=NodeKind.REPLY, parent_id=forum.id)

    assert reply.status is NodeStatus.PUBLISHED
    assert reply.is_anonymous
    assert reply.created_at is not None


def test_deleting_a_node_removes_attachments(db_session, repo, topic):
    repo.set_field(topic.id, "reply_count", 3)
    repo.save_revision(topic, author_user_id=1)
    topic_id = topic.id

    assert repo.delete_node(topic_id) is True

    assert db_session.get(NodeMeta, (topic_id, "reply_count")) is None
    assert db_session.query(NodeRevision).filter_by(node_id=topic_id).count() == 0
    assert repo.delete_node(topic_id) is False


def test_lock_node_selects_the_row_for_update(db_session, repo, topic, mocker):
    """The ancestor row lock is a SELECT ... FOR UPDATE on server backends."""
    from sqlalchemy.dialects import postgresql

    execute = mocker.spy(db_session, "execute")

    assert repo.lock_node(topic.id) is topic
    assert repo.lock_node(424242) is None

    sql = str(execute.call_args_list[0].args[0].compile(dialect=postgresql.dialect()))
    assert sql.rstrip().endswith("FOR UPDATE")

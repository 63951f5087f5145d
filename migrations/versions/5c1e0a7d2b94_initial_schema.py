"""initial schema

Revision ID: 5c1e0a7d2b94
Revises:
Create Date: 2026-10-18 09:12:41.503218

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e0a7d2b94"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the content hierarchy and its attachment tables."""
    op.create_table(
        "content_node",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("author_user_id", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["parent_id"], ["content_node.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_content_node_parent_kind_status",
        "content_node",
        ["parent_id", "kind", "status"],
        unique=False,
    )
    op.create_table(
        "node_meta",
        sa.Column("node_id", sa.Integer(), nullable=False),
        sa.Column("meta_key", sa.String(length=64), nullable=False),
        sa.Column("meta_value", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["node_id"], ["content_node.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("node_id", "meta_key"),
    )
    op.create_table(
        "node_revision",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("node_id", sa.Integer(), nullable=False),
        sa.Column("author_user_id", sa.BigInteger(), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["node_id"], ["content_node.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_node_revision_node_id", "node_revision", ["node_id"], unique=False)
    op.create_table(
        "topic_subscription",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["topic_id"], ["content_node.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "topic_id"),
    )
    op.create_table(
        "poster_activity",
        sa.Column("actor_key", sa.String(length=128), nullable=False),
        sa.Column("last_posted_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("actor_key"),
    )


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.drop_table("poster_activity")
    op.drop_table("topic_subscription")
    op.drop_index("ix_node_revision_node_id", table_name="node_revision")
    op.drop_table("node_revision")
    op.drop_table("node_meta")
    op.drop_index("ix_content_node_parent_kind_status", table_name="content_node")
    op.drop_table("content_node")

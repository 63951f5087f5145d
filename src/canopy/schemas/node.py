"""Node-related Pydantic schemas."""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from canopy.models.node import NodeStatus

from .aggregate import ForumAggregate, PropagationReportOut, TopicAggregate
from .author import Author


class ForumCreate(BaseModel):
    """Schema for creating a forum."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field("", max_length=5000, description="Forum description")
    parent_id: int | None = Field(None, description="Parent forum for nested forums")


class TopicCreate(BaseModel):
    """Schema for opening a new topic in a forum."""

    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=50000)
    author: Author


class ReplyCreate(BaseModel):
    """Schema for posting a reply to a topic."""

    title: str = Field("", max_length=200)
    content: str = Field(..., min_length=1, max_length=50000)
    author: Author
    subscribe: bool | None = Field(
        None,
        description="Subscribe (true) or unsubscribe (false) the author; omit to leave as is",
    )


class ReplyEdit(BaseModel):
    """Schema for editing an existing reply."""

    title: str = Field("", max_length=200)
    content: str = Field(..., min_length=1, max_length=50000)
    author: Author
    edit_reason: str = Field("", max_length=500)
    log_revision: bool = False


class NodeResponse(BaseModel):
    """Schema for node information returned by the API."""

    id: int
    kind: str
    status: str
    parent_id: int | None
    author_user_id: int | None
    title: str
    content: str
    created_at: datetime
    updated_at: datetime | None = None
    aggregate: Annotated[TopicAggregate | ForumAggregate, Field(discriminator="kind")] | None = None

    model_config = ConfigDict(from_attributes=True)


class MutationResponse(BaseModel):
    """Result of a create, edit or status change."""

    node_id: int
    status: str
    node: NodeResponse | None = None
    propagation: PropagationReportOut


class RevisionOut(BaseModel):
    """One entry of a node's revision log."""

    revision_id: int
    author_id: int | None
    reason: str


class StatusChange(BaseModel):
    """Explicit lifecycle transition request."""

    target: NodeStatus

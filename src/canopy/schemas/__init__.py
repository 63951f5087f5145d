"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .aggregate import ForumAggregate, PropagationReportOut, TopicAggregate
from .author import Actor, AnonymousAuthor, Author, RegisteredAuthor
from .node import (
    ForumCreate,
    MutationResponse,
    NodeResponse,
    ReplyCreate,
    ReplyEdit,
    RevisionOut,
    StatusChange,
    TopicCreate,
)

__all__ = [
    "ForumAggregate", "PropagationReportOut", "TopicAggregate",
    "Actor", "AnonymousAuthor", "Author", "RegisteredAuthor",
    "ForumCreate", "TopicCreate", "ReplyCreate", "ReplyEdit",
    "NodeResponse", "MutationResponse", "RevisionOut", "StatusChange",
]

"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from canopy.core.settings import Settings, settings
from canopy.db.session import get_db
from canopy.models import ContentNode, NodeKind
from canopy.schemas.aggregate import ForumAggregate, TopicAggregate
from canopy.schemas.author import Actor, AnonymousAuthor, RegisteredAuthor
from canopy.schemas.node import MutationResponse, NodeResponse
from canopy.services.aggregation import AggregationEngine
from canopy.services.dispatcher import DispatchResult, ReplyDispatcher

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_settings() -> Settings:
    """Return the application settings."""
    return settings


SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_dispatcher(db: SessionDep, config: SettingsDep) -> ReplyDispatcher:
    """Build a dispatcher bound to the request's session."""
    return ReplyDispatcher(db, config)


DispatcherDep = Annotated[ReplyDispatcher, Depends(get_dispatcher)]


def build_actor(
    author: RegisteredAuthor | AnonymousAuthor,
    request: Request,
    config: Settings,
) -> Actor:
    """Turn a submitted author into an actor with its configured capabilities.

    Anonymous authors that do not state an origin address get the client's.
    """
    if isinstance(author, AnonymousAuthor):
        if not author.origin_address and request.client is not None:
            author = author.model_copy(update={"origin_address": request.client.host})
        return Actor(author=author)
    return Actor(author=author, capabilities=config.capabilities_for(author.user_id))


def node_response(node: ContentNode, engine: AggregationEngine) -> NodeResponse:
    """Serialize a node together with its stored aggregate."""
    aggregate: TopicAggregate | ForumAggregate | None = None
    if node.kind is NodeKind.TOPIC:
        aggregate = engine.read_topic_aggregate(node.id)
    elif node.kind is NodeKind.FORUM:
        aggregate = engine.read_forum_aggregate(node.id)
    return NodeResponse(
        id=node.id,
        kind=node.kind.value,
        status=node.status.value,
        parent_id=node.parent_id,
        author_user_id=node.author_user_id,
        title=node.title,
        content=node.content,
        created_at=node.created_at,
        updated_at=node.updated_at,
        aggregate=aggregate,
    )


def mutation_response(
    node_id: int,
    result: DispatchResult,
    engine: AggregationEngine,
) -> MutationResponse:
    """Serialize the outcome of a dispatcher pipeline."""
    return MutationResponse(
        node_id=node_id,
        status=result.status.value,
        node=node_response(result.node, engine) if result.node is not None else None,
        propagation=result.report.to_schema(),
    )


"""Forum and topic creation endpoints."""

from fastapi import APIRouter, Request, status

from canopy.api.v1.dependencies import (
    DispatcherDep,
    SettingsDep,
    build_actor,
    mutation_response,
)
from canopy.schemas.node import ForumCreate, MutationResponse, TopicCreate

router = APIRouter(prefix="/forums", tags=["forums"])


@router.post("/", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
def create_forum(payload: ForumCreate, dispatcher: DispatcherDep) -> MutationResponse:
    """Create a forum, optionally nested under ``parent_id``."""
    result = dispatcher.create_forum(
        title=payload.title,
        content=payload.content,
        parent_id=payload.parent_id,
    )
    return mutation_response(result.node.id, result, dispatcher.engine)


@router.post(
    "/{forum_id}/topics",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_topic(
    forum_id: int,
    payload: TopicCreate,
    request: Request,
    dispatcher: DispatcherDep,
    config: SettingsDep,
) -> MutationResponse:
    """Open a new topic in a forum.

    Args:
        forum_id: Forum receiving the topic
        payload: Title, content and author of the topic
        request: Incoming request, used for the anonymous origin address
        dispatcher: Pipeline runner bound to the request session
        config: Application settings

    Returns:
        The created topic and the propagation report

    Raises:
        NotFoundError: If the forum does not exist (404)
        GuardRejectedError: On flood (429) or duplicate (409)
    """
    actor = build_actor(payload.author, request, config)
    result = dispatcher.create_topic(
        forum_id,
        title=payload.title,
        content=payload.content,
        actor=actor,
    )
    return mutation_response(result.node.id, result, dispatcher.engine)

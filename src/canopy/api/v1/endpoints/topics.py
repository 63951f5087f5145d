"""Reply submission endpoint."""

from fastapi import APIRouter, Request, status

from canopy.api.v1.dependencies import (
    DispatcherDep,
    SettingsDep,
    build_actor,
    mutation_response,
)
from canopy.schemas.node import MutationResponse, ReplyCreate

router = APIRouter(prefix="/topics", tags=["topics"])


@router.post(
    "/{topic_id}/replies",
    response_model=MutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_reply(
    topic_id: int,
    payload: ReplyCreate,
    request: Request,
    dispatcher: DispatcherDep,
    config: SettingsDep,
) -> MutationResponse:
    """Post a reply to a topic.

    The reply is guarded against floods and duplicates, stored, and then every
    topic and forum above it is brought up to date.

    Args:
        topic_id: Topic receiving the reply
        payload: Reply content, author and subscription choice
        request: Incoming request, used for the anonymous origin address
        dispatcher: Pipeline runner bound to the request session
        config: Application settings

    Returns:
        The created reply and the propagation report
    """
    actor = build_actor(payload.author, request, config)
    result = dispatcher.create_reply(
        topic_id,
        title=payload.title,
        content=payload.content,
        actor=actor,
        subscribe=payload.subscribe,
    )
    return mutation_response(result.node.id, result, dispatcher.engine)

"""Reply editing endpoint."""

from fastapi import APIRouter, Request

from canopy.api.v1.dependencies import (
    DispatcherDep,
    SettingsDep,
    build_actor,
    mutation_response,
)
from canopy.schemas.node import MutationResponse, ReplyEdit

router = APIRouter(prefix="/replies", tags=["replies"])


@router.put("/{reply_id}", response_model=MutationResponse)
def edit_reply(
    reply_id: int,
    payload: ReplyEdit,
    request: Request,
    dispatcher: DispatcherDep,
    config: SettingsDep,
) -> MutationResponse:
    """Edit a reply, optionally recording a revision with a reason."""
    actor = build_actor(payload.author, request, config)
    result = dispatcher.edit_reply(
        reply_id,
        title=payload.title,
        content=payload.content,
        actor=actor,
        edit_reason=payload.edit_reason,
        log_revision=payload.log_revision,
    )
    return mutation_response(reply_id, result, dispatcher.engine)

"""Node inspection and moderation endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from canopy.api.v1.dependencies import DispatcherDep, mutation_response, node_response
from canopy.schemas.aggregate import PropagationReportOut
from canopy.schemas.node import MutationResponse, NodeResponse, RevisionOut, StatusChange
from canopy.services.dispatcher import TrashAction

router = APIRouter(prefix="/nodes", tags=["nodes"])


@router.get("/{node_id}", response_model=NodeResponse)
async def get_node(node_id: int, dispatcher: DispatcherDep) -> NodeResponse:
    """Get a node and, for forums and topics, its stored aggregate."""
    node = dispatcher.repo.get_node(node_id)
    if node is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Node not found",
        )
    return node_response(node, dispatcher.engine)


@router.get("/{node_id}/revisions", response_model=list[RevisionOut])
async def get_revisions(node_id: int, dispatcher: DispatcherDep) -> list[RevisionOut]:
    """List a node's revision log in insertion order."""
    if dispatcher.repo.get_node(node_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Node not found",
        )
    return [
        RevisionOut(revision_id=revision_id, author_id=entry.author_id, reason=entry.reason)
        for revision_id, entry in dispatcher.revisions.get_log(node_id).items()
    ]


@router.post("/{node_id}/spam", response_model=MutationResponse)
def toggle_spam(node_id: int, dispatcher: DispatcherDep) -> MutationResponse:
    """Mark a node as spam, or restore it if it already is."""
    result = dispatcher.toggle_spam(node_id)
    return mutation_response(node_id, result, dispatcher.engine)


@router.post("/{node_id}/trash", response_model=MutationResponse)
def toggle_trash(
    node_id: int,
    dispatcher: DispatcherDep,
    action: TrashAction = Query(TrashAction.TRASH, description="trash, untrash or delete"),
) -> MutationResponse:
    """Trash, untrash or permanently delete a node."""
    result = dispatcher.toggle_trash(node_id, action)
    return mutation_response(node_id, result, dispatcher.engine)


@router.post("/{node_id}/status", response_model=MutationResponse)
def change_status(
    node_id: int,
    payload: StatusChange,
    dispatcher: DispatcherDep,
) -> MutationResponse:
    """Move a node to an explicit target status."""
    result = dispatcher.transition(node_id, payload.target)
    return mutation_response(node_id, result, dispatcher.engine)


@router.post("/{node_id}/refresh", response_model=PropagationReportOut)
def refresh_node(node_id: int, dispatcher: DispatcherDep) -> PropagationReportOut:
    """Recompute every aggregate above a node from its stored children."""
    return dispatcher.refresh(node_id).to_schema()


@router.post("/reconcile", response_model=list[PropagationReportOut])
def reconcile(dispatcher: DispatcherDep) -> list[PropagationReportOut]:
    """Recompute the aggregates of every topic and forum."""
    return [report.to_schema() for report in dispatcher.reconcile()]

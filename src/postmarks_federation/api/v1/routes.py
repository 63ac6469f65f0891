from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from postmarks_federation.schemas import BroadcastRequest, FollowerRequest, FollowRequest
from postmarks_federation.services import FederationService, InboxNotFoundError

from .activitypub import get_federation_service

router = APIRouter(prefix="/api/federation", tags=["federation", "v1"])

SUPPORTED_ACTIONS = ("create", "update", "delete")


@router.post("/broadcast", status_code=status.HTTP_202_ACCEPTED)
async def broadcast(
    payload: BroadcastRequest,
    service: FederationService = Depends(get_federation_service),
):
    """Federates a bookmark lifecycle event to the local actor's followers.

    Deliveries continue in the background after the response is sent.

    Args:
        payload: The bookmark and the action that happened to it.
        service: The FederationService instance.

    Returns:
        The activity id (if one was produced) and the inboxes being delivered to.

    Raises:
        HTTPException: 400 for an unsupported action.
    """
    if payload.action not in SUPPORTED_ACTIONS:
        raise HTTPException(
            status_code=400, detail=f"unsupported action {payload.action!r}"
        )
    result = await service.broadcast_message(payload.bookmark, payload.action)
    return {
        "status": "queued" if result.activity else "skipped",
        "activity_id": result.activity["id"] if result.activity else None,
        "recipients": result.recipients,
    }


@router.post("/follow", status_code=status.HTTP_202_ACCEPTED)
async def follow(
    payload: FollowRequest,
    service: FederationService = Depends(get_federation_service),
):
    """Follows a remote actor by handle.

    Raises:
        HTTPException: 404 if the handle or its profile cannot be resolved, 502 if
                       the remote profile has no inbox.
    """
    try:
        outcome = await service.follow(payload.handle)
    except InboxNotFoundError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from None
    if outcome is None:
        raise HTTPException(status_code=404, detail=f"could not resolve {payload.handle}")
    return {"status": "delivered" if outcome.delivered else "failed", "inbox": outcome.inbox}


@router.post("/unfollow", status_code=status.HTTP_202_ACCEPTED)
async def unfollow(
    payload: FollowRequest,
    service: FederationService = Depends(get_federation_service),
):
    """Undoes an earlier follow of a remote actor.

    Raises:
        HTTPException: 404 if the handle cannot be resolved or was never followed,
                       502 if the remote profile has no inbox.
    """
    try:
        outcome = await service.unfollow(payload.handle)
    except InboxNotFoundError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from None
    if outcome is None:
        raise HTTPException(status_code=404, detail=f"no follow of {payload.handle} to undo")
    return {"status": "delivered" if outcome.delivered else "failed", "inbox": outcome.inbox}


@router.post("/followers")
async def add_follower(
    payload: FollowerRequest,
    service: FederationService = Depends(get_federation_service),
):
    """Records a remote actor as a follower of the local account."""
    return {"followers": service.add_follower(payload.actor)}


@router.delete("/followers")
async def remove_follower(
    actor: str,
    service: FederationService = Depends(get_federation_service),
):
    return {"followers": service.remove_follower(actor)}

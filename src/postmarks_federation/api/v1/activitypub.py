from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from postmarks_federation.db.repository import FederationRepository
from postmarks_federation.services import (
    CollectionRenderer,
    FederationService,
    synthesize_activity,
)

router = APIRouter(tags=["activitypub"])


def get_federation_service(request: Request) -> FederationService:
    """Dependency returning the FederationService, or 404 while federation is off."""
    service: FederationService = request.app.state.federation_service
    if service.disabled:
        raise HTTPException(status_code=404, detail="federation is not configured")
    return service


def get_repository(request: Request) -> FederationRepository:
    return request.app.state.repository


def get_collections(
    request: Request, service: FederationService = Depends(get_federation_service)
) -> CollectionRenderer:
    return request.app.state.collections


def _require_local(name: str, service: FederationService) -> None:
    if name != service.builder.account:
        raise HTTPException(status_code=404, detail=f"No actor record found for {name}.")


@router.get("/.well-known/webfinger")
async def webfinger(
    resource: str = Query(...),
    service: FederationService = Depends(get_federation_service),
    repository: FederationRepository = Depends(get_repository),
) -> Dict[str, Any]:
    """Serves the WebFinger document of the local actor."""
    builder = service.builder
    if resource != f"acct:{builder.account}@{builder.domain}":
        raise HTTPException(status_code=404, detail="unknown resource")
    document = repository.get_webfinger()
    if document is None:
        raise HTTPException(status_code=404, detail="unknown resource")
    return document


@router.get("/u/{name}")
async def actor(
    name: str, service: FederationService = Depends(get_federation_service)
) -> Dict[str, Any]:
    """Serves the actor document, back-filling collection URIs for old records."""
    _require_local(name, service)
    document = service.get_actor_document()
    if document is None:
        raise HTTPException(status_code=404, detail=f"No actor record found for {name}.")
    return document


@router.get("/u/{name}/followers")
async def followers(
    name: str,
    service: FederationService = Depends(get_federation_service),
    collections: CollectionRenderer = Depends(get_collections),
) -> Dict[str, Any]:
    _require_local(name, service)
    return collections.followers()


@router.get("/u/{name}/following")
async def following(
    name: str,
    service: FederationService = Depends(get_federation_service),
    collections: CollectionRenderer = Depends(get_collections),
) -> Dict[str, Any]:
    _require_local(name, service)
    return collections.following()


@router.get("/u/{name}/outbox")
async def outbox(
    name: str,
    page: int = Query(default=1),
    service: FederationService = Depends(get_federation_service),
    collections: CollectionRenderer = Depends(get_collections),
) -> Dict[str, Any]:
    _require_local(name, service)
    if page < 1:
        raise HTTPException(status_code=400, detail="page must be >= 1")
    return collections.outbox(page)


@router.get("/m/{guid}")
async def message(
    guid: str,
    service: FederationService = Depends(get_federation_service),
    repository: FederationRepository = Depends(get_repository),
) -> Dict[str, Any]:
    """Serves a published object; ``a-{guid}`` serves its synthesized Create."""
    synthesized = guid.startswith("a-")
    stored = repository.get_message(guid[2:] if synthesized else guid)
    if stored is None:
        raise HTTPException(status_code=404, detail="message not found")
    if synthesized:
        if stored.get("type") != "Note":
            raise HTTPException(status_code=404, detail="message not found")
        return synthesize_activity(stored)
    return stored

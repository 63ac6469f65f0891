from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import FastAPI
from prometheus_client import Counter, start_http_server

from postmarks_federation.api import api_router
from postmarks_federation.core import FederationSettings
from postmarks_federation.db import DatabaseSessionManager
from postmarks_federation.db.repository import FederationRepository
from postmarks_federation.services import (
    ActivityBuilder,
    ActivityDeliverer,
    CollectionRenderer,
    FederationService,
    RemoteActorResolver,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _load_settings() -> FederationSettings:
    """Loads federation settings, caching the result."""
    return FederationSettings()


def create_app(settings: Optional[FederationSettings] = None) -> FastAPI:
    """Creates and configures the FastAPI application.

    The store is opened and the local account bootstrapped before the application
    is returned, so no request can observe a half-initialized store.

    Args:
        settings: Optional FederationSettings instance. If None, settings are loaded.

    Returns:
        A configured FastAPI application instance.

    Raises:
        StartupError: If the database cannot be opened.
    """
    settings = settings or _load_settings()

    db_manager = DatabaseSessionManager.open(settings.database_url)
    repository = FederationRepository(db_manager)

    deliveries_total = None
    if settings.prometheus_port > 0:
        deliveries_total = Counter(
            "postmarks_deliveries_total",
            "Total number of outbound ActivityPub deliveries",
            ["status"],
        )
        start_http_server(settings.prometheus_port)

    builder = ActivityBuilder(
        domain=settings.domain or "",
        account=settings.account or "",
        repository=repository,
    )
    deliverer = ActivityDeliverer(
        domain=builder.domain,
        account=builder.account,
        repository=repository,
        timeout=settings.delivery_timeout_seconds,
        deliveries_total=deliveries_total,
    )
    resolver = RemoteActorResolver(timeout=settings.delivery_timeout_seconds)
    service = FederationService(
        settings=settings,
        repository=repository,
        builder=builder,
        deliverer=deliverer,
        resolver=resolver,
    )
    service.bootstrap_account()
    if service.disabled:
        logger.warning("Federation is disabled; ActivityPub routes will answer 404.")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await service.aclose()
        db_manager.dispose()

    app = FastAPI(title="Postmarks Federation", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db_manager = db_manager
    app.state.repository = repository
    app.state.federation_service = service
    app.state.collections = CollectionRenderer(builder=builder, repository=repository)

    app.include_router(api_router)

    return app


__all__ = ["create_app"]

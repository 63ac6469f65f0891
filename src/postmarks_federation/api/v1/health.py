from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from postmarks_federation.db import DatabaseSessionManager

router = APIRouter(prefix="/health", tags=["health"])


def get_db_manager(request: Request) -> DatabaseSessionManager:
    """Dependency to get the database manager from the FastAPI app state."""
    return request.app.state.db_manager


@router.get("/live")
async def liveness_check():
    """Liveness probe - indicates if the service is running."""
    return {"status": "alive", "service": "postmarks-federation"}


@router.get("/ready")
async def readiness_check(
    request: Request,
    db_manager: DatabaseSessionManager = Depends(get_db_manager),
):
    """Readiness probe - indicates if the service is ready to accept requests."""
    try:
        with db_manager.session() as session:
            session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Database check failed: {str(e)}",
        )

    return {
        "status": "ready",
        "service": "postmarks-federation",
        "checks": {
            "database": True,
            "federation": not request.app.state.federation_service.disabled,
        },
    }

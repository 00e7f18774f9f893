"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from inkpress.config import get_settings
from inkpress.core.database.store import USERS
from inkpress.core.errors import InkpressError


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready", response_model=None)
async def readiness(request: Request) -> dict[str, str | bool] | ORJSONResponse:
    """Readiness probe - the document store must answer a lookup."""
    settings = get_settings()
    store = getattr(request.app.state, "store", None)
    if store is None:
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "store": False},
        )
    try:
        await store.find_by_key(USERS, "__readiness__")
    except InkpressError:
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "store": False},
        )
    return {
        "status": "ready",
        "store": True,
        "environment": settings.environment,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }

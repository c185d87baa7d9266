"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - storage backend and services are initialized."""
    state = request.app.state
    settings = state.settings
    ready = getattr(state, "progress_service", None) is not None
    return ORJSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "environment": settings.environment,
            "storage_backend": settings.storage_backend,
        },
    )


@router.get("")
async def health(request: Request) -> dict[str, str]:
    """General health check endpoint."""
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }

"""Health check endpoint."""

from fastapi import APIRouter

from ...api.dependencies import StoreDep
from ...config import settings


router = APIRouter(prefix="/api/v1", tags=["Health"])


@router.get("/health")
async def health_check(store: StoreDep) -> dict:
    """
    Health check endpoint.

    Returns:
        Health status and store statistics
    """
    return {
        "status": "healthy",
        "service": "B2B Admin Console",
        "version": "0.1.0",
        "sync_remote": settings.sync_remote,
        "store": store.get_stats(),
    }

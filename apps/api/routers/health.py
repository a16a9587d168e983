"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from config import settings
from routers.deps import get_store
from store import KeyValueStore

router = APIRouter()


async def _store_status(store: KeyValueStore) -> str:
    try:
        await store.ping()
        return "up"
    except Exception as e:
        return f"down: {str(e)}"


@router.get("/health")
async def health_check(store: KeyValueStore = Depends(get_store)):
    """
    Health check endpoint.
    Returns overall system health status.
    """
    store_status = await _store_status(store)
    return {
        "status": "healthy" if store_status == "up" else "degraded",
        "api": "up",
        "store": store_status,
        "store_backend": settings.STORE_BACKEND,
        "heygen_api_key": "configured" if settings.HEYGEN_API_KEY else "missing",
    }


@router.get("/health/ready")
async def readiness_check(store: KeyValueStore = Depends(get_store)):
    """Kubernetes-style readiness probe."""
    store_status = await _store_status(store)
    if store_status != "up":
        return JSONResponse(
            status_code=503,
            content={"ready": False, "store": store_status},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}

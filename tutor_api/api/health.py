"""
Health check and root endpoint routes.
"""

from fastapi import APIRouter, Depends

from tutor_api.config import settings
from tutor_api.dependencies import get_kv_store, get_usage_store
from tutor_api.models import HealthResponse, RootResponse
from tutor_api.routing.strategies import best_effort
from tutor_api.storage.base import KeyValueStore, UsageStore

VERSION = "1.0.0"

router = APIRouter(
    tags=["health"],
)


@router.get(
    "/",
    response_model=RootResponse,
    summary="Service information",
    description="Returns basic service information and API documentation links",
)
async def root() -> RootResponse:
    """Root endpoint with service information."""
    return RootResponse(
        message="Welcome to the Tutor Chat Gateway",
        version=VERSION,
        docs={"swagger": "/docs", "redoc": "/redoc"},
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="""
    Check the service and its storage collaborators.

    Returns 'healthy' when both the key-value store and the usage tables
    answer a ping, 'degraded' otherwise.
    """,
)
async def health(
    kv_store: KeyValueStore = Depends(get_kv_store),
    usage_store: UsageStore = Depends(get_usage_store),
) -> HealthResponse:
    kv_ok = await best_effort(kv_store.ping(), "storage_ping_failed", store="kv")
    usage_ok = await best_effort(usage_store.ping(), "storage_ping_failed", store="usage")
    storage_ok = bool(kv_ok and usage_ok)

    return HealthResponse(
        status="healthy" if storage_ok else "degraded",
        storage_backend=settings.storage_backend,
        storage_ok=storage_ok,
        cheap_provider=settings.cheap_provider,
        premium_provider=settings.premium_provider,
        version=VERSION,
    )

"""
Health check API routes.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Request

from ...config import settings
from ...models import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        System health status
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow(),
        version=settings.app_version,
        services={}
    )


@router.get("/ready", response_model=HealthResponse)
async def readiness_check(request: Request):
    """
    Readiness check for the store and the event router.

    Returns:
        Detailed service health status
    """
    services = {}
    overall_status = "healthy"
    state = request.app.state

    store = getattr(state, "store", None)
    if store is None:
        services["store"] = "not_initialized"
        overall_status = "unhealthy"
    else:
        try:
            health = await store.health_check()
            services["store"] = "healthy" if health.get("healthy") else "unhealthy"
            if not health.get("healthy"):
                overall_status = "degraded"
        except Exception as e:
            logger.error(f"Store health check failed: {e}")
            services["store"] = "unhealthy"
            overall_status = "degraded"

    event_router = getattr(state, "event_router", None)
    if event_router is None:
        services["router"] = "not_initialized"
        overall_status = "unhealthy"
    else:
        services["router"] = "healthy"
        services["pending_escalations"] = str(event_router.timers.active_count)
        for client in (event_router.chat, event_router.ai, event_router.media):
            breaker = getattr(client, "breaker", None)
            if breaker is not None:
                services[client.name] = str(breaker.current_state.name).lower()

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.utcnow(),
        version=settings.app_version,
        services=services
    )


@router.get("/live")
async def liveness_check():
    """
    Simple liveness check.

    Returns:
        Basic alive status
    """
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}

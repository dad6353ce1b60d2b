"""
Request-scoped access to the components wired up in the lifespan.
"""
from fastapi import HTTPException, Request

from ..router import EventRouter


def get_event_router(request: Request) -> EventRouter:
    """Get the event router from app state."""
    event_router = getattr(request.app.state, "event_router", None)
    if event_router is None:
        raise HTTPException(status_code=503, detail="Event router not initialized")
    return event_router

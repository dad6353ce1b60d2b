"""
FastAPI application entry point.

Wires the key-value store, registries, escalation timers and collaborator
clients together in the lifespan and exposes the AI Studio and Slack
webhooks.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .config.platform_settings import PlatformSettings, platform_settings
from .api.routes import live_agent, slack, health
from .collaborators import AIStudioClient, HttpMediaHost, SlackClient
from .collaborators.base import AIPlatform, ChatPlatform, MediaHost
from .escalation import EscalationTimerManager
from .registry import AssignmentDirectory, ContactDirectory, SessionRegistry
from .router import EventRouter
from .store import KeyValueStore, create_kv_store
from .utils.telemetry import setup_telemetry, metrics_collector, update_active_sessions
from .utils.middleware import (
    RequestIDMiddleware,
    TimingMiddleware,
    ErrorHandlingMiddleware
)

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO) if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def build_event_router(
    store: KeyValueStore,
    chat: ChatPlatform,
    ai: AIPlatform,
    media: MediaHost,
    app_settings: Optional[Settings] = None,
    platforms: Optional[PlatformSettings] = None
) -> EventRouter:
    """
    Assemble registries, timers and the router over one store.

    Args:
        store: Shared key-value store
        chat: Slack (or a stand-in)
        ai: AI Studio (or a stand-in)
        media: Media host (or a stand-in)
        app_settings: Defaults to the module settings
        platforms: Defaults to the module platform settings

    Returns:
        A ready EventRouter
    """
    app_settings = app_settings or settings
    platforms = platforms or platform_settings

    sessions = SessionRegistry(store)
    timers = EscalationTimerManager(
        sessions,
        ai,
        chat,
        first_delay=app_settings.escalation_first_delay_seconds,
        second_delay=app_settings.escalation_second_delay_seconds
    )

    return EventRouter(
        store,
        sessions,
        ContactDirectory(store),
        AssignmentDirectory(store),
        timers,
        chat,
        ai,
        media,
        support_channel_id=platforms.slack_channel_id,
        broadcast_channel_id=platforms.slack_broadcast_channel_id,
        start_claim_ttl=app_settings.start_claim_ttl_seconds,
        broadcast_draft_ttl=app_settings.broadcast_draft_ttl_seconds,
        close_reaction=app_settings.close_reaction
    )


async def periodic_health_task(app: FastAPI, shutdown_event: asyncio.Event) -> None:
    """
    Background task: store health and the active-session gauge.
    """
    logger.info("Starting periodic health task")

    interval = settings.health_check_interval_seconds

    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
            break
        except asyncio.TimeoutError:
            pass

        try:
            store = app.state.store
            if not await store.ping():
                logger.warning("Key-value store health check failed")
                continue

            update_active_sessions(await app.state.event_router.sessions.count())
            logger.debug(f"Store stats: {await store.get_stats()}")

        except Exception as e:
            logger.error(f"Error in periodic health task: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle events.
    Initialize resources on startup, cleanup on shutdown.
    """
    # === STARTUP ===
    health_task = None
    shutdown_event = asyncio.Event()

    try:
        logger.info("=" * 60)
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Debug mode: {settings.debug}")
        logger.info("=" * 60)

        for warning in platform_settings.validate_platforms():
            logger.warning(f"✗ {warning}")

        # Key-value store
        store_options = settings.redis_options() if settings.kv_store_type == "redis" else {}
        store = create_kv_store(settings.kv_store_type, **store_options)
        app.state.store = store

        health = await store.health_check()
        if health.get("healthy"):
            logger.info(f"✓ Key-value store: {type(store).__name__}")
        else:
            raise RuntimeError(f"Key-value store unavailable: {health}")

        # Collaborators
        chat = SlackClient(platform_settings)
        ai = AIStudioClient(platform_settings)
        media = HttpMediaHost(platform_settings)
        for client in (chat, ai, media):
            await client.initialize()
        app.state.clients = (chat, ai, media)

        app.state.event_router = build_event_router(store, chat, ai, media)
        logger.info("✓ Event router initialized")

        live = await app.state.event_router.sessions.count()
        update_active_sessions(live)
        if live:
            # Timers are process-local; sessions from a previous run get none
            logger.warning(f"{live} live sessions found without escalation timers")

        health_task = asyncio.create_task(periodic_health_task(app, shutdown_event))

        logger.info("=" * 60)
        logger.info("✓ Application started successfully")
        logger.info(f"Health check: http://{settings.api_host}:{settings.api_port}/health")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"Failed to start application: {e}", exc_info=True)
        raise

    yield  # === APPLICATION RUNS HERE ===

    # === SHUTDOWN ===
    logger.info("=" * 60)
    logger.info("Shutting down application...")
    logger.info("=" * 60)

    shutdown_event.set()

    if health_task and not health_task.done():
        try:
            await asyncio.wait_for(health_task, timeout=5.0)
            logger.info("✓ Health task completed")
        except asyncio.TimeoutError:
            health_task.cancel()
            try:
                await health_task
            except asyncio.CancelledError:
                logger.info("✓ Health task cancelled")

    try:
        await app.state.event_router.timers.cancel_all()
    except Exception as e:
        logger.error(f"Error cancelling escalation timers: {e}")

    for client in getattr(app.state, "clients", ()):
        try:
            await client.cleanup()
        except Exception as e:
            logger.error(f"Error closing {client.name} client: {e}")

    try:
        await app.state.store.close()
        logger.info("✓ Key-value store closed")
    except Exception as e:
        logger.error(f"Error closing key-value store: {e}")

    logger.info("=" * 60)
    logger.info("✓ Application shutdown complete")
    logger.info("=" * 60)


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Relays WhatsApp conversations from Vonage AI Studio to Slack threads",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url=None
)

# Middleware (order matters - executed in reverse)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(TimingMiddleware)
app.add_middleware(RequestIDMiddleware)

if settings.enable_telemetry:
    setup_telemetry(app)

# Routes
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(live_agent.router, tags=["ai-studio"])
app.include_router(slack.router, prefix="/slack", tags=["slack"])


@app.get("/")
async def root():
    """Service information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "endpoints": {
            "start": "POST /start",
            "inbound": "POST /inbound",
            "slack_events": "POST /slack/events",
            "slack_interactions": "POST /slack/interactions",
            "slack_commands": "POST /slack/commands",
            "health": "GET /health",
        },
        "stats": metrics_collector.get_stats()
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(f"Unhandled exception [{request_id}]: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": str(exc) if settings.debug else "An unexpected error occurred",
            "request_id": request_id
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "handoff.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )

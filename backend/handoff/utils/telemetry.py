"""
Telemetry and monitoring utilities.
"""
import logging
import time

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import FastAPI, Response

logger = logging.getLogger(__name__)

# Metrics definitions
request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

active_sessions = Gauge(
    'handoff_active_sessions',
    'Live handoff sessions with an open Slack thread'
)

sessions_started = Counter(
    'handoff_sessions_started_total',
    'Handoff sessions opened from AI Studio'
)

sessions_closed = Counter(
    'handoff_sessions_closed_total',
    'Handoff sessions closed',
    ['trigger']
)

messages_relayed = Counter(
    'handoff_messages_relayed_total',
    'Messages relayed between WhatsApp and Slack',
    ['direction', 'kind']
)

escalation_reminders = Counter(
    'handoff_escalation_reminders_total',
    'Escalation timer firings',
    ['stage']
)

broadcast_deliveries = Counter(
    'handoff_broadcast_deliveries_total',
    'Per-contact broadcast delivery outcomes',
    ['outcome']
)

collaborator_errors = Counter(
    'handoff_collaborator_errors_total',
    'Failed calls to external collaborators',
    ['collaborator', 'operation']
)


def setup_telemetry(app: FastAPI) -> None:
    """
    Setup telemetry and monitoring for the application.

    Args:
        app: FastAPI application instance
    """
    logger.info("Setting up telemetry...")

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.middleware("http")
    async def track_requests(request, call_next):
        """Track HTTP request metrics."""
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time

        request_count.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code
        ).inc()

        request_duration.labels(
            method=request.method,
            endpoint=request.url.path
        ).observe(duration)

        return response

    logger.info("Telemetry setup complete")


def track_session_started(live: int) -> None:
    sessions_started.inc()
    active_sessions.set(live)


def track_session_closed(trigger: str, live: int) -> None:
    """Track a close; trigger is button, reaction or command.

    The gauge is set from the registry count so it survives restarts.
    """
    sessions_closed.labels(trigger=trigger).inc()
    active_sessions.set(live)


def track_message_relayed(direction: str, kind: str = "text") -> None:
    """Track a relayed message (direction: inbound or outbound)."""
    messages_relayed.labels(direction=direction, kind=kind).inc()


def track_escalation_reminder(stage: str) -> None:
    escalation_reminders.labels(stage=stage).inc()


def track_broadcast_delivery(success: bool) -> None:
    broadcast_deliveries.labels(outcome="sent" if success else "failed").inc()


def track_collaborator_error(collaborator: str, operation: str) -> None:
    """Track a failed collaborator call."""
    collaborator_errors.labels(
        collaborator=collaborator,
        operation=operation
    ).inc()


def update_active_sessions(count: int) -> None:
    """Update active sessions gauge."""
    active_sessions.set(count)


class MetricsCollector:
    """Collects and manages application metrics."""

    def __init__(self):
        self.start_time = time.time()
        self.message_count = 0
        self.error_count = 0

    def record_message(self, direction: str, kind: str = "text"):
        """Record a relayed message."""
        self.message_count += 1
        track_message_relayed(direction, kind)

    def record_error(self):
        """Record an error."""
        self.error_count += 1

    def get_stats(self) -> dict:
        """Get current statistics."""
        uptime = time.time() - self.start_time

        return {
            "uptime_seconds": uptime,
            "messages_relayed": self.message_count,
            "errors": self.error_count,
            "messages_per_minute": (self.message_count / uptime) * 60 if uptime > 0 else 0
        }


# Global metrics collector
metrics_collector = MetricsCollector()

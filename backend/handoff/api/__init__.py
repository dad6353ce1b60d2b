"""
HTTP API for the handoff relay.
"""
from .routes import live_agent, slack, health

__all__ = ["live_agent", "slack", "health"]

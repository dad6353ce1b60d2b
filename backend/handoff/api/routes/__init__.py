"""
API routes module initialization.
"""
from . import live_agent, slack, health

__all__ = ["live_agent", "slack", "health"]

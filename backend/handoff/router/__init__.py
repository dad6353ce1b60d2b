"""
Inbound event routing.
"""
from .commands import AdminCommands
from .event_router import EventRouter, routed

__all__ = ['EventRouter', 'AdminCommands', 'routed']

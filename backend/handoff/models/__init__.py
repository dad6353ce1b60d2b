"""
Data models.
"""
from .session import Session
from .contact import Contact, canonical_phone
from .schemas import (
    MessageType,
    ResultStatus,
    StartRequest,
    InboundRequest,
    SlashCommand,
    RouterResult,
    HealthResponse,
)

__all__ = [
    "Session",
    "Contact",
    "canonical_phone",
    "MessageType",
    "ResultStatus",
    "StartRequest",
    "InboundRequest",
    "SlashCommand",
    "RouterResult",
    "HealthResponse",
]

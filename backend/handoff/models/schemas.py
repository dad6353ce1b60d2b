"""
Pydantic schemas for webhook requests and responses.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MessageType(str, Enum):
    """Message kinds AI Studio relays during a live-agent session."""
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"


class ResultStatus(str, Enum):
    """Outcome reported back to the webhook caller."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    IGNORED = "ignored"


# Request Schemas

def _clean_session_id(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("sessionId cannot be blank")
    return v


class TranscriptionHistory(BaseModel):
    """Conversation so far, as a list of {"BOT"|"USER": text} entries."""
    model_config = ConfigDict(extra="allow")

    transcription: List[Dict[str, Any]] = Field(default_factory=list)


class StartRequest(BaseModel):
    """Live-agent routing started for a WhatsApp conversation."""
    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
        json_schema_extra={
            "example": {
                "sessionId": "abc-123",
                "sender": "15551234567",
                "profileName": "Maria",
                "category": "academy",
                "subcategory": "registration",
                "history": {"transcription": [{"USER": "Hi"}, {"BOT": "Hello!"}]}
            }
        }
    )

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=255)
    sender: Optional[str] = Field(None, description="Customer phone number")
    profile_name: Optional[str] = Field(None, alias="profileName", max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    subcategory: Optional[str] = Field(None, max_length=100)
    history: Optional[TranscriptionHistory] = None

    @field_validator('session_id')
    @classmethod
    def validate_session_id(cls, v: str) -> str:
        return _clean_session_id(v)


class InboundRequest(BaseModel):
    """Customer message during a live-agent session."""
    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
        json_schema_extra={
            "example": {"sessionId": "abc-123", "type": "text", "text": "Hello"}
        }
    )

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=255)
    message_type: MessageType = Field(MessageType.TEXT, alias="type")
    text: Optional[str] = None
    url: Optional[str] = None
    caption: Optional[str] = None

    @field_validator('session_id')
    @classmethod
    def validate_session_id(cls, v: str) -> str:
        return _clean_session_id(v)


class SlashCommand(BaseModel):
    """Slack slash command invocation (form fields)."""
    model_config = ConfigDict(extra="ignore")

    command: str
    text: str = ""
    user_id: str
    channel_id: Optional[str] = None
    trigger_id: Optional[str] = None
    response_url: Optional[str] = None


# Response Schemas

class RouterResult(BaseModel):
    """Outcome of one routed event."""
    status: ResultStatus
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, message: str = "", **data) -> "RouterResult":
        return cls(status=ResultStatus.SUCCESS, message=message, data=data)

    @classmethod
    def warning(cls, message: str, **data) -> "RouterResult":
        return cls(status=ResultStatus.WARNING, message=message, data=data)

    @classmethod
    def error(cls, message: str, **data) -> "RouterResult":
        return cls(status=ResultStatus.ERROR, message=message, data=data)

    @classmethod
    def ignored(cls, message: str = "") -> "RouterResult":
        return cls(status=ResultStatus.IGNORED, message=message)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    version: str
    services: Dict[str, str] = Field(default_factory=dict)


__all__ = [
    'MessageType',
    'ResultStatus',
    'TranscriptionHistory',
    'StartRequest',
    'InboundRequest',
    'SlashCommand',
    'RouterResult',
    'HealthResponse',
]

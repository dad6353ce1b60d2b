"""
Session record: one escalated WhatsApp conversation and its Slack thread.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Session(BaseModel):
    """
    Immutable session record stored under ``session:{session_id}``.

    The reverse pointer ``thread:{thread_id}`` is owned by SessionRegistry.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="AI Studio session identifier"
    )

    thread_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Slack ts of the thread's parent message"
    )

    channel_id: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Slack channel hosting the thread"
    )

    customer_display_name: str = Field(
        ...,
        max_length=255,
        description="Saved contact name, profile name or phone"
    )

    customer_phone: Optional[str] = Field(None, max_length=32)
    category: Optional[str] = Field(None, max_length=100)
    subcategory: Optional[str] = Field(None, max_length=100)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('session_id', 'thread_id', 'channel_id')
    @classmethod
    def validate_identifiers(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Identifier cannot be blank")
        return v

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "Session":
        return cls.model_validate_json(raw)


__all__ = ['Session']

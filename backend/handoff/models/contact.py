"""
Contact record: a remembered WhatsApp identity, independent of sessions.
"""
import re
from datetime import datetime
from typing import List, Set

from pydantic import BaseModel, Field, field_serializer, field_validator

_NON_DIGITS = re.compile(r"\D+")


def canonical_phone(phone: str) -> str:
    """
    Strip everything but digits, so '+1 (555) 123-4567' and '15551234567'
    name the same contact.

    Raises:
        ValueError: If no digits remain
    """
    digits = _NON_DIGITS.sub("", phone or "")
    if not digits:
        raise ValueError(f"Not a phone number: {phone!r}")
    return digits


class Contact(BaseModel):
    """Saved contact stored under ``contact:{phone}``."""

    phone: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=255)
    roles: Set[str] = Field(default_factory=set)
    saved_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return canonical_phone(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Contact name cannot be blank")
        return v

    @field_serializer('roles')
    def serialize_roles(self, roles: Set[str]) -> List[str]:
        return sorted(roles)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "Contact":
        return cls.model_validate_json(raw)


__all__ = ['Contact', 'canonical_phone']

"""
Error taxonomy for the handoff relay.

Components raise these; the event router is the only place that turns them
into webhook responses or thread notices.
"""
from typing import Optional


class HandoffError(Exception):
    """Base class for all relay errors."""
    pass


class NotFoundError(HandoffError):
    """A lookup missed. Always recoverable."""
    pass


class SessionNotFoundError(NotFoundError):
    """No session for the given session id or thread id."""

    def __init__(self, session_id: Optional[str] = None, thread_id: Optional[str] = None):
        self.session_id = session_id
        self.thread_id = thread_id
        if thread_id is not None:
            super().__init__(f"No session linked to thread {thread_id}")
        else:
            super().__init__(f"Session not found: {session_id}")


class ContactNotFoundError(NotFoundError):
    """No saved contact for the given phone."""

    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"Contact not found: {phone}")


class DuplicateSessionError(HandoffError):
    """A session with this id already exists and the caller asked to reject."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session already exists: {session_id}")


class AlreadyScheduledError(HandoffError):
    """Escalation timers are already pending for the session."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Escalation timers already scheduled for session {session_id}")


class CollaboratorError(HandoffError):
    """A call to Slack, AI Studio or the media host failed."""

    def __init__(self, collaborator: str, operation: str, detail: str):
        self.collaborator = collaborator
        self.operation = operation
        self.detail = detail
        super().__init__(f"{collaborator}.{operation} failed: {detail}")


class UnsupportedMediaKindError(HandoffError):
    """The attachment type cannot be forwarded to WhatsApp."""

    def __init__(self, content_type: str, filename: Optional[str] = None):
        self.content_type = content_type
        self.filename = filename
        label = f"{filename} ({content_type})" if filename else content_type
        super().__init__(f"Unsupported media type: {label}")


class StoreError(HandoffError):
    """The key-value store failed after retries."""
    pass


class CommandError(HandoffError):
    """Malformed administrative command."""
    pass


__all__ = [
    'HandoffError',
    'NotFoundError',
    'SessionNotFoundError',
    'ContactNotFoundError',
    'DuplicateSessionError',
    'AlreadyScheduledError',
    'CollaboratorError',
    'UnsupportedMediaKindError',
    'StoreError',
    'CommandError',
]

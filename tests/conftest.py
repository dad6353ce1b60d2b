"""
Pytest configuration and shared fixtures for testing.
Provides the in-memory store, registries, recording collaborator fakes and
a fully wired event router.
"""
import os
from typing import Any, Dict, List, Optional

import pytest

# Set testing environment before importing the app
os.environ["ENVIRONMENT"] = "testing"
os.environ["DEBUG"] = "false"
os.environ["ENABLE_TELEMETRY"] = "false"
os.environ["KV_STORE_TYPE"] = "in_memory"
os.environ["SLACK_CHANNEL_ID"] = "C_SUPPORT"
os.environ["SLACK_BROADCAST_CHANNEL_ID"] = "C_BROADCAST"

from handoff.collaborators.base import AIPlatform, ChatPlatform, ChatUser, MediaHost
from handoff.errors import CollaboratorError
from handoff.escalation import EscalationTimerManager
from handoff.models import StartRequest
from handoff.registry import AssignmentDirectory, ContactDirectory, SessionRegistry
from handoff.router import EventRouter
from handoff.store import InMemoryKeyValueStore

SUPPORT_CHANNEL = "C_SUPPORT"
BROADCAST_CHANNEL = "C_BROADCAST"


# ===========================
# Collaborator Fakes
# ===========================

class FakeChatPlatform(ChatPlatform):
    """Records every Slack call; ts values are generated in order."""

    def __init__(self):
        self.posts: List[Dict[str, Any]] = []
        self.updates: List[Dict[str, Any]] = []
        self.modals: List[Dict[str, Any]] = []
        self.homes: List[Dict[str, Any]] = []
        self.users: List[ChatUser] = []
        self.files: Dict[str, bytes] = {}
        self.fail_posts = False
        self.list_users_calls = 0
        self._counter = 0

    async def post_message(self, text, thread_id=None, blocks=None, channel_id=None) -> str:
        if self.fail_posts:
            raise CollaboratorError("slack", "chat.postMessage", "channel_not_found")
        self._counter += 1
        ts = f"1700000000.{self._counter:06d}"
        self.posts.append({
            "text": text,
            "thread_id": thread_id,
            "blocks": blocks,
            "channel_id": channel_id,
            "ts": ts,
        })
        return ts

    async def update_message(self, channel_id, message_id, text, blocks=None) -> None:
        self.updates.append({
            "channel_id": channel_id,
            "message_id": message_id,
            "text": text,
            "blocks": blocks,
        })

    async def open_modal(self, trigger_id, view) -> None:
        self.modals.append({"trigger_id": trigger_id, "view": view})

    async def publish_home(self, user_id, view) -> None:
        self.homes.append({"user_id": user_id, "view": view})

    async def list_users(self) -> List[ChatUser]:
        self.list_users_calls += 1
        return list(self.users)

    async def download_file(self, url) -> bytes:
        if url not in self.files:
            raise CollaboratorError("slack", "files.download", "HTTP 404")
        return self.files[url]

    def top_level_posts(self) -> List[Dict[str, Any]]:
        return [p for p in self.posts if p["thread_id"] is None]

    def thread_texts(self, thread_id: str) -> List[str]:
        return [p["text"] for p in self.posts if p["thread_id"] == thread_id]


class FakeAIPlatform(AIPlatform):
    """Records AI Studio calls; failures are switched on per test."""

    def __init__(self):
        self.outbound: List[tuple] = []
        self.disconnects: List[str] = []
        self.contact_messages: List[tuple] = []
        self.fail_outbound = False
        self.fail_disconnect = False
        self.failing_phones: set = set()

    async def send_outbound(self, session_id, message_type, payload) -> Dict[str, Any]:
        if self.fail_outbound:
            raise CollaboratorError("ai_studio", "send_outbound", "HTTP 503")
        self.outbound.append((session_id, message_type, payload))
        return {"status": 200}

    async def disconnect(self, session_id) -> Dict[str, Any]:
        if self.fail_disconnect:
            raise CollaboratorError("ai_studio", "disconnect", "HTTP 503")
        self.disconnects.append(session_id)
        return {"status": 200}

    async def send_to_contact(self, phone, text) -> Dict[str, Any]:
        if phone in self.failing_phones:
            raise CollaboratorError("ai_studio", "send_to_contact", "invalid number")
        self.contact_messages.append((phone, text))
        return {"status": 200}


class FakeMediaHost(MediaHost):
    def __init__(self):
        self.uploads: List[Dict[str, Any]] = []

    async def upload(self, data, media_kind, filename, content_type) -> str:
        self.uploads.append({
            "data": data,
            "media_kind": media_kind,
            "filename": filename,
            "content_type": content_type,
        })
        return f"https://media.example.com/{filename}"


# ===========================
# Store & Registry Fixtures
# ===========================

@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def sessions(store) -> SessionRegistry:
    return SessionRegistry(store)


@pytest.fixture
def contacts(store) -> ContactDirectory:
    return ContactDirectory(store)


@pytest.fixture
def assignments(store) -> AssignmentDirectory:
    return AssignmentDirectory(store)


# ===========================
# Collaborator Fixtures
# ===========================

@pytest.fixture
def chat() -> FakeChatPlatform:
    return FakeChatPlatform()


@pytest.fixture
def ai() -> FakeAIPlatform:
    return FakeAIPlatform()


@pytest.fixture
def media() -> FakeMediaHost:
    return FakeMediaHost()


# ===========================
# Timers & Router
# ===========================

@pytest.fixture
async def timers(sessions, ai, chat):
    """Timer manager with delays long enough never to fire during a test."""
    manager = EscalationTimerManager(sessions, ai, chat, first_delay=60, second_delay=120)
    yield manager
    await manager.cancel_all()


@pytest.fixture
async def fast_timers(sessions, ai, chat):
    """Timer manager whose reminders fire within a test."""
    manager = EscalationTimerManager(sessions, ai, chat, first_delay=0.02, second_delay=0.2)
    yield manager
    await manager.cancel_all()


@pytest.fixture
def event_router(store, sessions, contacts, assignments, timers, chat, ai, media) -> EventRouter:
    return EventRouter(
        store,
        sessions,
        contacts,
        assignments,
        timers,
        chat,
        ai,
        media,
        support_channel_id=SUPPORT_CHANNEL,
        broadcast_channel_id=BROADCAST_CHANNEL
    )


def _start_payload(
    session_id: str = "abc-123",
    sender: Optional[str] = "15551234567",
    **extra
) -> Dict[str, Any]:
    """AI Studio /start body."""
    payload = {
        "sessionId": session_id,
        "sender": sender,
        "history": {"transcription": [{"USER": "I need help"}, {"BOT": "Connecting you"}]},
    }
    payload.update(extra)
    return payload


@pytest.fixture
def start_payload():
    """Factory for AI Studio /start bodies."""
    return _start_payload


@pytest.fixture
def make_start():
    """Factory for validated StartRequest objects."""
    def _make(**kwargs) -> StartRequest:
        return StartRequest.model_validate(_start_payload(**kwargs))
    return _make

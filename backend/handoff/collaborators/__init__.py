"""
External collaborators: Slack, AI Studio and the media host.
"""
from .base import ChatUser, ChatPlatform, AIPlatform, MediaHost, HttpCollaborator
from .slack_client import SlackClient
from .ai_studio_client import AIStudioClient
from .media_host import HttpMediaHost, media_kind_for

__all__ = [
    'ChatUser',
    'ChatPlatform',
    'AIPlatform',
    'MediaHost',
    'HttpCollaborator',
    'SlackClient',
    'AIStudioClient',
    'HttpMediaHost',
    'media_kind_for',
]

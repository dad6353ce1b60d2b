"""
Vonage AI Studio client: the WhatsApp side of the relay.
"""
import logging
from typing import Any, Dict, Optional

from ..config.platform_settings import PlatformSettings
from ..errors import CollaboratorError
from .base import AIPlatform, HttpCollaborator

logger = logging.getLogger(__name__)


class AIStudioClient(HttpCollaborator, AIPlatform):
    """
    AIPlatform backed by the AI Studio live-agent and messaging APIs.

    Endpoints:
        POST /live-agent/outbound/{session_id}
        POST /live-agent/disconnect/{session_id}
        POST /messaging/conversation
    """

    name = "ai_studio"

    def __init__(self, platform_settings: PlatformSettings):
        super().__init__(
            timeout=platform_settings.http_timeout_seconds,
            fail_max=platform_settings.circuit_breaker_fail_max,
            reset_timeout=platform_settings.circuit_breaker_timeout_seconds
        )
        self.base_url = platform_settings.ai_studio_base_url
        self.agent_id = platform_settings.ai_studio_agent_id
        self._api_key = platform_settings.get_ai_studio_key()

        if not self._api_key:
            logger.warning("AI Studio key not configured, outbound calls will fail")

    async def _post(
        self,
        path: str,
        payload: Dict[str, Any],
        operation: str
    ) -> Dict[str, Any]:

        async def execute() -> Dict[str, Any]:
            session = self._require_session()
            async with session.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"X-Vgai-Key": self._api_key or ""}
            ) as response:
                if response.status == 401:
                    raise CollaboratorError(self.name, operation, "invalid AI Studio key")
                if response.status == 404:
                    raise CollaboratorError(self.name, operation, "session not found on AI Studio")
                if response.status >= 400:
                    raise CollaboratorError(self.name, operation, f"HTTP {response.status}")

                if response.content_type == "application/json":
                    return await response.json()
                return {"status": response.status}

        return await self._call(operation, execute)

    async def send_outbound(
        self,
        session_id: str,
        message_type: str,
        payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        body = {"message_type": message_type, **payload}
        result = await self._post(f"/live-agent/outbound/{session_id}", body, "send_outbound")
        logger.debug(f"Sent {message_type} to session {session_id}")
        return result

    async def disconnect(self, session_id: str) -> Dict[str, Any]:
        result = await self._post(f"/live-agent/disconnect/{session_id}", {}, "disconnect")
        logger.debug(f"Disconnected session {session_id}")
        return result

    async def send_to_contact(self, phone: str, text: str) -> Dict[str, Any]:
        if not self.agent_id:
            raise CollaboratorError(self.name, "send_to_contact", "AI_STUDIO_AGENT_ID not configured")

        body = {
            "to": phone,
            "agent_id": self.agent_id,
            "channel": "whatsapp",
            "session_data": {"broadcast_message": text},
        }
        return await self._post("/messaging/conversation", body, "send_to_contact")


__all__ = ['AIStudioClient']

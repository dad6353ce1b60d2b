"""
Slack Web API client.
"""
import logging
from typing import Any, Dict, List, Optional

from ..config.platform_settings import PlatformSettings
from ..errors import CollaboratorError
from .base import ChatPlatform, ChatUser, HttpCollaborator

logger = logging.getLogger(__name__)


class SlackClient(HttpCollaborator, ChatPlatform):
    """
    ChatPlatform backed by the Slack Web API.

    Threads are identified by the ts of their parent message in the support
    channel. Slack answers HTTP 200 with ``{"ok": false, "error": ...}`` for
    most failures, so both layers are checked.
    """

    name = "slack"

    def __init__(self, platform_settings: PlatformSettings):
        super().__init__(
            timeout=platform_settings.http_timeout_seconds,
            fail_max=platform_settings.circuit_breaker_fail_max,
            reset_timeout=platform_settings.circuit_breaker_timeout_seconds
        )
        self.base_url = platform_settings.slack_api_base_url.rstrip("/")
        self.default_channel_id = platform_settings.slack_channel_id
        self._token = platform_settings.get_slack_bot_token()

        if not self._token:
            logger.warning("Slack bot token not configured, Slack calls will fail")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token or ''}",
            "Content-Type": "application/json; charset=utf-8"
        }

    async def _api(
        self,
        method: str,
        payload: Optional[Dict[str, Any]] = None,
        http_method: str = "POST"
    ) -> Dict[str, Any]:
        """Call a Web API method and return its JSON body."""

        async def execute() -> Dict[str, Any]:
            session = self._require_session()
            request_kwargs = {"headers": self._headers()}
            if http_method == "GET":
                request_kwargs["params"] = payload or {}
            else:
                request_kwargs["json"] = payload or {}

            async with session.request(
                http_method,
                f"{self.base_url}/{method}",
                **request_kwargs
            ) as response:
                if response.status == 429:
                    raise CollaboratorError(self.name, method, "rate limited")
                if response.status >= 400:
                    raise CollaboratorError(self.name, method, f"HTTP {response.status}")
                data = await response.json()

            if not data.get("ok"):
                raise CollaboratorError(self.name, method, data.get("error", "unknown_error"))
            return data

        return await self._call(method, execute)

    def _channel(self, channel_id: Optional[str]) -> str:
        channel = channel_id or self.default_channel_id
        if not channel:
            raise CollaboratorError(self.name, "chat.postMessage", "no channel configured")
        return channel

    async def post_message(
        self,
        text: str,
        thread_id: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None,
        channel_id: Optional[str] = None
    ) -> str:
        payload: Dict[str, Any] = {"channel": self._channel(channel_id), "text": text}
        if thread_id:
            payload["thread_ts"] = thread_id
        if blocks:
            payload["blocks"] = blocks

        data = await self._api("chat.postMessage", payload)
        logger.debug(f"Posted message {data['ts']} (thread={thread_id or '-'})")
        return data["ts"]

    async def update_message(
        self,
        channel_id: str,
        message_id: str,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None
    ) -> None:
        payload: Dict[str, Any] = {"channel": channel_id, "ts": message_id, "text": text}
        if blocks is not None:
            payload["blocks"] = blocks
        await self._api("chat.update", payload)

    async def open_modal(self, trigger_id: str, view: Dict[str, Any]) -> None:
        await self._api("views.open", {"trigger_id": trigger_id, "view": view})

    async def publish_home(self, user_id: str, view: Dict[str, Any]) -> None:
        await self._api("views.publish", {"user_id": user_id, "view": view})

    async def list_users(self) -> List[ChatUser]:
        """All active, non-bot members (follows pagination)."""
        users = []
        cursor = None

        while True:
            params = {"limit": 200}
            if cursor:
                params["cursor"] = cursor

            data = await self._api("users.list", params, http_method="GET")

            for member in data.get("members", []):
                if member.get("deleted") or member.get("is_bot") or member.get("id") == "USLACKBOT":
                    continue
                profile = member.get("profile", {})
                users.append(ChatUser(
                    id=member["id"],
                    handle=member.get("name", ""),
                    display_name=profile.get("display_name") or profile.get("real_name") or ""
                ))

            cursor = data.get("response_metadata", {}).get("next_cursor")
            if not cursor:
                break

        return users

    async def download_file(self, url: str) -> bytes:
        """Fetch a private file (url_private_download) with the bot token."""

        async def execute() -> bytes:
            session = self._require_session()
            async with session.get(
                url,
                headers={"Authorization": f"Bearer {self._token or ''}"}
            ) as response:
                if response.status >= 400:
                    raise CollaboratorError(self.name, "files.download", f"HTTP {response.status}")
                # Slack serves its sign-in page when the token lacks files:read
                if response.content_type == "text/html":
                    raise CollaboratorError(self.name, "files.download", "file not accessible with bot token")
                return await response.read()

        return await self._call("files.download", execute)


__all__ = ['SlackClient']

"""
Collaborator interfaces and the shared HTTP plumbing behind them.

The router depends only on ChatPlatform, AIPlatform and MediaHost; the
concrete clients wrap every call in an async circuit breaker and turn
transport failures into CollaboratorError. Calls are never retried.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout
from aiobreaker import CircuitBreaker, CircuitBreakerError

from ..errors import CollaboratorError
from ..utils.telemetry import track_collaborator_error

logger = logging.getLogger(__name__)


@dataclass
class ChatUser:
    """A Slack workspace member."""
    id: str
    handle: str
    display_name: str = ""


# ===========================
# Interfaces
# ===========================

class ChatPlatform(ABC):
    """Where agents work: threads, buttons, modals, the app home."""

    @abstractmethod
    async def post_message(
        self,
        text: str,
        thread_id: Optional[str] = None,
        blocks: Optional[List[Dict[str, Any]]] = None,
        channel_id: Optional[str] = None
    ) -> str:
        """
        Post a message, top-level when thread_id is None.

        Returns:
            The new message's id (its ts); for a top-level post this is
            the thread id
        """
        pass

    @abstractmethod
    async def update_message(
        self,
        channel_id: str,
        message_id: str,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None
    ) -> None:
        pass

    @abstractmethod
    async def open_modal(self, trigger_id: str, view: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def publish_home(self, user_id: str, view: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def list_users(self) -> List[ChatUser]:
        pass

    @abstractmethod
    async def download_file(self, url: str) -> bytes:
        pass


class AIPlatform(ABC):
    """The WhatsApp side, reached through the conversational-AI platform."""

    @abstractmethod
    async def send_outbound(
        self,
        session_id: str,
        message_type: str,
        payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def disconnect(self, session_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def send_to_contact(self, phone: str, text: str) -> Dict[str, Any]:
        """Start an outbound conversation with a phone number (broadcast)."""
        pass


class MediaHost(ABC):
    """Public hosting for files agents attach in Slack."""

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        media_kind: str,
        filename: str,
        content_type: str
    ) -> str:
        """
        Returns:
            Public URL of the uploaded file
        """
        pass


# ===========================
# HTTP Plumbing
# ===========================

class HttpCollaborator:
    """
    Pooled aiohttp session plus a per-collaborator circuit breaker.

    Subclasses set ``name`` and call ``_call(operation, coroutine_fn)``.
    """

    name = "http"
    user_agent = "WhatsAppSlackHandoff/1.0"

    def __init__(
        self,
        timeout: int = 15,
        fail_max: int = 5,
        reset_timeout: int = 60
    ):
        self.timeout = timeout
        self.session: Optional[ClientSession] = None
        self.breaker = CircuitBreaker(
            fail_max=fail_max,
            timeout_duration=timedelta(seconds=reset_timeout),
            name=self.name
        )

    async def initialize(self) -> None:
        """Create the pooled HTTP session."""
        if self.session is not None:
            return

        connector = aiohttp.TCPConnector(
            limit=20,
            limit_per_host=10,
            ttl_dns_cache=300
        )
        self.session = ClientSession(
            timeout=ClientTimeout(total=self.timeout),
            connector=connector,
            headers={"User-Agent": self.user_agent}
        )
        logger.info(f"✓ {self.name} client initialized")

    async def cleanup(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info(f"✓ {self.name} client closed")

    def _require_session(self) -> ClientSession:
        if self.session is None:
            raise RuntimeError(f"{self.name} client not initialized. Call initialize() first.")
        return self.session

    async def _call(
        self,
        operation: str,
        func: Callable[..., Awaitable[Any]],
        *args,
        **kwargs
    ) -> Any:
        """
        Run one request through the circuit breaker.

        Raises:
            CollaboratorError: On any transport, HTTP or API-level failure
        """
        try:
            return await self.breaker.call_async(func, *args, **kwargs)

        except CollaboratorError:
            track_collaborator_error(self.name, operation)
            raise

        except CircuitBreakerError as e:
            track_collaborator_error(self.name, operation)
            logger.warning(
                f"Circuit breaker open for '{self.name}'",
                extra={"collaborator": self.name, "operation": operation}
            )
            raise CollaboratorError(self.name, operation, f"service unavailable ({e})") from e

        except (ClientError, asyncio.TimeoutError) as e:
            track_collaborator_error(self.name, operation)
            raise CollaboratorError(self.name, operation, str(e) or type(e).__name__) from e


__all__ = [
    'ChatUser',
    'ChatPlatform',
    'AIPlatform',
    'MediaHost',
    'HttpCollaborator',
]

"""
Media host: makes agent attachments reachable by URL for WhatsApp delivery.
"""
import logging
from typing import Optional

import aiohttp

from ..config.platform_settings import PlatformSettings
from ..errors import CollaboratorError, UnsupportedMediaKindError
from .base import HttpCollaborator, MediaHost

logger = logging.getLogger(__name__)

FORWARDABLE_KINDS = ("image", "video", "audio")


def media_kind_for(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """
    Map a MIME type to the AI Studio message type.

    Raises:
        UnsupportedMediaKindError: For anything WhatsApp cannot receive as media
    """
    major = (content_type or "").split("/", 1)[0].lower()
    if major in FORWARDABLE_KINDS:
        return major
    raise UnsupportedMediaKindError(content_type or "unknown", filename)


class HttpMediaHost(HttpCollaborator, MediaHost):
    """
    Uploads with multipart POST to MEDIA_UPLOAD_URL, expecting ``{"url": ...}``.
    """

    name = "media_host"

    def __init__(self, platform_settings: PlatformSettings):
        super().__init__(
            timeout=max(platform_settings.http_timeout_seconds, 60),
            fail_max=platform_settings.circuit_breaker_fail_max,
            reset_timeout=platform_settings.circuit_breaker_timeout_seconds
        )
        self.upload_url = platform_settings.media_upload_url
        self._token = platform_settings.get_media_upload_token()

    async def upload(
        self,
        data: bytes,
        media_kind: str,
        filename: str,
        content_type: str
    ) -> str:
        if not self.upload_url:
            raise CollaboratorError(self.name, "upload", "MEDIA_UPLOAD_URL not configured")

        async def execute() -> str:
            session = self._require_session()

            form = aiohttp.FormData()
            form.add_field("kind", media_kind)
            form.add_field("file", data, filename=filename, content_type=content_type)

            headers = {}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"

            async with session.post(self.upload_url, data=form, headers=headers) as response:
                if response.status >= 400:
                    raise CollaboratorError(self.name, "upload", f"HTTP {response.status}")
                body = await response.json()

            url = body.get("url")
            if not url:
                raise CollaboratorError(self.name, "upload", "response carried no url")
            return url

        url = await self._call("upload", execute)
        logger.info(f"Uploaded {filename} ({len(data)} bytes) as {media_kind}")
        return url


__all__ = ['HttpMediaHost', 'media_kind_for', 'FORWARDABLE_KINDS']

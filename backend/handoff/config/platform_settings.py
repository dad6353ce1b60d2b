"""
Collaborator configuration: Slack, Vonage AI Studio and the media host.

Secrets are held as SecretStr and may be given indirectly:
- Direct value: "xoxb-..." (development only)
- Environment variable: "env://SLACK_BOT_TOKEN_PROD"
"""
from typing import Optional, Union
import logging
import os

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class PlatformSettings(BaseSettings):
    """Endpoints and credentials for the external platforms."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===========================
    # Slack
    # ===========================

    slack_api_base_url: str = Field(default="https://slack.com/api")

    slack_bot_token: Optional[SecretStr] = Field(
        default=None,
        description="Bot token (xoxb-...). Supports env:// indirection"
    )

    slack_channel_id: Optional[str] = Field(
        default=None,
        description="Channel where support threads are opened"
    )

    slack_broadcast_channel_id: Optional[str] = Field(
        default=None,
        description="Channel whose top-level messages start a broadcast"
    )

    # ===========================
    # Vonage AI Studio
    # ===========================

    ai_studio_key: Optional[SecretStr] = Field(
        default=None,
        description="AI Studio API key (X-Vgai-Key). Supports env:// indirection"
    )

    ai_studio_region: str = Field(default="eu")

    ai_studio_agent_id: Optional[str] = Field(
        default=None,
        description="Virtual agent used for outbound broadcast conversations"
    )

    # ===========================
    # Media Host
    # ===========================

    media_upload_url: Optional[str] = Field(
        default=None,
        description="Endpoint accepting multipart uploads and returning {\"url\": ...}"
    )

    media_upload_token: Optional[SecretStr] = Field(default=None)

    # ===========================
    # HTTP
    # ===========================

    http_timeout_seconds: int = Field(default=15, ge=1)
    circuit_breaker_fail_max: int = Field(default=5, ge=1)
    circuit_breaker_timeout_seconds: int = Field(default=60, ge=1)

    @field_validator('ai_studio_region')
    @classmethod
    def validate_region(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in {"eu", "us"}:
            raise ValueError("ai_studio_region must be 'eu' or 'us'")
        return v

    @field_validator('slack_bot_token', 'ai_studio_key', 'media_upload_token', mode='before')
    @classmethod
    def load_secret_from_source(cls, v: Optional[Union[str, SecretStr]]) -> Optional[SecretStr]:
        """
        Resolve a secret value or env:// reference.

        Raises:
            ValueError: If production uses a direct value
        """
        if v is None:
            return None

        if isinstance(v, SecretStr):
            return v

        if not isinstance(v, str):
            raise ValueError(f"Secret must be string or SecretStr, got {type(v)}")

        if not v.strip():
            return None

        if v.startswith('env://'):
            env_var = v.replace('env://', '')
            env_value = os.getenv(env_var)

            if not env_value:
                logger.warning(f"Environment variable not set: {env_var}")
                return None

            logger.info(f"Loaded secret from environment variable: {env_var}")
            return SecretStr(env_value)

        from . import settings
        if settings.is_production:
            raise ValueError(
                "In production, secrets must use the env:// prefix. "
                "Example: env://SLACK_BOT_TOKEN_PROD"
            )

        return SecretStr(v)

    # ===========================
    # Helpers
    # ===========================

    @property
    def ai_studio_base_url(self) -> str:
        return f"https://studio-api-{self.ai_studio_region}.ai.vonage.com"

    def get_slack_bot_token(self) -> Optional[str]:
        if self.slack_bot_token:
            return self.slack_bot_token.get_secret_value()
        return None

    def get_ai_studio_key(self) -> Optional[str]:
        if self.ai_studio_key:
            return self.ai_studio_key.get_secret_value()
        return None

    def get_media_upload_token(self) -> Optional[str]:
        if self.media_upload_token:
            return self.media_upload_token.get_secret_value()
        return None

    def validate_platforms(self) -> list:
        """
        List configuration problems that would stop the relay from working.

        Returns:
            Human-readable warnings (empty when fully configured)
        """
        warnings = []

        if not self.slack_bot_token:
            warnings.append("SLACK_BOT_TOKEN not configured")
        if not self.slack_channel_id:
            warnings.append("SLACK_CHANNEL_ID not configured")
        if not self.ai_studio_key:
            warnings.append("AI_STUDIO_KEY not configured")
        if not self.slack_broadcast_channel_id:
            warnings.append("SLACK_BROADCAST_CHANNEL_ID not configured, broadcasts disabled")
        if not self.ai_studio_agent_id:
            warnings.append("AI_STUDIO_AGENT_ID not configured, broadcasts cannot be delivered")
        if not self.media_upload_url:
            warnings.append("MEDIA_UPLOAD_URL not configured, agent attachments cannot be forwarded")

        return warnings


platform_settings = PlatformSettings()


__all__ = ['PlatformSettings', 'platform_settings']

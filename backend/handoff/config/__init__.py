"""
Application configuration.
Loaded from environment variables and an optional .env file.
"""
from enum import Enum
from functools import lru_cache
from typing import Optional
import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class KVStoreType(str, Enum):
    """Key-value store backend."""
    IN_MEMORY = "in_memory"
    REDIS = "redis"


class Settings(BaseSettings):
    """
    Service-level settings.

    Collaborator credentials live in ``PlatformSettings``
    (``handoff.config.platform_settings``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===========================
    # Application
    # ===========================

    app_name: str = Field(default="WhatsApp Slack Handoff", description="Service name")
    app_version: str = Field(default="1.0.0", description="Service version")
    environment: str = Field(default="development", description="development, testing or production")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000, ge=1, le=65535)

    # ===========================
    # Key-Value Store
    # ===========================

    kv_store_type: KVStoreType = Field(
        default=KVStoreType.IN_MEMORY,
        description="Backend for sessions, contacts, roles and assignments"
    )

    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = Field(
        default="",
        description="Optional namespace prepended to every key"
    )
    redis_max_connections: int = Field(default=50, ge=1)
    redis_socket_timeout: int = Field(default=5, ge=1)

    # ===========================
    # Escalation Timers
    # ===========================

    escalation_first_delay_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Delay before the first busy reminder"
    )
    escalation_second_delay_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Delay before the second busy reminder"
    )

    # ===========================
    # Router
    # ===========================

    start_claim_ttl_seconds: int = Field(
        default=60,
        ge=1,
        description="How long a Start claim blocks duplicate deliveries"
    )
    broadcast_draft_ttl_seconds: int = Field(
        default=86400,
        ge=60,
        description="How long a broadcast draft waits for confirmation"
    )
    close_reaction: str = Field(default="white_check_mark")

    # ===========================
    # Monitoring
    # ===========================

    enable_telemetry: bool = Field(default=True)
    health_check_interval_seconds: int = Field(default=60, ge=5)

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "testing", "staging", "production"}
        v = v.lower().strip()
        if v not in allowed:
            raise ValueError(f"environment must be one of {sorted(allowed)}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper().strip()
        if v not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def redis_options(self) -> dict:
        """Keyword arguments for the Redis store."""
        return {
            "redis_url": self.redis_url,
            "key_prefix": self.redis_key_prefix,
            "max_connections": self.redis_max_connections,
            "socket_timeout": self.redis_socket_timeout,
        }


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()


__all__ = ['Settings', 'KVStoreType', 'get_settings', 'settings']

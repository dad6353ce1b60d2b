"""
Tests for Settings and PlatformSettings.
"""
import pytest
from pydantic import ValidationError

from handoff import config
from handoff.config import KVStoreType, Settings
from handoff.config.platform_settings import PlatformSettings


@pytest.mark.unit
def test_defaults(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("KV_STORE_TYPE", raising=False)

    settings = Settings(_env_file=None)

    assert settings.environment == "development"
    assert settings.kv_store_type == KVStoreType.IN_MEMORY
    assert settings.escalation_first_delay_seconds == 180.0
    assert settings.escalation_second_delay_seconds == 600.0
    assert settings.start_claim_ttl_seconds == 60
    assert settings.broadcast_draft_ttl_seconds == 86400
    assert settings.api_port == 3000


@pytest.mark.unit
def test_environment_normalized_and_validated():
    assert Settings(_env_file=None, environment=" Production ").is_production

    with pytest.raises(ValidationError):
        Settings(_env_file=None, environment="qa")


@pytest.mark.unit
def test_log_level_validated():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="chatty")


@pytest.mark.unit
def test_escalation_delays_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, escalation_first_delay_seconds=0)


@pytest.mark.unit
def test_redis_options():
    settings = Settings(_env_file=None, redis_url="redis://cache:6379/2", redis_key_prefix="handoff:")

    assert settings.redis_options() == {
        "redis_url": "redis://cache:6379/2",
        "key_prefix": "handoff:",
        "max_connections": 50,
        "socket_timeout": 5,
    }


@pytest.mark.unit
def test_secret_from_environment(monkeypatch):
    monkeypatch.setenv("SLACK_BOT_TOKEN_PROD", "xoxb-from-env")

    platforms = PlatformSettings(_env_file=None, slack_bot_token="env://SLACK_BOT_TOKEN_PROD")

    assert platforms.get_slack_bot_token() == "xoxb-from-env"
    assert "xoxb-from-env" not in repr(platforms)


@pytest.mark.unit
def test_missing_env_secret_is_none(monkeypatch):
    monkeypatch.delenv("AI_STUDIO_KEY_PROD", raising=False)

    platforms = PlatformSettings(_env_file=None, ai_studio_key="env://AI_STUDIO_KEY_PROD")

    assert platforms.get_ai_studio_key() is None


@pytest.mark.unit
def test_production_rejects_direct_secret(monkeypatch):
    monkeypatch.setattr(config.settings, "environment", "production")

    with pytest.raises(ValidationError, match="env://"):
        PlatformSettings(_env_file=None, slack_bot_token="xoxb-direct")


@pytest.mark.unit
def test_ai_studio_region():
    assert PlatformSettings(_env_file=None, ai_studio_region="US").ai_studio_base_url == (
        "https://studio-api-us.ai.vonage.com"
    )

    with pytest.raises(ValidationError):
        PlatformSettings(_env_file=None, ai_studio_region="apac")


@pytest.mark.unit
def test_validate_platforms_lists_gaps(monkeypatch):
    for name in ("SLACK_CHANNEL_ID", "SLACK_BROADCAST_CHANNEL_ID"):
        monkeypatch.delenv(name, raising=False)

    warnings = PlatformSettings(_env_file=None).validate_platforms()

    assert "SLACK_BOT_TOKEN not configured" in warnings
    assert "SLACK_CHANNEL_ID not configured" in warnings
    assert any("broadcasts disabled" in w for w in warnings)

    configured = PlatformSettings(
        _env_file=None,
        slack_bot_token="xoxb-test",
        slack_channel_id="C1",
        slack_broadcast_channel_id="C2",
        ai_studio_key="key",
        ai_studio_agent_id="agent",
        media_upload_url="https://media.example.com/upload"
    )
    assert configured.validate_platforms() == []

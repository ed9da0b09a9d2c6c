"""Test configuration loading."""

import pytest
from pydantic import ValidationError

from creative_ai_system.config import Settings


def test_default_settings(test_settings):
    assert test_settings.app_name == "Creative AI System"
    assert test_settings.api_prefix == "/api/ai"
    assert test_settings.retry_max_attempts == 3
    assert test_settings.retry_base_delay_ms == 1000
    assert test_settings.video_poll_interval_ms == 10_000
    assert test_settings.video_poll_deadline_ms == 300_000
    assert test_settings.provider_timeout_seconds == 600.0
    assert not test_settings.has_gemini_key
    assert not test_settings.has_fal_key


def test_env_override(monkeypatch):
    monkeypatch.setenv("APP_NAME", "Test App")
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("GEMINI_API_KEY", "AIzaTestKey")
    monkeypatch.setenv("VIDEO_POLL_DEADLINE_MS", "120000")
    settings = Settings(_env_file=None)
    assert settings.app_name == "Test App"
    assert settings.debug is True
    assert settings.has_gemini_key
    assert settings.gemini_api_key.get_secret_value() == "AIzaTestKey"
    assert settings.video_poll_deadline_ms == 120_000


def test_secrets_are_masked(monkeypatch):
    monkeypatch.setenv("FAL_KEY", "fal-secret")
    settings = Settings(_env_file=None)
    assert "fal-secret" not in repr(settings)


def test_image_size_is_normalized(monkeypatch):
    monkeypatch.setenv("DEFAULT_IMAGE_SIZE", "2k")
    assert Settings(_env_file=None).default_image_size == "2K"


@pytest.mark.parametrize(
    "name,value",
    [("DEFAULT_IMAGE_SIZE", "8K"), ("LOG_FORMAT", "xml"), ("RETRY_MAX_ATTEMPTS", "0"), ("PORT", "70000")],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_environment_flags(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    settings = Settings(_env_file=None)
    assert settings.is_production
    assert not settings.is_development

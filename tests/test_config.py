"""Test configuration loading and destination registration."""
import logging
from dataclasses import FrozenInstanceError

import pytest

from destinations import register_destinations
from hub.config import HubConfig, OAuthClientConfig
from hub.log import CorrelationFilter, reset_correlation_id, set_correlation_id
from hub.oauth import OAuthCoordinator
from hub.registry import ActionRegistry


def test_defaults():
    config = HubConfig.default()
    assert config.base_url == "http://localhost:8080"
    assert config.oauth_state_ttl == 3600
    assert config.google_drive is None


def test_urls_strip_trailing_slash():
    config = HubConfig(base_url="https://hub.example.com/")
    assert config.action_url("google_drive") == "https://hub.example.com/actions/google_drive"
    assert config.oauth_start_url("google_drive") == "https://hub.example.com/actions/google_drive/oauth"
    assert config.oauth_redirect_uri("google_drive") == "https://hub.example.com/actions/google_drive/oauth/redirect"


def test_from_env(monkeypatch):
    monkeypatch.setenv("ACTION_HUB_BASE_URL", "https://hub.example.com")
    monkeypatch.setenv("ACTION_HUB_SECRET", "s3cret")
    monkeypatch.setenv("CIPHER_MASTER", "master")
    monkeypatch.setenv("OAUTH_STATE_TTL", "120")
    monkeypatch.setenv("STREAM_CHUNK_SIZE", "1024")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.test, https://b.test")
    monkeypatch.setenv("GOOGLE_DRIVE_CLIENT_ID", "cid")
    monkeypatch.setenv("GOOGLE_DRIVE_CLIENT_SECRET", "csecret")

    config = HubConfig.from_env()
    assert config.base_url == "https://hub.example.com"
    assert config.hub_secret == "s3cret"
    assert config.cipher_master == "master"
    assert config.oauth_state_ttl == 120
    assert config.chunk_size == 1024
    assert config.log_level == "DEBUG"
    assert config.cors_origins == ("https://a.test", "https://b.test")
    assert config.google_drive == OAuthClientConfig(client_id="cid", client_secret="csecret")


def test_oauth_client_needs_both_values(monkeypatch):
    monkeypatch.setenv("GOOGLE_DRIVE_CLIENT_ID", "cid")
    monkeypatch.delenv("GOOGLE_DRIVE_CLIENT_SECRET", raising=False)
    assert OAuthClientConfig.from_env("GOOGLE_DRIVE") is None


def test_config_is_frozen():
    config = HubConfig()
    with pytest.raises(FrozenInstanceError):
        config.base_url = "https://other.test"


def test_register_destinations_skips_unconfigured_drive():
    config = HubConfig()
    registry = register_destinations(ActionRegistry(), config, OAuthCoordinator(config))
    assert [a.name for a in registry.actions()] == ["http_upload"]


def test_register_destinations_with_drive():
    config = HubConfig(google_drive=OAuthClientConfig(client_id="cid", client_secret="cs"))
    registry = register_destinations(ActionRegistry(), config, OAuthCoordinator(config))
    assert [a.name for a in registry.actions()] == ["http_upload", "google_drive"]


def test_correlation_filter_tags_records():
    record = logging.LogRecord("hub", logging.INFO, __file__, 1, "hello", None, None)
    token = set_correlation_id("hook-7")
    try:
        assert CorrelationFilter().filter(record)
    finally:
        reset_correlation_id(token)
    assert record.webhook_id == "hook-7"

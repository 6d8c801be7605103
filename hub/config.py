"""Hub configuration as frozen dataclasses.

Read once at startup from the environment. Destinations that need OAuth
client credentials get their own section; when a section is missing the
destination is simply not registered.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from hub.payload import DEFAULT_CHUNK_SIZE


# ---------------------------------------------------------------------------
# Nested config sections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OAuthClientConfig:
    """Client credentials for one OAuth provider."""

    client_id: str
    client_secret: str

    @classmethod
    def from_env(cls, prefix: str) -> Optional["OAuthClientConfig"]:
        client_id = os.getenv(f"{prefix}_CLIENT_ID")
        client_secret = os.getenv(f"{prefix}_CLIENT_SECRET")
        if not client_id or not client_secret:
            return None
        return cls(client_id=client_id, client_secret=client_secret)


# ---------------------------------------------------------------------------
# Top-level hub config
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HubConfig:
    """Complete configuration for the action hub.

    Usage::

        config = HubConfig.from_env()
        redirect_uri = config.oauth_redirect_uri("google_drive")
    """

    base_url: str = "http://localhost:8080"
    label: str = "Action Hub"
    hub_secret: Optional[str] = None
    cipher_master: Optional[str] = None
    oauth_state_ttl: int = 3600  # seconds
    chunk_size: int = DEFAULT_CHUNK_SIZE
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("http://localhost:3000",)
    otlp_endpoint: Optional[str] = None

    google_drive: Optional[OAuthClientConfig] = None

    def action_url(self, action_name: str) -> str:
        return f"{self.base_url.rstrip('/')}/actions/{action_name}"

    def oauth_start_url(self, action_name: str) -> str:
        return f"{self.action_url(action_name)}/oauth"

    def oauth_redirect_uri(self, action_name: str) -> str:
        return f"{self.action_url(action_name)}/oauth/redirect"

    @classmethod
    def default(cls) -> "HubConfig":
        return cls()

    @classmethod
    def from_env(cls) -> "HubConfig":
        """Create config from environment variables.

        Example: ACTION_HUB_BASE_URL=https://hub.example.com
        """
        overrides = {}
        base_url = os.getenv("ACTION_HUB_BASE_URL")
        if base_url:
            overrides["base_url"] = base_url
        label = os.getenv("ACTION_HUB_LABEL")
        if label:
            overrides["label"] = label
        ttl = os.getenv("OAUTH_STATE_TTL")
        if ttl:
            overrides["oauth_state_ttl"] = int(ttl)
        chunk_size = os.getenv("STREAM_CHUNK_SIZE")
        if chunk_size:
            overrides["chunk_size"] = int(chunk_size)
        cors = os.getenv("CORS_ORIGINS")
        if cors:
            overrides["cors_origins"] = tuple(o.strip() for o in cors.split(",") if o.strip())

        return cls(
            hub_secret=os.getenv("ACTION_HUB_SECRET") or None,
            cipher_master=os.getenv("CIPHER_MASTER") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
            google_drive=OAuthClientConfig.from_env("GOOGLE_DRIVE"),
            **overrides,
        )

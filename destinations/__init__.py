"""
Action Hub Destinations.

Concrete integrations registered at startup. A destination whose OAuth
client configuration is missing is skipped instead of failing the hub.
"""
from __future__ import annotations
import logging

from destinations.google_drive import GoogleDriveAction
from destinations.http_upload import HttpUploadAction
from hub.config import HubConfig
from hub.oauth import OAuthCoordinator
from hub.registry import ActionRegistry

log = logging.getLogger(__name__)


def register_destinations(
    registry: ActionRegistry,
    config: HubConfig,
    oauth: OAuthCoordinator,
) -> ActionRegistry:
    registry.register(HttpUploadAction(chunk_size=config.chunk_size))

    if config.google_drive:
        registry.register(GoogleDriveAction(oauth, config.google_drive, chunk_size=config.chunk_size))
    else:
        log.info("google_drive disabled: GOOGLE_DRIVE_CLIENT_ID/SECRET not set")

    log.info("registered %d actions", len(registry))
    return registry


__all__ = ["GoogleDriveAction", "HttpUploadAction", "register_destinations"]

"""Action Hub API — FastAPI entry point.

Builds the registry once at startup, wires middleware and routes. All
request handling is stateless; the registry is read-only after this.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import CorrelationMiddleware
from api.router import router as actions_router
from destinations import register_destinations
from hub.config import HubConfig
from hub.dispatcher import Dispatcher
from hub.log import setup_logging
from hub.oauth import OAuthCoordinator
from hub.registry import ActionRegistry
from hub.tracing import setup_tracing

log = logging.getLogger(__name__)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    config: HubConfig = app.state.config
    setup_logging(config.log_level)
    log.info(
        "action hub started with %d actions: %s",
        len(app.state.dispatcher.registry),
        ", ".join(a.name for a in app.state.dispatcher.registry.actions()),
    )
    yield
    log.info("action hub shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

def create_app(
    config: Optional[HubConfig] = None,
    registry: Optional[ActionRegistry] = None,
    oauth: Optional[OAuthCoordinator] = None,
) -> FastAPI:
    """Build the hub. Tests pass their own registry and coordinator."""
    config = config or HubConfig.from_env()
    oauth = oauth or OAuthCoordinator(config)
    if registry is None:
        registry = register_destinations(ActionRegistry(), config, oauth)
    tracer = setup_tracing(config.otlp_endpoint) if config.otlp_endpoint else None

    app = FastAPI(
        title="Action Hub",
        description="Webhook action dispatcher: forms, OAuth and streamed delivery",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.dispatcher = Dispatcher(registry, config, oauth=oauth, tracer=tracer)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationMiddleware)

    app.include_router(actions_router, tags=["Actions"])

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": VERSION}

    return app


app = create_app()

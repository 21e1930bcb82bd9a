"""FastAPI application setup for the SmartThings OAuth flow server.

This module wires the flow coordinator to its HTTP routes. The coordinator
and everything it owns are built from settings by `build_coordinator`, or
passed in directly by tests.
"""

from functools import partial
from typing import Optional

from fastapi import FastAPI

from smartthings_oauth.src.logger import log
from smartthings_oauth.src.metrics import metrics
from smartthings_oauth.src.oauth import (
    FileTokenStore,
    FlowCoordinator,
    OAuthClient,
    OAuthConfig,
    StateRegistry,
)
from smartthings_oauth.src.service_client import SmartThingsClient
from smartthings_oauth.src.settings import Settings, settings, validate_config


def build_coordinator(cfg: Optional[Settings] = None) -> FlowCoordinator:
    """Build the flow coordinator from settings.

    Args:
        cfg: Settings to use (defaults to the process settings)

    Returns:
        FlowCoordinator backed by a file token store

    Raises:
        ConfigurationError: If the OAuth credentials or URLs are missing or invalid
    """
    cfg = cfg or settings
    validate_config(cfg)

    oauth_client = OAuthClient(
        OAuthConfig.from_settings(cfg),
        FileTokenStore(cfg.TOKEN_STORE_PATH),
        timeout=cfg.OAUTH_HTTP_TIMEOUT,
    )
    return FlowCoordinator(
        oauth_client,
        StateRegistry(ttl_seconds=cfg.OAUTH_STATE_TTL_SECONDS),
        devices_client_factory=partial(
            SmartThingsClient,
            base_url=cfg.SMARTTHINGS_API_URL,
            timeout=cfg.OAUTH_HTTP_TIMEOUT,
        ),
    )


def create_app(coordinator: FlowCoordinator) -> FastAPI:
    """Create the HTTP application for a coordinator.

    Args:
        coordinator: Flow coordinator serving the routes

    Returns:
        FastAPI application with the flow, status and metrics routes
    """
    app = FastAPI(title="SmartThings OAuth", docs_url=None, redoc_url=None)

    app.add_route("/", coordinator.home_handler, methods=["GET"])
    app.add_route("/login", coordinator.login_handler, methods=["GET"])
    app.add_route("/callback", coordinator.callback_handler, methods=["GET"])
    app.add_route("/status", coordinator.status_handler, methods=["GET"])
    app.add_route("/devices", coordinator.devices_handler, methods=["GET"])
    app.add_route("/logout", coordinator.logout_handler, methods=["GET"])
    app.add_route("/metrics", metrics, methods=["GET"])

    log.info("OAuth endpoints registered: /, /login, /callback, /status, /devices, /logout, /metrics")
    return app

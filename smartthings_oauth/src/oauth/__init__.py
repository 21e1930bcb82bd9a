"""OAuth authorization code flow for the SmartThings OAuth server.

This module provides CSRF state handling, the token endpoint client, token
persistence and the flow coordinator used by the HTTP routes.
"""

from smartthings_oauth.src.oauth.client import OAuthClient
from smartthings_oauth.src.oauth.errors import (
    ConfigurationError,
    InvalidStateError,
    MissingCodeError,
    NotAuthenticatedError,
    OAuthFlowError,
    RandomSourceError,
    StoreError,
    TokenExchangeError,
    UpstreamAuthorizationError,
)
from smartthings_oauth.src.oauth.handlers import FlowCoordinator
from smartthings_oauth.src.oauth.models import DEFAULT_SCOPES, OAuthConfig, TokenRecord
from smartthings_oauth.src.oauth.state import StateRegistry
from smartthings_oauth.src.oauth.store import FileTokenStore, MemoryTokenStore, TokenStore
from smartthings_oauth.src.oauth.utils import extract_oauth_callback_params

__all__ = [
    # Coordinator
    "FlowCoordinator",
    # Client
    "OAuthClient",
    # State
    "StateRegistry",
    # Models
    "DEFAULT_SCOPES",
    "OAuthConfig",
    "TokenRecord",
    # Store
    "TokenStore",
    "FileTokenStore",
    "MemoryTokenStore",
    # Errors
    "OAuthFlowError",
    "ConfigurationError",
    "RandomSourceError",
    "InvalidStateError",
    "MissingCodeError",
    "UpstreamAuthorizationError",
    "TokenExchangeError",
    "StoreError",
    "NotAuthenticatedError",
    # Utils
    "extract_oauth_callback_params",
]

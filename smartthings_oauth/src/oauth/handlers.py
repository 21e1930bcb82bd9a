"""OAuth flow coordinator and the HTTP handlers built on it.

The coordinator translates the four browser-facing operations (login,
callback, status, logout) into calls on a :class:`StateRegistry` and an
:class:`OAuthClient`. Both are injected so tests can build isolated
instances; nothing here is a module-level singleton.
"""

import asyncio
from typing import Callable, Mapping, Optional

from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from smartthings_oauth.src.logger import log
from smartthings_oauth.src.metrics import record_flow_event, track_endpoint
from smartthings_oauth.src.oauth.client import OAuthClient
from smartthings_oauth.src.oauth.errors import (
    InvalidStateError,
    MissingCodeError,
    NotAuthenticatedError,
    OAuthFlowError,
    StoreError,
    UpstreamAuthorizationError,
)
from smartthings_oauth.src.oauth.models import TokenRecord
from smartthings_oauth.src.oauth.state import StateRegistry
from smartthings_oauth.src.oauth.utils import (
    extract_oauth_callback_params,
    get_devices_html,
    get_error_html,
    get_home_html,
)
from smartthings_oauth.src.service_client import SmartThingsAPIError, SmartThingsClient

DevicesClientFactory = Callable[[str], SmartThingsClient]


class FlowCoordinator:
    """Coordinates the OAuth authorization code flow for one identity."""

    def __init__(
        self,
        oauth_client: OAuthClient,
        state_registry: Optional[StateRegistry] = None,
        devices_client_factory: Optional[DevicesClientFactory] = None,
    ) -> None:
        self.oauth_client = oauth_client
        self.state_registry = state_registry or StateRegistry()
        self.devices_client_factory = devices_client_factory or SmartThingsClient

    def login(self) -> str:
        """Start a login attempt.

        Returns:
            The authorization URL to redirect the browser to

        Raises:
            RandomSourceError: If no state could be generated
        """
        state = self.state_registry.issue()
        return self.oauth_client.build_authorization_url(state)

    async def callback(self, params: Mapping[str, Optional[str]]) -> TokenRecord:
        """Complete a login attempt from the authorization server's redirect.

        The checks run in a fixed order: an upstream ``error`` fails before the
        state is looked at, and the state is consumed before the code is
        checked or exchanged. Nothing is retried since authorization codes are
        single-use.

        Args:
            params: Callback query parameters (code, state, error, error_description)

        Returns:
            The stored TokenRecord

        Raises:
            UpstreamAuthorizationError: If the authorization server reported an error
            InvalidStateError: If the state is unknown, expired or already used
            MissingCodeError: If the code is missing
            TokenExchangeError: If the code could not be exchanged
            StoreError: If the tokens could not be stored
        """
        error = params.get("error")
        if error:
            raise UpstreamAuthorizationError(error, params.get("error_description"))

        if not self.state_registry.validate_and_consume(params.get("state")):
            raise InvalidStateError()

        code = params.get("code")
        if not code:
            raise MissingCodeError()

        return await self.oauth_client.exchange_code(code)

    def status(self) -> bool:
        """Check whether the configured identity is authenticated."""
        return self.oauth_client.is_authenticated()

    def logout(self) -> bool:
        """Forget the stored tokens. Store failures are logged, never raised.

        Returns:
            False if the store failed to delete the tokens
        """
        try:
            self.oauth_client.clear_tokens()
        except StoreError as e:
            log.error("Failed to clear tokens: %s", e)
            return False
        return True

    # HTTP handlers

    @track_endpoint("home")
    async def home_handler(self, _request: Request) -> Response:
        return HTMLResponse(get_home_html(await asyncio.to_thread(self.status)))

    @track_endpoint("login")
    async def login_handler(self, _request: Request) -> Response:
        """Redirect the browser to the authorization server."""
        try:
            auth_url = self.login()
        except OAuthFlowError as e:
            record_flow_event("login", "error")
            return _error_response(e)

        record_flow_event("login", "redirect")
        log.info("Redirecting to authorization server")
        return RedirectResponse(auth_url)

    @track_endpoint("callback")
    async def callback_handler(self, request: Request) -> Response:
        """Handle the authorization server's redirect back to us."""
        params = extract_oauth_callback_params(request)
        try:
            await self.callback(params)
        except OAuthFlowError as e:
            log.error("OAuth callback failed (%s): %s", type(e).__name__, e.message)
            record_flow_event("callback", type(e).__name__)
            return _error_response(e)

        record_flow_event("callback", "success")
        log.info("OAuth authentication successful")
        return RedirectResponse("/")

    @track_endpoint("status")
    async def status_handler(self, _request: Request) -> Response:
        return JSONResponse({"authenticated": await asyncio.to_thread(self.status)})

    @track_endpoint("devices")
    async def devices_handler(self, _request: Request) -> Response:
        """List devices, sending unauthenticated users through the login flow."""
        if not await asyncio.to_thread(self.status):
            return RedirectResponse("/login")

        try:
            access_token = await self.oauth_client.ensure_valid_token()
        except NotAuthenticatedError:
            return RedirectResponse("/login")
        except OAuthFlowError as e:
            return _error_response(e)

        client = self.devices_client_factory(access_token)
        try:
            devices = await client.list_devices()
        except SmartThingsAPIError as e:
            return HTMLResponse(
                get_error_html(f"Failed to list devices: {e}"), status_code=502
            )
        return HTMLResponse(get_devices_html(devices))

    @track_endpoint("logout")
    async def logout_handler(self, _request: Request) -> Response:
        cleared = await asyncio.to_thread(self.logout)
        record_flow_event("logout", "success" if cleared else "store_error")
        return RedirectResponse("/")


def _error_response(error: OAuthFlowError) -> Response:
    return HTMLResponse(get_error_html(error.message), status_code=error.status_code)

"""OAuth client for the SmartThings authorization code flow.

Builds authorization URLs, talks to the token endpoint and keeps the token
store up to date. The client never caches tokens itself: every query goes
to the store, so the store is the single source of truth.
"""

import asyncio
import json
import threading
import time
import urllib.parse
from typing import Optional

import httpx

from smartthings_oauth.src.logger import log
from smartthings_oauth.src.metrics import TOKEN_REQUEST_LATENCY
from smartthings_oauth.src.oauth.errors import (
    MissingCodeError,
    NotAuthenticatedError,
    StoreError,
    TokenExchangeError,
)
from smartthings_oauth.src.oauth.models import DEFAULT_SCOPES, OAuthConfig, TokenRecord
from smartthings_oauth.src.oauth.store import TokenStore

DEFAULT_TIMEOUT = 30.0

# Longest upstream body kept on a TokenExchangeError
_MAX_BODY_PREVIEW = 1000


class OAuthClient:
    """Manages the OAuth token lifecycle for the single configured identity."""

    def __init__(
        self,
        config: OAuthConfig,
        token_store: TokenStore,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            config: Static OAuth configuration
            token_store: Persistence for the token record
            timeout: Seconds allowed for each token endpoint request
        """
        self.config = config
        self.token_store = token_store
        self.timeout = timeout

        # Serializes store access so a read never observes a half-replaced record
        self._store_lock = threading.RLock()
        self._refresh_lock = asyncio.Lock()

    @property
    def scopes(self) -> list[str]:
        """Scopes sent with authorization requests."""
        return list(self.config.scopes) or list(DEFAULT_SCOPES)

    def build_authorization_url(self, state: str) -> str:
        """Build the authorization server URL the browser is redirected to.

        Args:
            state: CSRF state issued for this login attempt

        Returns:
            Authorization URL with every query parameter percent-encoded
        """
        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_url,
            "scope": " ".join(self.scopes),
            "state": state,
        }
        separator = "&" if "?" in self.config.authorization_endpoint else "?"
        return f"{self.config.authorization_endpoint}{separator}{urllib.parse.urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenRecord:
        """Exchange an authorization code for tokens and store them.

        Args:
            code: Authorization code from the callback

        Returns:
            The stored TokenRecord

        Raises:
            MissingCodeError: If code is empty
            TokenExchangeError: If the token endpoint cannot be reached or rejects the code
            StoreError: If the tokens cannot be persisted
        """
        if not code:
            raise MissingCodeError()

        record = await self._request_tokens(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.config.redirect_url,
            }
        )
        await asyncio.to_thread(self._save, record)
        log.info("Successfully exchanged OAuth code for tokens")
        return record

    async def refresh_tokens(self) -> TokenRecord:
        """Obtain a new access token with the stored refresh token.

        Returns:
            The refreshed and stored TokenRecord

        Raises:
            NotAuthenticatedError: If there is no usable refresh token
            TokenExchangeError: If the token endpoint rejects the refresh
            StoreError: If the tokens cannot be persisted
        """
        current = await asyncio.to_thread(self.get_tokens)
        if current is None or not current.refresh_token:
            raise NotAuthenticatedError("No refresh token available - OAuth authentication required")

        record = await self._request_tokens(
            {
                "grant_type": "refresh_token",
                "refresh_token": current.refresh_token,
            }
        )
        if not record.refresh_token:
            # Servers may omit the refresh token when it is unchanged
            record.refresh_token = current.refresh_token
            record.refresh_token_expires_at = current.refresh_token_expires_at
        await asyncio.to_thread(self._save, record)
        log.info("Successfully refreshed OAuth access token")
        return record

    async def ensure_valid_token(self) -> str:
        """Return an access token that is safe to use, refreshing it if needed.

        Raises:
            NotAuthenticatedError: If the user has to go through the login flow again
            TokenExchangeError: If a needed refresh fails
        """
        async with self._refresh_lock:
            record = await asyncio.to_thread(self.get_tokens)
            if record is None:
                raise NotAuthenticatedError("No tokens available - OAuth authentication required")
            if not record.needs_refresh():
                return record.access_token
            if not record.is_refresh_token_valid():
                raise NotAuthenticatedError("Refresh token expired - OAuth re-authentication required")
            log.info("Access token is about to expire, refreshing")
            record = await self.refresh_tokens()
            return record.access_token

    def is_authenticated(self) -> bool:
        """Check whether a non-expired token record is stored."""
        try:
            record = self.get_tokens()
        except StoreError as e:
            log.error("Failed to read stored tokens: %s", e)
            return False
        return record is not None and not record.is_expired()

    def needs_reauthentication(self) -> bool:
        """Check whether only a new login can produce a usable token."""
        try:
            record = self.get_tokens()
        except StoreError as e:
            log.error("Failed to read stored tokens: %s", e)
            return True
        return record is None or not record.is_refresh_token_valid()

    def get_tokens(self) -> Optional[TokenRecord]:
        """Get the stored token record, if any."""
        with self._store_lock:
            return self.token_store.get()

    def clear_tokens(self) -> None:
        """Delete the stored token record. Deleting an absent record is not an error.

        Raises:
            StoreError: If the store fails to delete the record
        """
        with self._store_lock:
            self.token_store.delete()
        log.info("Cleared stored OAuth tokens")

    def _save(self, record: TokenRecord) -> None:
        with self._store_lock:
            self.token_store.put(record)

    async def _request_tokens(self, data: dict[str, str]) -> TokenRecord:
        """POST a token request, authenticating with HTTP Basic client credentials."""
        grant_type = data["grant_type"]
        headers = {"Accept": "application/json"}
        auth = (self.config.client_id, self.config.client_secret)

        with TOKEN_REQUEST_LATENCY.labels(grant_type=grant_type).time():
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.config.token_endpoint,
                        data=data,
                        headers=headers,
                        auth=auth,
                        timeout=self.timeout,
                    )
            except httpx.TimeoutException as e:
                log.error("Token request (%s) timed out after %ss", grant_type, self.timeout)
                raise TokenExchangeError("Token request timed out") from e
            except httpx.HTTPError as e:
                log.error("Token request (%s) failed: %s", grant_type, e)
                raise TokenExchangeError(f"Token request failed: {e}") from e

        body = response.text
        if not 200 <= response.status_code < 300:
            raise self._error_from_response(response.status_code, body)

        try:
            payload = response.json()
            if not isinstance(payload, dict):
                raise ValueError("token response is not a JSON object")
            return TokenRecord.from_token_response(payload, now=time.time())
        except (ValueError, TypeError) as e:
            log.error("Invalid token response for %s: %s", grant_type, e)
            raise TokenExchangeError(
                f"Failed to parse token response: {e}",
                upstream_status=response.status_code,
                upstream_body=body[:_MAX_BODY_PREVIEW],
            ) from e

    @staticmethod
    def _error_from_response(status: int, body: str) -> TokenExchangeError:
        """Build an exchange error, preferring the OAuth error fields of a JSON body."""
        preview = body[:_MAX_BODY_PREVIEW]
        error = description = None
        try:
            payload = json.loads(body)
            if isinstance(payload, dict):
                error = payload.get("error")
                description = payload.get("error_description")
        except ValueError:
            pass

        if error:
            message = f"OAuth error: {error} - {description or ''}"
        else:
            message = f"Token request failed with status {status}: {preview}"
        log.error("Token endpoint returned %s: %s", status, message)
        return TokenExchangeError(
            message,
            upstream_status=status,
            upstream_body=preview,
            error=error,
            error_description=description,
        )

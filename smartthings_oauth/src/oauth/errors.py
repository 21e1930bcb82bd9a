"""
Error types for the OAuth authorization code flow.

Every error raised while handling a login, callback or token operation
derives from :class:`OAuthFlowError` and carries the HTTP status the
handlers answer with.
"""

from typing import Optional


class OAuthFlowError(Exception):
    """Base class for OAuth flow failures surfaced to the browser."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(OAuthFlowError):
    """Required configuration is missing or malformed; the server must not start."""


class RandomSourceError(OAuthFlowError):
    """The system random source could not produce a state value."""


class InvalidStateError(OAuthFlowError):
    """The callback carried an unknown, expired, reused or missing state."""

    status_code = 400

    def __init__(self, message: str = "Invalid state parameter") -> None:
        super().__init__(message)


class MissingCodeError(OAuthFlowError):
    """The callback did not include an authorization code."""

    status_code = 400

    def __init__(self, message: str = "Missing authorization code") -> None:
        super().__init__(message)


class UpstreamAuthorizationError(OAuthFlowError):
    """The authorization server redirected back with an ``error`` parameter."""

    status_code = 400

    def __init__(self, error: str, description: Optional[str] = None) -> None:
        self.error = error
        self.description = description or ""
        super().__init__(f"OAuth error: {error} - {self.description}")


class TokenExchangeError(OAuthFlowError):
    """A request to the token endpoint failed.

    ``upstream_status`` and ``upstream_body`` hold the token endpoint's
    response when one was received; both are ``None`` for transport
    failures and timeouts.
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body
        self.error = error
        self.error_description = error_description


class StoreError(OAuthFlowError):
    """The token store could not read, write or delete the token record."""


class NotAuthenticatedError(OAuthFlowError):
    """No usable token is available; the user has to log in again."""

    status_code = 401

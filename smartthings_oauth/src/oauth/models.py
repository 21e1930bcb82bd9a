"""OAuth data models for type safety and clarity."""

import math
import time
from dataclasses import dataclass, field
from typing import Any, Optional

DEFAULT_SCOPES = ("r:devices:*", "x:devices:*", "r:locations:*")

# How long before expiry an access token is treated as due for refresh
TOKEN_REFRESH_BUFFER_SECONDS = 300


def _finite_seconds(value: Any, name: str) -> Optional[float]:
    """Parse an optional JSON number of seconds, rejecting anything not finite."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"{name} must be a number, got {type(value).__name__}")
    seconds = float(value)
    if not math.isfinite(seconds):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return seconds


@dataclass(frozen=True)
class OAuthConfig:
    """Static OAuth client configuration, built once at startup."""

    client_id: str
    client_secret: str
    redirect_url: str
    authorization_endpoint: str
    token_endpoint: str
    scopes: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_settings(cls, cfg: Any) -> "OAuthConfig":
        """Create from a Settings instance.

        Args:
            cfg: Settings object exposing the SMARTTHINGS_* and OAUTH_* fields

        Returns:
            OAuthConfig instance
        """
        return cls(
            client_id=cfg.SMARTTHINGS_CLIENT_ID or "",
            client_secret=cfg.SMARTTHINGS_CLIENT_SECRET or "",
            redirect_url=cfg.SMARTTHINGS_REDIRECT_URL,
            authorization_endpoint=cfg.OAUTH_AUTHORIZATION_URL,
            token_endpoint=cfg.OAUTH_TOKEN_URL,
            scopes=tuple(cfg.OAUTH_SCOPES),
        )


@dataclass
class TokenRecord:
    """Tokens issued by the authorization server for the configured identity.

    ``expires_at`` and ``refresh_token_expires_at`` are epoch seconds; ``None``
    means the server did not say.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None
    token_type: str = "bearer"
    scope: str = ""
    installed_app_id: Optional[str] = None
    refresh_token_expires_at: Optional[float] = None

    def is_expired(self, leeway: float = 0) -> bool:
        """Check if the access token is expired.

        Args:
            leeway: Seconds subtracted from the expiry before comparing

        Returns:
            True if the token has no access token or its known expiry has passed
        """
        if not self.access_token:
            return True
        if self.expires_at is None:
            return False
        return time.time() + leeway >= self.expires_at

    def needs_refresh(self) -> bool:
        """Check if the access token expires within the refresh buffer."""
        return self.is_expired(leeway=TOKEN_REFRESH_BUFFER_SECONDS)

    def is_refresh_token_valid(self) -> bool:
        """Check if the refresh token can still be used."""
        if not self.refresh_token:
            return False
        if self.refresh_token_expires_at is None:
            return True
        return time.time() < self.refresh_token_expires_at

    @classmethod
    def from_token_response(
        cls, data: dict, now: Optional[float] = None
    ) -> "TokenRecord":
        """Create from a token endpoint response body.

        Relative ``expires_in`` values are converted to absolute timestamps.

        Args:
            data: Decoded JSON body of a successful token response
            now: Reference time in epoch seconds (defaults to the current time)

        Returns:
            TokenRecord instance

        Raises:
            ValueError: If the response has no access token or malformed lifetimes
        """
        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("token response does not contain an access_token")

        if now is None:
            now = time.time()

        expires_at = None
        expires_in = _finite_seconds(data.get("expires_in"), "expires_in")
        if expires_in:
            expires_at = now + expires_in

        refresh_expires_at = None
        refresh_expires_in = _finite_seconds(
            data.get("refresh_token_expires_in"), "refresh_token_expires_in"
        )
        if refresh_expires_in:
            refresh_expires_at = now + refresh_expires_in

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expires_at=expires_at,
            token_type=data.get("token_type") or "bearer",
            scope=data.get("scope") or "",
            installed_app_id=data.get("installed_app_id") or None,
            refresh_token_expires_at=refresh_expires_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "token_type": self.token_type,
            "scope": self.scope,
            "installed_app_id": self.installed_app_id,
            "refresh_token_expires_at": self.refresh_token_expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRecord":
        """Create from dictionary.

        Raises:
            ValueError: If the access token or an expiry timestamp is malformed
        """
        access_token = data["access_token"]
        if not isinstance(access_token, str):
            raise ValueError("access_token must be a string")
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_at=_finite_seconds(data.get("expires_at"), "expires_at"),
            token_type=data.get("token_type", "bearer"),
            scope=data.get("scope", ""),
            installed_app_id=data.get("installed_app_id"),
            refresh_token_expires_at=_finite_seconds(
                data.get("refresh_token_expires_at"), "refresh_token_expires_at"
            ),
        )

"""Settings for the SmartThings OAuth flow server."""

from typing import Annotated, Optional, ClassVar
from typing import Literal
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from smartthings_oauth.src.oauth.errors import ConfigurationError
from smartthings_oauth.src.oauth.models import DEFAULT_SCOPES

# Load environment variables with error handling
try:
    load_dotenv()
except FileNotFoundError:
    # Expected when .env doesn't exist
    pass
except Exception as e:
    import warnings

    warnings.warn(f"Failed to load .env file: {e}")


class Settings(BaseSettings):
    """Configuration settings for the SmartThings OAuth flow server.

    Uses Pydantic BaseSettings to load and validate configuration from environment variables.
    Credentials have no defaults; `validate_config` refuses to start without them.
    """

    # HTTP Server Configuration
    HOST: str = Field(
        default="0.0.0.0",
        json_schema_extra={
            "env": "HOST",
            "description": "Host address for the HTTP server",
            "example": "localhost",
        },
    )
    PORT: int = Field(
        default=8080,
        ge=1,
        le=65535,
        json_schema_extra={
            "env": "PORT",
            "description": "Port number for the HTTP server",
            "example": 8080,
        },
    )

    # OAuth Client Credentials
    SMARTTHINGS_CLIENT_ID: Optional[str] = Field(
        default=None,
        json_schema_extra={
            "env": "SMARTTHINGS_CLIENT_ID",
            "description": "OAuth client identifier issued for the SmartThings app",
            "example": "a1b2c3d4-0000-1111-2222-333344445555",
        },
    )

    SMARTTHINGS_CLIENT_SECRET: Optional[str] = Field(
        default=None,
        json_schema_extra={
            "env": "SMARTTHINGS_CLIENT_SECRET",
            "description": "OAuth client secret issued for the SmartThings app",
            "example": "s3cr3t",
            "sensitive": True,
        },
    )

    SMARTTHINGS_REDIRECT_URL: str = Field(
        default="http://localhost:8080/callback",
        json_schema_extra={
            "env": "SMARTTHINGS_REDIRECT_URL",
            "description": "Redirect URL registered with the authorization server",
            "example": "https://my.host.com/callback",
        },
    )

    OAUTH_SCOPES: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_SCOPES),
        json_schema_extra={
            "env": "OAUTH_SCOPES",
            "description": "Requested scopes, separated by spaces or commas",
            "example": "r:devices:* x:devices:*",
        },
    )

    @field_validator("OAUTH_SCOPES", mode="before")
    @classmethod
    def _split_scopes(cls, v):  # type: ignore[no-untyped-def]
        if isinstance(v, str):
            return [s for s in v.replace(",", " ").split() if s]
        return v

    OAUTH_AUTHORIZATION_URL: str = Field(
        default="https://api.smartthings.com/oauth/authorize",
        json_schema_extra={
            "env": "OAUTH_AUTHORIZATION_URL",
            "description": "Authorization endpoint of the OAuth server",
            "example": "https://api.smartthings.com/oauth/authorize",
        },
    )

    OAUTH_TOKEN_URL: str = Field(
        default="https://api.smartthings.com/oauth/token",
        json_schema_extra={
            "env": "OAUTH_TOKEN_URL",
            "description": "Token endpoint of the OAuth server",
            "example": "https://api.smartthings.com/oauth/token",
        },
    )

    OAUTH_HTTP_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        json_schema_extra={
            "env": "OAUTH_HTTP_TIMEOUT",
            "description": "Timeout in seconds for token endpoint requests",
            "example": 30.0,
        },
    )

    OAUTH_STATE_TTL_SECONDS: int = Field(
        default=600,
        ge=0,
        json_schema_extra={
            "env": "OAUTH_STATE_TTL_SECONDS",
            "description": "Lifetime of a pending login state (0 keeps states until consumed)",
            "example": 600,
        },
    )

    # Token persistence
    TOKEN_STORE_PATH: str = Field(
        default="tokens.json",
        json_schema_extra={
            "env": "TOKEN_STORE_PATH",
            "description": "Path of the JSON file holding the OAuth tokens",
            "example": "/var/lib/smartthings-oauth/tokens.json",
        },
    )

    # Resource API
    SMARTTHINGS_API_URL: str = Field(
        default="https://api.smartthings.com/v1",
        json_schema_extra={
            "env": "SMARTTHINGS_API_URL",
            "description": "SmartThings REST API base URL",
            "example": "https://api.smartthings.com/v1",
        },
    )

    # Logging Configuration
    LOGGING_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        json_schema_extra={
            "env": "LOGGING_LEVEL",
            "description": "Logging level for the application",
            "example": "INFO",
        },
    )

    # Accept lower/any-case input from env (e.g., "debug") and normalize
    @field_validator("LOGGING_LEVEL", mode="before")
    @classmethod
    def _normalize_logging_level(cls, v):  # type: ignore[no-untyped-def]
        return v.upper() if isinstance(v, str) else v

    LOGGER_NAME: str = Field(
        default="",
        json_schema_extra={
            "env": "LOGGER_NAME",
            "description": "Name for the logger",
            "example": "smartthings-oauth",
        },
    )

    LOG_TO_FILE: bool = Field(
        default=False,
        json_schema_extra={
            "env": "LOG_TO_FILE",
            "description": "Enable logging to file (disable in containers)",
            "example": False,
        },
    )

    model_config: ClassVar[SettingsConfigDict] = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
        # Enable runtime assignment so tests can patch settings fields
        "validate_assignment": True,
        "frozen": False,
    }


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def validate_config(cfg: Settings) -> None:
    """Validate configuration settings.

    Ensures the OAuth credentials are present and every configured endpoint
    is an absolute HTTP(S) URL.

    Args:
        cfg: Settings instance to validate.

    Raises:
        ConfigurationError: If required configuration is missing or invalid.
    """
    missing = [
        name
        for name in ("SMARTTHINGS_CLIENT_ID", "SMARTTHINGS_CLIENT_SECRET")
        if not getattr(cfg, name)
    ]
    if missing:
        raise ConfigurationError(f"{' and '.join(missing)} are required")

    for name in (
        "SMARTTHINGS_REDIRECT_URL",
        "OAUTH_AUTHORIZATION_URL",
        "OAUTH_TOKEN_URL",
        "SMARTTHINGS_API_URL",
    ):
        value = getattr(cfg, name)
        if not _is_http_url(value):
            raise ConfigurationError(
                f"{name} must be an absolute HTTP(S) URL, got: '{value}'"
            )


# Create config instance without validation (validation happens in main.py)
settings = Settings()

"""Main entry point for the SmartThings OAuth flow server."""

import sys

import uvicorn

from smartthings_oauth.src.api import build_coordinator, create_app
from smartthings_oauth.src.logger import configure_logging
from smartthings_oauth.src.oauth import ConfigurationError
from smartthings_oauth.src.settings import settings


def main() -> None:
    """Start the OAuth flow server.

    Validates the configuration, builds the application and starts uvicorn.
    Exits with status 1 when the OAuth credentials are not configured.
    """
    log = configure_logging()
    try:
        coordinator = build_coordinator(settings)
    except ConfigurationError as e:
        log.error("Invalid configuration: %s", e)
        sys.exit(1)

    app = create_app(coordinator)
    try:
        log.info("Starting SmartThings OAuth server on http://%s:%s", settings.HOST, settings.PORT)
        log.info("Redirect URL configured as: %s", settings.SMARTTHINGS_REDIRECT_URL)
        uvicorn.run(app, host=settings.HOST, port=settings.PORT)
    except KeyboardInterrupt:
        log.info("Received keyboard interrupt, shutting down")
    except Exception as e:
        log.error("Server failed to start: %s", e, exc_info=True)
        raise
    finally:
        log.info("SmartThings OAuth server shutting down")


if __name__ == "__main__":
    main()

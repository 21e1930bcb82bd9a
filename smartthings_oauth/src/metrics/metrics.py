"""
Metrics for the OAuth flow server.

This module provides Prometheus metrics for the login/callback/logout
endpoints and for requests to the token endpoint.
"""

from typing import Callable, Any
from functools import wraps

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.requests import Request
from starlette.responses import PlainTextResponse


# Counter for flow endpoint outcomes
FLOW_EVENTS = Counter(
    "smartthings_oauth_flow_events",
    "OAuth flow requests by endpoint and outcome",
    ["endpoint", "outcome"],
)

# Histogram for endpoint latency
ENDPOINT_LATENCY = Histogram(
    "smartthings_oauth_endpoint_duration_seconds",
    "Latency of OAuth flow endpoints",
    ["endpoint"],
    buckets=(0.05, 0.1, 0.5, 1.0, 5.0, 10.0, float("inf")),
)

# Histogram for token endpoint call latency
TOKEN_REQUEST_LATENCY = Histogram(
    "smartthings_oauth_token_request_duration_seconds",
    "Duration of requests to the OAuth token endpoint",
    ["grant_type"],
    buckets=(0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, float("inf")),
)


def record_flow_event(endpoint: str, outcome: str) -> None:
    """Count one request to a flow endpoint."""
    FLOW_EVENTS.labels(endpoint=endpoint, outcome=outcome).inc()


def track_endpoint(endpoint: str) -> Callable:
    """Decorate route handlers with this decorator to track endpoint latency."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            with ENDPOINT_LATENCY.labels(endpoint=endpoint).time():
                return await func(*args, **kwargs)

        return wrapper

    return decorator


# Metrics route
async def metrics(_request: Request) -> PlainTextResponse:
    """Metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)

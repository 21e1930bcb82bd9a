"""Prometheus metrics for the SmartThings OAuth flow server."""

from smartthings_oauth.src.metrics.metrics import (
    ENDPOINT_LATENCY,
    FLOW_EVENTS,
    TOKEN_REQUEST_LATENCY,
    metrics,
    record_flow_event,
    track_endpoint,
)

__all__ = [
    "ENDPOINT_LATENCY",
    "FLOW_EVENTS",
    "TOKEN_REQUEST_LATENCY",
    "metrics",
    "record_flow_event",
    "track_endpoint",
]

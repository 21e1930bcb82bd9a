"""
Exception handling utilities for the SmartThings API client.

This module provides the API error type and a decorator that turns
transport and HTTP failures into it.
"""

from typing import Callable, Optional, TypeVar, ParamSpec, Awaitable
from functools import wraps

import httpx

from smartthings_oauth.src.logger import log


class SmartThingsAPIError(Exception):
    """Exception for SmartThings API errors."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


# Type variables for the decorator
P = ParamSpec("P")
T = TypeVar("T")


def sanitize_exceptions(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
    """
    Decorate a function to sanitize exceptions from API calls.

    The operation name for logging is automatically derived from the function name.
    For 4xx status codes, the response body is included in the exception message
    to provide more detailed error information.

    Returns:
        Decorated function that catches and sanitizes exceptions
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        operation_name = func.__name__
        try:
            return await func(*args, **kwargs)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text
            log.error(
                "API error during %s: Status: %s, Body: %s",
                operation_name,
                status,
                body,
            )

            error_msg = f"API error: Status {status}"
            if 400 <= status <= 499 and body:
                error_msg += f", Details: {body[:500]}"
            raise SmartThingsAPIError(error_msg, status=status) from e
        except httpx.HTTPError as e:
            log.error("Request error during %s: %s", operation_name, str(e))
            raise SmartThingsAPIError(f"Request failed: {e}") from e
        except ValueError as e:
            log.error("Invalid response during %s: %s", operation_name, str(e))
            raise SmartThingsAPIError("Invalid response from SmartThings API") from e

    return wrapper

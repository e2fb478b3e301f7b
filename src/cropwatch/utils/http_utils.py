"""
HTTP utility functions for calls to the managed backend and providers.

Wraps httpx so transport failures and non-2xx responses surface as
ExternalServiceError with a readable message.
"""
import httpx
from typing import Any, Optional
import logging

from cropwatch.errors import ExternalServiceError

logger = logging.getLogger(__name__)


def error_message(response: httpx.Response) -> str:
    """
    Build a readable message for a failed response.

    Uses the ``error`` (or PostgREST ``message``) field of a JSON body when
    present, otherwise a generic status-based message.

    Args:
        response: A response that has already been read

    Returns:
        Error message string
    """
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for field in ("error", "message", "msg"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
    return f"Request failed with status {response.status_code}"


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    service: str = "upstream",
    **kwargs
) -> Any:
    """
    Send a request and return the decoded JSON body.

    Args:
        client: httpx AsyncClient instance
        method: HTTP method
        url: Absolute request URL
        service: Name used in log and error messages
        **kwargs: Additional arguments to pass to the HTTP request

    Returns:
        Decoded JSON body, or None for an empty body

    Raises:
        ExternalServiceError: On transport failure or non-2xx status
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.error(f"{service} request failed ({method} {url}): {e}")
        raise ExternalServiceError(f"{service} unavailable") from e

    if response.is_error:
        message = error_message(response)
        logger.error(f"{service} returned {response.status_code}: {message}")
        raise ExternalServiceError(f"{service} error: {message}")

    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise ExternalServiceError(f"{service} returned invalid JSON") from e


async def check_service_health(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = 5.0,
    **kwargs
) -> bool:
    """
    Check if a dependency answers at all.

    Args:
        client: httpx AsyncClient instance
        url: URL to probe
        timeout: Request timeout in seconds

    Returns:
        True if the service answered without a 5xx, False otherwise
    """
    try:
        response = await client.get(url, timeout=timeout, **kwargs)
        return response.status_code < 500
    except httpx.HTTPError:
        return False

"""
Low-level HTTP request library for Horse Health backend communication.
This module maps aiohttp failures onto the integration's error taxonomy.
"""
import asyncio
import logging

import aiohttp

from .errors import HttpError, InvalidResponseError, NetworkError, RequestTimeout

_LOGGER = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15  # seconds


async def check_api_availability(base_url: str, timeout: int = 15) -> bool:
    """
    Check if the Horse Health backend is reachable by requesting the horse list.

    Args:
        base_url: Backend base URL, e.g. https://example.com/api
        timeout: Timeout in seconds for the probe request

    Returns:
        True if the backend answered with any 2xx status, False otherwise
    """
    url = f"{base_url.rstrip('/')}/horses"
    try:
        timeout_config = aiohttp.ClientTimeout(total=timeout)
        async with aiohttp.ClientSession(timeout=timeout_config) as session:
            async with session.get(url, headers={"accept": "application/json"}) as response:
                if response.status >= 300:
                    _LOGGER.warning("Backend is not reachable (status %s)", response.status)
                    return False
                return True

    except (asyncio.TimeoutError, TimeoutError):
        _LOGGER.warning("Timeout while checking backend URL %s", url)
        return False
    except aiohttp.ClientError as e:
        _LOGGER.error("Error while checking backend availability: %s", e)
        return False


async def make_request(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    payload: dict = None,
    timeout: float = REQUEST_TIMEOUT,
):
    """
    Make a single HTTP request and decode its JSON body.

    Args:
        session: Open aiohttp session owned by the caller
        method: HTTP method (GET or POST)
        url: Target URL for the request
        payload: JSON payload for POST requests (optional)
        timeout: Total time bound in seconds; the request is aborted when exceeded

    Returns:
        Parsed JSON response, or None for an empty 2xx body

    Raises:
        RequestTimeout: If the request exceeded its time bound
        NetworkError: On connection-level failures
        HttpError: If the backend answered with a non-2xx status
        InvalidResponseError: If a 2xx body is not valid JSON
    """
    method = method.upper()
    if method not in ("GET", "POST"):
        raise ValueError(f"Unsupported HTTP method: {method}")

    headers = {"accept": "application/json"}
    timeout_config = aiohttp.ClientTimeout(total=timeout)
    try:
        async with session.request(
            method, url, headers=headers, json=payload, timeout=timeout_config
        ) as response:
            return await _process_response(response, url)

    except (asyncio.TimeoutError, TimeoutError) as e:
        _LOGGER.debug("Timeout on %s request to %s after %ss", method, url, timeout)
        raise RequestTimeout(f"Timed out after {timeout}s: {method} {url}") from e
    except aiohttp.ClientError as e:
        raise NetworkError(f"{type(e).__name__} on {method} {url}: {e}") from e


async def _process_response(response, url: str):
    """
    Process HTTP response and extract JSON data.

    Args:
        response: aiohttp response object
        url: Request URL (for logging)

    Returns:
        Parsed JSON response or None when the body is empty

    Raises:
        HttpError: For non-2xx statuses
        InvalidResponseError: For 2xx bodies that are not JSON
    """
    if response.status >= 300 or response.status < 200:
        text = await response.text()
        _LOGGER.debug(
            "Error response from %s: status %s, body preview: %s",
            url, response.status, text[:200],
        )
        raise HttpError(response.status, url)

    text = await response.text()
    if not text.strip():
        return None
    try:
        return await response.json(content_type=None)
    except ValueError as e:
        content_type = response.headers.get("Content-Type", "")
        _LOGGER.warning(
            "Undecodable body from %s (content-type: %s): %s",
            url, content_type, text[:200],
        )
        raise InvalidResponseError(f"Expected JSON but got {content_type} from {url}") from e

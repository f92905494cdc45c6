"""
Common utilities shared across release_radar modules: verbose logging and
the HTTP helpers used by the fetchers, the marketplace client and the mirror.
"""

from __future__ import annotations

import json
import os
import socket
import urllib.error
import urllib.request
from typing import Any

from .errors import ApiError, FetchError, ParseError, RateLimitError

USER_AGENT = "ReleaseRadar/1.0"

DEFAULT_TIMEOUT = 15


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or os.environ.get("RELEASE_RADAR_DEBUG", "0") == "1":
        from .logging_config import get_logger
        get_logger().info(msg)


def github_headers() -> dict[str, str]:
    """Headers for GitHub API requests, with the caller's token if set."""
    headers = {
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": USER_AGENT,
    }
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        headers["Authorization"] = f"token {token}"
    return headers


def http_request(
    url: str,
    data: bytes | None = None,
    headers: dict[str, str] | None = None,
    method: str | None = None,
    timeout: int = DEFAULT_TIMEOUT,
    source: str = "HTTP",
) -> bytes:
    """Perform an HTTP request and return the body.

    Args:
        url: URL to fetch
        data: Optional request body (implies POST unless method is given)
        headers: Optional HTTP headers
        method: Optional explicit HTTP method
        timeout: Timeout in seconds
        source: Label used in error messages (e.g. "GitHub API")

    Returns:
        Response body as bytes

    Raises:
        RateLimitError: On 429, or 403 with an exhausted rate limit
        ApiError: On any other non-success status
        FetchError: On network failures and timeouts
    """
    request_headers = {"User-Agent": USER_AGENT}
    if headers:
        request_headers.update(headers)

    req = urllib.request.Request(url, data=data, headers=request_headers, method=method)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return response.read()
    except urllib.error.HTTPError as e:
        remaining = e.headers.get("X-RateLimit-Remaining") if e.headers else None
        if e.code == 429 or (e.code == 403 and remaining in (None, "0")):
            raise RateLimitError(f"{source} error: {e.code} rate limit exceeded", status=e.code) from e
        raise ApiError(f"{source} error: {e.code} {e.reason}", status=e.code) from e
    except (urllib.error.URLError, socket.timeout, TimeoutError, ConnectionError) as e:
        reason = getattr(e, "reason", e)
        raise FetchError(f"Failed to fetch {url}: {reason}") from e


def http_get(url: str, timeout: int = DEFAULT_TIMEOUT, headers: dict[str, str] | None = None,
             source: str = "HTTP") -> bytes:
    """Perform HTTP GET request."""
    return http_request(url, headers=headers, timeout=timeout, source=source)


def decode_json(body: bytes, source: str = "HTTP") -> Any:
    """Decode a JSON response body, raising ParseError on malformed input."""
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError(f"{source} returned malformed JSON: {e}") from e


def http_get_json(url: str, timeout: int = DEFAULT_TIMEOUT, headers: dict[str, str] | None = None,
                  source: str = "HTTP") -> Any:
    """Perform HTTP GET request and decode the JSON body."""
    return decode_json(http_get(url, timeout=timeout, headers=headers, source=source), source)


def http_post_json(url: str, payload: Any, timeout: int = DEFAULT_TIMEOUT,
                   headers: dict[str, str] | None = None, source: str = "HTTP") -> Any:
    """POST a JSON payload and decode the JSON response body."""
    request_headers = {"Content-Type": "application/json"}
    if headers:
        request_headers.update(headers)
    body = http_request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers=request_headers,
        method="POST",
        timeout=timeout,
        source=source,
    )
    return decode_json(body, source)

"""
HTTP session configuration for outgoing platform calls.

Replies go out through a single long-lived aiohttp session per sender; the
timeouts below keep a stalled platform endpoint from holding up dispatch.

Usage:
    from chorus.http_client import create_client_session

    async with create_client_session() as session:
        await session.post(endpoint, json=payload)
"""

from __future__ import annotations

import aiohttp
from aiohttp import ClientTimeout

__all__ = [
    "SEND_TIMEOUT",
    "get_send_timeout",
    "create_client_session",
]

# Replies are small; fail fast so a dead endpoint surfaces as a SenderError
SEND_TIMEOUT = ClientTimeout(
    total=15,
    connect=5,
    sock_read=10,
)


def get_send_timeout() -> ClientTimeout:
    return SEND_TIMEOUT


def create_client_session(
    timeout: ClientTimeout | None = None,
    token: str | None = None,
    **kwargs,
) -> aiohttp.ClientSession:
    """Create an aiohttp ClientSession for the platform endpoint.

    Args:
        timeout: Optional custom timeout. Uses SEND_TIMEOUT if not specified.
        token: Optional bearer token added to every request.
        **kwargs: Additional arguments passed to ClientSession.

    Returns:
        Configured aiohttp.ClientSession.
    """
    if timeout is None:
        timeout = SEND_TIMEOUT
    if token:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("Authorization", f"Bearer {token}")
        kwargs["headers"] = headers
    return aiohttp.ClientSession(timeout=timeout, **kwargs)

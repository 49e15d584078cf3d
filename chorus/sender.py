"""
HTTP transport for outgoing replies.

``HttpSender`` posts each reply as JSON to a platform endpoint::

    {"context_type": "group", "context_id": 100, "message": "hello"}

A non-2xx response or a connection failure raises ``SenderError``.

Usage:
    async with HttpSender("http://localhost:5700/send", token="secret") as sender:
        app = App(sender=sender)
        await app.receive(meta)
"""

from __future__ import annotations

from typing import Optional

import aiohttp
from aiohttp import ClientTimeout

from chorus.exceptions import SenderError
from chorus.http_client import create_client_session
from chorus.logging_config import get_logger, log_function
from chorus.scope import ContextType

logger = get_logger(__name__)


class HttpSender:
    """Sends replies through an HTTP endpoint, reusing one client session."""

    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        timeout: Optional[ClientTimeout] = None,
    ) -> None:
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = create_client_session(self.timeout, token=self.token)
        return self._session

    @log_function(level="DEBUG")
    async def send(self, context_type: ContextType, context_id: int, message: str) -> None:
        payload = {
            "context_type": ContextType(context_type).value,
            "context_id": context_id,
            "message": message,
        }
        session = self._get_session()
        try:
            async with session.post(self.endpoint, json=payload) as response:
                if response.status >= 300:
                    body = await response.text()
                    raise SenderError(body[:200] or response.reason or "error", status=response.status)
        except aiohttp.ClientError as e:
            raise SenderError(str(e) or type(e).__name__) from e

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> HttpSender:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


__all__ = ["HttpSender"]

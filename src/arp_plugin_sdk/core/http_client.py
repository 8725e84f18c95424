"""Outbound HTTP client management for arp plugins.

Handlers run under a fresh event loop per synchronous host call, so a pooled
client cannot outlive the call that created it. The manager hands out
short-lived clients that all share the configured timeouts, limits and
(for tests) transport.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from .config import Settings, get_settings_instance
from .exceptions import HttpRequestFailed
from .logging import get_logger

logger = get_logger(__name__)


class HTTPClientManager:
    """Builds configured ``httpx.AsyncClient`` sessions for plugin handlers."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        user_agent: str = "arp-plugin",
    ) -> None:
        self._settings = settings or get_settings_instance()
        self._transport = transport
        self._user_agent = user_agent

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self._settings.http_timeout)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[httpx.AsyncClient]:
        """Open a client for the duration of one handler call."""
        logger.debug("Opening HTTP client", extra={"timeout": self._settings.http_timeout})
        client = httpx.AsyncClient(
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self._user_agent},
            transport=self._transport,
        )
        try:
            yield client
        finally:
            await client.aclose()

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET ``url`` and return the decoded JSON body.

        Raises:
            HttpRequestFailed: on a status code >= 400.
            httpx.TransportError: on connection failures and timeouts.
            ValueError: when the body is not valid JSON.
        """
        async with self.session() as client:
            logger.info("http.get", extra={"url": url})
            resp = await client.get(url, **kwargs)
            if resp.status_code >= 400:
                logger.warning("http.get error", extra={"url": url, "status": resp.status_code})
                body: Any = resp.text
                raise HttpRequestFailed(resp.status_code, url, body=body, headers=dict(resp.headers))
            return resp.json()

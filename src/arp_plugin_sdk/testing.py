"""Test scaffolding for arp plugin development.

Provides :class:`FakeHostRouter` (a stand-in for the host process that
discovers routes, dispatches requests and releases every buffer it gets) and
:class:`FakeUpstream` (an ``httpx.MockTransport`` builder for handlers that
call out over HTTP).
"""

from __future__ import annotations

import json
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx

from .buffers import ResponseHandle
from .module import PluginModule
from .request import RAW_QUERY_HEADER


@contextmanager
def patch_retry_sleep() -> Generator[AsyncMock, None, None]:
    """Suppress ``asyncio.sleep`` delays inside ``@with_retry`` decorated functions.

    Yields:
        The :class:`~unittest.mock.AsyncMock` replacing ``asyncio.sleep``, in case
        you want to assert on call count or arguments.
    """
    with patch("arp_plugin_sdk.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@dataclass
class HostResponse:
    """What the host copied out of a plugin buffer before releasing it."""

    function: str
    text: str
    media_type: str | None = None

    def json(self) -> Any:
        return json.loads(self.text)


class FakeHostRouter:
    """Minimal host: route discovery, dispatch by (method, path), buffer release.

    Usage::

        host = FakeHostRouter(create_plugin(settings))
        resp = host.request("GET", "/products", query="limit=3&orderby=price")
        assert len(resp.json()) == 3
    """

    def __init__(self, plugin: PluginModule) -> None:
        self.plugin = plugin
        handle = plugin.routes()
        try:
            self.route_table: list[dict[str, Any]] = json.loads(handle.text())
        finally:
            plugin.free(handle)

    def resolve(self, method: str, path: str) -> str:
        """Return the handler name for ``method path``.

        Raises:
            LookupError: if the plugin does not route ``method path``.
        """
        wanted = method.lower()
        for entry in self.route_table:
            if entry["path"] == path and entry["method_router"] == wanted:
                return entry["function"]
        raise LookupError(f"No route for {method.upper()} {path}")

    def _headers(self, headers: Mapping[str, str] | None, query: str) -> dict[str, str]:
        merged = dict(headers or {})
        if query:
            merged[RAW_QUERY_HEADER] = query
        return merged

    def _collect(self, function: str, handle: ResponseHandle | None) -> HostResponse | None:
        if handle is None:
            return None
        try:
            return HostResponse(function=function, text=handle.text(), media_type=handle.media_type)
        finally:
            self.plugin.free(handle)

    def request(
        self,
        method: str,
        path: str,
        *,
        query: str = "",
        headers: Mapping[str, str] | None = None,
        body: bytes | str = b"",
    ) -> HostResponse | None:
        """Dispatch synchronously; None when the plugin returned the null sentinel."""
        function = self.resolve(method, path)
        handle = self.plugin.call(function, self._headers(headers, query), body)
        return self._collect(function, handle)

    async def arequest(
        self,
        method: str,
        path: str,
        *,
        query: str = "",
        headers: Mapping[str, str] | None = None,
        body: bytes | str = b"",
    ) -> HostResponse | None:
        """Async variant of :meth:`request` for tests already inside an event loop."""
        function = self.resolve(method, path)
        handle = await self.plugin.acall(function, self._headers(headers, query), body)
        return self._collect(function, handle)


@dataclass
class _Scripted:
    responses: list[Any] = field(default_factory=list)
    calls: int = 0

    def next(self) -> Any:
        item = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        return item


class FakeUpstream:
    """Fluent builder for an ``httpx.MockTransport`` serving canned responses.

    Responses registered for the same (method, url) are served in order; the
    last one repeats. Unregistered URLs answer 404.

    Usage::

        upstream = FakeUpstream().with_status(URL, 503).with_json(URL, {"products": []})
        plugin = create_plugin(settings, transport=upstream.transport())
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], _Scripted] = {}
        self.requests: list[httpx.Request] = []

    def _add(self, method: str, url: str, item: Any) -> FakeUpstream:
        self._routes.setdefault((method.upper(), url), _Scripted()).responses.append(item)
        return self

    def with_json(self, url: str, data: Any, status_code: int = 200, method: str = "GET") -> FakeUpstream:
        return self._add(method, url, httpx.Response(status_code, json=data))

    def with_text(self, url: str, text: str, status_code: int = 200, method: str = "GET") -> FakeUpstream:
        return self._add(method, url, httpx.Response(status_code, text=text))

    def with_status(
        self,
        url: str,
        status_code: int,
        body: str = "",
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> FakeUpstream:
        return self._add(method, url, httpx.Response(status_code, text=body, headers=headers))

    def with_error(
        self,
        url: str,
        exc_type: type[httpx.RequestError] = httpx.ConnectError,
        message: str = "connection refused",
        method: str = "GET",
    ) -> FakeUpstream:
        """Make requests to ``url`` raise ``exc_type`` (a transport-level failure)."""
        return self._add(method, url, (exc_type, message))

    def calls_to(self, url: str, method: str = "GET") -> int:
        scripted = self._routes.get((method.upper(), url))
        return scripted.calls if scripted else 0

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        scripted = self._routes.get((request.method, str(request.url)))
        if scripted is None:
            return httpx.Response(404, text="not found")
        item = scripted.next()
        if isinstance(item, tuple):
            exc_type, message = item
            raise exc_type(message, request=request)
        return item

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

"""The host-facing surface of a loaded plugin.

A ``PluginModule`` is built once, when the plugin is loaded, from the
plugin's ``RouteTable`` and its handler coroutines. The host then:

1. calls ``routes()`` once to discover the route table,
2. calls ``call(function, headers, body)`` (or ``await acall(...)``) per request,
3. calls ``free(handle)`` exactly once for every handle it received.

``call``/``acall`` never raise for request-level problems. Missing headers or
body and unknown handler names return ``None`` (the null sentinel);
everything else comes back as a response buffer, with failures encoded as
``{"error": "..."}`` payloads.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping

import httpx

from .buffers import BufferArena, ResponseHandle
from .core.config import Settings, get_settings_instance
from .core.exceptions import InvalidRequestError
from .core.logging import get_logger
from .request import RequestView
from .result import HandlerResult, ResultStatus, error_body
from .routes import ResponseType, RouteDescriptor, RouteTable

logger = get_logger(__name__)

Handler = Callable[[RequestView], Awaitable[HandlerResult]]
HeadersLike = Mapping[str, str] | httpx.Headers


class PluginModule:
    def __init__(
        self,
        *,
        name: str,
        version: str,
        routes: RouteTable,
        handlers: Mapping[str, Handler],
        settings: Settings | None = None,
    ) -> None:
        self.name = name
        self.version = version
        self._routes = routes
        self._handlers = routes.bind(handlers)
        self._settings = settings or get_settings_instance()
        self._arena = BufferArena()
        # A handler bound to several paths answers with the first route's type
        self._route_by_handler: dict[str, RouteDescriptor] = {}
        for route in routes:
            self._route_by_handler.setdefault(route.handler_name, route)

    def __repr__(self) -> str:
        return f"PluginModule(name={self.name!r}, version={self.version!r}, routes={len(self._routes)})"

    @property
    def route_table(self) -> RouteTable:
        return self._routes

    @property
    def arena(self) -> BufferArena:
        return self._arena

    @property
    def handler_names(self) -> list[str]:
        return list(self._handlers)

    def has_handler(self, function: str) -> bool:
        return function in self._handlers

    def routes(self) -> ResponseHandle:
        """Return the route table document as an owned buffer."""
        return self._arena.adopt(self._routes.to_json(), ResponseType.json.media_type)

    def free(self, handle: ResponseHandle | None) -> None:
        """Release a handle returned by ``routes()`` or a handler. ``None`` is a no-op."""
        self._arena.free(handle)

    async def invoke(
        self,
        function: str,
        headers: HeadersLike | None,
        body: bytes | str | None,
    ) -> HandlerResult:
        """Run one handler and return its result envelope without allocating a buffer."""
        handler = self._handlers.get(function)
        if handler is None:
            logger.warning("Unknown handler requested", extra={"plugin": self.name, "function": function})
            return HandlerResult.no_input()
        if headers is None or body is None:
            logger.warning(
                "Handler called without headers or body",
                extra={"plugin": self.name, "function": function},
            )
            return HandlerResult.no_input()

        request = RequestView(headers, body)
        timeout = self._settings.handler_timeout
        try:
            result = await asyncio.wait_for(handler(request), timeout=timeout)
        except InvalidRequestError as e:
            logger.info(
                "Rejected request",
                extra={"plugin": self.name, "function": function, "code": e.error_code, "reason": e.message},
            )
            return HandlerResult.invalid(e.message, code=e.error_code, details=e.details)
        except TimeoutError:
            logger.warning("Handler timed out", extra={"plugin": self.name, "function": function, "timeout": timeout})
            return HandlerResult.failed(f"Handler '{function}' timed out after {timeout}s", code="timeout")
        except Exception as e:  # noqa: BLE001
            logger.exception("Handler failed", extra={"plugin": self.name, "function": function})
            return HandlerResult.failed(f"Handler '{function}' failed: {e}", code="handler_error")

        if not isinstance(result, HandlerResult):
            logger.error(
                "Handler returned %s instead of HandlerResult",
                type(result).__name__,
                extra={"plugin": self.name, "function": function},
            )
            return HandlerResult.failed(f"Handler '{function}' returned an invalid result", code="handler_error")
        return result

    async def acall(
        self,
        function: str,
        headers: HeadersLike | None,
        body: bytes | str | None,
    ) -> ResponseHandle | None:
        """Dispatch to ``function`` and hand the serialized response to the caller.

        Returns None when the handler is unknown or headers/body are missing.
        """
        result = await self.invoke(function, headers, body)
        logger.debug("Handler finished", extra={"plugin": self.name, "function": function, "status": result.status.value})
        return self._encode(function, result)

    def call(
        self,
        function: str,
        headers: HeadersLike | None,
        body: bytes | str | None,
    ) -> ResponseHandle | None:
        """Synchronous ``acall`` for hosts without an event loop.

        Runs the handler to completion on the calling thread. Must not be
        called from inside a running event loop; use ``acall`` there.
        """
        return asyncio.run(self.acall(function, headers, body))

    def _encode(self, function: str, result: HandlerResult) -> ResponseHandle | None:
        if result.status is ResultStatus.no_input or result.body is None:
            return None
        if result.status is ResultStatus.success:
            route = self._route_by_handler.get(function)
            media_type = route.response_type.media_type if route else None
        else:
            media_type = ResponseType.json.media_type
        try:
            return self._arena.adopt(result.body, media_type)
        except ValueError as e:
            logger.error("Unencodable response", extra={"plugin": self.name, "function": function, "reason": str(e)})
            return self._arena.adopt(error_body(f"Unencodable response: {e}"), ResponseType.json.media_type)


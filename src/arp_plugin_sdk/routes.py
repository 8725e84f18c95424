"""Route descriptors and the route table a plugin exposes for discovery.

A plugin builds one ``RouteTable`` when it is loaded and hands it to its
``PluginModule``; nothing here is process-global::

    table = RouteTable([
        RouteDescriptor(path="/products", function="products_get", method_router="get", response_type="json"),
        RouteDescriptor(path="/about", function="about", method_router="get", response_type="text"),
    ])

On the wire each descriptor is ``{"path", "function", "method_router", "response_type"}``.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .core.exceptions import DuplicateRouteError, RouteBindingError


class HttpMethod(str, Enum):
    get = "get"
    post = "post"
    put = "put"
    patch = "patch"
    delete = "delete"
    head = "head"
    options = "options"


class ResponseType(str, Enum):
    json = "json"
    html = "html"
    text = "text"

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self]


_MEDIA_TYPES = {
    ResponseType.json: "application/json",
    ResponseType.html: "text/html; charset=utf-8",
    ResponseType.text: "text/plain; charset=utf-8",
}


class RouteDescriptor(BaseModel):
    """One path/method/handler binding."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    handler_name: str = Field(alias="function")
    method: HttpMethod = Field(alias="method_router")
    response_type: ResponseType

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# JSON Schema (Draft 7) for one entry of the routes() document
ROUTE_DESCRIPTOR_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "path": {"type": "string", "pattern": "^/"},
        "function": {"type": "string", "pattern": r"^[A-Za-z_][A-Za-z0-9_]*$"},
        "method_router": {"type": "string", "enum": [m.value for m in HttpMethod]},
        "response_type": {"type": "string", "enum": [t.value for t in ResponseType]},
    },
    "required": ["path", "function", "method_router", "response_type"],
    "additionalProperties": False,
}

ROUTES_DOCUMENT_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "array",
    "items": ROUTE_DESCRIPTOR_SCHEMA,
}


class RouteTable:
    """Ordered, immutable collection of route descriptors."""

    __slots__ = ("_routes",)

    def __init__(self, routes: list[RouteDescriptor] | tuple[RouteDescriptor, ...] = ()) -> None:
        seen: set[tuple[str, HttpMethod]] = set()
        for route in routes:
            key = (route.path, route.method)
            if key in seen:
                raise DuplicateRouteError(route.path, route.method.value)
            seen.add(key)
        self._routes: tuple[RouteDescriptor, ...] = tuple(routes)

    def __iter__(self) -> Iterator[RouteDescriptor]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __repr__(self) -> str:
        return f"RouteTable({[f'{r.method.value.upper()} {r.path}' for r in self._routes]!r})"

    @property
    def handler_names(self) -> list[str]:
        """Handler names in declaration order, without duplicates."""
        return list(dict.fromkeys(r.handler_name for r in self._routes))

    def find(self, path: str, method: str | HttpMethod) -> RouteDescriptor | None:
        """Resolve the descriptor for ``method path``; None if not routed."""
        try:
            wanted = HttpMethod(method.lower() if isinstance(method, str) else method)
        except ValueError:
            return None
        for route in self._routes:
            if route.path == path and route.method is wanted:
                return route
        return None

    def bind(self, handlers: Mapping[str, Any]) -> dict[str, Any]:
        """Return the handler for every route, keyed by handler name.

        Raises:
            RouteBindingError: if a route names a handler missing from ``handlers``.
        """
        bound: dict[str, Any] = {}
        for route in self._routes:
            handler = handlers.get(route.handler_name)
            if handler is None or not callable(handler):
                raise RouteBindingError(route.handler_name, route.path)
            bound[route.handler_name] = handler
        return bound

    def to_wire(self) -> list[dict[str, Any]]:
        return [r.to_wire() for r in self._routes]

    def to_json(self) -> str:
        """Pretty-printed JSON array in declaration order (``[]`` when empty)."""
        return json.dumps(self.to_wire(), indent=2)

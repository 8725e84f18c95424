"""arp-skeleton: example plugin exercising the full host/plugin contract.

Routes:

- ``POST /groceries`` (html): fetch a remote JSON listing and render it.
- ``GET /products`` (json): list products, ``?limit=&orderby=``.
- ``POST /products`` (json): add one product, returns the whole list.
- ``GET /about`` (text): plugin metadata.
"""

from __future__ import annotations

import httpx
from pydantic import BaseModel

from arp_plugin_sdk import (
    HandlerResult,
    NonRetryableError,
    PluginModule,
    RequestView,
    RetryableError,
    RetryConfig,
    RouteDescriptor,
    RouteTable,
    Settings,
    get_logger,
    get_settings_instance,
    json_body,
)
from arp_plugin_sdk.core.http_client import HTTPClientManager

from .groceries import fetch_groceries, map_upstream_error, render_groceries
from .manifest import PLUGIN_MANIFEST
from .store import Product, ProductStore, build_store

logger = get_logger(__name__)


class ProductQuery(BaseModel):
    limit: int = 4
    orderby: str = "id"


def build_route_table() -> RouteTable:
    return RouteTable(
        [
            RouteDescriptor(path="/groceries", function="groceries", method_router="post", response_type="html"),
            RouteDescriptor(path="/products", function="products_get", method_router="get", response_type="json"),
            RouteDescriptor(path="/products", function="products_post", method_router="post", response_type="json"),
            RouteDescriptor(path="/about", function="about", method_router="get", response_type="text"),
        ]
    )


def sort_products(products: list[Product], orderby: str) -> list[Product]:
    """Ascending by ``name`` or ``price``; anything else orders by id, missing ids first."""
    if orderby == "name":
        return sorted(products, key=lambda p: p.name)
    if orderby == "price":
        return sorted(products, key=lambda p: p.price)
    return sorted(products, key=lambda p: (p.id is not None, p.id or 0))


def _log_request(function: str, request: RequestView) -> None:
    logger.debug(
        "Decoded request",
        extra={
            "function": function,
            "headers": dict(request.headers.items()),
            "query": request.raw_query,
            "body": request.text(),
        },
    )


class ArpSkeletonPlugin:
    name = PLUGIN_MANIFEST["name"]
    version = PLUGIN_MANIFEST["version"]

    def __init__(self, settings: Settings, *, store: ProductStore, http: HTTPClientManager) -> None:
        self._settings = settings
        self._store = store
        self._http = http

    def handlers(self) -> dict:
        return {
            "groceries": self.groceries,
            "products_get": self.products_get,
            "products_post": self.products_post,
            "about": self.about,
        }

    async def products_get(self, request: RequestView) -> HandlerResult:
        _log_request("products_get", request)
        query = request.query(ProductQuery)
        products = sort_products(self._store.list(), query.orderby)
        limit = max(0, min(query.limit, len(products)))
        return HandlerResult.ok(json_body(products[:limit]))

    async def products_post(self, request: RequestView) -> HandlerResult:
        if err := request.require_content_type("application/json"):
            return err
        _log_request("products_post", request)
        product = request.body_as(Product)
        products = self._store.append(product)
        logger.info("Product added", extra={"plugin": self.name, "count": len(products)})
        return HandlerResult.ok(json_body(products, pretty=True))

    async def about(self, request: RequestView) -> HandlerResult:
        return HandlerResult.ok(
            "\n".join(
                [
                    f"Name: {PLUGIN_MANIFEST['name']}",
                    f"Version: {PLUGIN_MANIFEST['version']}",
                    f"Authors: {PLUGIN_MANIFEST['authors']}",
                    f"Description: {PLUGIN_MANIFEST['description']}",
                    f"License: {PLUGIN_MANIFEST['license']}",
                ]
            )
        )

    async def groceries(self, request: RequestView) -> HandlerResult:
        url = self._settings.groceries_url
        retry = RetryConfig.from_settings(self._settings)
        try:
            listing = await fetch_groceries(self._http, url, retry)
        except (RetryableError, NonRetryableError, ValueError) as exc:
            logger.warning("Groceries fetch failed: %s", exc, extra={"plugin": self.name, "url": url})
            return map_upstream_error(exc, url)
        logger.debug("Groceries fetched", extra={"plugin": self.name, "count": len(listing.products)})
        return HandlerResult.ok(render_groceries(listing))


def create_plugin(
    settings: Settings | None = None,
    *,
    store: ProductStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PluginModule:
    """Build the arp-skeleton ``PluginModule``.

    ``store`` overrides the ``ARP_PRODUCT_STORE`` choice and ``transport`` is
    handed to the outbound HTTP client (tests pass a mock transport).
    """
    settings = settings or get_settings_instance()
    plugin = ArpSkeletonPlugin(
        settings,
        store=store if store is not None else build_store(settings.product_store),
        http=HTTPClientManager(settings, transport=transport, user_agent="arp-skeleton"),
    )
    return PluginModule(
        name=plugin.name,
        version=plugin.version,
        routes=build_route_table(),
        handlers=plugin.handlers(),
        settings=settings,
    )

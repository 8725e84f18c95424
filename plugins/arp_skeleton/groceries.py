"""Groceries fetch-and-render example.

Fetches the MDN ``products.json`` document and renders it as an HTML
fragment. All failures come back as ``HandlerResult.failed`` payloads.
"""

from __future__ import annotations

from typing import Any

import httpx
from jinja2.sandbox import SandboxedEnvironment
from pydantic import BaseModel, ConfigDict, Field

from arp_plugin_sdk import (
    HandlerResult,
    HttpRequestFailed,
    NonRetryableError,
    RetryableError,
    RetryConfig,
    with_retry,
)
from arp_plugin_sdk.core.http_client import HTTPClientManager
from arp_plugin_sdk.core.logging import get_logger

logger = get_logger(__name__)

TITLE = "Fetch json example"


class Grocery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    price: float = Field(alias="Price")
    location: str = Field(alias="Location")


class GroceriesList(BaseModel):
    products: list[Grocery]


def format_price(value: float) -> str:
    """Shortest decimal form, without a trailing ``.0`` on whole numbers."""
    if value.is_integer():
        return str(int(value))
    return repr(value)


_env = SandboxedEnvironment(autoescape=True)
_env.filters["price"] = format_price

_TEMPLATE = _env.from_string(
    """<div class="groceries">
<h1>{{ title }}</h1>
<ul>{% for item in items %}{% if not loop.first %}
{% endif %}<li>
    <strong>{{ item.name }}</strong>
    can be found in {{ item.location }}:
    <strong>£{{ item.price | price }}</strong>
</li>{% endfor %}</ul>
</div>"""
)


def render_groceries(listing: GroceriesList) -> str:
    return _TEMPLATE.render(title=TITLE, items=listing.products)


async def fetch_groceries(http: HTTPClientManager, url: str, retry: RetryConfig) -> GroceriesList:
    """GET ``url`` and validate it as a ``GroceriesList``.

    Transport errors, 429 and 5xx are retried per ``retry``.

    Raises:
        RetryableError: retries exhausted; ``__cause__`` holds the last failure.
        NonRetryableError: a permanent HTTP status; ``__cause__`` is the ``HttpRequestFailed``.
        ValueError: the body is not JSON or does not match ``GroceriesList``.
    """

    @with_retry(retry)
    async def _do_get() -> Any:
        try:
            return await http.get_json(url)
        except HttpRequestFailed as e:
            if e.is_retryable:
                raise RetryableError(str(e), retry_after=e.retry_after_seconds) from e
            raise NonRetryableError(str(e)) from e
        except httpx.TransportError as e:
            raise RetryableError(f"{type(e).__name__}: {e}") from e

    data = await _do_get()
    return GroceriesList.model_validate(data)


def map_upstream_error(exc: Exception, url: str) -> HandlerResult:
    """Turn a ``fetch_groceries`` failure into an error result."""
    cause = exc.__cause__
    if isinstance(exc, (RetryableError, NonRetryableError)) and isinstance(cause, HttpRequestFailed):
        return HandlerResult.failed(
            f"Upstream returned HTTP {cause.status_code}",
            code="upstream_status",
            details={"url": url, "status_code": cause.status_code, "category": cause.error_category},
        )
    if isinstance(exc, RetryableError):
        return HandlerResult.failed(
            f"Upstream unavailable: {exc}",
            code="upstream_unavailable",
            details={"url": url},
        )
    return HandlerResult.failed(
        f"Invalid upstream document: {exc}",
        code="upstream_decode_error",
        details={"url": url},
    )

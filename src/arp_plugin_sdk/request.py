"""Read-only request view handed to plugin handlers.

The host owns the header data and body; a ``RequestView`` only borrows them
for the duration of one handler call. Header lookup is case-insensitive.
The raw query string travels in the synthetic ``x-raw-query`` header.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, TypeVar
from urllib.parse import parse_qsl

import httpx
from pydantic import BaseModel, ValidationError

from .core.exceptions import InvalidRequestError
from .core.logging import get_logger
from .result import HandlerResult

logger = get_logger(__name__)

RAW_QUERY_HEADER = "x-raw-query"
INVALID_UTF8_PLACEHOLDER = "Invalid UTF-8 sequence"

_Q = TypeVar("_Q", bound=BaseModel)


class RequestView:
    """Headers plus body for one handler invocation."""

    __slots__ = ("_body", "_headers")

    def __init__(self, headers: Mapping[str, str] | httpx.Headers, body: bytes | str) -> None:
        self._headers = headers if isinstance(headers, httpx.Headers) else httpx.Headers(dict(headers), encoding="utf-8")
        self._body = body.encode("utf-8") if isinstance(body, str) else bytes(body)

    def __repr__(self) -> str:
        return f"RequestView(headers={list(self._headers.keys())!r}, body_len={len(self._body)})"

    @property
    def headers(self) -> httpx.Headers:
        return self._headers

    @property
    def body(self) -> bytes:
        return self._body

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup; None when absent."""
        return self._headers.get(name)

    @property
    def raw_query(self) -> str:
        return self._headers.get(RAW_QUERY_HEADER, "")

    def text(self) -> str:
        """Body decoded as UTF-8, or a placeholder if the bytes are not valid UTF-8."""
        try:
            return self._body.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning("Request body is not valid UTF-8; substituting placeholder", extra={"reason": str(e)})
            return INVALID_UTF8_PLACEHOLDER

    def json(self) -> Any:
        """Body decoded as JSON.

        Raises:
            InvalidRequestError: when the body is not valid JSON.
        """
        try:
            return json.loads(self.text())
        except json.JSONDecodeError as e:
            raise InvalidRequestError(f"Invalid JSON body: {e}", code="invalid_body") from e

    def body_as(self, model: type[_Q]) -> _Q:
        """Body decoded as JSON and validated into ``model``.

        Raises:
            InvalidRequestError: when the body is not valid JSON or does not match ``model``.
        """
        data = self.json()
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise InvalidRequestError(
                f"Invalid {model.__name__.lower()}: {_summarize(e)}",
                code="invalid_body",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    def query_params(self) -> dict[str, str]:
        """Decode ``x-raw-query`` with URL-encoded form rules; the last duplicate wins."""
        return dict(parse_qsl(self.raw_query, keep_blank_values=True))

    def query(self, model: type[_Q]) -> _Q:
        """Decode the raw query string into ``model``; fields not present keep their defaults.

        Raises:
            InvalidRequestError: when a parameter does not convert to its declared type.
        """
        params = self.query_params()
        try:
            return model.model_validate(params)
        except ValidationError as e:
            first = e.errors()[0]
            name = ".".join(str(p) for p in first.get("loc", ())) or "query"
            raise InvalidRequestError(
                f"Invalid query parameter '{name}': {first.get('msg', 'invalid value')}",
                code="invalid_query",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    def require_content_type(self, expected: str) -> HandlerResult | None:
        """Return an error result unless the content type is ``expected``, else None.

        Parameters such as ``; charset=utf-8`` are ignored and the media type is
        compared case-insensitively.
        """
        value = self.header("content-type")
        if value is None:
            return HandlerResult.invalid("No content type", code="missing_content_type")
        media_type = value.split(";", 1)[0].strip().lower()
        if media_type != expected.lower():
            return HandlerResult.invalid(f'Invalid content type: "{value}"', code="invalid_content_type")
        return None


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg')}" if loc else str(item.get("msg")))
    return "; ".join(parts)

"""Result envelope returned by plugin handlers.

Handlers never return raw strings; they return a ``HandlerResult`` and the
dispatcher turns it into an owned response buffer::

    return HandlerResult.ok(json_body(products))
    return HandlerResult.invalid("No content type", code="missing_content_type")
    return HandlerResult.failed("Upstream returned HTTP 503", code="upstream_status")

Variants:

- ``success``: ``body`` holds the serialized response.
- ``invalid``: the input was present but unusable; recoverable. ``body`` is
  ``{"error": "<reason>"}``.
- ``error``: decoding or external I/O failed; recoverable. ``body`` is
  ``{"error": "<reason>"}``.
- ``no_input``: the caller broke the contract (no headers or no body).
  There is no body; the host sees the null sentinel.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ResultStatus(str, Enum):
    success = "success"
    invalid = "invalid"
    error = "error"
    no_input = "no_input"


def json_body(data: Any, *, pretty: bool = False) -> str:
    """Serialize ``data`` (models included) the way handlers put JSON on the wire.

    Compact output uses no whitespace; pretty output uses a two-space indent.
    """
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data]
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False, allow_nan=False)
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def error_body(message: str) -> str:
    return json.dumps({"error": message}, ensure_ascii=False, allow_nan=False)


class HandlerResult(BaseModel):
    status: ResultStatus
    body: str | None = None
    error: dict[str, Any] | None = None

    @classmethod
    def ok(cls, body: str) -> HandlerResult:
        """Return a successful result carrying an already serialized body."""
        return cls(status=ResultStatus.success, body=body)

    @classmethod
    def invalid(cls, message: str, code: str = "invalid_request", details: dict[str, Any] | None = None) -> HandlerResult:
        """Return a recoverable validation failure."""
        return cls(
            status=ResultStatus.invalid,
            body=error_body(message),
            error={"code": code, "message": message, "details": details or {}},
        )

    @classmethod
    def failed(cls, message: str, code: str = "handler_error", details: dict[str, Any] | None = None) -> HandlerResult:
        """Return a recoverable decode or I/O failure."""
        return cls(
            status=ResultStatus.error,
            body=error_body(message),
            error={"code": code, "message": message, "details": details or {}},
        )

    @classmethod
    def no_input(cls) -> HandlerResult:
        """Return the caller-contract violation marker (no body)."""
        return cls(
            status=ResultStatus.no_input,
            error={"code": "no_input", "message": "No headers or body supplied", "details": {}},
        )

    @property
    def is_sentinel(self) -> bool:
        return self.status is ResultStatus.no_input

    def __repr__(self) -> str:
        return f"HandlerResult(status={self.status.value!r}, body={self.body!r})"

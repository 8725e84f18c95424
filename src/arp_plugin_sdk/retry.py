"""Bounded retries with exponential backoff for handler I/O.

Handlers mark transient failures by raising ``RetryableError`` from inside
the decorated coroutine; permanent ones by raising ``NonRetryableError``::

    @with_retry(RetryConfig.from_settings(settings))
    async def fetch_listing():
        try:
            return await http.get_json(url)
        except HttpRequestFailed as e:
            if e.is_retryable:
                raise RetryableError(str(e)) from e
            raise NonRetryableError(str(e)) from e

Chain the original exception (``from e``) so callers can map the final
failure through ``__cause__``. Anything else propagates on the first attempt.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable

from .core.config import Settings
from .core.logging import get_logger

logger = get_logger(__name__)


class RetryableError(Exception):
    """Transient failure: the wrapped call is attempted again until the budget runs out.

    ``retry_after`` is the server-requested wait in seconds (a 429's
    ``Retry-After``); the next sleep is at least that long, capped at
    ``RetryConfig.max_delay``.
    """

    def __init__(self, message: str = "", *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NonRetryableError(Exception):
    """Permanent failure: re-raised at once without another attempt."""


@dataclass
class RetryConfig:
    """Retry budget and backoff schedule.

    ``max_retries`` counts attempts after the first one, so a value of 0
    means a single attempt. The sleep before retry ``n`` (0-based) is
    ``base_delay * backoff_factor ** n``, never more than ``max_delay``.
    """

    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 10.0
    backoff_factor: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryConfig:
        return cls(max_retries=settings.http_max_retries, base_delay=settings.http_retry_base_delay)

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (self.backoff_factor ** attempt), self.max_delay)


def with_retry(config: RetryConfig) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap a coroutine function so ``RetryableError`` triggers backoff and another attempt.

    Raises:
        RetryableError: the last one, once ``config.attempts`` are used up.
        NonRetryableError: immediately.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        name = getattr(fn, "__name__", "call")

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return await fn(*args, **kwargs)
                except RetryableError as e:
                    if attempt >= config.max_retries:
                        logger.warning("Giving up on %s after %d attempts: %s", name, config.attempts, e)
                        raise
                    delay = config.delay_for(attempt)
                    if e.retry_after:
                        delay = min(max(delay, e.retry_after), config.max_delay)
                    attempt += 1
                    logger.info("Retrying %s: %s", name, e, extra={"attempt": attempt, "delay": delay})
                    await asyncio.sleep(delay)

        return wrapper

    return decorator

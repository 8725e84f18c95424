"""Logging configuration for arp plugins.

Plugins run inside a host process, so ``setup_logging()`` only configures the
``arp`` logger tree and never touches the root logger. Development output is
a colored ``time - LEVEL - logger - message | key=value`` line; hosts that
ship logs to a collector set ``ARP_LOG_FORMAT=json``.
"""

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, ClassVar

from .config import Settings, get_settings_instance

ROOT_LOGGER = "arp"

# Set once setup_logging() has run; the CLI and an embedding host may both call it
_LOGGING_CONFIGURED = False

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RESERVED_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_ATTRS}


class ColoredFormatter(logging.Formatter):
    """Single-line console format with ``key=value`` extras."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET: ClassVar[str] = "\033[0m"

    # Longer values (bodies, header dumps) only go to the JSON format
    MAX_EXTRA_LENGTH: ClassVar[int] = 100

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def _level(self, levelname: str) -> str:
        if not self.use_colors:
            return levelname
        return f"{self.COLORS.get(levelname, '')}{levelname}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{timestamp} - {self._level(record.levelname)} - {record.name} - {record.getMessage()}"

        pairs = [
            f"{key}={value}"
            for key, value in _extras(record).items()
            if value is not None
            and isinstance(value, (str, int, float, bool))
            and len(str(value)) < self.MAX_EXTRA_LENGTH
        ]
        if pairs:
            line += f" | {' '.join(pairs)}"

        if record.exc_info:
            line += "\nException:\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per record; extras are merged in at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type is not None else "Unknown",
                "message": str(exc_value),
                "traceback": traceback.format_exception(*record.exc_info),
            }
        for key, value in _extras(record).items():
            entry.setdefault(key, value)
        return json.dumps(entry, default=str)


def _build_handlers(settings: Settings) -> list[logging.Handler]:
    if settings.log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = ColoredFormatter(use_colors=settings.environment == "development")

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    return handlers


def setup_logging(settings: Settings | None = None, *, force: bool = False) -> None:
    """Configure the ``arp`` logger tree from settings.

    Later calls are no-ops unless ``force`` is set, in which case existing
    ``arp`` handlers are closed and replaced.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED and not force:
        return

    settings = settings or get_settings_instance()
    level = getattr(logging, settings.log_level)

    arp_logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(arp_logger.handlers):
        arp_logger.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(settings):
        arp_logger.addHandler(handler)
    arp_logger.setLevel(level)
    arp_logger.propagate = False

    # httpx logs every request at INFO
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _LOGGING_CONFIGURED = True
    arp_logger.debug(
        "Logging configured",
        extra={"log_level": settings.log_level, "log_format": settings.log_format, "environment": settings.environment},
    )


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``arp`` namespace."""
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")

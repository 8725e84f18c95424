"""arp-plugin-sdk: building, loading and testing arp router plugins."""

from __future__ import annotations

from arp_plugin_sdk.buffers import BufferArena, ResponseHandle
from arp_plugin_sdk.contracts import assert_plugin_contract
from arp_plugin_sdk.core.config import Settings, get_settings, get_settings_instance
from arp_plugin_sdk.core.exceptions import (
    ArpException,
    BufferAlreadyReleasedError,
    BufferReleaseError,
    DuplicateRouteError,
    ForeignBufferError,
    HttpRequestFailed,
    InvalidRequestError,
    PluginLoadError,
    RouteBindingError,
)
from arp_plugin_sdk.core.logging import get_logger, setup_logging
from arp_plugin_sdk.loader import PluginLoader, PluginRecord
from arp_plugin_sdk.module import Handler, PluginModule
from arp_plugin_sdk.request import RAW_QUERY_HEADER, RequestView
from arp_plugin_sdk.result import HandlerResult, ResultStatus, error_body, json_body
from arp_plugin_sdk.retry import NonRetryableError, RetryableError, RetryConfig, with_retry
from arp_plugin_sdk.routes import HttpMethod, ResponseType, RouteDescriptor, RouteTable
from arp_plugin_sdk.testing import FakeHostRouter, FakeUpstream, patch_retry_sleep

__all__ = [
    "ArpException",
    "assert_plugin_contract",
    "BufferAlreadyReleasedError",
    "BufferArena",
    "BufferReleaseError",
    "DuplicateRouteError",
    "error_body",
    "FakeHostRouter",
    "FakeUpstream",
    "ForeignBufferError",
    "get_logger",
    "get_settings",
    "get_settings_instance",
    "Handler",
    "HandlerResult",
    "HttpMethod",
    "HttpRequestFailed",
    "InvalidRequestError",
    "json_body",
    "NonRetryableError",
    "patch_retry_sleep",
    "PluginLoader",
    "PluginLoadError",
    "PluginModule",
    "PluginRecord",
    "RAW_QUERY_HEADER",
    "RequestView",
    "ResponseHandle",
    "ResponseType",
    "ResultStatus",
    "RetryableError",
    "RetryConfig",
    "RouteBindingError",
    "RouteDescriptor",
    "RouteTable",
    "Settings",
    "setup_logging",
    "with_retry",
]

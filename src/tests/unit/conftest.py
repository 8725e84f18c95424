"""
Shared pytest fixtures and path setup for unit tests.
"""

import sys
from pathlib import Path

# Add src/ and plugins/ to sys.path so arp_plugin_sdk.* and arp_skeleton.*
# imports work when running pytest from the repo root without an install.
PROJECT_SRC = Path(__file__).resolve().parents[2]
PLUGINS_ROOT = PROJECT_SRC.parent / "plugins"
for _path in (PROJECT_SRC, PLUGINS_ROOT):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

import pytest

from arp_plugin_sdk import (
    HandlerResult,
    PluginModule,
    RequestView,
    RouteDescriptor,
    RouteTable,
    json_body,
)
from arp_plugin_sdk.core.config import Settings, reset_settings_instance


@pytest.fixture(autouse=True)
def _fresh_settings_instance():
    """Drop the cached global settings around every test."""
    reset_settings_instance()
    yield
    reset_settings_instance()


@pytest.fixture
def settings() -> Settings:
    """Settings with short timeouts and no retry delay worth waiting for."""
    return Settings(
        ARP_ENVIRONMENT="test",
        ARP_LOG_LEVEL="DEBUG",
        ARP_HTTP_TIMEOUT=1.0,
        ARP_HTTP_MAX_RETRIES=2,
        ARP_HTTP_RETRY_BASE_DELAY=0.01,
        ARP_HANDLER_TIMEOUT=1.0,
    )


async def _echo(request: RequestView) -> HandlerResult:
    return HandlerResult.ok(
        json_body({"query": request.query_params(), "body": request.text(), "agent": request.header("User-Agent")})
    )


async def _hello(request: RequestView) -> HandlerResult:
    return HandlerResult.ok("hello")


async def _boom(request: RequestView) -> HandlerResult:
    raise RuntimeError("kaboom")


@pytest.fixture
def echo_routes() -> RouteTable:
    return RouteTable(
        [
            RouteDescriptor(path="/echo", function="echo", method_router="post", response_type="json"),
            RouteDescriptor(path="/hello", function="hello", method_router="get", response_type="text"),
            RouteDescriptor(path="/boom", function="boom", method_router="get", response_type="json"),
        ]
    )


@pytest.fixture
def echo_module(echo_routes: RouteTable, settings: Settings) -> PluginModule:
    """A three-route module: echo (json), hello (text) and boom (always raises)."""
    return PluginModule(
        name="echo",
        version="1.0.0",
        routes=echo_routes,
        handlers={"echo": _echo, "hello": _hello, "boom": _boom},
        settings=settings,
    )

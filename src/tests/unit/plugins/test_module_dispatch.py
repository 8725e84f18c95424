"""Tests for PluginModule dispatch, result encoding and error containment."""

import asyncio
import json

import pytest

from arp_plugin_sdk import HandlerResult, PluginModule, RequestView, RouteDescriptor, RouteTable
from arp_plugin_sdk.core.config import Settings
from arp_plugin_sdk.core.exceptions import RouteBindingError


def _single_route_module(handler, settings: Settings, response_type: str = "json") -> PluginModule:
    routes = RouteTable(
        [RouteDescriptor(path="/x", function="x", method_router="get", response_type=response_type)]
    )
    return PluginModule(name="single", version="0", routes=routes, handlers={"x": handler}, settings=settings)


def test_routes_returns_owned_route_document(echo_module: PluginModule) -> None:
    handle = echo_module.routes()
    assert handle.media_type == "application/json"
    assert [entry["function"] for entry in json.loads(handle.text())] == ["echo", "hello", "boom"]
    echo_module.free(handle)
    assert len(echo_module.arena) == 0


def test_missing_handler_fails_at_construction(echo_routes: RouteTable, settings: Settings) -> None:
    with pytest.raises(RouteBindingError):
        PluginModule(name="broken", version="0", routes=echo_routes, handlers={"echo": None}, settings=settings)


def test_call_success_uses_route_media_type(echo_module: PluginModule) -> None:
    handle = echo_module.call("hello", {}, b"")
    assert handle.text() == "hello"
    assert handle.media_type.startswith("text/plain")
    echo_module.free(handle)


def test_call_passes_headers_query_and_body(echo_module: PluginModule) -> None:
    handle = echo_module.call("echo", {"x-raw-query": "a=1", "user-agent": "host/1"}, "payload")
    assert json.loads(handle.text()) == {"query": {"a": "1"}, "body": "payload", "agent": "host/1"}
    echo_module.free(handle)


@pytest.mark.parametrize(("headers", "body"), [(None, b""), ({}, None), (None, None)])
def test_missing_input_returns_sentinel(echo_module: PluginModule, headers, body) -> None:
    assert echo_module.call("echo", headers, body) is None
    assert len(echo_module.arena) == 0


def test_unknown_function_returns_sentinel(echo_module: PluginModule, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING", logger="arp"):
        assert echo_module.call("nope", {}, b"") is None
    assert "Unknown handler" in caplog.text


def test_handler_exception_becomes_error_payload(echo_module: PluginModule, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("ERROR", logger="arp"):
        handle = echo_module.call("boom", {}, b"")
    assert handle.media_type == "application/json"
    assert json.loads(handle.text()) == {"error": "Handler 'boom' failed: kaboom"}
    assert "kaboom" in caplog.text
    echo_module.free(handle)


@pytest.mark.asyncio
async def test_invoke_reports_handler_error_code(echo_module: PluginModule) -> None:
    result = await echo_module.invoke("boom", {}, b"")
    assert result.error["code"] == "handler_error"


def test_invalid_request_error_becomes_invalid_result(settings: Settings) -> None:
    async def strict(request: RequestView) -> HandlerResult:
        request.json()
        return HandlerResult.ok("{}")

    module = _single_route_module(strict, settings)
    result = asyncio.run(module.invoke("x", {}, b"{broken"))
    assert result.status.value == "invalid"
    assert result.error["code"] == "invalid_body"

    handle = module.call("x", {}, b"{broken")
    assert json.loads(handle.text())["error"].startswith("Invalid JSON body")
    module.free(handle)


def test_timeout_becomes_error_result() -> None:
    async def slow(request: RequestView) -> HandlerResult:
        await asyncio.sleep(5)
        return HandlerResult.ok("late")

    module = _single_route_module(slow, Settings(ARP_HANDLER_TIMEOUT=0.05))
    result = asyncio.run(module.invoke("x", {}, b""))
    assert result.status.value == "error"
    assert result.error["code"] == "timeout"


def test_non_result_return_becomes_error(settings: Settings) -> None:
    async def sloppy(request: RequestView):
        return "raw string"

    module = _single_route_module(sloppy, settings)
    handle = module.call("x", {}, b"")
    assert json.loads(handle.text()) == {"error": "Handler 'x' returned an invalid result"}
    module.free(handle)


def test_sentinel_result_from_handler_returns_none(settings: Settings) -> None:
    async def refuses(request: RequestView) -> HandlerResult:
        return HandlerResult.no_input()

    assert _single_route_module(refuses, settings).call("x", {}, b"") is None


def test_interior_nul_in_body_becomes_error(settings: Settings) -> None:
    async def nul(request: RequestView) -> HandlerResult:
        return HandlerResult.ok("a\x00b")

    module = _single_route_module(nul, settings, response_type="text")
    handle = module.call("x", {}, b"")
    assert handle.media_type == "application/json"
    assert "interior NUL" in json.loads(handle.text())["error"]
    module.free(handle)


def test_each_response_is_a_distinct_buffer(echo_module: PluginModule) -> None:
    first = echo_module.call("hello", {}, b"")
    second = echo_module.call("hello", {}, b"")
    assert first.id != second.id
    assert len(echo_module.arena) == 2
    first.release()
    assert second.text() == "hello"
    second.release()


@pytest.mark.asyncio
async def test_acall_inside_running_loop(echo_module: PluginModule) -> None:
    handle = await echo_module.acall("hello", {}, b"")
    with handle:
        assert handle.text() == "hello"

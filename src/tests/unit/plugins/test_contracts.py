"""Tests for assert_plugin_contract."""

import pytest

from arp_plugin_sdk import PluginModule, assert_plugin_contract

_MANIFEST = {"name": "echo", "version": "1.0.0", "module": "echo.plugin:create_plugin"}


def _serve_routes(module: PluginModule, monkeypatch: pytest.MonkeyPatch, document: str) -> None:
    monkeypatch.setattr(module, "routes", lambda: module.arena.adopt(document, "application/json"))


def test_valid_plugin_passes_and_releases_buffers(echo_module: PluginModule) -> None:
    assert_plugin_contract(echo_module, manifest=_MANIFEST)
    assert len(echo_module.arena) == 0


def test_manifest_is_optional(echo_module: PluginModule) -> None:
    assert_plugin_contract(echo_module)


def test_invalid_json_fails(echo_module: PluginModule, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_routes(echo_module, monkeypatch, "{not json")
    with pytest.raises(AssertionError, match="valid JSON"):
        assert_plugin_contract(echo_module)
    assert len(echo_module.arena) == 0


def test_non_array_fails(echo_module: PluginModule, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_routes(echo_module, monkeypatch, '{"path": "/x"}')
    with pytest.raises(AssertionError, match="JSON array"):
        assert_plugin_contract(echo_module)


def test_schema_violation_fails(echo_module: PluginModule, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_routes(echo_module, monkeypatch, '[{"path": "/x", "function": "echo", "method_router": "GET", "response_type": "json"}]')
    with pytest.raises(AssertionError, match="route schema"):
        assert_plugin_contract(echo_module)


def test_unresolved_function_fails(echo_module: PluginModule, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_routes(echo_module, monkeypatch, '[{"path": "/x", "function": "ghost", "method_router": "get", "response_type": "json"}]')
    with pytest.raises(AssertionError, match="ghost"):
        assert_plugin_contract(echo_module)


def test_missing_manifest_key_fails(echo_module: PluginModule) -> None:
    with pytest.raises(AssertionError, match="missing required key 'module'"):
        assert_plugin_contract(echo_module, manifest={"name": "echo", "version": "1.0.0"})


def test_name_mismatch_fails(echo_module: PluginModule) -> None:
    with pytest.raises(AssertionError, match="does not match manifest 'name'"):
        assert_plugin_contract(echo_module, manifest={**_MANIFEST, "name": "other"})


def test_version_mismatch_fails(echo_module: PluginModule) -> None:
    with pytest.raises(AssertionError, match="does not match manifest 'version'"):
        assert_plugin_contract(echo_module, manifest={**_MANIFEST, "version": "2"})

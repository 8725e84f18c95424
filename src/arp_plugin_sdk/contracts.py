"""Static contract validation for arp plugins."""

from __future__ import annotations

import json

import jsonschema

from .module import PluginModule
from .routes import ROUTES_DOCUMENT_SCHEMA

_REQUIRED_MANIFEST_KEYS = ("name", "version", "module")


def assert_plugin_contract(plugin: PluginModule, manifest: dict | None = None) -> None:
    """Validate a loaded plugin's route document and manifest.

    Every buffer obtained from the plugin is released before returning.

    Raises:
        AssertionError: If any contract rule is violated.
    """
    document = _routes_document(plugin)
    _validate_routes_schema(document)
    _validate_functions_resolve(plugin, document)
    if manifest is not None:
        _validate_manifest_keys(manifest)
        _validate_name_version_match(plugin, manifest)


# ---------------------------------------------------------------------------
# Internal validation helpers
# ---------------------------------------------------------------------------


def _routes_document(plugin: PluginModule) -> list:
    """Call routes(), release the buffer and return the decoded document."""
    handle = plugin.routes()
    assert handle is not None, f"Plugin {plugin.name!r} routes() returned no buffer."
    with handle:
        raw = handle.data
        assert raw.endswith(b"\x00"), "routes() buffer is not NUL-terminated."
        text = handle.text()
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise AssertionError(f"routes() did not return valid JSON: {exc}") from exc
    assert isinstance(document, list), (
        f"routes() must return a JSON array, got {type(document).__name__}."
    )
    return document


def _validate_routes_schema(document: list) -> None:
    """Assert that every route entry matches the RouteDescriptor schema."""
    try:
        jsonschema.validate(instance=document, schema=ROUTES_DOCUMENT_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise AssertionError(f"routes() entry does not match the route schema: {exc.message}") from exc


def _validate_functions_resolve(plugin: PluginModule, document: list) -> None:
    """Assert that every route names a handler the module actually dispatches to."""
    unresolved = [entry["function"] for entry in document if not plugin.has_handler(entry["function"])]
    assert not unresolved, (
        f"routes() references handler(s) {sorted(set(unresolved))} that plugin "
        f"{plugin.name!r} does not provide."
    )


def _validate_manifest_keys(manifest: dict) -> None:
    """Assert that all required manifest keys are present."""
    for key in _REQUIRED_MANIFEST_KEYS:
        assert key in manifest, (
            f"Manifest is missing required key '{key}'. "
            f"All of {_REQUIRED_MANIFEST_KEYS} must be present in PLUGIN_MANIFEST."
        )


def _validate_name_version_match(plugin: PluginModule, manifest: dict) -> None:
    """Assert that the module's name and version match the manifest."""
    assert plugin.name == manifest.get("name"), (
        f"Plugin module name ({plugin.name!r}) does not match manifest 'name' ({manifest.get('name')!r})."
    )
    assert plugin.version == str(manifest.get("version")), (
        f"Plugin module version ({plugin.version!r}) does not match manifest 'version' "
        f"({manifest.get('version')!r})."
    )

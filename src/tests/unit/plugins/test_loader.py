"""Tests for manifest discovery and plugin loading."""

import itertools
from pathlib import Path

import pytest

from arp_plugin_sdk import PluginLoader, PluginModule
from arp_plugin_sdk.core.config import Settings
from arp_plugin_sdk.core.exceptions import PluginLoadError
from arp_plugin_sdk.loader import available_plugins

REPO_PLUGINS = Path(__file__).resolve().parents[4] / "plugins"

_counter = itertools.count()

_PLUGIN_SOURCE = """
from arp_plugin_sdk import HandlerResult, PluginModule, RouteDescriptor, RouteTable


async def ping(request):
    return HandlerResult.ok("pong")


def create_plugin(settings=None, **overrides):
    return PluginModule(
        name=overrides.get("name", "{name}"),
        version="{version}",
        routes=RouteTable([RouteDescriptor(path="/ping", function="ping", method_router="get", response_type="text")]),
        handlers={{"ping": ping}},
        settings=settings,
    )


def not_a_module(settings=None):
    return object()


def explodes(settings=None):
    raise RuntimeError("factory blew up")
"""


def _write_plugin(root: Path, *, name: str = "tiny", version: str = "1.0", entry: str = "create_plugin", manifest=None):
    # Unique package names keep sys.modules from serving another test's copy
    package = f"tiny_plugin_{next(_counter):04d}"
    folder = root / package
    folder.mkdir()
    (folder / "__init__.py").write_text("")
    (folder / "plugin.py").write_text(_PLUGIN_SOURCE.format(name=name, version=version))
    if manifest is None:
        manifest = {
            "name": name,
            "version": version,
            "module": f"{package}.plugin:{entry}",
            "description": "tiny test plugin",
        }
    (folder / "manifest.py").write_text(f"PLUGIN_MANIFEST = {manifest!r}\n")
    return package


# ---------------------------------------------------------------------------
# discover()
# ---------------------------------------------------------------------------


def test_discover_reads_manifests(tmp_path: Path, settings) -> None:
    package = _write_plugin(tmp_path, name="tiny", version="2.0")
    records = PluginLoader(plugins_dir=tmp_path, settings=settings).discover()

    record = records["tiny"]
    assert record.version == "2.0"
    assert record.entry == f"{package}.plugin:create_plugin"
    assert record.description == "tiny test plugin"
    assert record.plugin_dir == tmp_path / package


def test_discover_skips_broken_and_incomplete_manifests(tmp_path: Path, settings) -> None:
    _write_plugin(tmp_path, name="good")
    _write_plugin(tmp_path, manifest={"name": "no-module", "version": "1"})
    broken = tmp_path / "broken_manifest"
    broken.mkdir()
    (broken / "__init__.py").write_text("")
    (broken / "manifest.py").write_text("raise ImportError('nope')\n")
    (tmp_path / "not-an-identifier").mkdir()

    assert list(PluginLoader(plugins_dir=tmp_path, settings=settings).discover()) == ["good"]


def test_discover_missing_directory(tmp_path: Path, settings) -> None:
    assert PluginLoader(plugins_dir=tmp_path / "absent", settings=settings).discover() == {}


def test_discover_keeps_first_duplicate(tmp_path: Path, settings) -> None:
    first = _write_plugin(tmp_path, name="dup", version="1")
    _write_plugin(tmp_path, name="dup", version="2")
    record = PluginLoader(plugins_dir=tmp_path, settings=settings).discover()["dup"]
    assert record.entry.startswith(first)


# ---------------------------------------------------------------------------
# load()
# ---------------------------------------------------------------------------


def test_load_builds_plugin_module(tmp_path: Path, settings) -> None:
    _write_plugin(tmp_path, name="tiny", version="1.0")
    loader = PluginLoader(plugins_dir=tmp_path, settings=settings)
    plugin = loader.load_by_name("tiny")

    assert isinstance(plugin, PluginModule)
    handle = plugin.call("ping", {}, b"")
    assert handle.text() == "pong"
    plugin.free(handle)


@pytest.mark.parametrize(
    ("entry", "reason"),
    [
        ("not_a_module", "expected PluginModule"),
        ("explodes", "factory raised RuntimeError"),
        ("missing_factory", "is not callable"),
    ],
)
def test_load_rejects_bad_factories(tmp_path: Path, settings, entry: str, reason: str) -> None:
    _write_plugin(tmp_path, name="bad", entry=entry)
    loader = PluginLoader(plugins_dir=tmp_path, settings=settings)
    with pytest.raises(PluginLoadError, match=reason):
        loader.load_by_name("bad")


def test_load_rejects_unimportable_module(tmp_path: Path, settings) -> None:
    _write_plugin(tmp_path, manifest={"name": "ghost", "version": "1", "module": "no_such_pkg.plugin:create_plugin"})
    with pytest.raises(PluginLoadError, match="cannot import"):
        PluginLoader(plugins_dir=tmp_path, settings=settings).load_by_name("ghost")


def test_load_rejects_malformed_entry(tmp_path: Path, settings) -> None:
    _write_plugin(tmp_path, manifest={"name": "odd", "version": "1", "module": "no_colon_here"})
    with pytest.raises(PluginLoadError, match="invalid module entry"):
        PluginLoader(plugins_dir=tmp_path, settings=settings).load_by_name("odd")


def test_load_rejects_manifest_mismatch(tmp_path: Path, settings) -> None:
    _write_plugin(tmp_path, name="tiny", version="1.0")
    loader = PluginLoader(plugins_dir=tmp_path, settings=settings)
    record = loader.discover()["tiny"]
    with pytest.raises(PluginLoadError, match="manifest declares"):
        loader.load(record, name="impostor")


def test_load_by_name_unknown(tmp_path: Path, settings) -> None:
    with pytest.raises(PluginLoadError, match="not found"):
        PluginLoader(plugins_dir=tmp_path, settings=settings).load_by_name("nobody")


# ---------------------------------------------------------------------------
# Bundled plugins
# ---------------------------------------------------------------------------


def test_bundled_skeleton_is_discoverable(settings) -> None:
    loader = PluginLoader(plugins_dir=REPO_PLUGINS, settings=settings)
    plugin = loader.load_by_name("arp-skeleton")
    assert plugin.version == "0.1.0"
    assert plugin.route_table.handler_names == ["groceries", "products_get", "products_post", "about"]


def test_available_plugins_uses_settings_root() -> None:
    assert "arp-skeleton" in available_plugins(Settings(ARP_PLUGINS_ROOT=str(REPO_PLUGINS)))

"""Plugin loader: discovers local plugins under the plugins root.

Each plugin folder is an importable package providing ``manifest.py`` with a
``PLUGIN_MANIFEST`` dict::

    {
        "name": "arp-skeleton",
        "version": "0.1.0",
        "module": "arp_skeleton.plugin:create_plugin",
        "description": "...",
        "license": "MIT",
    }

``module`` names a factory ``create_plugin(settings=None, **overrides)``
returning a ``PluginModule``.
"""
from __future__ import annotations

import importlib
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .core.config import Settings, get_settings_instance
from .core.exceptions import PluginLoadError
from .core.logging import get_logger
from .module import PluginModule

logger = get_logger(__name__)

REQUIRED_MANIFEST_KEYS = ("name", "version", "module")


@dataclass
class PluginRecord:
    name: str
    version: str
    entry: str  # dotted path "package.module:factory"
    description: Optional[str] = None
    license: Optional[str] = None
    plugin_dir: Optional[Path] = None
    manifest: Optional[Dict[str, Any]] = None


class PluginLoader:
    def __init__(self, *, plugins_dir: Optional[Path] = None, settings: Optional[Settings] = None):
        self._settings = settings or get_settings_instance()
        self.plugins_dir = Path(plugins_dir) if plugins_dir is not None else Path(self._settings.plugins_root)
        # Plugin packages are imported by their folder name
        if str(self.plugins_dir) not in sys.path:
            sys.path.insert(0, str(self.plugins_dir))
        logger.info("Plugins loader using plugins_dir=%s", self.plugins_dir)

    def discover(self) -> Dict[str, PluginRecord]:
        records: Dict[str, PluginRecord] = {}
        if not self.plugins_dir.exists():
            logger.warning("Plugins directory does not exist: %s", self.plugins_dir)
            return records
        for child in sorted(self.plugins_dir.iterdir()):
            if not child.is_dir() or not child.name.isidentifier():
                continue
            if not (child / "manifest.py").exists():
                continue
            try:
                manifest_module = importlib.import_module(f"{child.name}.manifest")
                m = getattr(manifest_module, "PLUGIN_MANIFEST", None)
                if not isinstance(m, dict):
                    logger.warning("Plugin folder %s has no PLUGIN_MANIFEST dict", child.name)
                    continue
                missing = [k for k in REQUIRED_MANIFEST_KEYS if not m.get(k)]
                if missing:
                    logger.warning("Manifest for %s is missing keys %s", child.name, missing)
                    continue
                rec = PluginRecord(
                    name=m["name"],
                    version=str(m["version"]),
                    entry=m["module"],
                    description=m.get("description"),
                    license=m.get("license"),
                    plugin_dir=child,
                    manifest=dict(m),
                )
                if rec.name in records:
                    logger.warning("Duplicate plugin name '%s' in %s; keeping the first", rec.name, child.name)
                    continue
                records[rec.name] = rec
            except Exception as e:  # noqa: BLE001
                logger.exception("Failed loading manifest for %s: %s", child.name, e)
        return records

    def load(self, record: PluginRecord, **overrides: Any) -> PluginModule:
        """Import the record's factory and build its ``PluginModule``.

        Raises:
            PluginLoadError: if the entry cannot be imported, the factory fails,
                or the result does not match the manifest.
        """
        module_path, sep, factory_name = record.entry.partition(":")
        if not sep or not module_path or not factory_name:
            raise PluginLoadError(record.name, f"invalid module entry '{record.entry}'")
        try:
            mod = importlib.import_module(module_path)
        except Exception as e:  # noqa: BLE001
            raise PluginLoadError(record.name, f"cannot import '{module_path}': {e}") from e
        factory = getattr(mod, factory_name, None)
        if not callable(factory):
            raise PluginLoadError(record.name, f"'{record.entry}' is not callable")
        try:
            plugin = factory(settings=self._settings, **overrides)
        except Exception as e:  # noqa: BLE001
            raise PluginLoadError(record.name, f"factory raised {type(e).__name__}: {e}") from e
        if not isinstance(plugin, PluginModule):
            raise PluginLoadError(record.name, f"factory returned {type(plugin).__name__}, expected PluginModule")
        if plugin.name != record.name or plugin.version != record.version:
            raise PluginLoadError(
                record.name,
                f"module reports {plugin.name}@{plugin.version}, manifest declares {record.name}@{record.version}",
            )
        logger.info("Loaded plugin %s@%s with %d routes", plugin.name, plugin.version, len(plugin.route_table))
        return plugin

    def load_by_name(self, name: str, **overrides: Any) -> PluginModule:
        records = self.discover()
        record = records.get(name)
        if record is None:
            raise PluginLoadError(name, f"not found under {self.plugins_dir} (known: {sorted(records)})")
        return self.load(record, **overrides)


def available_plugins(settings: Optional[Settings] = None) -> List[str]:
    return sorted(PluginLoader(settings=settings).discover())

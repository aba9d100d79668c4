"""Plugin manager -- discovery and lookup of installed plugins.

This module contains :class:`PluginManager`, which the developer CLI uses to
find plugins registered as Python entry points. The plugin executables do not
need it: each one serves its own :class:`~actionpack.plugins.base.Plugin`.

The entry-point group used for discovery is ``actionpack.plugins``.
Third-party packages register plugins by declaring an entry point under this
group in their ``pyproject.toml``::

    [project.entry-points."actionpack.plugins"]
    my-plugin = "my_package.plugin:PLUGIN"

An entry point may reference a :class:`Plugin` instance or a no-argument
callable returning one.
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Any, Optional

from actionpack.exceptions import PluginError
from actionpack.plugins.base import Plugin

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "actionpack.plugins"
"""The entry-point group name used for plugin discovery."""


class PluginManager:
    """Discovers and indexes installed actionpack plugins.

    Example:
        Typical usage::

            manager = PluginManager()
            manager.discover()
            calculator = manager.get_plugin("calculator")
    """

    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}
        self._failures: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self, only: Optional[set[str]] = None) -> list[str]:
        """Load plugins advertised in the ``actionpack.plugins`` group.

        Args:
            only: When given, load only entry points with these names.

        Returns:
            Names of the plugins that loaded. Entry points that fail to load
            are logged as warnings, recorded in :attr:`failures` and skipped.
        """
        loaded_names: list[str] = []
        for ep in importlib.metadata.entry_points().select(group=ENTRY_POINT_GROUP):
            name = ep.name
            if only is not None and name not in only:
                logger.debug("Plugin '%s' not requested, skipping", name)
                continue
            if name in self._plugins:
                continue

            try:
                plugin = _coerce_plugin(ep.load())
                self.load_plugin(name, plugin)
                loaded_names.append(name)
            except Exception as exc:
                logger.warning("Failed to load plugin '%s': %s", name, exc)
                self._failures[name] = str(exc)

        return loaded_names

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_plugin(self, name: str, plugin: Plugin) -> None:
        """Register a plugin instance under *name*.

        Raises:
            PluginError: If a plugin with the same *name* is already loaded.
        """
        if name in self._plugins:
            raise PluginError(f"Plugin '{name}' is already loaded")
        self._plugins[name] = plugin
        logger.info("Loaded plugin '%s' v%s", name, plugin.version)

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    @property
    def failures(self) -> dict[str, str]:
        """Entry points that failed to load, mapped to the error message."""
        return dict(self._failures)

    def get_plugin(self, name: str) -> Plugin:
        """Retrieve a loaded plugin by its registered name.

        Raises:
            PluginError: If no plugin with the given *name* is loaded.
        """
        try:
            return self._plugins[name]
        except KeyError:
            raise PluginError(f"Plugin '{name}' is not installed") from None

    def list_plugins(self) -> list[dict[str, Any]]:
        """List loaded plugins as ``name``/``version``/``description``/``actions`` dicts."""
        return [
            {
                "name": name,
                "version": plugin.version,
                "description": plugin.description,
                "actions": [spec.name for spec in plugin.registry.list()],
            }
            for name, plugin in sorted(self._plugins.items())
        ]


def _coerce_plugin(obj: Any) -> Plugin:
    if isinstance(obj, Plugin):
        return obj
    if callable(obj):
        plugin = obj()
        if isinstance(plugin, Plugin):
            return plugin
    raise PluginError(f"entry point does not provide a Plugin: {obj!r}")

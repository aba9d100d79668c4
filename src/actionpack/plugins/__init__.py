"""Plugin system for actionpack -- the plugin object, discovery, bundled plugins.

Key classes:

* :class:`Plugin` -- metadata, action registry and recognised environment
  variables of one plugin executable.
* :class:`PluginManager` -- discovers plugins advertised in the
  ``actionpack.plugins`` entry-point group.

Bundled plugins, each also installed as an ``actionpack-<name>`` executable:

* :mod:`~actionpack.plugins.calculator` -- safe arithmetic evaluation.
* :mod:`~actionpack.plugins.http` -- HTTP GET/POST requests.
* :mod:`~actionpack.plugins.file` -- read, write, copy and move files.
* :mod:`~actionpack.plugins.shell` -- run commands and scripts.
* :mod:`~actionpack.plugins.slack` -- post messages through the Slack Web API.
"""

from actionpack.plugins.base import Plugin
from actionpack.plugins.manager import ENTRY_POINT_GROUP, PluginManager

__all__ = ["ENTRY_POINT_GROUP", "Plugin", "PluginManager"]

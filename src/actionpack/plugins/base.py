"""Base class bundling a plugin's identity with its action table.

A plugin is a :class:`Plugin` instance built from three static pieces:

* :class:`~actionpack.models.Metadata` -- answered by the ``metadata`` mode.
* :class:`~actionpack.registry.ActionRegistry` -- answered by the ``actions``
  mode and used for dispatch.
* :class:`~actionpack.models.EnvOption` entries -- the environment variables
  the plugin recognises (credentials, tuning), shown by
  ``actionpack describe``.

Plugins are registered as entry points in the ``actionpack.plugins`` group
and discovered by :class:`~actionpack.plugins.manager.PluginManager`. The
same object backs the plugin's console script through :meth:`Plugin.main`.

Example:
    Minimal plugin module::

        registry = ActionRegistry()

        @registry.action("ping", description="Reply with pong")
        def ping(params, ctx):
            return {"reply": "pong"}

        PLUGIN = Plugin(Metadata(name="ping", version="1.0.0"), registry)

        def main() -> None:
            PLUGIN.main()
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import Any, Optional

from actionpack.models import EnvOption, Metadata
from actionpack.registry import ActionRegistry


class Plugin:
    """A plugin's metadata, actions and recognised environment variables.

    Args:
        metadata: Static plugin identity.
        registry: The plugin's action table. It is never modified after the
            plugin module has been imported.
        env_options: Environment variables the plugin reads, in display order.
    """

    def __init__(
        self,
        metadata: Metadata,
        registry: ActionRegistry,
        env_options: Sequence[EnvOption] = (),
    ) -> None:
        self.metadata = metadata
        self.registry = registry
        self.env_options: tuple[EnvOption, ...] = tuple(env_options)

    @property
    def name(self) -> str:
        """Return the plugin name from its metadata."""
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def description(self) -> str:
        return self.metadata.description

    def describe(self) -> dict[str, Any]:
        """Return metadata, actions and env options as one JSON-ready dict."""
        return {
            "metadata": self.metadata.to_wire(),
            "actions": self.registry.to_wire(),
            "env": [
                option.model_dump(mode="json", exclude_none=True)
                for option in self.env_options
            ],
        }

    def run(self, argv: Sequence[str], **runtime_kwargs: Any) -> int:
        """Serve one invocation and return the process exit code.

        Args:
            argv: Arguments after the program name (``["metadata"]``,
                ``["calculate"]``, ...).
            **runtime_kwargs: Forwarded to
                :class:`~actionpack.runtime.PluginRuntime` (``stdin``,
                ``output``, ``settings``, ...).
        """
        from actionpack.runtime import PluginRuntime

        return PluginRuntime(self, **runtime_kwargs).run(argv)

    def main(self, argv: Optional[Sequence[str]] = None) -> None:
        """Console-script entry point: serve ``sys.argv`` and exit."""
        sys.exit(self.run(sys.argv[1:] if argv is None else argv))

    def __repr__(self) -> str:
        return f"Plugin(name={self.name!r}, actions={len(self.registry)})"

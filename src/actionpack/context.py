"""Per-invocation handler context.

Each plugin process services exactly one request, so the context doubles as
the process-wide home for shared collaborators. Handlers receive it
explicitly instead of reaching for module globals::

    def get(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
        response = ctx.http.get(params["url"], timeout=params["timeout"])
        return describe_response(response)

Collaborators are created lazily, so a calculator never opens an HTTP pool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from actionpack.collaborators.command import CommandRunner
from actionpack.collaborators.http import HttpClient
from actionpack.deadline import Deadline
from actionpack.models import RuntimeSettings


@dataclass
class ActionContext:
    """Everything a handler may need besides its parameters.

    Attributes:
        action: Name of the action being executed.
        deadline: Derived from the request's ``timeout`` parameter or the
            configured default; unbounded when neither is set.
        settings: Resolved runtime settings.
        http_transport: Transport override for the lazily created
            :class:`HttpClient` (tests pass ``httpx.MockTransport``).
    """

    action: str
    deadline: Deadline = field(default_factory=Deadline.never)
    settings: RuntimeSettings = field(default_factory=RuntimeSettings)
    http_transport: Optional[httpx.BaseTransport] = None
    _http: Optional[HttpClient] = field(default=None, init=False, repr=False)
    _commands: Optional[CommandRunner] = field(default=None, init=False, repr=False)

    @property
    def http(self) -> HttpClient:
        if self._http is None:
            self._http = HttpClient(
                deadline=self.deadline,
                retries=self.settings.http_retries,
                transport=self.http_transport,
            )
        return self._http

    @property
    def commands(self) -> CommandRunner:
        if self._commands is None:
            self._commands = CommandRunner(deadline=self.deadline)
        return self._commands

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or ``None`` when unbounded."""
        return self.deadline.remaining()

    def cancel(self) -> None:
        """Kill running child processes; called when the plugin is signalled."""
        if self._commands is not None:
            self._commands.terminate_active()

    def close(self) -> None:
        """Release collaborator resources."""
        if self._http is not None:
            self._http.close()
            self._http = None

"""External collaborators reached by plugin handlers.

Handlers never spawn processes or open sockets directly. They go through one
of two collaborators, created once per process and handed to the handler on
its :class:`~actionpack.context.ActionContext`:

* :class:`CommandRunner` -- runs an argv built by a :class:`CommandBuilder`,
  bounded by the invocation deadline.
* :class:`HttpClient` -- a pooled :class:`httpx.Client` with retry and
  deadline-capped timeouts.

Example::

    result = ctx.commands.run(["terraform", "plan", "-no-color"], cwd=workdir)
    if not result.ok:
        raise ActionFailed("terraform plan failed", **result.to_fields())
"""

from actionpack.collaborators.command import CommandBuilder, CommandResult, CommandRunner
from actionpack.collaborators.http import HttpClient, describe_response

__all__ = [
    "CommandBuilder",
    "CommandResult",
    "CommandRunner",
    "HttpClient",
    "describe_response",
]

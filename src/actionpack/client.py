"""Orchestrator-side client for plugin executables.

:class:`PluginProcess` is the other end of the stdio protocol. It spawns a
plugin executable once per call, feeds the JSON request on stdin, and checks
that stdout holds exactly one JSON document. It is what the ``actionpack
call`` developer command uses, and what an orchestrator embedding actionpack
would use to run workflow steps.

Example::

    plugin = PluginProcess("actionpack-calculator", timeout=10)
    reply = plugin.execute("calculate", {"expression": "2 + 2 * 3"})
    reply.document          # {'result': 8, 'expression': '2 + 2 * 3'}
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional, Union

from actionpack.collaborators.command import CommandRunner
from actionpack.deadline import Deadline
from actionpack.exceptions import PluginError, ProtocolViolation
from actionpack.runtime import MODE_ACTIONS, MODE_METADATA

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginReply:
    """One completed exchange with a plugin process.

    Attributes:
        document: The single JSON value the plugin wrote to stdout.
        exit_code: The plugin's exit status.
        stderr: Diagnostics the plugin wrote to stderr.
    """

    document: Any
    exit_code: int
    stderr: str = ""

    @property
    def failed(self) -> bool:
        """True when the document is a failure envelope (carries ``error``)."""
        return isinstance(self.document, dict) and "error" in self.document

    @property
    def error(self) -> Optional[str]:
        if self.failed:
            return str(self.document["error"])
        return None


class PluginProcess:
    """Runs a plugin executable and validates its stdout.

    Args:
        executable: Program path or name, or a full argv prefix
            (``["python", "-m", "my_plugin"]``).
        timeout: Seconds allowed per invocation; ``None`` waits forever.
        env: Variables layered over the caller's environment.
    """

    def __init__(
        self,
        executable: Union[str, Sequence[str]],
        timeout: Optional[float] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._argv = [executable] if isinstance(executable, str) else list(executable)
        if not self._argv:
            raise PluginError("plugin executable must not be empty")
        self._timeout = timeout
        self._env = dict(env or {})

    # ------------------------------------------------------------------ #
    # Protocol modes
    # ------------------------------------------------------------------ #

    def metadata(self) -> dict[str, Any]:
        """Return the plugin's metadata document."""
        return self._expect_object(self.invoke([MODE_METADATA]), MODE_METADATA)

    def actions(self) -> dict[str, Any]:
        """Return the plugin's action table."""
        return self._expect_object(self.invoke([MODE_ACTIONS]), MODE_ACTIONS)

    def execute(
        self, action: str, params: Optional[Mapping[str, Any]] = None
    ) -> PluginReply:
        """Run *action* with *params* as the JSON request body."""
        body = json.dumps(dict(params or {}), ensure_ascii=False)
        return self.invoke([action], stdin=body)

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def invoke(self, args: Sequence[str], stdin: Optional[str] = None) -> PluginReply:
        """Spawn the plugin with *args* and parse its reply.

        Raises:
            PluginError: If the executable cannot be started.
            ProtocolViolation: If the plugin times out, or its stdout is not
                exactly one JSON document.
        """
        runner = CommandRunner(deadline=Deadline(self._timeout))
        argv = [*self._argv, *args]
        logger.debug("Invoking plugin: %s", argv)
        result = runner.run(argv, stdin=stdin if stdin is not None else "", env=self._env)

        if result.timed_out:
            raise ProtocolViolation(
                f"plugin {self._argv[0]} did not answer within {self._timeout:g}s"
            )
        if result.exit_code == -1 and not result.stdout:
            raise PluginError(f"cannot start plugin {self._argv[0]}: {result.stderr}")

        document = parse_single_document(result.stdout)
        if result.stderr:
            logger.debug("Plugin stderr: %s", result.stderr.rstrip())
        return PluginReply(document=document, exit_code=result.exit_code, stderr=result.stderr)

    @staticmethod
    def _expect_object(reply: PluginReply, mode: str) -> dict[str, Any]:
        if not isinstance(reply.document, dict):
            raise ProtocolViolation(f"'{mode}' reply is not a JSON object")
        if reply.exit_code != 0:
            message = f"'{mode}' exited with code {reply.exit_code}"
            if reply.error:
                message += f": {reply.error}"
            raise ProtocolViolation(message)
        return reply.document


def parse_single_document(stdout: str) -> Any:
    """Decode *stdout*, requiring exactly one top-level JSON value.

    Raises:
        ProtocolViolation: If *stdout* is empty, not JSON, or holds trailing
            data after the first value.
    """
    text = stdout.strip()
    if not text:
        raise ProtocolViolation("plugin wrote nothing to stdout")

    decoder = json.JSONDecoder()
    try:
        document, end = decoder.raw_decode(text)
    except json.JSONDecodeError as exc:
        raise ProtocolViolation(f"plugin output is not JSON: {exc}") from exc

    if text[end:].strip():
        raise ProtocolViolation("plugin wrote more than one JSON document to stdout")
    return document

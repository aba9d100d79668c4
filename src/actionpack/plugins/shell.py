"""Shell plugin -- run commands and scripts under the invocation deadline.

Both actions report the command's outcome as a successful exchange with
``output``, ``stdout``, ``stderr``, ``exit_code`` and ``success``; a
non-zero exit status is data for the workflow, not an envelope failure.
``exit_code`` is ``-1`` when the interpreter could not be started or the
command was killed at its timeout.

The argv for each action is produced by a
:class:`~actionpack.collaborators.command.CommandBuilder`, so the same
runner path serves both.
"""

from __future__ import annotations

import os
import shlex
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

from actionpack.codec import ParameterSet
from actionpack.collaborators.command import CommandBuilder, CommandResult
from actionpack.context import ActionContext
from actionpack.exceptions import ActionFailed
from actionpack.models import Metadata, ParamSpec
from actionpack.plugins.base import Plugin
from actionpack.registry import ActionRegistry

METADATA = Metadata(
    name="shell",
    version="1.0.0",
    description="Execute shell commands and scripts with support for various interpreters",
    author="actionpack",
    tags=["shell", "command", "script", "execution", "bash", "python"],
    license="MIT",
)

registry = ActionRegistry()

DEFAULT_TIMEOUT = 300

_SCRIPT_SUFFIXES = {
    "python": ".py",
    "python3": ".py",
    "node": ".js",
    "nodejs": ".js",
}

_RESULT_OUTPUTS = {
    "output": ParamSpec(type="string", description="Combined stdout and stderr output"),
    "stdout": ParamSpec(type="string", description="Standard output"),
    "stderr": ParamSpec(type="string", description="Standard error"),
    "exit_code": ParamSpec(type="number", description="Process exit code"),
    "success": ParamSpec(
        type="boolean", description="Whether the command succeeded (exit code 0)"
    ),
}


# ---------------------------------------------------------------------------
# Command builders
# ---------------------------------------------------------------------------


class ExecCommand:
    """``exec``: ``/bin/sh -c <command>``, or a shlex-split argv with ``shell=false``."""

    def build(self, params: ParameterSet) -> list[str]:
        command = params["command"]
        if params["shell"]:
            return ["/bin/sh", "-c", command]
        try:
            argv = shlex.split(command)
        except ValueError as exc:
            raise ActionFailed(f"invalid command: {exc}") from exc
        if not argv:
            raise ActionFailed("empty command")
        return argv


class ScriptCommand:
    """``script``: an interpreter running inline code or a script file.

    Shells take the script with ``-c``. Interpreters in
    :data:`_SCRIPT_SUFFIXES` are given *script_path* instead, which the
    caller writes beforehand.
    """

    def __init__(self, script_path: Optional[str] = None) -> None:
        self.script_path = script_path

    def build(self, params: ParameterSet) -> list[str]:
        shell_type = params["shell_type"]
        if shell_type in _SCRIPT_SUFFIXES:
            interpreter = "node" if shell_type == "nodejs" else shell_type
            return [interpreter, str(self.script_path)]
        return [shell_type, "-c", params["script"]]


@contextmanager
def _script_file(script: str, suffix: str) -> Iterator[str]:
    """Write *script* to a temporary file, removed on exit."""
    fd, path = tempfile.mkstemp(prefix="actionpack_script_", suffix=suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(script)
        yield path
    finally:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


def _env(params: ParameterSet) -> dict[str, str]:
    """String-valued entries of the ``env`` object."""
    return {
        str(key): value
        for key, value in params.get_object("env").items()
        if isinstance(value, str)
    }


def _run(
    ctx: ActionContext, builder: CommandBuilder, params: ParameterSet
) -> CommandResult:
    return ctx.commands.run_built(
        builder,
        params,
        cwd=params.get_str("working_dir") or None,
        env=_env(params),
        timeout=params.get_number("timeout", DEFAULT_TIMEOUT),
    )


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@registry.action(
    "exec",
    description="Execute a shell command",
    inputs={
        "command": ParamSpec(type="string", required=True, description="Shell command to execute"),
        "working_dir": ParamSpec(
            type="string", description="Working directory for command execution"
        ),
        "timeout": ParamSpec(
            type="number", default=DEFAULT_TIMEOUT, description="Timeout in seconds"
        ),
        "shell": ParamSpec(type="boolean", default=True, description="Use shell for execution"),
        "env": ParamSpec(type="object", description="Environment variables as key-value pairs"),
    },
    outputs=_RESULT_OUTPUTS,
)
def exec_command(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    if not params["command"].strip():
        raise ActionFailed("command parameter is required")
    return _run(ctx, ExecCommand(), params).to_fields()


@registry.action(
    "script",
    description="Execute a script with specified interpreter",
    inputs={
        "script": ParamSpec(type="string", required=True, description="Script content to execute"),
        "working_dir": ParamSpec(
            type="string", description="Working directory for script execution"
        ),
        "timeout": ParamSpec(
            type="number", default=DEFAULT_TIMEOUT, description="Timeout in seconds"
        ),
        "shell_type": ParamSpec(
            type="string",
            default="bash",
            description="Shell/interpreter type (bash, sh, python, python3, node, etc.)",
        ),
        "env": ParamSpec(type="object", description="Environment variables as key-value pairs"),
    },
    outputs=_RESULT_OUTPUTS,
)
def run_script(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    script = params["script"]
    if not script.strip():
        raise ActionFailed("script parameter is required")
    if not params["shell_type"].strip():
        raise ActionFailed("shell_type must not be empty")

    suffix = _SCRIPT_SUFFIXES.get(params["shell_type"])
    if suffix is None:
        return _run(ctx, ScriptCommand(), params).to_fields()

    try:
        with _script_file(script, suffix) as path:
            return _run(ctx, ScriptCommand(script_path=path), params).to_fields()
    except OSError as exc:
        raise ActionFailed(f"failed to write script: {exc}") from exc


PLUGIN = Plugin(METADATA, registry)


def main() -> None:
    PLUGIN.main()

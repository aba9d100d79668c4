"""Subprocess collaborator: build an argv, run it under the invocation deadline.

Wrappers around external CLIs (terraform, kubectl, ansible-playbook, ...)
split into two halves:

* a :class:`CommandBuilder` that turns a
  :class:`~actionpack.codec.ParameterSet` into an argv list, and
* :class:`CommandRunner`, which executes the argv and captures
  ``(stdout, stderr, exit_code)`` as a :class:`CommandResult`.

Children are started in their own session so that on timeout, or when the
plugin itself is being terminated, the whole process group is killed and no
orphaned external process is left behind.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence

from actionpack.codec import ParameterSet
from actionpack.deadline import Deadline

logger = logging.getLogger(__name__)

_POSIX = sys.platform != "win32"


class CommandBuilder(Protocol):
    """Translate action parameters into an argv for an external tool."""

    def build(self, params: ParameterSet) -> list[str]:
        ...


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one external command.

    ``exit_code`` is ``-1`` when the process could not be started or was
    killed at the deadline.
    """

    argv: list[str]
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    def to_fields(self) -> dict[str, Any]:
        """Result fields in the shape shell-style actions report."""
        return {
            "output": self.stdout + self.stderr,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "success": self.ok,
        }


@dataclass
class CommandRunner:
    """Runs external commands, never outliving the invocation deadline.

    Args:
        deadline: Upper bound for every command started by this runner.
    """

    deadline: Deadline = field(default_factory=Deadline.never)
    _active: set[subprocess.Popen] = field(default_factory=set, init=False, repr=False)

    def run(
        self,
        argv: Sequence[str],
        stdin: Optional[str] = None,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Execute *argv* and capture its output.

        Args:
            argv: Program and arguments. Never interpreted by a shell unless
                the caller passes one explicitly (``["/bin/sh", "-c", cmd]``).
            stdin: Text written to the child's stdin.
            cwd: Working directory; ``None`` inherits the plugin's.
            env: Variables layered over the plugin's own environment.
            timeout: Seconds allowed for this command, further capped by the
                runner's deadline.

        Returns:
            The :class:`CommandResult`. Start failures and timeouts are
            reported in the result rather than raised.
        """
        argv = list(argv)
        effective = self.deadline.cap(timeout)
        child_env = None
        if env:
            child_env = dict(os.environ)
            child_env.update({k: str(v) for k, v in env.items()})

        logger.debug("Running %s (timeout=%s, cwd=%s)", argv, effective, cwd)
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=child_env,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=_POSIX,
            )
        except (OSError, ValueError) as exc:
            logger.debug("Failed to start %s: %s", argv[:1], exc)
            return CommandResult(argv=argv, stderr=str(exc), exit_code=-1)

        self._active.add(proc)
        try:
            stdout, stderr = proc.communicate(input=stdin, timeout=effective)
        except subprocess.TimeoutExpired:
            _kill(proc)
            stdout, stderr = proc.communicate()
            message = f"command timed out after {effective:g}s"
            stderr = f"{stderr}\n{message}" if stderr else message
            return CommandResult(
                argv=argv, stdout=stdout, stderr=stderr, exit_code=-1, timed_out=True
            )
        finally:
            self._active.discard(proc)

        return CommandResult(
            argv=argv, stdout=stdout, stderr=stderr, exit_code=proc.returncode
        )

    def run_built(
        self,
        builder: CommandBuilder,
        params: ParameterSet,
        **kwargs: Any,
    ) -> CommandResult:
        """Build an argv with *builder* and run it."""
        return self.run(builder.build(params), **kwargs)

    def terminate_active(self) -> None:
        """Kill and reap every child still running (used on SIGTERM/SIGINT)."""
        for proc in list(self._active):
            _kill(proc)
            proc.wait()


def _kill(proc: subprocess.Popen) -> None:
    """Kill *proc* and, on POSIX, its whole process group."""
    if proc.poll() is not None:
        return
    try:
        if _POSIX:
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass

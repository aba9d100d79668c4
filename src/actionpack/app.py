"""Typer application and entry point for the ``actionpack`` developer CLI.

Plugin executables do not use this module; they serve the stdio protocol via
:class:`~actionpack.runtime.PluginRuntime`. The developer CLI is for people
writing or debugging plugins:

* ``actionpack list`` -- plugins installed in the ``actionpack.plugins``
  entry-point group.
* ``actionpack describe <plugin>`` -- metadata, action table and recognised
  environment variables.
* ``actionpack run <plugin> <action>`` -- execute an action in-process,
  through the same decode/dispatch path the executable uses.
* ``actionpack call <executable> <action>`` -- spawn a plugin executable as an
  orchestrator would and validate its stdout.

Unhandled :class:`~actionpack.exceptions.ActionpackError` instances exit with
the error's ``exit_code``; anything else is written to a crash log.
"""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Any, Optional

import typer

from actionpack import __version__
from actionpack.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SUCCESS,
)


app = typer.Typer(
    name="actionpack",
    help="Develop, inspect and run JSON-over-stdio action plugins.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"actionpack {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~actionpack.output.OutputManager` from the
    CLI flags and routes ``actionpack`` log records to stderr.
    """
    from actionpack.output import (
        OutputFormat,
        OutputManager,
        configure_logging,
        set_output,
    )

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging("DEBUG" if verbose else "WARNING", output)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _load_plugin(name: str):  # noqa: ANN202
    """Discover installed plugins and return the one registered as *name*.

    Raises:
        typer.Exit: With the :class:`PluginError` exit code when *name* is
            not installed.
    """
    from actionpack.exceptions import PluginError
    from actionpack.output import error
    from actionpack.plugins import PluginManager

    manager = PluginManager()
    manager.discover(only={name})
    try:
        return manager.get_plugin(name)
    except PluginError as exc:
        reason = manager.failures.get(name)
        error(f"{exc.message}: {reason}" if reason else exc.message)
        raise typer.Exit(code=exc.exit_code) from None


def _read_request(input_json: Optional[str], input_file: Optional[Path]) -> str:
    """Return the request body from ``--input`` or ``--input-file`` (``-`` is stdin)."""
    from actionpack.output import error

    if input_json is not None and input_file is not None:
        error("Use either --input or --input-file, not both.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    if input_json is not None:
        return input_json
    if input_file is None:
        return ""
    if str(input_file) == "-":
        return sys.stdin.read()
    try:
        return input_file.read_text(encoding="utf-8")
    except OSError as exc:
        error(f"Cannot read {input_file}: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None


def _finish(document: Any, failed: bool) -> None:
    """Render *document* and exit non-zero when it is a failure envelope."""
    from actionpack.output import error, format_response

    format_response(document)
    if failed:
        reason = document.get("error") if isinstance(document, dict) else None
        error(str(reason or "action failed"))
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("list")
def list_command() -> None:
    """List installed plugins.

    Example::

        actionpack list
        actionpack --json list
    """
    from actionpack.output import get_output, info, warning
    from actionpack.plugins import PluginManager

    manager = PluginManager()
    manager.discover()
    plugins = manager.list_plugins()
    for name, reason in manager.failures.items():
        warning(f"Plugin '{name}' failed to load: {reason}")

    if not plugins:
        info("No plugins installed.")
        return

    rows = [
        [p["name"], p["version"], ", ".join(p["actions"]), p["description"] or "-"]
        for p in plugins
    ]
    get_output().print_table(
        ["Name", "Version", "Actions", "Description"],
        rows,
        title=f"Plugins ({len(rows)})",
    )


@app.command("describe")
def describe_command(
    plugin_name: str = typer.Argument(..., help="Plugin name as shown by 'actionpack list'."),
) -> None:
    """Show a plugin's metadata, actions and environment variables.

    Example::

        actionpack describe slack
    """
    from actionpack.config import SETTINGS_ENV
    from actionpack.output import format_response

    plugin = _load_plugin(plugin_name)
    document = plugin.describe()
    document["runtime_env"] = [
        option.model_dump(mode="json", exclude_none=True) for option in SETTINGS_ENV
    ]
    format_response(document)


@app.command("run")
def run_command(
    plugin_name: str = typer.Argument(..., help="Plugin name as shown by 'actionpack list'."),
    action: str = typer.Argument(..., help="Action to execute."),
    input_json: Optional[str] = typer.Option(
        None, "--input", "-i", help="Request body as a JSON object."
    ),
    input_file: Optional[Path] = typer.Option(
        None, "--input-file", help="Read the request body from a file ('-' for stdin)."
    ),
) -> None:
    """Execute an action in-process and print its envelope.

    The exit code is ``1`` when the action reports a failure, so the command
    can be used in scripts.

    Example::

        actionpack run calculator calculate --input '{"expression": "2 + 2 * 3"}'
    """
    from actionpack.envelope import is_failure
    from actionpack.output import debug, get_output
    from actionpack.runtime import PluginRuntime

    plugin = _load_plugin(plugin_name)
    body = _read_request(input_json, input_file)
    debug(f"Running {plugin_name}.{action} with {len(body)} bytes of input")

    runtime = PluginRuntime(plugin, output=get_output())
    document = runtime.execute(action, raw=body)
    _finish(document, is_failure(document))


@app.command("call")
def call_command(
    executable: str = typer.Argument(..., help="Plugin executable (path or name on PATH)."),
    action: str = typer.Argument(..., help="Mode or action: metadata, actions, or an action name."),
    input_json: Optional[str] = typer.Option(
        None, "--input", "-i", help="Request body as a JSON object."
    ),
    input_file: Optional[Path] = typer.Option(
        None, "--input-file", help="Read the request body from a file ('-' for stdin)."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", min=0.0, help="Seconds to wait for the plugin."
    ),
) -> None:
    """Spawn a plugin executable as an orchestrator would.

    Fails when the plugin's stdout is not exactly one JSON document.

    Example::

        actionpack call actionpack-http get --input '{"url": "https://example.com"}'
    """
    from actionpack.client import PluginProcess
    from actionpack.exceptions import ActionpackError
    from actionpack.output import debug, error

    body = _read_request(input_json, input_file)
    process = PluginProcess(executable, timeout=timeout or None)
    try:
        reply = process.invoke([action], stdin=body)
    except ActionpackError as exc:
        error(exc.message)
        raise typer.Exit(code=exc.exit_code) from None

    debug(f"{executable} exited with code {reply.exit_code}")
    if reply.stderr:
        debug(reply.stderr.rstrip())
    _finish(reply.document, reply.failed or reply.exit_code != EXIT_SUCCESS)


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``actionpack`` console script.

    Unhandled :class:`~actionpack.exceptions.ActionpackError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from actionpack.config import write_crash_log
        from actionpack.exceptions import ActionpackError
        from actionpack.output import error

        if isinstance(exc, ActionpackError):
            error(exc.message)
            sys.exit(exc.exit_code)
        log_path = write_crash_log("cli", exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)

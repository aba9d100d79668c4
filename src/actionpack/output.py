"""Output system with strict stdout/stderr discipline.

Two audiences read a plugin's streams:

* **stdout** -- the orchestrator. In plugin mode it receives exactly one
  JSON document per invocation (:meth:`OutputManager.write_envelope`) and
  nothing else, ever.
* **stderr** -- humans and log collectors. All diagnostics (info, warnings,
  errors, debug, log records) go here.

The developer CLI (``actionpack``) uses the same manager for its tables and
pretty-printed JSON, with Rich formatting when stdout is a terminal and plain
text when piped. Colour is disabled by ``NO_COLOR``, ``TERM=dumb`` or
``--no-color``.

The module exposes two layers:

1. :class:`OutputManager` -- holds the format, the Rich consoles and the
   quiet/verbose flags. Installed with :func:`set_output`.
2. Module-level convenience functions (:func:`info`, :func:`error`,
   :func:`debug`, ...) that delegate to the global manager.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import IO, Any, Mapping, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from actionpack.envelope import render


class OutputFormat(str, Enum):
    """Output formats for the developer CLI.

    ``AUTO`` resolves to ``RICH`` on an interactive, colour-capable terminal
    and to ``PLAIN`` otherwise. Plugin mode always writes compact JSON.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes data to stdout and diagnostics to stderr.

    Args:
        format: Desired output format for CLI data. ``AUTO`` resolves based
            on TTY detection.
        no_color: Disable colour and Rich markup.
        quiet: Suppress informational messages on stderr.
        verbose: Show debug messages on stderr.
        stdout: Data stream; defaults to ``sys.stdout`` at construction.
        stderr: Diagnostics stream; defaults to ``sys.stderr``.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
        stdout: Optional[IO[str]] = None,
        stderr: Optional[IO[str]] = None,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._out = stdout if stdout is not None else sys.stdout
        self._err = stderr if stderr is not None else sys.stderr

        if format == OutputFormat.AUTO:
            self._format = (
                OutputFormat.RICH
                if _is_tty(self._out) and not self._no_color
                else OutputFormat.PLAIN
            )
        else:
            self._format = format

        self._stdout = Console(
            file=self._out,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=self._err, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        """The resolved output format."""
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    @property
    def stderr_console(self) -> Console:
        """The Rich console bound to stderr (used by the log handler)."""
        return self._stderr

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def write_envelope(self, envelope: Mapping[str, Any]) -> None:
        """Write one envelope as a single newline-terminated JSON document.

        This is the only way plugin mode touches stdout.
        """
        self._out.write(render(envelope))
        self._out.flush()

    def format_response(self, data: Any) -> None:
        """Render structured data to stdout in the active format."""
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        elif self._format == OutputFormat.PLAIN:
            self._print_plain(data)
        else:
            text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))

    def print_data(self, text: str) -> None:
        """Print raw text to stdout."""
        print(text, file=self._out, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print tabular data to stdout in the active format.

        * **Rich mode** -- styled :class:`~rich.table.Table`.
        * **JSON mode** -- array of objects keyed by header names.
        * **Plain mode** -- tab-separated values, one row per line.
        """
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
        elif self._format == OutputFormat.PLAIN:
            self.print_data("\t".join(headers))
            for row in rows:
                self.print_data("\t".join(row))
        else:
            table = Table(title=title, show_header=True, header_style="bold cyan")
            for h in headers:
                table.add_column(h)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Informational message. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, "{}")

    def warning(self, message: str) -> None:
        """Yellow warning. Never suppressed."""
        self._emit(f"Warning: {message}", "[yellow]{}[/yellow]")

    def error(self, message: str) -> None:
        """Bold red error. Never suppressed."""
        self._emit(f"Error: {message}", "[bold red]{}[/bold red]")

    def debug(self, message: str) -> None:
        """Debug message, only with ``--verbose``."""
        if self._verbose:
            self._emit(f"[debug] {message}", "[dim]{}[/dim]")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _emit(self, message: str, markup: str) -> None:
        if self._no_color:
            print(message, file=self._err, flush=True)
        else:
            self._stderr.print(markup.format(escape(message)), highlight=False)

    def _print_plain(self, data: Any) -> None:
        if isinstance(data, dict):
            for key, value in data.items():
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, ensure_ascii=False, default=str)
                self.print_data(f"{key}\t{value}")
        elif isinstance(data, list):
            for item in data:
                self.print_data(json.dumps(item, ensure_ascii=False, default=str))
        else:
            self.print_data(str(data))


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _is_tty(stream: Any = None) -> bool:
    """Check if *stream* (default stdout) is a TTY."""
    stream = stream if stream is not None else sys.stdout
    return hasattr(stream, "isatty") and stream.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    if os.environ.get("TERM") == "dumb":
        return True
    return False


def configure_logging(level: str, output: Optional[OutputManager] = None) -> None:
    """Send ``actionpack`` log records to stderr through Rich.

    Only the ``actionpack`` logger tree is configured, so a plugin embedding
    other libraries keeps control of their logging. Calling this again
    replaces the previously installed handler.

    Args:
        level: A standard level name (``DEBUG``, ``INFO``, ``WARNING``, ...).
        output: Manager whose stderr console receives the records.
    """
    output = output or get_output()
    root = logging.getLogger("actionpack")
    for handler in list(root.handlers):
        if getattr(handler, "_actionpack", False):
            root.removeHandler(handler)

    handler = RichHandler(
        console=output.stderr_console,
        show_path=False,
        rich_tracebacks=False,
        markup=False,
    )
    handler._actionpack = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level.upper())
    root.propagate = False


# ------------------------------------------------------------------ #
# Global output instance (set during startup)
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global :class:`OutputManager`."""
    global _output
    _output = output


def reset_output() -> None:
    """Reset the global manager; used by test suites between tests."""
    global _output
    _output = None


# ------------------------------------------------------------------ #
# Convenience functions that use the global instance
# ------------------------------------------------------------------ #


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def error(message: str) -> None:
    get_output().error(message)


def warning(message: str) -> None:
    get_output().warning(message)


def debug(message: str) -> None:
    get_output().debug(message)

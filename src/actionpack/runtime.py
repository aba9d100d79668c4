"""Plugin runtime -- the process-level stdin/stdout contract.

Every plugin executable hands its :class:`~actionpack.plugins.base.Plugin`
to :class:`PluginRuntime`, which implements the exchange with the
orchestrator::

    Start -> ReadArgv -> {Metadata | Actions | Execute} -> WriteStdout -> Exit

Modes, selected by the first argument:

* ``metadata`` -- write the plugin metadata. stdin is not read.
* ``actions`` -- write the action table. stdin is not read.
* ``execute <name>`` or ``<name>`` -- read stdin, decode it against the
  action's inputs, dispatch and write the resulting envelope. A plugin
  that registers its own ``execute`` action gets that action instead of
  the ``execute <name>`` form.

Exactly one JSON document is written to stdout per invocation, and the exit
code is ``0`` for every completed exchange, including failed actions. Only a
missing mode argument exits non-zero (:data:`~actionpack.exit_codes.EXIT_INVALID_USAGE`).
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import IO, TYPE_CHECKING, Any, Optional, Union

import httpx

from actionpack import envelope
from actionpack.codec import ParameterSet, bind_parameters, parse_request
from actionpack.config import load_settings, write_crash_log
from actionpack.context import ActionContext
from actionpack.deadline import Deadline
from actionpack.envelope import Envelope
from actionpack.exceptions import (
    ActionFailed,
    ConfigError,
    DecodeError,
    InvalidInput,
    ProtocolFault,
)
from actionpack.exit_codes import EXIT_SUCCESS
from actionpack.models import RuntimeSettings
from actionpack.output import OutputFormat, OutputManager, configure_logging

if TYPE_CHECKING:
    from actionpack.plugins.base import Plugin

logger = logging.getLogger(__name__)

MODE_METADATA = "metadata"
MODE_ACTIONS = "actions"
MODE_EXECUTE = "execute"

_CANCEL_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), signal.SIGINT) if sig is not None
)


class PluginRuntime:
    """Serves one invocation of a plugin process.

    Args:
        plugin: The plugin to serve.
        settings: Runtime settings; read from the environment when omitted.
        output: Output manager for stdout/stderr; a JSON-format manager over
            the process streams is created when omitted.
        stdin: Request stream (bytes or text); defaults to ``sys.stdin.buffer``.
        http_transport: Transport for the handler's HTTP client
            (``httpx.MockTransport`` in tests).
        handle_signals: Convert SIGTERM/SIGINT during an action into a
            ``cancelled`` failure envelope after killing child processes.

    Example::

        runtime = PluginRuntime(PLUGIN, stdin=io.BytesIO(b'{"expression": "1+1"}'))
        exit_code = runtime.run(["calculate"])
    """

    def __init__(
        self,
        plugin: Plugin,
        settings: Optional[RuntimeSettings] = None,
        output: Optional[OutputManager] = None,
        stdin: Optional[IO[Any]] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
        handle_signals: bool = True,
    ) -> None:
        self._plugin = plugin
        self._settings = settings
        self._settings_error: Optional[ConfigError] = None
        self._output = output or OutputManager(format=OutputFormat.JSON)
        self._stdin = stdin
        self._http_transport = http_transport
        self._handle_signals = handle_signals
        self._written = False

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    def run(self, argv: Sequence[str]) -> int:
        """Serve the invocation described by *argv* and return the exit code.

        Args:
            argv: Arguments after the program name.

        Returns:
            ``0`` for every completed exchange; the :class:`ProtocolFault`
            exit code when no mode argument was given.
        """
        self._written = False
        settings = self._resolve_settings()
        configure_logging(settings.log_level, self._output)

        try:
            return self._run(list(argv))
        except Exception as exc:
            # Last resort: stdout must still carry one document.
            logger.exception("Plugin runtime failed")
            if not self._written:
                self._write(
                    envelope.failure(f"internal error: {type(exc).__name__}: {exc}")
                )
            return EXIT_SUCCESS

    def _run(self, args: list[str]) -> int:
        if not args:
            fault = ProtocolFault("action required")
            self._write(envelope.from_exception(fault))
            return fault.exit_code

        mode = args[0]
        if mode == MODE_METADATA:
            self._write(self._plugin.metadata.to_wire())
            return EXIT_SUCCESS
        if mode == MODE_ACTIONS:
            self._write(self._plugin.registry.to_wire())
            return EXIT_SUCCESS
        if mode == MODE_EXECUTE and mode not in self._plugin.registry:
            if len(args) < 2:
                fault = ProtocolFault("action required")
                self._write(envelope.from_exception(fault))
                return fault.exit_code
            mode = args[1]

        self._write(self.execute(mode))
        return EXIT_SUCCESS

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def execute(self, name: str, raw: Union[bytes, str, None] = None) -> Envelope:
        """Decode the request for action *name*, dispatch it, return the envelope.

        Args:
            name: The requested action.
            raw: Request body; read from stdin when ``None``.
        """
        registry = self._plugin.registry
        settings = self._resolve_settings()
        try:
            body = self._read_stdin() if raw is None else raw
        except InvalidInput as exc:
            return envelope.from_exception(exc)

        spec = registry.get(name)
        if spec is None:
            logger.debug("Unknown action '%s'", name)
            return registry.dispatch(name, ParameterSet())

        if self._settings_error is not None:
            return envelope.from_exception(self._settings_error)

        try:
            params = bind_parameters(parse_request(body), spec)
        except DecodeError as exc:
            logger.info("Rejected request for '%s': %s", name, exc.message)
            return envelope.from_exception(exc)

        ctx = ActionContext(
            action=name,
            deadline=Deadline.from_params(params, settings.default_timeout),
            settings=settings,
            http_transport=self._http_transport,
        )
        logger.debug("Dispatching '%s' with deadline %r", name, ctx.deadline)
        try:
            with self._cancel_on_signal(ctx):
                return registry.dispatch(
                    name,
                    params,
                    context=ctx,
                    on_fault=write_crash_log if settings.crash_log else None,
                )
        except ActionFailed as exc:
            # Signal delivered after the handler returned.
            return envelope.from_exception(exc)
        finally:
            ctx.close()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _resolve_settings(self) -> RuntimeSettings:
        if self._settings is None:
            try:
                self._settings = load_settings()
            except ConfigError as exc:
                self._settings_error = exc
                self._settings = RuntimeSettings()
        return self._settings

    def _read_stdin(self) -> Union[bytes, str]:
        stream = self._stdin
        if stream is None:
            stream = getattr(sys.stdin, "buffer", sys.stdin)
        if stream is None:
            return b""
        try:
            return stream.read()
        except OSError as exc:
            raise InvalidInput(f"cannot read request: {exc}") from exc

    def _write(self, document: Envelope) -> None:
        self._output.write_envelope(document)
        self._written = True

    @contextmanager
    def _cancel_on_signal(self, ctx: ActionContext) -> Iterator[None]:
        """Turn SIGTERM/SIGINT into a ``cancelled`` action failure.

        Child process groups are killed first so nothing outlives the plugin.
        Signal handlers can only be installed from the main thread.
        """
        if not self._handle_signals or threading.current_thread() is not threading.main_thread():
            yield
            return

        def _on_signal(signum: int, frame: Any) -> None:
            ctx.cancel()
            raise ActionFailed(f"cancelled: received {signal.Signals(signum).name}")

        previous = {sig: signal.signal(sig, _on_signal) for sig in _CANCEL_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)


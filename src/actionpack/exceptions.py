"""Exception hierarchy for actionpack.

All exceptions inherit from :class:`ActionpackError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`actionpack.exit_codes`
and a ``fields`` mapping merged into the failure envelope when the error is
reported to the orchestrator.

Request-level errors (decode, dispatch, handler failures) carry
:data:`~actionpack.exit_codes.EXIT_SUCCESS`: they are rendered as a failure
envelope and the process still exits ``0``. Only :class:`ProtocolFault`
terminates a plugin process with a non-zero code.

Subclass hierarchy::

    ActionpackError (exit 1)
    +-- ProtocolFault          (exit 2)
    +-- DecodeError            (exit 0, envelope)
    |   +-- InvalidInput
    |   +-- MissingParameter
    |   +-- TypeMismatch
    +-- UnknownAction          (exit 0, envelope)
    +-- ActionFailed           (exit 0, envelope)
    +-- ConfigError            (exit 3)
    +-- PluginError            (exit 10)
    |   +-- DuplicateActionError
    +-- ProtocolViolation      (exit 10)
"""

from __future__ import annotations

from typing import Any

from actionpack.exit_codes import (
    EXIT_CONFIG_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PLUGIN_ERROR,
    EXIT_SUCCESS,
)


class ActionpackError(Exception):
    """Base exception for all actionpack errors.

    Args:
        message: Human-readable error description. Becomes the ``error``
            field of the failure envelope.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code

    @property
    def fields(self) -> dict[str, Any]:
        """Extra envelope fields reported alongside ``error``."""
        return {}


class ProtocolFault(ActionpackError):
    """Raised when the plugin process is invoked without a mode argument."""

    exit_code = EXIT_INVALID_USAGE


class DecodeError(ActionpackError):
    """Base class for request bodies that cannot be decoded against an action's inputs."""

    exit_code = EXIT_SUCCESS


class InvalidInput(DecodeError):
    """Raised when stdin is not valid JSON or not a JSON object."""

    def __init__(self, detail: str):
        super().__init__(f"invalid input: {detail}")
        self.detail = detail


class MissingParameter(DecodeError):
    """Raised when a required parameter is absent from the request."""

    def __init__(self, name: str):
        super().__init__(f"missing required parameter: {name}")
        self.name = name

    @property
    def fields(self) -> dict[str, Any]:
        return {"parameter": self.name}


class TypeMismatch(DecodeError):
    """Raised when a parameter's JSON type does not match its declared type."""

    def __init__(self, name: str, expected: str, actual: str):
        super().__init__(
            f"parameter '{name}' must be of type {expected}, got {actual}"
        )
        self.name = name
        self.expected = expected
        self.actual = actual

    @property
    def fields(self) -> dict[str, Any]:
        return {
            "parameter": self.name,
            "expected": self.expected,
            "actual": self.actual,
        }


class UnknownAction(ActionpackError):
    """Raised when an action name is not registered with the plugin."""

    exit_code = EXIT_SUCCESS

    def __init__(self, name: str):
        super().__init__(f"unknown action: {name}")
        self.name = name


class ActionFailed(ActionpackError):
    """Raised by a handler to report a handled failure.

    Any keyword arguments become extra envelope fields, so a shell handler
    can report ``exit_code`` and ``stderr`` next to the error message.

    Example::

        raise ActionFailed("request failed: timed out", success=False)
    """

    exit_code = EXIT_SUCCESS

    def __init__(self, message: str, **fields: Any):
        super().__init__(message)
        self._fields = fields

    @property
    def fields(self) -> dict[str, Any]:
        return dict(self._fields)


class ConfigError(ActionpackError):
    """Raised for invalid runtime settings or unresolvable credential sources."""

    exit_code = EXIT_CONFIG_ERROR


class PluginError(ActionpackError):
    """Raised when a plugin fails to load or its action table is malformed."""

    exit_code = EXIT_PLUGIN_ERROR


class DuplicateActionError(PluginError):
    """Raised at registration time when two actions share a name."""

    def __init__(self, name: str):
        super().__init__(f"action '{name}' is already registered")
        self.name = name


class ProtocolViolation(ActionpackError):
    """Raised by the process client when a plugin's stdout breaks the protocol."""

    exit_code = EXIT_PLUGIN_ERROR

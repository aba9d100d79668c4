"""Action registry -- the static action table of one plugin.

This module contains :class:`ActionRegistry`, which maps action names to an
:class:`~actionpack.models.ActionSpec` and a handler. It answers the
``actions`` discovery mode via :meth:`ActionRegistry.list` and executes
requests via :meth:`ActionRegistry.dispatch`.

Handlers share one signature and one way of reporting failure::

    def handler(params: ParameterSet, ctx: ActionContext) -> Mapping[str, Any]:
        ...                           # return result fields on success
        raise ActionFailed("reason")  # or raise on a handled failure

A returned mapping is passed through verbatim. Whatever a handler raises is
converted into a failure envelope; dispatch never lets an exception escape.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from actionpack import envelope
from actionpack.codec import ParameterSet
from actionpack.context import ActionContext
from actionpack.envelope import Envelope
from actionpack.exceptions import ActionpackError, DuplicateActionError, UnknownAction
from actionpack.models import ActionSpec, ParamSpec

logger = logging.getLogger(__name__)

Handler = Callable[[ParameterSet, ActionContext], Optional[Mapping[str, Any]]]
"""Signature every action handler implements."""

FaultHook = Callable[[str, BaseException], Optional[str]]
"""Called with ``(action, exc)`` for unexpected handler faults.

May return the path of a crash log, which is reported in the envelope.
"""


@dataclass(frozen=True)
class RegisteredAction:
    """An :class:`ActionSpec` bound to its handler."""

    spec: ActionSpec
    handler: Handler


class ActionRegistry:
    """Holds a plugin's actions in registration order.

    Example::

        registry = ActionRegistry()

        @registry.action(
            "echo",
            description="Return the message",
            inputs={"message": ParamSpec(type="string", required=True)},
        )
        def echo(params, ctx):
            return {"message": params["message"]}

        registry.dispatch("echo", ParameterSet({"message": "hi"}))
        # {'message': 'hi'}
    """

    def __init__(self) -> None:
        self._actions: dict[str, RegisteredAction] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, spec: ActionSpec, handler: Handler) -> None:
        """Add an action to the table.

        Raises:
            DuplicateActionError: If an action named ``spec.name`` exists.
                This is a programming error, raised at import time.
        """
        if spec.name in self._actions:
            raise DuplicateActionError(spec.name)
        self._actions[spec.name] = RegisteredAction(spec=spec, handler=handler)
        logger.debug("Registered action '%s'", spec.name)

    def action(
        self,
        name: str,
        description: str = "",
        inputs: Optional[Mapping[str, ParamSpec | Mapping[str, Any]]] = None,
        outputs: Optional[Mapping[str, ParamSpec | Mapping[str, Any]]] = None,
    ) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`.

        *inputs* and *outputs* accept :class:`ParamSpec` instances or plain
        dicts (``{"type": "string", "required": True}``).
        """
        spec = ActionSpec(
            name=name,
            description=description,
            inputs=dict(inputs or {}),
            outputs=dict(outputs or {}),
        )

        def decorator(handler: Handler) -> Handler:
            self.register(spec, handler)
            return handler

        return decorator

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def list(self) -> list[ActionSpec]:
        """Return every registered spec in registration order."""
        return [entry.spec for entry in self._actions.values()]

    def get(self, name: str) -> Optional[ActionSpec]:
        """Return the ActionSpec for *name*, or ``None`` when unregistered."""
        entry = self._actions.get(name)
        return entry.spec if entry is not None else None

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __len__(self) -> int:
        return len(self._actions)

    def to_wire(self) -> dict[str, Any]:
        """The ``actions`` discovery document: name to serialised spec."""
        return {entry.spec.name: entry.spec.to_wire() for entry in self._actions.values()}

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self,
        name: str,
        params: ParameterSet,
        context: Optional[ActionContext] = None,
        on_fault: Optional[FaultHook] = None,
    ) -> Envelope:
        """Run the handler for *name* and wrap the outcome in an envelope.

        Args:
            name: The requested action.
            params: Decoded parameters.
            context: Handler context; a fresh one is created when omitted.
            on_fault: Hook invoked for unexpected exceptions (crash logging).

        Returns:
            The handler's fields on success, or a failure envelope for an
            unknown action, an :class:`ActionpackError` raised by the handler,
            or any other fault.
        """
        entry = self._actions.get(name)
        if entry is None:
            return envelope.from_exception(UnknownAction(name))

        ctx = context if context is not None else ActionContext(action=name)
        try:
            result = entry.handler(params, ctx)
        except ActionpackError as exc:
            logger.info("Action '%s' failed: %s", name, exc.message)
            return envelope.from_exception(exc)
        except SystemExit as exc:
            logger.error("Action '%s' tried to exit the process (code %s)", name, exc.code)
            return envelope.failure(f"internal error: action '{name}' attempted to exit")
        except Exception as exc:
            logger.exception("Action '%s' raised an unexpected error", name)
            extra: dict[str, Any] = {}
            if on_fault is not None:
                log_path = on_fault(name, exc)
                if log_path:
                    extra["crash_log"] = log_path
            return envelope.failure(
                f"internal error: {type(exc).__name__}: {exc}", **extra
            )

        if result is None:
            return envelope.success()
        if not isinstance(result, Mapping):
            return envelope.failure(
                f"internal error: action '{name}' returned "
                f"{type(result).__name__}, expected an object"
            )
        return envelope.success(result)

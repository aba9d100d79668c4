"""Canonical success and failure envelopes.

An envelope is the single JSON object a plugin writes to stdout per
invocation. Whatever plugin ran, the orchestrator parses it the same way:

* **Success** -- an arbitrary object produced by the handler. Conventions
  such as ``success: true`` are the handler's business, not the envelope's.
* **Failure** -- an object with at least an ``error`` string. Plugins may add
  ``success: false``, ``exit_code``, ``status`` and other domain fields; the
  presence of ``error`` is the signal the orchestrator checks.

:func:`render` turns an envelope into exactly one newline-terminated JSON
document and never raises, so the runtime can always complete the exchange.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Optional

from actionpack.exceptions import ActionpackError

logger = logging.getLogger(__name__)

Envelope = dict[str, Any]
"""Alias documenting that a dict is being used as a response envelope."""


def success(fields: Optional[Mapping[str, Any]] = None) -> Envelope:
    """Build a success envelope from a handler's result fields."""
    return dict(fields or {})


def failure(message: str, **extra: Any) -> Envelope:
    """Build a failure envelope: ``{"error": message, **extra}``.

    An ``error`` key in *extra* is ignored; *message* always wins.
    """
    envelope: Envelope = {"error": message}
    for key, value in extra.items():
        if key != "error":
            envelope[key] = value
    return envelope


def from_exception(exc: ActionpackError) -> Envelope:
    """Build a failure envelope from a request-level actionpack error."""
    return failure(exc.message, **exc.fields)


def is_failure(envelope: Mapping[str, Any]) -> bool:
    """Return ``True`` when *envelope* carries the canonical ``error`` signal."""
    return "error" in envelope


def render(envelope: Mapping[str, Any]) -> str:
    """Serialise *envelope* as one compact JSON document plus ``\\n``.

    Values JSON cannot represent natively (paths, datetimes) are stringified.
    If the envelope still cannot be encoded (NaN, non-string keys) a failure
    envelope describing the problem is rendered instead.
    """
    try:
        text = json.dumps(
            envelope,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
            default=str,
        )
    except (TypeError, ValueError) as exc:
        logger.warning("Result could not be encoded as JSON: %s", exc)
        text = json.dumps(
            failure(f"result could not be encoded as JSON: {exc}"),
            ensure_ascii=False,
            separators=(",", ":"),
        )
    return text + "\n"

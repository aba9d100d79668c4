"""Per-invocation deadlines.

The orchestrator's only cancellation primitive is killing the plugin process,
so handlers that shell out or call HTTP APIs bound their blocking calls with
the :class:`Deadline` the runtime derives from the request. Collaborators use
:meth:`Deadline.cap` to shrink their own timeouts to whatever time is left.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any, Callable, Optional

from actionpack.models import JsonType


class Deadline:
    """A point in monotonic time after which work should stop.

    A deadline created with ``seconds=None`` never expires.

    Example::

        deadline = Deadline(30)
        runner.run(argv, timeout=deadline.cap(300))  # at most 30s
    """

    def __init__(
        self,
        seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self.seconds = seconds
        self.expires_at: Optional[float] = None if seconds is None else clock() + seconds

    @classmethod
    def never(cls) -> Deadline:
        return cls(None)

    @classmethod
    def from_params(
        cls,
        params: Mapping[str, Any],
        default: Optional[float] = None,
        key: str = "timeout",
    ) -> Deadline:
        """Derive a deadline from a request's ``timeout`` parameter.

        A positive number under *key* wins; otherwise *default* is used.
        """
        value = params.get(key)
        if value is not None and JsonType.of(value) is JsonType.NUMBER and value > 0:
            return cls(float(value))
        return cls(default)

    def remaining(self) -> Optional[float]:
        """Seconds left, never negative; ``None`` when unbounded."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        left = self.remaining()
        return left is not None and left <= 0

    def cap(self, timeout: Optional[float]) -> Optional[float]:
        """Return the smaller of *timeout* and the time remaining."""
        left = self.remaining()
        if left is None:
            return timeout
        if timeout is None:
            return left
        return min(timeout, left)

    def __repr__(self) -> str:
        return f"Deadline(seconds={self.seconds!r})"

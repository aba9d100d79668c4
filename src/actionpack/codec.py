"""Decode raw request bytes into a typed :class:`ParameterSet`.

Decoding is total: every input either produces a ParameterSet that satisfies
all required/type constraints of the target :class:`~actionpack.models.ActionSpec`,
or raises exactly one :class:`~actionpack.exceptions.DecodeError` naming the
first offending parameter in declaration order.

**Rules:**

* Empty input (no bytes, or only whitespace) is the empty request ``{}``.
* Input that is not JSON, or JSON that is not an object, raises
  :class:`~actionpack.exceptions.InvalidInput` with the parse error text.
* A declared input that is present must have a JSON type compatible with its
  :class:`~actionpack.models.ParamType`, otherwise
  :class:`~actionpack.exceptions.TypeMismatch`. ``null`` is its own type and
  matches no declared type.
* A declared input that is absent is a
  :class:`~actionpack.exceptions.MissingParameter` when required, and is
  filled with a copy of its default otherwise.
* Keys the action does not declare pass through unchanged.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterator, Mapping
from typing import Any, Optional, Union

from actionpack.exceptions import InvalidInput, MissingParameter, TypeMismatch
from actionpack.models import ActionSpec, JsonType


class ParameterSet(Mapping[str, Any]):
    """Read-only mapping of decoded parameters for one invocation.

    Declared inputs have already been validated by :func:`decode_parameters`,
    so ``params["url"]`` is safe for a required string. The typed getters are
    for pass-through keys the action does not declare: they return *default*
    when the key is absent or holds a value of another JSON type.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ParameterSet({self._values!r})"

    def _typed(self, key: str, expected: JsonType, default: Any) -> Any:
        value = self._values.get(key)
        if value is None or JsonType.of(value) is not expected:
            return default
        return value

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._typed(key, JsonType.STRING, default)

    def get_number(
        self, key: str, default: Optional[float] = None
    ) -> Optional[float]:
        return self._typed(key, JsonType.NUMBER, default)

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Return a number parameter truncated to ``int``."""
        value = self._typed(key, JsonType.NUMBER, None)
        return default if value is None else int(value)

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        return self._typed(key, JsonType.BOOLEAN, default)

    def get_object(self, key: str) -> dict[str, Any]:
        """Return an object parameter, or an empty dict."""
        return dict(self._typed(key, JsonType.OBJECT, {}))

    def get_array(self, key: str) -> list[Any]:
        """Return an array parameter, or an empty list."""
        return list(self._typed(key, JsonType.ARRAY, []))

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)


def parse_request(raw: Union[bytes, str, None]) -> dict[str, Any]:
    """Parse a raw request body into a JSON object without validating it.

    Args:
        raw: The bytes read from stdin (or an already-decoded string).

    Returns:
        The decoded JSON object; ``{}`` for empty input.

    Raises:
        InvalidInput: If the body is not UTF-8, not JSON, or not an object.
    """
    if raw is None:
        return {}
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidInput(f"request is not valid UTF-8: {exc}") from exc
    else:
        text = raw

    if not text.strip():
        return {}

    try:
        payload = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        raise InvalidInput(str(exc) or type(exc).__name__) from exc

    if not isinstance(payload, dict):
        raise InvalidInput(
            f"expected a JSON object, got {JsonType.of(payload).value}"
        )
    return payload


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def bind_parameters(payload: Mapping[str, Any], spec: ActionSpec) -> ParameterSet:
    """Validate *payload* against *spec* and apply defaults.

    Raises:
        MissingParameter: For the first absent required input.
        TypeMismatch: For the first present input of the wrong type.
    """
    values = dict(payload)
    for name, param in spec.inputs.items():
        if name in payload:
            actual = JsonType.of(payload[name])
            if not actual.satisfies(param.type):
                raise TypeMismatch(name, param.type.value, actual.value)
        elif param.required:
            raise MissingParameter(name)
        else:
            # A handler mutating a list/dict default must not alter the ActionSpec.
            values[name] = copy.deepcopy(param.default)
    return ParameterSet(values)


def decode_parameters(raw: Union[bytes, str, None], spec: ActionSpec) -> ParameterSet:
    """Decode a raw request body against an action's inputs.

    Example::

        >>> spec = ActionSpec(name="get", inputs={
        ...     "url": ParamSpec(type="string", required=True),
        ...     "timeout": ParamSpec(type="number", default=30),
        ... })
        >>> decode_parameters(b'{"url": "https://example.com"}', spec)
        ParameterSet({'url': 'https://example.com', 'timeout': 30})

    Raises:
        InvalidInput: If the body is not a JSON object.
        MissingParameter: If a required input is absent.
        TypeMismatch: If an input has the wrong JSON type.
    """
    return bind_parameters(parse_request(raw), spec)

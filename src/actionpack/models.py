"""Canonical Pydantic models shared across all actionpack modules.

This is the single source of truth for the static shapes of the plugin
protocol. The models fall into two groups:

**Protocol models** -- built once at process start and never mutated:
    :class:`ParamType`, :class:`ParamSpec`, :class:`ActionSpec`,
    :class:`Metadata` and :class:`EnvOption`.

**Runtime models** -- :class:`JsonType`, the total classifier for decoded
JSON values, and :class:`RuntimeSettings`, the process configuration
resolved by :func:`~actionpack.config.load_settings`.

Protocol models are frozen (``frozen=True``) so an action table cannot be
changed after registration.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Types ---


class ParamType(str, enum.Enum):
    """Semantic parameter types a plugin can declare.

    These are tags on the wire, not Python types. ``number`` covers both
    integers and floats.
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class JsonType(str, enum.Enum):
    """The observed type of a decoded JSON value.

    :meth:`of` is total over everything :func:`json.loads` can produce, so
    type checks in the codec are a lookup rather than a cast.
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    NULL = "null"

    @classmethod
    def of(cls, value: Any) -> JsonType:
        """Classify a decoded JSON value.

        ``bool`` is checked before ``int`` because ``True`` is an ``int`` in
        Python but a boolean on the wire.

        Raises:
            TypeError: If *value* is not a JSON value.
        """
        if value is None:
            return cls.NULL
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, str):
            return cls.STRING
        if isinstance(value, Mapping):
            return cls.OBJECT
        if isinstance(value, (list, tuple)):
            return cls.ARRAY
        raise TypeError(f"not a JSON value: {type(value).__name__}")

    def satisfies(self, declared: ParamType) -> bool:
        """Return ``True`` when a value of this type is valid for *declared*."""
        return self.value == declared.value


# --- Protocol models ---


class ParamSpec(BaseModel):
    """Describes one input parameter or output field.

    A ``default`` of ``None`` means the parameter has no default: when it is
    optional and absent, handlers see ``None`` ("no value").

    Example::

        ParamSpec(type="number", default=30, description="Timeout in seconds")
    """

    model_config = ConfigDict(frozen=True)

    type: ParamType
    required: bool = False
    default: Any = None
    description: str = ""

    def to_input_wire(self) -> dict[str, Any]:
        """Serialise as an input: ``{type, required, default?, description}``."""
        data: dict[str, Any] = {"type": self.type.value, "required": self.required}
        if self.default is not None:
            data["default"] = self.default
        data["description"] = self.description
        return data

    def to_output_wire(self) -> dict[str, Any]:
        """Serialise as an output: ``{type, description}``."""
        return {"type": self.type.value, "description": self.description}


class ActionSpec(BaseModel):
    """Static description of one verb a plugin supports.

    ``inputs`` keeps declaration order; the codec validates parameters in
    that order so the first failure it reports is deterministic.
    ``outputs`` documents result fields and is not enforced.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    inputs: dict[str, ParamSpec] = Field(default_factory=dict)
    outputs: dict[str, ParamSpec] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        """Serialise for the ``actions`` discovery mode."""
        return {
            "description": self.description,
            "inputs": {k: v.to_input_wire() for k, v in self.inputs.items()},
            "outputs": {k: v.to_output_wire() for k, v in self.outputs.items()},
        }


class Metadata(BaseModel):
    """Plugin identity, returned verbatim for the ``metadata`` mode."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    version: str
    description: str = ""
    author: str = ""
    tags: list[str] = Field(default_factory=list)
    license: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        # Tags are a set; keep first-seen order for stable output.
        return list(dict.fromkeys(value))

    def to_wire(self) -> dict[str, Any]:
        """Serialise for the ``metadata`` mode, omitting an unset license."""
        return self.model_dump(mode="json", exclude_none=True)


class EnvOption(BaseModel):
    """An environment variable a plugin recognises (credentials, tuning)."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    secret: bool = False
    default: Optional[str] = None


# --- Runtime settings ---


class RuntimeSettings(BaseModel):
    """Process-wide settings resolved from ``ACTIONPACK_*`` environment variables.

    See :func:`~actionpack.config.load_settings` for the variable names.
    """

    default_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Deadline in seconds when a request carries no timeout",
    )
    log_level: str = Field(default="WARNING", description="stderr log level")
    http_retries: int = Field(
        default=2, ge=0, description="Retries on connection errors and 5xx"
    )
    crash_log: bool = Field(
        default=True, description="Write tracebacks of handler faults to disk"
    )

"""Tests for actionpack.models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from actionpack.models import (
    ActionSpec,
    EnvOption,
    JsonType,
    Metadata,
    ParamSpec,
    ParamType,
    RuntimeSettings,
)


# ---------------------------------------------------------------------------
# JsonType
# ---------------------------------------------------------------------------


class TestJsonType:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, JsonType.NULL),
            (True, JsonType.BOOLEAN),
            (0, JsonType.NUMBER),
            (1.5, JsonType.NUMBER),
            ("", JsonType.STRING),
            ({}, JsonType.OBJECT),
            ([], JsonType.ARRAY),
        ],
    )
    def test_of(self, value, expected: JsonType) -> None:
        assert JsonType.of(value) is expected

    def test_of_rejects_non_json(self) -> None:
        with pytest.raises(TypeError):
            JsonType.of(object())

    def test_satisfies(self) -> None:
        assert JsonType.NUMBER.satisfies(ParamType.NUMBER)
        assert not JsonType.BOOLEAN.satisfies(ParamType.NUMBER)
        for declared in ParamType:
            assert not JsonType.NULL.satisfies(declared)


# ---------------------------------------------------------------------------
# ParamSpec / ActionSpec
# ---------------------------------------------------------------------------


class TestParamSpec:
    def test_input_wire_omits_missing_default(self) -> None:
        spec = ParamSpec(type="string", required=True, description="URL")
        assert spec.to_input_wire() == {
            "type": "string",
            "required": True,
            "description": "URL",
        }

    def test_input_wire_keeps_falsy_default(self) -> None:
        spec = ParamSpec(type="boolean", default=False)
        assert spec.to_input_wire()["default"] is False

    def test_output_wire(self) -> None:
        spec = ParamSpec(type="number", description="Status")
        assert spec.to_output_wire() == {"type": "number", "description": "Status"}

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ParamSpec(type="integer")

    def test_frozen(self) -> None:
        spec = ParamSpec(type="string")
        with pytest.raises(ValidationError):
            spec.required = True  # type: ignore[misc]


class TestActionSpec:
    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ActionSpec(name="")

    def test_inputs_keep_order(self) -> None:
        spec = ActionSpec(
            name="x",
            inputs={
                "z": ParamSpec(type="string"),
                "a": ParamSpec(type="string"),
            },
        )
        assert list(spec.to_wire()["inputs"]) == ["z", "a"]


# ---------------------------------------------------------------------------
# Metadata / EnvOption / RuntimeSettings
# ---------------------------------------------------------------------------


class TestMetadata:
    def test_wire_omits_unset_license(self) -> None:
        meta = Metadata(name="calc", version="1.0.0")
        assert meta.to_wire() == {
            "name": "calc",
            "version": "1.0.0",
            "description": "",
            "author": "",
            "tags": [],
        }

    def test_wire_with_license(self) -> None:
        meta = Metadata(name="calc", version="1.0.0", license="MIT")
        assert meta.to_wire()["license"] == "MIT"

    def test_tags_deduplicated(self) -> None:
        meta = Metadata(name="x", version="1", tags=["a", "b", "a"])
        assert meta.tags == ["a", "b"]


class TestEnvOption:
    def test_defaults(self) -> None:
        option = EnvOption(name="TOKEN", description="API token")
        assert option.secret is False
        assert option.default is None


class TestRuntimeSettings:
    def test_defaults(self) -> None:
        settings = RuntimeSettings()
        assert settings.default_timeout is None
        assert settings.log_level == "WARNING"
        assert settings.http_retries == 2
        assert settings.crash_log is True

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            RuntimeSettings(default_timeout=0)

    def test_retries_not_negative(self) -> None:
        with pytest.raises(ValidationError):
            RuntimeSettings(http_retries=-1)

"""Tests for actionpack.codec -- request decoding and parameter binding.

Covers:
- Empty and whitespace-only bodies decode to the empty request
- Invalid JSON, non-object JSON, invalid UTF-8 and NaN constants
- Required parameter checks in declaration order
- Type checks, including strict null handling
- Default filling and pass-through of undeclared keys
- ParameterSet typed getters
"""

from __future__ import annotations

import pytest

from actionpack.codec import ParameterSet, decode_parameters, parse_request
from actionpack.exceptions import InvalidInput, MissingParameter, TypeMismatch
from actionpack.models import ActionSpec, ParamSpec


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_spec() -> ActionSpec:
    return ActionSpec(
        name="get",
        inputs={
            "url": ParamSpec(type="string", required=True),
            "timeout": ParamSpec(type="number", default=30),
            "headers": ParamSpec(type="object"),
        },
    )


# ---------------------------------------------------------------------------
# parse_request
# ---------------------------------------------------------------------------


class TestParseRequest:
    @pytest.mark.parametrize("raw", [None, b"", "", b"   \n\t ", "\n"])
    def test_empty_body_is_empty_request(self, raw) -> None:
        assert parse_request(raw) == {}

    def test_object_body(self) -> None:
        assert parse_request(b'{"a": 1, "b": [true, null]}') == {"a": 1, "b": [True, None]}

    def test_accepts_text(self) -> None:
        assert parse_request('{"name": "café"}') == {"name": "café"}

    def test_invalid_json(self) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            parse_request(b"{not json")
        assert exc_info.value.message.startswith("invalid input: ")
        assert exc_info.value.detail

    @pytest.mark.parametrize(
        "raw, kind",
        [(b"[1, 2]", "array"), (b'"text"', "string"), (b"42", "number"), (b"null", "null")],
    )
    def test_non_object_json(self, raw: bytes, kind: str) -> None:
        with pytest.raises(InvalidInput, match=f"expected a JSON object, got {kind}"):
            parse_request(raw)

    def test_invalid_utf8(self) -> None:
        with pytest.raises(InvalidInput, match="not valid UTF-8"):
            parse_request(b'{"a": "\xff"}')

    @pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
    def test_non_standard_constants_rejected(self, constant: str) -> None:
        with pytest.raises(InvalidInput, match=constant):
            parse_request(f'{{"x": {constant}}}')

    def test_invalid_input_has_no_extra_fields(self) -> None:
        with pytest.raises(InvalidInput) as exc_info:
            parse_request(b"[")
        assert exc_info.value.fields == {}


# ---------------------------------------------------------------------------
# decode_parameters
# ---------------------------------------------------------------------------


class TestDecodeParameters:
    def test_defaults_applied(self) -> None:
        params = decode_parameters(b'{"url": "https://example.com"}', _get_spec())
        assert params["url"] == "https://example.com"
        assert params["timeout"] == 30

    def test_optional_without_default_is_none(self) -> None:
        params = decode_parameters(b'{"url": "https://example.com"}', _get_spec())
        assert params["headers"] is None

    def test_present_value_overrides_default(self) -> None:
        params = decode_parameters(b'{"url": "u", "timeout": 2.5}', _get_spec())
        assert params["timeout"] == 2.5

    def test_missing_required(self) -> None:
        with pytest.raises(MissingParameter) as exc_info:
            decode_parameters(b"{}", _get_spec())
        assert exc_info.value.message == "missing required parameter: url"
        assert exc_info.value.fields == {"parameter": "url"}

    def test_empty_body_with_required_input(self) -> None:
        with pytest.raises(MissingParameter):
            decode_parameters(b"", _get_spec())

    def test_type_mismatch(self) -> None:
        with pytest.raises(TypeMismatch) as exc_info:
            decode_parameters(b'{"url": "u", "timeout": "soon"}', _get_spec())
        assert exc_info.value.message == "parameter 'timeout' must be of type number, got string"
        assert exc_info.value.fields == {
            "parameter": "timeout",
            "expected": "number",
            "actual": "string",
        }

    def test_null_is_not_a_value_of_any_type(self) -> None:
        with pytest.raises(TypeMismatch) as exc_info:
            decode_parameters(b'{"url": "u", "headers": null}', _get_spec())
        assert exc_info.value.actual == "null"

    def test_boolean_is_not_a_number(self) -> None:
        with pytest.raises(TypeMismatch) as exc_info:
            decode_parameters(b'{"url": "u", "timeout": true}', _get_spec())
        assert exc_info.value.actual == "boolean"

    def test_first_failure_in_declaration_order(self) -> None:
        spec = ActionSpec(
            name="x",
            inputs={
                "b": ParamSpec(type="string", required=True),
                "a": ParamSpec(type="number", required=True),
            },
        )
        with pytest.raises(MissingParameter) as exc_info:
            decode_parameters(b"{}", spec)
        assert exc_info.value.name == "b"

        with pytest.raises(TypeMismatch) as mismatch:
            decode_parameters(b'{"a": "one", "b": 2}', spec)
        assert mismatch.value.name == "b"

    def test_undeclared_keys_pass_through(self) -> None:
        params = decode_parameters(
            b'{"url": "u", "retries": 3, "label": null}', _get_spec()
        )
        assert params["retries"] == 3
        assert params["label"] is None

    def test_integer_and_float_are_numbers(self) -> None:
        spec = ActionSpec(name="n", inputs={"n": ParamSpec(type="number", required=True)})
        assert decode_parameters(b'{"n": 1}', spec)["n"] == 1
        assert decode_parameters(b'{"n": 1.5}', spec)["n"] == 1.5

    def test_mutable_default_is_copied(self) -> None:
        spec = ActionSpec(name="t", inputs={"tags": ParamSpec(type="array", default=["a"])})
        first = decode_parameters(b"", spec)
        first["tags"].append("b")
        second = decode_parameters(b"", spec)
        assert second["tags"] == ["a"]
        assert spec.inputs["tags"].default == ["a"]

    def test_invalid_input_before_binding(self) -> None:
        with pytest.raises(InvalidInput):
            decode_parameters(b"[]", _get_spec())


# ---------------------------------------------------------------------------
# ParameterSet
# ---------------------------------------------------------------------------


class TestParameterSet:
    def test_mapping_protocol(self) -> None:
        params = ParameterSet({"a": 1, "b": "x"})
        assert len(params) == 2
        assert set(params) == {"a", "b"}
        assert "a" in params
        assert params.get("missing") is None
        assert params.to_dict() == {"a": 1, "b": "x"}

    def test_is_read_only(self) -> None:
        params = ParameterSet({"a": 1})
        with pytest.raises(TypeError):
            params["a"] = 2  # type: ignore[index]

    def test_getters_return_matching_types(self) -> None:
        params = ParameterSet(
            {"s": "v", "n": 2.9, "b": False, "o": {"k": 1}, "a": [1, 2]}
        )
        assert params.get_str("s") == "v"
        assert params.get_number("n") == 2.9
        assert params.get_int("n") == 2
        assert params.get_bool("b") is False
        assert params.get_object("o") == {"k": 1}
        assert params.get_array("a") == [1, 2]

    def test_getters_fall_back_on_wrong_type(self) -> None:
        params = ParameterSet({"s": 1, "n": "2", "b": 0, "o": [], "a": {}})
        assert params.get_str("s", "d") == "d"
        assert params.get_number("n") is None
        assert params.get_int("n", 7) == 7
        assert params.get_bool("b", True) is True
        assert params.get_object("o") == {}
        assert params.get_array("a") == []

    def test_getters_fall_back_on_absent_or_null(self) -> None:
        params = ParameterSet({"x": None})
        assert params.get_str("x", "d") == "d"
        assert params.get_str("missing") is None

    def test_get_number_rejects_booleans(self) -> None:
        assert ParameterSet({"n": True}).get_number("n") is None

    def test_get_object_returns_copy(self) -> None:
        params = ParameterSet({"o": {"k": 1}})
        params.get_object("o")["k"] = 2
        assert params["o"] == {"k": 1}

    def test_repr(self) -> None:
        assert repr(ParameterSet({"a": 1})) == "ParameterSet({'a': 1})"

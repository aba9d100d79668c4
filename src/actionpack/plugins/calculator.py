"""Calculator plugin -- safe arithmetic evaluation.

Expressions are parsed with :mod:`ast` and evaluated by walking the tree, so
nothing but numbers, the constants ``pi`` and ``e``, parentheses, unary
``+``/``-`` and the binary operators ``+ - * / %`` is ever executed::

    $ echo '{"expression": "2 + 2 * 3"}' | actionpack-calculator calculate
    {"result":8,"expression":"2 + 2 * 3"}
"""

from __future__ import annotations

import ast
import math
import operator
from typing import Any, Callable, Union

from actionpack.codec import ParameterSet
from actionpack.context import ActionContext
from actionpack.exceptions import ActionFailed
from actionpack.models import Metadata, ParamSpec
from actionpack.plugins.base import Plugin
from actionpack.registry import ActionRegistry

Number = Union[int, float]

METADATA = Metadata(
    name="calculator",
    version="1.0.0",
    description="Mathematical calculations with safe expression evaluation",
    author="actionpack",
    tags=["math", "calculation", "utility", "ast"],
    license="MIT",
)

registry = ActionRegistry()

_CONSTANTS: dict[str, float] = {"pi": math.pi, "e": math.e}

_UNARY: dict[type, Callable[[Number], Number]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class EvaluationError(ValueError):
    """Raised for expressions the calculator refuses or cannot evaluate."""


def _divide(left: Number, right: Number) -> Number:
    if right == 0:
        raise EvaluationError("division by zero")
    return left / right


def _modulo(left: Number, right: Number) -> Number:
    if right == 0:
        raise EvaluationError("modulo by zero")
    # Sign follows the dividend, as in C.
    return math.fmod(left, right)


_BINARY: dict[type, Callable[[Number, Number], Number]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: _divide,
    ast.Mod: _modulo,
}


def evaluate(expression: str) -> float:
    """Evaluate an arithmetic *expression*.

    Raises:
        EvaluationError: On a syntax error, an unsupported construct, an
            unknown identifier, or division/modulo by zero.
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise EvaluationError(f"syntax error: {exc.msg}") from exc
    except ValueError as exc:
        raise EvaluationError(f"syntax error: {exc}") from exc
    return float(_eval_node(tree.body))


def _eval_node(node: ast.AST) -> Number:
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise EvaluationError(f"unsupported literal: {node.value!r}")
        return node.value
    if isinstance(node, ast.Name):
        if node.id in _CONSTANTS:
            return _CONSTANTS[node.id]
        raise EvaluationError(f"undefined identifier: {node.id}")
    if isinstance(node, ast.UnaryOp):
        op = _UNARY.get(type(node.op))
        if op is None:
            raise EvaluationError(f"unsupported unary operator: {type(node.op).__name__}")
        return op(_eval_node(node.operand))
    if isinstance(node, ast.BinOp):
        op = _BINARY.get(type(node.op))
        if op is None:
            raise EvaluationError(f"unsupported binary operator: {type(node.op).__name__}")
        return op(_eval_node(node.left), _eval_node(node.right))
    raise EvaluationError(f"unsupported expression type: {type(node).__name__}")


def _round(value: float, precision: int) -> Number:
    """Round to *precision* decimals; integral results become ``int``."""
    rounded = round(value, max(precision, 0))
    if math.isfinite(rounded) and rounded == int(rounded):
        return int(rounded)
    return rounded


@registry.action(
    "calculate",
    description="Perform safe mathematical calculations using AST parsing",
    inputs={
        "expression": ParamSpec(
            type="string",
            required=True,
            description="Mathematical expression to evaluate (supports +, -, *, /, %, parentheses)",
        ),
        "precision": ParamSpec(
            type="number", default=2, description="Decimal precision for results"
        ),
    },
    outputs={
        "result": ParamSpec(type="number", description="Calculation result"),
        "expression": ParamSpec(type="string", description="Original expression"),
    },
)
def calculate(params: ParameterSet, ctx: ActionContext) -> dict[str, Any]:
    expression = params["expression"]
    if not expression.strip():
        raise ActionFailed("expression parameter is required", expression=expression)

    try:
        value = evaluate(expression)
    except (EvaluationError, OverflowError) as exc:
        raise ActionFailed(f"invalid expression: {exc}", expression=expression) from exc

    if not math.isfinite(value):
        raise ActionFailed("invalid expression: result is not finite", expression=expression)

    return {
        "result": _round(value, int(params["precision"])),
        "expression": expression,
    }


PLUGIN = Plugin(METADATA, registry)


def main() -> None:
    PLUGIN.main()

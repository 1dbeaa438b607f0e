"""Unit-conversion formula evaluation.

SignalK servers publish display conversions as small arithmetic
expressions over ``value`` (``"value * 1.94384"``,
``"(value - 273.15) * 9/5 + 32"``, ``"value * 180 / pi"``).  Formulas
are parsed with :mod:`ast` and evaluated by walking a whitelisted subset
of node types, so nothing from the server is ever passed to ``eval``.
"""

from __future__ import annotations

import ast
import functools
import logging
import math
import operator
import re
from collections.abc import Callable

_logger = logging.getLogger(__name__)

_BINARY_OPS: dict[type[ast.operator], Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
    ast.Mod: operator.mod,
}

_UNARY_OPS: dict[type[ast.unaryop], Callable[[float], float]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_FUNCTIONS: dict[str, Callable[..., float]] = {
    "abs": abs,
    "round": round,
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "atan": math.atan,
    "atan2": math.atan2,
    "log": math.log,
    "exp": math.exp,
    "floor": math.floor,
    "ceil": math.ceil,
}

_CONSTANTS: dict[str, float] = {"pi": math.pi, "e": math.e}

_SIMPLE_FACTOR = re.compile(r"value\s*\*\s*([\d.]+)")


class FormulaError(ValueError):
    """Formula could not be parsed or uses an unsupported construct."""


@functools.lru_cache(maxsize=256)
def _parse(formula: str) -> ast.Expression:
    # "^" is power in the server's expression dialect.
    source = formula.replace("^", "**")
    try:
        return ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise FormulaError(f"invalid formula {formula!r}") from exc


def _eval_node(node: ast.AST, value: float) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, value)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return float(node.value)
    if isinstance(node, ast.Name):
        if node.id == "value":
            return value
        if node.id in _CONSTANTS:
            return _CONSTANTS[node.id]
        raise FormulaError(f"unknown name {node.id!r}")
    if isinstance(node, ast.BinOp):
        binary = _BINARY_OPS.get(type(node.op))
        if binary is None:
            raise FormulaError(f"unsupported operator {type(node.op).__name__}")
        return binary(_eval_node(node.left, value), _eval_node(node.right, value))
    if isinstance(node, ast.UnaryOp):
        unary = _UNARY_OPS.get(type(node.op))
        if unary is None:
            raise FormulaError(f"unsupported operator {type(node.op).__name__}")
        return unary(_eval_node(node.operand, value))
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and not node.keywords:
        func = _FUNCTIONS.get(node.func.id)
        if func is None:
            raise FormulaError(f"unknown function {node.func.id!r}")
        return float(func(*(_eval_node(arg, value) for arg in node.args)))
    raise FormulaError(f"unsupported expression {type(node).__name__}")


def evaluate_formula(formula: str, value: float) -> float:
    """Evaluate *formula* with ``value`` bound to *value*.

    Raises :class:`FormulaError` when the formula cannot be evaluated.
    Falls back to a plain ``value * <factor>`` match like the server's own
    simple formulas when the expression does not parse.
    """
    try:
        return _eval_node(_parse(formula), float(value))
    except FormulaError:
        match = _SIMPLE_FACTOR.search(formula)
        if match is not None:
            try:
                return float(value) * float(match.group(1))
            except ValueError:
                pass
        raise
    except (ArithmeticError, ValueError, TypeError) as exc:
        raise FormulaError(f"formula {formula!r} failed for value={value}: {exc}") from exc


def try_evaluate_formula(formula: str | None, value: float) -> float | None:
    """Like :func:`evaluate_formula`, but ``None`` on failure and identity for empty formulas."""
    if formula is None or not formula.strip() or formula.strip() == "value":
        return float(value)
    try:
        return evaluate_formula(formula, value)
    except FormulaError:
        _logger.debug("Formula evaluation failed formula=%r value=%r", formula, value, exc_info=True)
        return None


def radians_to_degrees(radians: float) -> float:
    """Convert radians to a compass bearing in ``[0, 360)``."""
    return math.degrees(radians) % 360.0

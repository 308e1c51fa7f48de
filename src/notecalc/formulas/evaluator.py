"""Tree-walking evaluator for parsed arithmetic expressions.

The walk is a non-recursive post-order transform, so a long chain such as
``1 + 1 + ... + 1`` (one tree level per operator) evaluates without
touching the interpreter's recursion limit.

Every intermediate value is checked for finiteness, so an overflow that a
later operation would hide (``1 / (1e308 * 10)``) is still reported.
"""

from __future__ import annotations

import math

from lark import Token, Tree
from lark.exceptions import VisitError
from lark.visitors import Transformer_NonRecursive

from notecalc.formulas.errors import DivisionByZeroError, EvaluationError
from notecalc.formulas.parser import parse_expression


def evaluate_arithmetic(expr: str) -> float:
    """Parse and evaluate an arithmetic expression.

    Args:
        expr: Expression text restricted to numbers, ``+ - * / % ^``,
            parentheses and whitespace.

    Returns:
        The finite numeric result.

    Raises:
        ParseError: Invalid characters or syntax.
        DivisionByZeroError: Division or modulo by zero.
        EvaluationError: Non-finite result or math domain error.
    """
    tree = parse_expression(expr)
    return evaluate_tree(tree, expr)


def evaluate_tree(tree: Tree, expr: str | None = None) -> float:
    """Evaluate a tree produced by ``parse_expression()``.

    Args:
        tree: Parse tree.
        expr: Source text, attached to any raised error.

    Returns:
        The finite numeric result.
    """
    try:
        return _ArithmeticTransformer().transform(tree)
    except VisitError as exc:
        err = exc.orig_exc
        if not isinstance(err, EvaluationError):
            raise
        if err.expression is None:
            err.expression = expr
        raise err from None


class _ArithmeticTransformer(Transformer_NonRecursive):
    """Reduces each rule of the grammar to a float, bottom-up.

    Lark wraps exceptions raised here in ``VisitError``; ``evaluate_tree``
    unwraps them.
    """

    def start(self, children: list[float]) -> float:
        return children[0]

    def number(self, children: list[Token]) -> float:
        return _finite(float(str(children[0])), "number literal")

    def neg(self, children: list[float]) -> float:
        return -children[0]

    def add(self, children: list[float]) -> float:
        left, right = children
        return _finite(left + right, "addition")

    def sub(self, children: list[float]) -> float:
        left, right = children
        return _finite(left - right, "subtraction")

    def mul(self, children: list[float]) -> float:
        left, right = children
        return _finite(left * right, "multiplication")

    def div(self, children: list[float]) -> float:
        left, right = children
        if right == 0:
            raise DivisionByZeroError("Division by zero")
        return _finite(left / right, "division")

    def mod(self, children: list[float]) -> float:
        left, right = children
        if right == 0:
            raise DivisionByZeroError("Modulo by zero")
        # Truncated remainder: the sign follows the dividend.
        return _finite(math.fmod(left, right), "modulo")

    def pow(self, children: list[float]) -> float:
        base, exponent = children
        try:
            result = math.pow(base, exponent)
        except OverflowError as exc:
            raise EvaluationError(f"Overflow in {base!r} ^ {exponent!r}") from exc
        except ValueError as exc:
            raise EvaluationError(f"Undefined result for {base!r} ^ {exponent!r}") from exc
        return _finite(result, "exponentiation")

    def __default__(self, data, children, meta):
        raise EvaluationError(f"Unknown node type: {data}")


def _finite(value: float, operation: str) -> float:
    if math.isfinite(value):
        return value
    raise EvaluationError(f"Non-finite result in {operation}")

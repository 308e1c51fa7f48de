"""Arithmetic parsing, evaluation and function-call resolution.

Public API::

    from notecalc.formulas import normalize, parse_expression, evaluate_arithmetic
"""

from notecalc.formulas.errors import (
    ERROR_KINDS,
    ArgumentError,
    DivisionByZeroError,
    EvaluationError,
    ParseError,
    UnknownFunctionError,
)
from notecalc.formulas.evaluator import evaluate_arithmetic, evaluate_tree
from notecalc.formulas.normalizer import normalize
from notecalc.formulas.parser import check_balanced, parse_expression
from notecalc.formulas.calls import (
    evaluate_function,
    innermost_calls,
    resolve_calls,
    split_args,
)

__all__ = [
    "ERROR_KINDS",
    "ArgumentError",
    "DivisionByZeroError",
    "EvaluationError",
    "ParseError",
    "UnknownFunctionError",
    "check_balanced",
    "evaluate_arithmetic",
    "evaluate_function",
    "evaluate_tree",
    "innermost_calls",
    "normalize",
    "parse_expression",
    "resolve_calls",
    "split_args",
]

"""The per-expression pipeline: context, normalization, calls, arithmetic."""

from __future__ import annotations

import re

import notecalc.functions  # noqa: F401  (registers builtins)
from notecalc.context import EvaluationContext, apply_context
from notecalc.formulas.calls import DEFAULT_MAX_ROUNDS, resolve_calls
from notecalc.formulas.errors import ParseError
from notecalc.formulas.evaluator import evaluate_arithmetic
from notecalc.formulas.normalizer import normalize

_NAME_RE = re.compile(r"(?<![\w.])[A-Za-z_]\w*")


def evaluate_expression(
    expr: str,
    ctx: EvaluationContext,
    *,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
) -> float:
    """Evaluate one expression against *ctx*.

    Function arguments that are not bare numbers come back through this
    same function.

    Args:
        expr: Raw expression text.
        ctx: Variables, line results and pending names to substitute.
        max_rounds: Bound on call-nesting depth.

    Returns:
        The finite numeric value.

    Raises:
        EvaluationError: Or one of its subclasses, naming the failure kind.
    """
    text = normalize(apply_context(expr, ctx))

    def resolve_arg(arg: str) -> float:
        return evaluate_expression(arg, ctx, max_rounds=max_rounds)

    text = resolve_calls(text, resolve_arg, max_rounds=max_rounds)

    leftover = _NAME_RE.search(text)
    if leftover is not None:
        raise ParseError(
            f"unknown name {leftover.group(0)!r}",
            position=leftover.start(),
            expression=text,
        )
    return evaluate_arithmetic(text)

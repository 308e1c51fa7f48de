"""Evaluation context and textual substitution of names and line references."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from notecalc.formatting import to_numeral
from notecalc.formulas.errors import EvaluationError

_LINE_REF_RE = re.compile(r"@(\d+)")


@dataclass(frozen=True)
class EvaluationContext:
    """Read-only snapshot of the state one evaluation may look at.

    Attributes:
        variables: Variable name to value.
        line_results: 1-based line index to that line's result.
        pending: Names the document assigns but that have no value yet.
            They substitute as ``0``, like an unset ``@N``.
    """

    variables: Mapping[str, float] = field(default_factory=dict)
    line_results: Mapping[int, float] = field(default_factory=dict)
    pending: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not isinstance(self.variables, MappingProxyType):
            object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))
        if not isinstance(self.line_results, MappingProxyType):
            object.__setattr__(self, "line_results", MappingProxyType(dict(self.line_results)))
        if not isinstance(self.pending, frozenset):
            object.__setattr__(self, "pending", frozenset(self.pending))

    @classmethod
    def create(
        cls,
        variables: Mapping[str, Any] | None = None,
        line_results: Mapping[Any, Any] | None = None,
        pending: Iterable[str] = (),
    ) -> EvaluationContext:
        """Build a context from loosely typed mappings.

        Line-result keys may be strings (as they come back from JSON) and
        values may be numeric strings; both are coerced.

        Raises:
            EvaluationError: If a value is not numeric or a line key is not
                an integer.
        """
        return cls(
            variables={
                str(k): _coerce_value(v, f"variable {k!r}")
                for k, v in (variables or {}).items()
            },
            line_results={
                _coerce_line(k): _coerce_value(v, f"line {k!r}")
                for k, v in (line_results or {}).items()
            },
            pending=frozenset(pending),
        )

    @classmethod
    def coerce(cls, context: EvaluationContext | Mapping[str, Any] | None) -> EvaluationContext:
        """Accept a context, a ``{"variables", "line_results"}`` mapping, or None.

        ``lineResults`` is accepted as an alias of ``line_results``.
        """
        if context is None:
            return cls()
        if isinstance(context, EvaluationContext):
            return context
        line_results = context.get("line_results", context.get("lineResults"))
        return cls.create(context.get("variables"), line_results)


def _coerce_value(value: Any, what: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise EvaluationError(f"Context value for {what} is not a number: {value!r}") from None
    if not math.isfinite(number):
        raise EvaluationError(f"Context value for {what} is not finite: {value!r}")
    return number


def _coerce_line(key: Any) -> int:
    try:
        return int(key)
    except (TypeError, ValueError):
        raise EvaluationError(f"Line result keys must be line numbers, got {key!r}") from None


def _literal(value: float | None) -> str:
    if value is None:
        return "0"
    text = to_numeral(value)
    return f"({text})" if value < 0 else text


def apply_context(expr: str, ctx: EvaluationContext) -> str:
    """Substitute ``@N`` references and variable names in *expr*.

    ``@N`` becomes line N's result, or ``0`` when line N has none.
    Variables are substituted as whole identifiers, longest name first, so
    ``tax`` never matches inside ``taxRate``.  An identifier directly followed
    by ``(`` is a function call and is left for call resolution.

    Args:
        expr: Expression text.
        ctx: Values to substitute.

    Returns:
        The rewritten text; nothing is evaluated.
    """
    text = _LINE_REF_RE.sub(lambda m: _literal(ctx.line_results.get(int(m.group(1)))), expr)

    names = set(ctx.variables) | set(ctx.pending)
    if not names:
        return text
    ordered = sorted(names, key=lambda n: (-len(n), n))
    pattern = re.compile(
        r"(?<![\w.@])(" + "|".join(re.escape(n) for n in ordered) + r")(?!\w)(?!\s*\()"
    )
    return pattern.sub(lambda m: _literal(ctx.variables.get(m.group(1), 0.0)), text)

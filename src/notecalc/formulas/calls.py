"""Function-call resolution by textual substitution.

Calls are rewritten innermost-first: every call whose argument text holds
no further call is evaluated and replaced by its numeric literal, then the
scan repeats on the rewritten text.  Once no call is left the expression is
plain arithmetic.
"""

from __future__ import annotations

import math
import re
from typing import Callable, NamedTuple

from notecalc.formatting import to_numeral
from notecalc.formulas.errors import ArgumentError, EvaluationError, ParseError
from notecalc.functions.registry import get_function

ArgResolver = Callable[[str], float]

DEFAULT_MAX_ROUNDS = 10

_CALL_START_RE = re.compile(r"(?<![\w.])([A-Za-z_]\w*)\s*\(")
_NUMBER_RE = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)$")


class CallSite(NamedTuple):
    """A call ``name(args)`` spanning ``text[start:end]``."""

    name: str
    start: int
    end: int
    args: str


def find_matching_paren(text: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *text[start]*, or -1."""
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def split_args(text: str) -> list[str]:
    """Split a call's argument text on top-level commas.

    ``"1, (2 + 3), max(4, 5)"`` -> ``["1", "(2 + 3)", "max(4, 5)"]``.
    Empty argument text means no arguments.
    """
    if not text.strip():
        return []
    args: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    args.append("".join(current).strip())
    return args


def innermost_calls(text: str) -> list[CallSite]:
    """All calls in *text* whose arguments contain no other call.

    Raises:
        ParseError: If a call's opening parenthesis is never closed.
    """
    sites: list[CallSite] = []
    for m in _CALL_START_RE.finditer(text):
        open_idx = m.end() - 1
        close_idx = find_matching_paren(text, open_idx)
        if close_idx < 0:
            raise ParseError(
                f"missing ')' in call to {m.group(1)!r}",
                position=open_idx,
                expression=text,
            )
        inner = text[open_idx + 1 : close_idx]
        if _CALL_START_RE.search(inner):
            continue
        sites.append(CallSite(m.group(1), m.start(), close_idx + 1, inner))
    return sites


def evaluate_function(name: str, args: list[str], resolve_arg: ArgResolver) -> float:
    """Evaluate builtin *name* over unevaluated argument texts.

    Args:
        name: Function name (case-insensitive).
        args: Raw argument texts, as split by ``split_args()``.
        resolve_arg: Evaluates an argument that is not a bare number.

    Returns:
        The finite result.

    Raises:
        UnknownFunctionError: *name* is not a builtin.
        ArgumentError: Wrong arity, or an argument that is not numeric.
        EvaluationError: Math domain error or non-finite result.
    """
    spec = get_function(name)
    spec.check_arity(len(args))
    values = [_resolve_argument(spec.name, arg, resolve_arg) for arg in args]
    try:
        result = float(spec.fn(*values))
    except OverflowError as exc:
        raise EvaluationError(f"{spec.name}: result too large") from exc
    except ValueError as exc:
        raise EvaluationError(f"{spec.name}: math domain error") from exc
    if not math.isfinite(result):
        raise EvaluationError(f"{spec.name}: non-finite result")
    return result


def _resolve_argument(func_name: str, arg: str, resolve_arg: ArgResolver) -> float:
    text = arg.strip()
    if not text:
        raise ArgumentError(func_name, f"{func_name}: empty argument")
    if _NUMBER_RE.match(text):
        value = float(text)
        if math.isfinite(value):
            return value
    try:
        return resolve_arg(text)
    except ParseError as exc:
        raise ArgumentError(func_name, f"{func_name}: non-numeric argument {text!r}") from exc


def resolve_calls(
    text: str, resolve_arg: ArgResolver, max_rounds: int = DEFAULT_MAX_ROUNDS
) -> str:
    """Replace every function call in *text* by its computed literal.

    Args:
        text: Normalized expression text.
        resolve_arg: Evaluates a non-literal argument.
        max_rounds: Maximum call-nesting depth to unwind.

    Returns:
        Text with no function calls left.

    Raises:
        EvaluationError: Calls nest deeper than *max_rounds*.
    """
    rounds = 0
    while True:
        sites = innermost_calls(text)
        if not sites:
            return text
        if rounds >= max_rounds:
            raise EvaluationError(
                f"Function calls nested deeper than {max_rounds} levels",
                expression=text,
            )
        rounds += 1
        for site in reversed(sites):
            value = evaluate_function(site.name, split_args(site.args), resolve_arg)
            literal = to_numeral(value)
            if value < 0:
                literal = f"({literal})"
            text = text[: site.start] + literal + text[site.end :]

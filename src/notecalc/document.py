"""Document processing: line classification and fixed-point evaluation.

A run walks ``Classify -> Seed -> Iterate -> Converge | Exhausted``:

1. Every line is classified once (assignment, labeled calculation, plain
   expression, or blank).
2. Variable and line-result maps start empty; every name the document
   assigns is *pending* and reads as ``0`` until it gets a value.
3. Full passes run in line order, each line evaluated against the state
   accumulated so far, so forward references resolve on a later pass.
4. The run stops at the first pass that changes nothing, or after
   ``max_iterations`` passes with the last pass's values (a circular
   definition such as ``a = b + 1`` / ``b = a + 1`` never settles).

Per-line failures never abort a run; the line is simply unset for that pass.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from notecalc.config import DEFAULT_MAX_ITERATIONS
from notecalc.context import EvaluationContext
from notecalc.formatting import DEFAULT_PRECISION, clamp_precision, format_number
from notecalc.formulas.errors import EvaluationError
from notecalc.pipeline import evaluate_expression

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class LineKind(str, Enum):
    variable = "variable"
    labeled = "labeled"
    expression = "expression"
    blank = "blank"


@dataclass(frozen=True)
class ClassifiedLine:
    """One document line and what it asks the engine to compute.

    Attributes:
        index: 1-based line number.
        raw: The line as written.
        kind: Classification.
        expr: Expression text to evaluate (empty for blank lines).
        name: Assigned variable name, for ``LineKind.variable``.
        label: Leading label text, for ``LineKind.labeled``.
    """

    index: int
    raw: str
    kind: LineKind
    expr: str = ""
    name: str | None = None
    label: str | None = None


_TAG_RE = re.compile(r"<[^>]*>")
_IDENT_RE = re.compile(r"^[A-Za-z_]\w*$")
_ASSIGN_RE = re.compile(r"^([A-Za-z_]\w*)\s*=\s*(\S.*)$")
_LABELED_RE = re.compile(r"^([^:=]+?)\s*([:=])\s*(\S.*)$")
_TRAILING_EQ_RE = re.compile(r"^([^=]+?)\s*=\s*$")
_EXPR_CHARS_RE = re.compile(r"^[\w\s.,@+\-*/%^()×÷−$€£¥₹₩]+$")
_HAS_CALC_RE = re.compile(r"[\d@+\-*/%^×÷−]|[A-Za-z_]\w*\s*\(")


def classify_line(index: int, raw: str) -> ClassifiedLine:
    """Classify a single line.

    Precedence: ``name = expr`` is an assignment; ``label: expr`` (or
    ``label = expr`` with a label that is not an identifier) is a labeled
    calculation; ``=expr`` and ``expr =`` are plain expressions; a line of
    expression characters that contains a digit, ``@``, an operator or a
    call is a plain expression; anything else is blank.

    Args:
        index: 1-based line number.
        raw: Line text.

    Returns:
        The classified line.
    """
    text = _TAG_RE.sub("", raw).strip()
    if not text:
        return ClassifiedLine(index, raw, LineKind.blank)

    m = _ASSIGN_RE.match(text)
    if m:
        return ClassifiedLine(index, raw, LineKind.variable, expr=m.group(2), name=m.group(1))

    m = _LABELED_RE.match(text)
    if m:
        label, sep, expr = m.groups()
        if sep == ":" or not _IDENT_RE.match(label):
            return ClassifiedLine(index, raw, LineKind.labeled, expr=expr, label=label)

    if text.startswith("="):
        expr = text[1:].strip()
        if expr:
            return ClassifiedLine(index, raw, LineKind.expression, expr=expr)
        return ClassifiedLine(index, raw, LineKind.blank)

    m = _TRAILING_EQ_RE.match(text)
    if m:
        return ClassifiedLine(index, raw, LineKind.expression, expr=m.group(1))

    if _EXPR_CHARS_RE.match(text) and _HAS_CALC_RE.search(text):
        return ClassifiedLine(index, raw, LineKind.expression, expr=text)

    return ClassifiedLine(index, raw, LineKind.blank)


def split_lines(text: str) -> list[str]:
    """Split document text into lines, dropping ``\\r`` from CRLF endings."""
    return [line.rstrip("\r") for line in text.split("\n")]


def classify_document(text: str) -> list[ClassifiedLine]:
    """Classify every line of *text* (1-indexed)."""
    return [classify_line(i, line) for i, line in enumerate(split_lines(text), start=1)]


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


class DocumentResult:
    """Container for the outputs of a document run.

    Attributes:
        results: Line index to value, for every line with a value.
        variables: Variable name to value.
        iterations: Passes performed.
        converged: True if the last pass changed nothing.
        errors: Line index to error kind, for lines that failed on the
            last pass.
        display: Line index to formatted value at the run's precision.
        stats: Line/variable/calculation counts and processing time.
    """

    def __init__(
        self,
        results: dict[int, float],
        variables: dict[str, float],
        iterations: int,
        converged: bool,
        errors: dict[int, str],
        precision: int,
        stats: dict[str, Any],
    ) -> None:
        self.results = results
        self.variables = variables
        self.iterations = iterations
        self.converged = converged
        self.errors = errors
        self.precision = precision
        self.display = {i: format_number(v, precision) for i, v in results.items()}
        self.stats = stats

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping; line indexes become string keys."""
        return {
            "results": {str(i): v for i, v in self.results.items()},
            "variables": dict(self.variables),
            "display": {str(i): s for i, s in self.display.items()},
            "errors": {str(i): k for i, k in self.errors.items()},
            "iterations": self.iterations,
            "converged": self.converged,
            "precision": self.precision,
            "stats": dict(self.stats),
        }

    def __repr__(self) -> str:
        return (
            f"DocumentResult(results={self.results!r}, variables={self.variables!r}, "
            f"iterations={self.iterations}, converged={self.converged})"
        )


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


class DocumentProcessor:
    """Evaluates a classified document to a fixed point.

    Usage::

        processor = DocumentProcessor(text, max_iterations=10)
        result = processor.run(precision=2)

    A processor holds the state of exactly one run; nothing is shared
    between instances.
    """

    def __init__(self, text: str, *, max_iterations: int = DEFAULT_MAX_ITERATIONS) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.lines = classify_document(text)
        self.max_iterations = max_iterations
        self._candidates = [line for line in self.lines if line.kind is not LineKind.blank]
        self._declared = frozenset(
            line.name for line in self._candidates if line.kind is LineKind.variable
        )

    def run(self, *, precision: int = DEFAULT_PRECISION) -> DocumentResult:
        """Iterate passes until nothing changes or the budget runs out."""
        started = time.perf_counter()
        variables: dict[str, float] = {}
        line_results: dict[int, float] = {}
        errors: dict[int, str] = {}
        converged = False
        iteration = 0

        for iteration in range(1, self.max_iterations + 1):
            new_vars, new_results, errors = self._run_pass(variables, line_results)
            changed = new_vars != variables or new_results != line_results
            variables, line_results = new_vars, new_results
            if not changed:
                converged = True
                break

        if not converged:
            logger.debug(
                "Document did not converge after %d passes", self.max_iterations
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        results = {i: line_results[i] for i in sorted(line_results)}
        return DocumentResult(
            results=results,
            variables=dict(sorted(variables.items())),
            iterations=iteration,
            converged=converged,
            errors=errors,
            precision=clamp_precision(precision),
            stats={
                "lines": sum(1 for line in self.lines if line.raw.strip()),
                "variables": len(variables),
                "calculations": len(results),
                "processing_time_ms": round(elapsed_ms, 3),
            },
        )

    def _run_pass(
        self, variables: dict[str, float], line_results: dict[int, float]
    ) -> tuple[dict[str, float], dict[int, float], dict[int, str]]:
        """One pass over all candidate lines, starting from the previous state."""
        pass_vars = dict(variables)
        pass_results = dict(line_results)
        assigned: set[str] = set()
        errors: dict[int, str] = {}

        for line in self._candidates:
            ctx = EvaluationContext(
                variables=MappingProxyType(pass_vars),
                line_results=MappingProxyType(pass_results),
                pending=self._declared - pass_vars.keys(),
            )
            try:
                value = evaluate_expression(line.expr, ctx, max_rounds=self.max_iterations)
            except EvaluationError as exc:
                logger.debug("Line %d (%r) failed: %s", line.index, line.expr, exc)
                pass_results.pop(line.index, None)
                errors[line.index] = exc.kind
                continue

            pass_results[line.index] = value
            if line.kind is LineKind.variable:
                pass_vars[line.name] = value
                assigned.add(line.name)

        # A name none of whose defining lines succeeded this pass is unset.
        pass_vars = {k: v for k, v in pass_vars.items() if k in assigned}
        return pass_vars, pass_results, errors

"""Public entry points: single-expression evaluation and document processing.

Both functions are stateless.  Every call builds its own context and maps,
so they are safe to call concurrently from independent threads.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping

from notecalc.config import DEFAULT_MAX_ITERATIONS
from notecalc.context import EvaluationContext
from notecalc.document import DocumentProcessor, DocumentResult
from notecalc.formatting import DEFAULT_PRECISION, format_number
from notecalc.formulas.calls import DEFAULT_MAX_ROUNDS
from notecalc.formulas.errors import EvaluationError
from notecalc.logging.events import (
    ITERATION_BUDGET_EXHAUSTED,
    EventLevel,
    EventType,
    emit,
    emit_error,
    emit_info,
    make_document_event,
)
from notecalc.pipeline import evaluate_expression

logger = logging.getLogger(__name__)


def evaluate(
    expression: str,
    context: EvaluationContext | Mapping[str, Any] | None = None,
    *,
    precision: int = DEFAULT_PRECISION,
    max_depth: int = DEFAULT_MAX_ROUNDS,
) -> str:
    """Evaluate one expression and return its formatted result.

    Args:
        expression: Expression text, e.g. ``"x * 2 + @3"``.
        context: An ``EvaluationContext``, or a mapping with ``variables``
            and ``line_results`` (``lineResults`` is accepted too).
        precision: Decimal digits in the result, clamped to ``[0, 15]``.
        max_depth: Bound on function-call nesting.

    Returns:
        The formatted value, e.g. ``"3.14"``.

    Raises:
        EvaluationError: Or a subclass naming the failure kind.
    """
    try:
        ctx = EvaluationContext.coerce(context)
        value = evaluate_expression(expression, ctx, max_rounds=max_depth)
    except EvaluationError as exc:
        emit_error(
            EventType.evaluate_failed,
            exc.message,
            {"expression": expression},
            error_code=exc.kind,
        )
        raise

    formatted = format_number(value, precision)
    emit_info(
        EventType.evaluate_completed,
        f"{expression} = {formatted}",
        {"expression": expression, "result": formatted},
    )
    return formatted


def process_document(
    text: str,
    *,
    precision: int = DEFAULT_PRECISION,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> DocumentResult:
    """Evaluate every line of *text* to a fixed point.

    Never raises for document content: failing lines are absent from
    ``results`` and listed in ``errors``.

    Args:
        text: Document text, one calculation per line.
        precision: Digits used for ``DocumentResult.display``.
        max_iterations: Maximum number of full passes; values below 1
            are raised to 1.

    Returns:
        A ``DocumentResult``.
    """
    run_id = uuid.uuid4().hex[:16]
    max_iterations = max(1, int(max_iterations))
    result = DocumentProcessor(text, max_iterations=max_iterations).run(precision=precision)

    for line_index, kind in sorted(result.errors.items()):
        emit(
            make_document_event(
                EventType.line_error,
                EventLevel.warning,
                f"Line {line_index} could not be evaluated",
                run_id=run_id,
                line=line_index,
                error_code=kind,
            ),
            run_id=run_id,
        )

    summary = {
        "iterations": result.iterations,
        "converged": result.converged,
        **result.stats,
    }
    if result.converged:
        emit(
            make_document_event(
                EventType.document_processed,
                EventLevel.info,
                f"Document processed in {result.iterations} pass(es)",
                run_id=run_id,
                extra=summary,
            ),
            run_id=run_id,
        )
    else:
        logger.debug("Run %s exhausted %d passes", run_id, max_iterations)
        emit(
            make_document_event(
                EventType.document_exhausted,
                EventLevel.warning,
                f"Document did not settle within {max_iterations} passes",
                run_id=run_id,
                error_code=ITERATION_BUDGET_EXHAUSTED,
                extra=summary,
            ),
            run_id=run_id,
        )
    return result

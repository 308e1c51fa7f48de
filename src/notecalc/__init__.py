"""notecalc -- calculation engine for plain-text notes.

Public API::

    from notecalc import evaluate, process_document
"""

__version__ = "0.3.0"

from notecalc.context import EvaluationContext
from notecalc.document import DocumentResult, LineKind, classify_document
from notecalc.engine import evaluate, process_document
from notecalc.formatting import format_number
from notecalc.formulas.errors import (
    ArgumentError,
    DivisionByZeroError,
    EvaluationError,
    ParseError,
    UnknownFunctionError,
)

__all__ = [
    "ArgumentError",
    "DivisionByZeroError",
    "DocumentResult",
    "EvaluationContext",
    "EvaluationError",
    "LineKind",
    "ParseError",
    "UnknownFunctionError",
    "__version__",
    "classify_document",
    "evaluate",
    "format_number",
    "process_document",
]

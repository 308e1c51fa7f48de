"""Error types for expression parsing and evaluation.

Every failure the engine can report is an :class:`EvaluationError`.  The
subclasses name the semantic categories a caller must be able to tell apart;
``kind`` is a stable string used as the event error code and in
``DocumentResult.errors``.
"""

from __future__ import annotations


class EvaluationError(Exception):
    """Base class for all evaluation errors.

    Raised directly for non-finite results (overflow, math domain errors)
    and other failures that fit no narrower category.
    """

    kind = "evaluation_error"

    def __init__(self, message: str, expression: str | None = None) -> None:
        self.message = message
        self.expression = expression
        super().__init__(message)


class ParseError(EvaluationError):
    """Syntax error: disallowed character, unbalanced parentheses, or
    malformed function syntax.

    Attributes:
        position: Character position where the error was detected.
    """

    kind = "parse_error"

    def __init__(
        self,
        message: str,
        position: int | None = None,
        expression: str | None = None,
    ) -> None:
        self.position = position
        full = f"Parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full, expression=expression)


class UnknownFunctionError(EvaluationError):
    """Function name not in the builtin registry.

    Attributes:
        func_name: The function that was called.
    """

    kind = "unknown_function"

    def __init__(self, func_name: str) -> None:
        self.func_name = func_name
        super().__init__(f"Unknown function: {func_name!r}")


class ArgumentError(EvaluationError):
    """Wrong number of arguments, or an argument that is not numeric.

    Attributes:
        func_name: The function whose arguments were rejected.
    """

    kind = "argument_error"

    def __init__(self, func_name: str, message: str) -> None:
        self.func_name = func_name
        super().__init__(message)


class DivisionByZeroError(EvaluationError):
    """Division or modulo with a zero divisor."""

    kind = "division_by_zero"


ERROR_KINDS: tuple[str, ...] = (
    ParseError.kind,
    UnknownFunctionError.kind,
    ArgumentError.kind,
    DivisionByZeroError.kind,
    EvaluationError.kind,
)

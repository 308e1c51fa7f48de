"""Builtin function table."""

# Ensure built-in functions are registered on import
import notecalc.functions.builtins  # noqa: F401
from notecalc.functions.registry import (
    FunctionSpec,
    get_function,
    is_function,
    list_functions,
    register_function,
)

__all__ = [
    "FunctionSpec",
    "get_function",
    "is_function",
    "list_functions",
    "register_function",
]

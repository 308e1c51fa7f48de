"""Central registry for builtin functions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from notecalc.formulas.errors import ArgumentError, UnknownFunctionError


@dataclass(frozen=True)
class FunctionSpec:
    """A registered builtin: its callable and accepted argument counts.

    ``max_args`` of ``None`` means variadic.
    """

    name: str
    fn: Callable[..., float]
    min_args: int
    max_args: int | None
    doc: str = ""

    def check_arity(self, count: int) -> None:
        """Raise ArgumentError if *count* arguments are not accepted."""
        if self.max_args is None:
            if count < self.min_args:
                raise ArgumentError(
                    self.name,
                    f"{self.name} requires at least {self.min_args} argument"
                    f"{'s' if self.min_args != 1 else ''}, got {count}",
                )
            return
        if not self.min_args <= count <= self.max_args:
            if self.min_args == self.max_args:
                expected = f"exactly {self.min_args}"
            else:
                expected = f"{self.min_args}-{self.max_args}"
            raise ArgumentError(
                self.name,
                f"{self.name} requires {expected} argument"
                f"{'s' if self.max_args != 1 else ''}, got {count}",
            )

    @property
    def signature(self) -> str:
        if self.max_args is None:
            return f"{self.name}(x, ...)"
        params = ", ".join("xyz"[: self.min_args])
        optional = "".join(f"[, {p}]" for p in "xyz"[self.min_args : self.max_args])
        return f"{self.name}({params}{optional})"


_FUNCTIONS: dict[str, FunctionSpec] = {}


def register_function(
    *names: str, min_args: int = 1, max_args: int | None = 1
) -> Callable:
    """Decorator that registers a builtin under one or more names.

    Args:
        names: Lookup names (the first is canonical; the rest are aliases).
        min_args: Minimum number of arguments.
        max_args: Maximum number of arguments, or ``None`` for variadic.

    Returns:
        The original function, unmodified.
    """

    def decorator(fn: Callable[..., float]) -> Callable[..., float]:
        doc = (fn.__doc__ or "").strip().splitlines()
        for name in names:
            _FUNCTIONS[name.lower()] = FunctionSpec(
                name=name.lower(),
                fn=fn,
                min_args=min_args,
                max_args=max_args,
                doc=doc[0] if doc else "",
            )
        return fn

    return decorator


def get_function(name: str) -> FunctionSpec:
    """Look up a registered builtin, case-insensitively.

    Args:
        name: The function name.

    Returns:
        The function spec.

    Raises:
        UnknownFunctionError: If no function is registered under *name*.
    """
    spec = _FUNCTIONS.get(name.lower())
    if spec is None:
        raise UnknownFunctionError(name)
    return spec


def is_function(name: str) -> bool:
    """Whether *name* is a registered builtin."""
    return name.lower() in _FUNCTIONS


def list_functions() -> list[FunctionSpec]:
    """All registered specs, sorted by name."""
    return [_FUNCTIONS[k] for k in sorted(_FUNCTIONS)]

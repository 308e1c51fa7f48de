"""Builtin numeric functions.

Importing this module fills the registry; ``notecalc.functions`` does so on
package import.
"""

from __future__ import annotations

import math

from notecalc.functions.registry import register_function


@register_function("sum", min_args=1, max_args=None)
def fn_sum(*values: float) -> float:
    """Sum of all arguments."""
    return math.fsum(values)


@register_function("avg", "average", min_args=1, max_args=None)
def fn_avg(*values: float) -> float:
    """Arithmetic mean of all arguments."""
    return math.fsum(values) / len(values)


@register_function("min", min_args=1, max_args=None)
def fn_min(*values: float) -> float:
    """Smallest argument."""
    return min(values)


@register_function("max", min_args=1, max_args=None)
def fn_max(*values: float) -> float:
    """Largest argument."""
    return max(values)


@register_function("round", min_args=1, max_args=2)
def fn_round(x: float, digits: float = 0) -> float:
    """Round x to the given number of decimal digits (halves round up).

    Python's ``round()`` rounds halves to even; notes expect ``round(2.5)``
    to be 3, so this scales, floors ``x + 0.5`` and scales back.
    """
    factor = 10.0 ** int(digits)
    return math.floor(x * factor + 0.5) / factor


@register_function("pow", min_args=1, max_args=2)
def fn_pow(base: float, exponent: float = 2) -> float:
    """base raised to exponent (squares when exponent is omitted)."""
    return math.pow(base, exponent)


@register_function("sqrt")
def fn_sqrt(x: float) -> float:
    """Square root."""
    return math.sqrt(x)


@register_function("abs")
def fn_abs(x: float) -> float:
    """Absolute value."""
    return abs(x)


@register_function("floor")
def fn_floor(x: float) -> float:
    """Largest integer not above x."""
    return float(math.floor(x))


@register_function("ceil")
def fn_ceil(x: float) -> float:
    """Smallest integer not below x."""
    return float(math.ceil(x))


@register_function("sin")
def fn_sin(x: float) -> float:
    """Sine of x radians."""
    return math.sin(x)


@register_function("cos")
def fn_cos(x: float) -> float:
    """Cosine of x radians."""
    return math.cos(x)


@register_function("tan")
def fn_tan(x: float) -> float:
    """Tangent of x radians."""
    return math.tan(x)


@register_function("log")
def fn_log(x: float) -> float:
    """Base-10 logarithm."""
    return math.log10(x)


@register_function("ln")
def fn_ln(x: float) -> float:
    """Natural logarithm."""
    return math.log(x)

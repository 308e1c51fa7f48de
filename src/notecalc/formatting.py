"""Numeric display formatting."""

from __future__ import annotations

import math
from decimal import Decimal

MIN_PRECISION = 0
MAX_PRECISION = 15
DEFAULT_PRECISION = 2

_SCI_UPPER = 1e15
_SCI_LOWER = 1e-10


def clamp_precision(precision: int) -> int:
    """Clamp *precision* to the supported ``[0, 15]`` range."""
    return max(MIN_PRECISION, min(MAX_PRECISION, int(precision)))


def format_number(n: float, precision: int = DEFAULT_PRECISION) -> str:
    """Render a numeric result as its canonical display string.

    Args:
        n: A finite number.
        precision: Decimal digits to keep; clamped to ``[0, 15]``.

    Returns:
        ``"3"`` for ``3.0``, ``"3.14"`` for ``3.14159`` at precision 2,
        scientific notation (``"1.00e-11"``) for magnitudes above ``1e15``
        or below ``1e-10``.

    Raises:
        ValueError: If *n* is NaN or infinite.
    """
    if not math.isfinite(n):
        raise ValueError(f"Cannot format non-finite value {n!r}")
    p = clamp_precision(precision)
    magnitude = abs(n)
    if magnitude > _SCI_UPPER or (n != 0 and magnitude < _SCI_LOWER):
        return f"{n:.{p}e}"

    text = f"{n:.{p}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def to_numeral(n: float) -> str:
    """Render *n* as a plain decimal literal the arithmetic grammar accepts.

    Never uses exponent notation: ``1e-05`` becomes ``0.00001`` and
    ``1e+20`` becomes ``100000000000000000000``.
    """
    if n == int(n) and abs(n) < 1e16:
        return str(int(n))
    text = format(Decimal(repr(n)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text

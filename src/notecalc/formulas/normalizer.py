"""Canonicalize raw line text into an expression string.

``normalize()`` never raises: whatever it cannot make sense of is left in
place for the parser to reject.
"""

from __future__ import annotations

import re

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")

_GLYPHS = str.maketrans({"×": "*", "÷": "/", "−": "-"})

_CURRENCY_RE = re.compile(r"[$€£¥₹₩]")

# 1,234 or 12,345,678.90 -- a leading group of 1-3 digits, then ,ddd groups
_THOUSANDS_RE = re.compile(r"(?<![\d.,])\d{1,3}(?:,\d{3})+(?![\d,])")

_IDENT_BEFORE_OP_RE = re.compile(r"([A-Za-z_]\w*)\s*([-+*/%^])")
_OP_BEFORE_IDENT_RE = re.compile(r"([-+*/%^])\s*(?=[A-Za-z_@])")


def normalize(raw: str) -> str:
    """Return the canonical expression form of *raw*.

    Steps: drop markup, trim, strip one leading ``=``, map math glyphs to
    ASCII, strip currency symbols and thousands separators, space out
    operators next to identifiers, and collapse whitespace.

    Args:
        raw: Line or expression text as typed by the user.

    Returns:
        Normalized expression text.
    """
    text = _TAG_RE.sub("", raw).strip()
    if text.startswith("="):
        text = text[1:]
    text = text.translate(_GLYPHS)
    text = _CURRENCY_RE.sub("", text)
    text = strip_thousands_separators(text)
    text = _IDENT_BEFORE_OP_RE.sub(r"\1 \2", text)
    text = _OP_BEFORE_IDENT_RE.sub(r"\1 ", text)
    return _WS_RE.sub(" ", text).strip()


def strip_thousands_separators(text: str) -> str:
    """Remove thousands separators from digit groups outside call arguments.

    ``1,234 + 5`` becomes ``1234 + 5`` but ``max(1,100)`` is left alone,
    since there the comma separates arguments.
    """
    in_call = _call_argument_mask(text)

    def repl(m: re.Match[str]) -> str:
        if in_call[m.start()]:
            return m.group(0)
        return m.group(0).replace(",", "")

    return _THOUSANDS_RE.sub(repl, text)


def _call_argument_mask(text: str) -> list[bool]:
    """For each character, whether it sits inside a function call's parens."""
    mask = [False] * (len(text) + 1)
    stack: list[bool] = []
    for i, ch in enumerate(text):
        if ch == "(":
            j = i - 1
            while j >= 0 and text[j] == " ":
                j -= 1
            stack.append(j >= 0 and (text[j].isalnum() or text[j] == "_") and _ends_identifier(text, j))
        elif ch == ")" and stack:
            stack.pop()
        mask[i] = any(stack)
    return mask


def _ends_identifier(text: str, end: int) -> bool:
    """Whether text[..end] ends with an identifier rather than a number."""
    start = end
    while start > 0 and (text[start - 1].isalnum() or text[start - 1] == "_"):
        start -= 1
    return text[start].isalpha() or text[start] == "_"

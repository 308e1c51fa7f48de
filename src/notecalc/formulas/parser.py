"""Lark-based parser for the restricted arithmetic grammar.

Supports:
- Decimal number literals: ``12``, ``3.5``, ``.25``, ``4.``
- Binary ``+ - * / %`` and right-associative ``^``
- A single unary minus in front of a primary
- Parenthesized sub-expressions

Nothing else is a valid token.  Names, function calls and ``@N`` line
references are substituted away before text reaches this parser.
"""

from __future__ import annotations

from lark import Lark, Tree
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
)

from notecalc.formulas.errors import ParseError

# LALR(1) grammar for arithmetic expressions.
# Operator precedence (lowest to highest):
#   1. Addition/subtraction: + -
#   2. Multiplication/division/remainder: * / %
#   3. Exponentiation: ^ (right-associative)
#   4. Unary minus: -  (binds tighter than ^, so -2^2 = 4)
#   5. Atoms: number, parenthesized expr
GRAMMAR = r"""
start: expr

?expr: term
    | expr "+" term  -> add
    | expr "-" term  -> sub

?term: factor
    | term "*" factor  -> mul
    | term "/" factor  -> div
    | term "%" factor  -> mod

?factor: unary
    | unary "^" factor  -> pow

?unary: primary
    | "-" primary  -> neg

?primary: NUMBER  -> number
    | "(" expr ")"

NUMBER: /\d+(\.\d*)?|\.\d+/

%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


def check_balanced(text: str) -> None:
    """Raise ParseError if the parentheses in *text* do not balance.

    Args:
        text: Expression text.

    Raises:
        ParseError: On a ``)`` with no opener, or an unclosed ``(``.
    """
    depth = 0
    last_open: list[int] = []
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
            last_open.append(i)
        elif ch == ")":
            if depth == 0:
                raise ParseError("unbalanced parentheses: unexpected ')'", position=i, expression=text)
            depth -= 1
            last_open.pop()
    if depth:
        raise ParseError("unbalanced parentheses: missing ')'", position=last_open[-1], expression=text)


def parse_expression(text: str) -> Tree:
    """Parse an arithmetic expression into a Lark Tree.

    Args:
        text: The expression text, e.g. ``"2 + 3 * (4 - 1)"``.

    Returns:
        A Lark parse tree rooted at ``start``.

    Raises:
        ParseError: If the expression has invalid syntax or characters.
    """
    text = text.strip()
    if not text:
        raise ParseError("empty expression", position=0, expression=text)
    check_balanced(text)
    try:
        return _parser.parse(text)
    except UnexpectedCharacters as exc:
        raise ParseError(
            f"unexpected character {exc.char!r}",
            position=exc.pos_in_stream,
            expression=text,
        ) from exc
    except UnexpectedEOF as exc:
        raise ParseError("unexpected end of expression", position=len(text), expression=text) from exc
    except UnexpectedToken as exc:
        if exc.token.type == "$END":
            raise ParseError("unexpected end of expression", position=len(text), expression=text) from exc
        raise ParseError(
            f"unexpected {str(exc.token)!r}",
            position=exc.token.start_pos,
            expression=text,
        ) from exc
    except UnexpectedInput as exc:
        raise ParseError(str(exc), position=getattr(exc, "pos_in_stream", None), expression=text) from exc

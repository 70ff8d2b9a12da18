"""Stable identity keys for top-level statements.

An identity key says "this is the same declaration or call site" even when
the body changed. It is derived from the node alone, never from siblings.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Optional

from .models import NodeKind, SyntaxNode

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
DEFAULT_ROUTE = "init"

_SIMPLE_ESCAPES = {"b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v", "0": "\0"}
_LINE_CONTINUATIONS = frozenset({"\n", "\r", "\r\n", "\u2028", "\u2029"})


def identity_of(node: SyntaxNode) -> Optional[str]:
    """Return ``func:``, ``var:`` or ``call:`` identity for *node*, else None."""
    kind = node.kind
    if kind is NodeKind.FUNCTION_DECLARATION:
        name = node.child("name")
        return f"func:{name.text}" if name is not None else None

    if kind is NodeKind.VARIABLE_DECLARATION:
        declarators = [ch for ch in node.named_children if ch.kind is NodeKind.VARIABLE_DECLARATOR]
        if not declarators:
            return None
        bound = declarators[0].child("name")
        # destructuring patterns bind several names and get no identity
        if bound is None or bound.kind is not NodeKind.IDENTIFIER:
            return None
        return f"var:{bound.text}"

    if kind is NodeKind.EXPRESSION_STATEMENT:
        call = _wrapped_call(node)
        if call is None:
            return None
        callee = call.child("function")
        args = call.child("arguments")
        first_arg = args.named_children[0] if args is not None and args.named_children else None
        route = literal_value(first_arg) if first_arg is not None else None
        return f"call:{callee_name(callee)}({route if route is not None else DEFAULT_ROUTE})"

    return None


def _wrapped_call(statement: SyntaxNode) -> Optional[SyntaxNode]:
    expressions = statement.named_children
    if expressions and expressions[0].kind is NodeKind.CALL_EXPRESSION:
        return expressions[0]
    return None


def callee_name(node: Optional[SyntaxNode]) -> str:
    """Render identifier and member chains as ``a.b.c``."""
    parts = []
    while node is not None and node.kind is NodeKind.MEMBER_EXPRESSION:
        parts.append(_simple_name(node.child("property")))
        node = node.child("object")
    parts.append(_simple_name(node))
    return ".".join(reversed(parts))


def _simple_name(node: Optional[SyntaxNode]) -> str:
    if node is None or node.kind is not NodeKind.IDENTIFIER:
        return ANONYMOUS
    return (node.text or "").lstrip("#")


def literal_value(node: SyntaxNode) -> Optional[str]:
    """Render a literal node the way JavaScript stringifies its value.

    Returns None for anything that is not a literal. Numerals Python cannot
    read (``07n``) keep their source text.
    """
    if node.kind is not NodeKind.LITERAL:
        return None
    if node.type == "string":
        return _string_value(node)
    if node.type == "number":
        text = node.text or ""
        try:
            return _number_value(text)
        except ValueError:
            logger.debug("Keeping numeral %r as written", text)
            return text
    # true / false / null / regex render as written
    return node.text


def _string_value(node: SyntaxNode) -> str:
    parts = []
    for ch in node.children:
        if ch.type == "string_fragment":
            parts.append(ch.text or "")
        elif ch.type == "escape_sequence":
            parts.append(_unescape(ch.text or ""))
    # join \uD83D\uDE00 style pairs; lone surrogates become U+FFFD
    return "".join(parts).encode("utf-16", "surrogatepass").decode("utf-16", "replace")


def _unescape(sequence: str) -> str:
    body = sequence[1:]
    if not body:
        return sequence
    head = body[0]
    if len(body) == 1 and head in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[head]
    if body in _LINE_CONTINUATIONS:
        return ""
    if head in "ux":
        digits = body[2:-1] if body.startswith("u{") else body[1:]
        try:
            return chr(int(digits, 16))
        except ValueError:
            logger.debug("Keeping undecodable escape %r", sequence)
            return body
    if head in "01234567" and all(c in "01234567" for c in body):
        return chr(int(body, 8))
    # \8, \9 and identity escapes stand for the character itself
    return body


def _number_value(text: str) -> str:
    cleaned = text.replace("_", "")
    if cleaned.endswith("n"):
        return str(int(cleaned[:-1], 0))
    lowered = cleaned.lower()
    if lowered.startswith(("0x", "0o", "0b")):
        return _js_number(_int_to_float(int(cleaned, 0)))
    if len(cleaned) > 1 and cleaned[0] == "0" and cleaned.isdigit():
        # legacy octal, or decimal when an 8 or 9 appears
        base = 8 if all(c in "01234567" for c in cleaned) else 10
        return _js_number(_int_to_float(int(cleaned, base)))
    return _js_number(float(cleaned))


def _int_to_float(value: int) -> float:
    try:
        return float(value)
    except OverflowError:
        return math.inf


def _js_number(value: float) -> str:
    """Format *value* like JavaScript's Number#toString()."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).rstrip("0")
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = exponent + k
    if k <= n <= 21:
        return sign + digits + "0" * (n - k)
    if 0 < n <= 21:
        return sign + digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return sign + "0." + "0" * (-n) + digits
    mantissa = digits[0] + ("." + digits[1:] if k > 1 else "")
    return f"{sign}{mantissa}e{'+' if n - 1 >= 0 else '-'}{abs(n - 1)}"

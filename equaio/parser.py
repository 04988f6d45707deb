"""
Infix parser and formatter for equaio expressions.

Turns text such as ``"(2 * x) - 1 = 3"`` into the nested-list form used by
the rest of the package, and back again:

    parse("(2 * x) - 1 = 3", ctx)  -> ["=", ["-", ["*", 2, "x"], 1], 3]
    format_expression(["+", "x", 3]) -> "x + 3"

Operators bind by OPERATOR_PRECEDENCE; all binary operators are
left-associative. Operands joined by the same associative operator at one
level are collected into a single n-ary node, while parentheses keep their
grouping:

    a + b + c    -> ["+", "a", "b", "c"]
    (a + b) + c  -> ["+", ["+", "a", "b"], "c"]

Pattern mode (used for rule text):
    X, Y, A_i    - identifiers starting with an uppercase letter are pattern
                   variables: ["?", "X"]
    A_i + ...    - a trailing ``...`` operand of an associative operator
                   matches every argument item-wise: ["+", ["?each", ["?", "A_i"]]]
"""

import logging
import re
from typing import List, Optional, Tuple

from .expression import (
    ExprType, ExpressionContext, OPERATOR_PRECEDENCE, UNARY_PRECEDENCE,
    compound, constant,
)

logger = logging.getLogger(__name__)

RELATION_OP = "="
ELLIPSIS = "..."

# Deepest nesting of parentheses and unary operators accepted
MAX_NESTING = 50

Token = Tuple[str, str]

_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+)
  | (?P<number>\d+\.\d+|\d+)
  | (?P<ellipsis>\.\.\.)
  | (?P<ident>[A-Za-z][A-Za-z0-9_]*)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<op>[^\sA-Za-z0-9()])
""", re.VERBOSE)


class ParseError(ValueError):
    """Raised internally for malformed input; ``parse`` turns it into None."""


def tokenize(text: str) -> List[Token]:
    """Split text into (kind, value) tokens."""
    tokens = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise ParseError(f"Unexpected character: {text[pos]!r}")
        kind = m.lastgroup
        if kind != "ws":
            tokens.append((kind, m.group()))
        pos = m.end()
    return tokens


def is_pattern_name(name: str) -> bool:
    """Pattern variables start with an uppercase letter."""
    return name[:1].isupper()


def is_indexed_name(name: str) -> bool:
    """Indexed pattern variables (``A_i``) take one value per ellipsis item."""
    return name.endswith("_i")


class _Ellipsis:
    """Marker for a ``...`` operand while an associative run is collected."""

    def __repr__(self) -> str:
        return ELLIPSIS


_ELLIPSIS = _Ellipsis()


class Parser:
    """Precedence-climbing parser over a token list."""

    def __init__(self, tokens: List[Token], context: ExpressionContext,
                 pattern: bool = False):
        self.tokens = tokens
        self.pos = 0
        self.context = context
        self.pattern = pattern
        self.depth = 0

    def peek(self) -> Optional[Token]:
        if self.pos >= len(self.tokens):
            return None
        return self.tokens[self.pos]

    def consume(self, kind: str, value: Optional[str] = None) -> Token:
        tok = self.peek()
        if tok is None:
            raise ParseError("Unexpected end of input")
        if tok[0] != kind or (value is not None and tok[1] != value):
            raise ParseError(f"Expected {kind} {value or ''}, got {tok}")
        self.pos += 1
        return tok

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise ParseError(f"Nesting deeper than {MAX_NESTING} levels")

    def _binary_op(self, tok: Optional[Token]) -> Optional[str]:
        if tok is None or tok[0] != "op":
            return None
        if tok[1] == RELATION_OP or tok[1] in self.context.binary_ops:
            return tok[1]
        return None

    def parse_expression(self) -> ExprType:
        expr = self.parse_binary(0)
        if expr is _ELLIPSIS:
            raise ParseError("Ellipsis outside an associative operator")
        return expr

    def parse_binary(self, min_prec: int) -> ExprType:
        left = self.parse_unary()
        while True:
            op = self._binary_op(self.peek())
            if op is None:
                break
            prec = OPERATOR_PRECEDENCE.get(op, 0)
            if prec < min_prec:
                break
            self.consume("op", op)
            if self.context.is_assoc(op):
                operands = [left, self.parse_binary(prec + 1)]
                while self._binary_op(self.peek()) == op:
                    self.consume("op", op)
                    operands.append(self.parse_binary(prec + 1))
                left = self._assoc_node(op, operands)
            else:
                right = self.parse_binary(prec + 1)
                if left is _ELLIPSIS or right is _ELLIPSIS:
                    raise ParseError(f"Ellipsis is not allowed under '{op}'")
                left = [op, left, right]
        return left

    def _assoc_node(self, op: str, operands: List) -> ExprType:
        if not any(o is _ELLIPSIS for o in operands):
            return [op] + operands
        if len(operands) != 2 or operands[1] is not _ELLIPSIS or operands[0] is _ELLIPSIS:
            raise ParseError("Ellipsis must follow exactly one item: A_i + ...")
        return [op, ["?each", operands[0]]]

    def parse_unary(self) -> ExprType:
        tok = self.peek()
        if tok and tok[0] == "op" and tok[1] in self.context.unary_ops:
            self.consume("op")
            self._enter()
            operand = self.parse_unary()
            self.depth -= 1
            if operand is _ELLIPSIS:
                raise ParseError("Ellipsis cannot be negated")
            return [tok[1], operand]
        return self.parse_primary()

    def parse_primary(self) -> ExprType:
        tok = self.peek()
        if tok is None:
            raise ParseError("Unexpected end of input")
        kind, value = tok
        if kind == "number":
            self.consume("number")
            return float(value) if "." in value else int(value)
        if kind == "ident":
            self.consume("ident")
            if self.pattern and is_pattern_name(value):
                return ["?", value]
            if self.context.knows_name(value):
                return value
            raise ParseError(f"Unknown name: {value}")
        if kind == "ellipsis":
            if not self.pattern:
                raise ParseError("Ellipsis is only allowed in rule patterns")
            self.consume("ellipsis")
            return _ELLIPSIS
        if kind == "lparen":
            self.consume("lparen")
            self._enter()
            expr = self.parse_expression()
            self.depth -= 1
            self.consume("rparen")
            return expr
        raise ParseError(f"Unexpected token: {tok}")


def parse(text: str, context: ExpressionContext, pattern: bool = False) -> Optional[ExprType]:
    """
    Parse infix text into an expression.

    Args:
        text: Expression text, e.g. "x + 3 = 5"
        context: Declares the operators and names that may appear
        pattern: Parse rule text (uppercase names become pattern variables)

    Returns:
        The expression, or None if the text is malformed. Never raises.
    """
    try:
        tokens = tokenize(text)
        if not tokens:
            raise ParseError("Empty expression")
        parser = Parser(tokens, context, pattern=pattern)
        expr = parser.parse_expression()
        if parser.peek() is not None:
            raise ParseError(f"Unexpected trailing input: {parser.peek()[1]}")
        return expr
    except ParseError as e:
        logger.debug("could not parse %r: %s", text, e)
        return None


# ============================================================
# Formatting
# ============================================================

def format_number(value) -> str:
    """Format a numeric constant, dropping a redundant ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _precedence(expr: ExprType) -> int:
    if not compound(expr) or expr[0] in ("?", ":"):
        return UNARY_PRECEDENCE + 1
    if len(expr) == 2:
        return UNARY_PRECEDENCE
    return OPERATOR_PRECEDENCE.get(expr[0], 0)


def format_expression(expr: ExprType) -> str:
    """
    Format an expression as infix text that ``parse`` reads back.

    Examples:
        ["+", "x", 3]              -> "x + 3"
        ["*", 2, ["+", "x", 1]]    -> "2 * (x + 1)"
        ["+", "x", ["-", 4]]       -> "x + (-4)"
    """
    if constant(expr):
        return format_number(expr)
    if not compound(expr):
        return str(expr)

    op = expr[0]
    args = expr[1:]
    if op in ("?", ":"):
        return str(args[0])
    if op in ("?each", ":each"):
        return f"{format_expression(args[0])} ..."

    if len(args) == 1:
        if compound(args[0]) and args[0][0] in ("?each", ":each"):
            item = format_expression(args[0][1])
            return f"{item} {op} ..."
        inner = format_expression(args[0])
        if _precedence(args[0]) < UNARY_PRECEDENCE:
            inner = f"({inner})"
        return f"{op}{inner}"

    prec = OPERATOR_PRECEDENCE.get(op, 0)
    parts = []
    for i, arg in enumerate(args):
        text = format_expression(arg)
        arg_prec = _precedence(arg)
        if arg_prec < prec:
            text = f"({text})"
        elif i == 0 and compound(arg) and arg[0] == op and len(arg) > 2:
            # (a + b) + c: a bare a + b + c reads back as one n-ary node
            text = f"({text})"
        elif i > 0 and arg_prec == prec and compound(arg):
            # a - (b - c), a + (b + c): keep the written grouping
            text = f"({text})"
        elif i > 0 and arg_prec == UNARY_PRECEDENCE:
            text = f"({text})"
        parts.append(text)
    return f" {op} ".join(parts)

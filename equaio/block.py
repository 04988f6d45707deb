"""
Presentation blocks: an expression laid out for display and selection.

    Symbol               - a piece of text; carries the address that is
                           selected when it is clicked
    HorizontalContainer  - children laid out left to right
    FractionContainer    - numerator over denominator

Operands become blocks of their own; operator symbols carry the address of
the application they belong to, so clicking ``+`` in ``x + 3`` selects the
whole sum while clicking ``3`` selects only the 3.

    build(["+", "x", ["-", 3]], ctx) renders as  x - 3
        Symbol("x", (0,))
        Symbol("-", ())                      inverse of +, replaces it
        Container(@(1,))
            Symbol("-", (1,), CONCEALED)     the negation itself
            Symbol("3", (1, 0))

Blocks are derived data: rebuild them from the expression on every render.
"""

from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple

from .expression import (
    AddressType, ExprType, OPERATOR_PRECEDENCE, ROOT, UNARY_PRECEDENCE,
    compound, constant, is_negation,
)
from .parser import RELATION_OP, format_number


class BlockType:
    SYMBOL = "symbol"
    HORIZONTAL_CONTAINER = "horizontal_container"
    FRACTION_CONTAINER = "fraction_container"


class BlockTag:
    PARENTHESES = "parentheses"
    CONCEALED = "concealed"


class Block:
    """A node of the presentation tree."""

    __slots__ = ('block_type', 'symbol', 'address', 'children', 'tags')

    def __init__(self, block_type: str, symbol: Optional[str] = None,
                 address: AddressType = ROOT, children: Optional[List['Block']] = None,
                 tags: Iterable[str] = ()):
        self.block_type = block_type
        self.symbol = symbol
        self.address = tuple(address)
        self.children = list(children) if children is not None else None
        self.tags: FrozenSet[str] = frozenset(tags)

    @classmethod
    def leaf(cls, text: str, address: AddressType, tags: Iterable[str] = ()) -> 'Block':
        return cls(BlockType.SYMBOL, symbol=text, address=address, tags=tags)

    @classmethod
    def horizontal(cls, children: List['Block'], address: AddressType,
                   tags: Iterable[str] = ()) -> 'Block':
        return cls(BlockType.HORIZONTAL_CONTAINER, address=address, children=children, tags=tags)

    @classmethod
    def fraction(cls, numerator: 'Block', denominator: 'Block', address: AddressType,
                 tags: Iterable[str] = ()) -> 'Block':
        return cls(BlockType.FRACTION_CONTAINER, address=address,
                   children=[numerator, denominator], tags=tags)

    @property
    def is_symbol(self) -> bool:
        return self.block_type == BlockType.SYMBOL

    @property
    def numerator(self) -> Optional['Block']:
        if self.block_type != BlockType.FRACTION_CONTAINER:
            return None
        return self.children[0]

    @property
    def denominator(self) -> Optional['Block']:
        if self.block_type != BlockType.FRACTION_CONTAINER:
            return None
        return self.children[1]

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def with_tag(self, tag: str) -> 'Block':
        """A copy of this block with tag added."""
        return Block(self.block_type, self.symbol, self.address, self.children, self.tags | {tag})

    def symbols(self) -> Iterator['Block']:
        """All Symbol blocks, left to right."""
        if self.is_symbol:
            yield self
            return
        for child in self.children:
            yield from child.symbols()

    def __eq__(self, other):
        if isinstance(other, Block):
            return (self.block_type == other.block_type
                    and self.symbol == other.symbol
                    and self.address == other.address
                    and self.children == other.children
                    and self.tags == other.tags)
        return False

    def __repr__(self) -> str:
        tags = f" {sorted(self.tags)}" if self.tags else ""
        if self.is_symbol:
            return f"Symbol({self.symbol!r} @{self.address}{tags})"
        kind = "Fraction" if self.block_type == BlockType.FRACTION_CONTAINER else "Horizontal"
        return f"{kind}(@{self.address}{tags}, {self.children})"

    def to_dict(self) -> Dict:
        data = {
            "block_type": self.block_type,
            "address": list(self.address),
            "tags": sorted(self.tags),
        }
        if self.is_symbol:
            data["symbol"] = self.symbol
        else:
            data["children"] = [child.to_dict() for child in self.children]
        return data


class BlockContext:
    """
    Rendering configuration for one pass.

    Args:
        inverse_ops: operator -> inverse shown for negated operands (+ -> -)
        fraction_ops: binary operators drawn as a fraction
        conceal_ops: operators whose symbol is present but hidden (e.g. * for 2x)
        op_precedence: binding strength of binary operators, higher binds tighter
        relation_op: operator split out by build_alignable
        unary_precedence: binding strength of unary operators
    """

    def __init__(self, inverse_ops: Optional[Mapping[str, str]] = None,
                 fraction_ops: Optional[Iterable[str]] = None,
                 conceal_ops: Optional[Iterable[str]] = None,
                 op_precedence: Optional[Mapping[str, int]] = None,
                 relation_op: str = RELATION_OP,
                 unary_precedence: int = UNARY_PRECEDENCE):
        self.inverse_ops: Dict[str, str] = dict(inverse_ops if inverse_ops is not None else {"+": "-"})
        self.fraction_ops: FrozenSet[str] = frozenset(fraction_ops if fraction_ops is not None else {"/"})
        self.conceal_ops: FrozenSet[str] = frozenset(conceal_ops or ())
        self.op_precedence: Dict[str, int] = dict(op_precedence if op_precedence is not None
                                                  else OPERATOR_PRECEDENCE)
        self.relation_op = relation_op
        self.unary_precedence = unary_precedence

    def precedence(self, expr: ExprType) -> int:
        """Binding strength of expr's top operator (atoms bind tightest)."""
        if not compound(expr):
            return self.unary_precedence + 1
        if len(expr) == 2:
            return self.unary_precedence
        return self.op_precedence.get(expr[0], self.unary_precedence)

    def __repr__(self) -> str:
        return (f"BlockContext(inverse={self.inverse_ops}, fraction={sorted(self.fraction_ops)}, "
                f"conceal={sorted(self.conceal_ops)})")


# ============================================================
# Building
# ============================================================

def display_text(atom: ExprType) -> str:
    if constant(atom):
        return format_number(atom)
    return str(atom)


def _operator_symbol(op: str, address: AddressType, ctx: BlockContext) -> Block:
    tags = [BlockTag.CONCEALED] if op in ctx.conceal_ops else []
    return Block.leaf(op, address, tags)


def _operand(expr: ExprType, address: AddressType, ctx: BlockContext,
             parent_prec: int, inclusive: bool = False) -> Block:
    """Build an operand, parenthesized if it binds more loosely than its parent."""
    block = build(expr, ctx, address)
    if not compound(expr):
        return block
    prec = ctx.precedence(expr)
    if prec < parent_prec or (inclusive and prec == parent_prec):
        return block.with_tag(BlockTag.PARENTHESES)
    return block


def _inverted(negation: ExprType, address: AddressType, ctx: BlockContext, inverse: str) -> Block:
    """A negated operand shown after its inverse operator: the minus is concealed."""
    inverse_prec = ctx.op_precedence.get(inverse, ctx.unary_precedence)
    hidden = Block.leaf(negation[0], address, [BlockTag.CONCEALED])
    # the inverse operator does not associate, so ties need parentheses too
    operand = _operand(negation[1], address + (0,), ctx, inverse_prec, inclusive=True)
    return Block.horizontal([hidden, operand], address)


def build(expr: ExprType, ctx: Optional[BlockContext] = None, address: AddressType = ROOT) -> Block:
    """
    Build the block tree of expr.

    Args:
        expr: Expression to lay out
        ctx: Rendering configuration (default BlockContext())
        address: Address of expr within the expression being displayed

    Returns:
        The root block
    """
    ctx = ctx or BlockContext()
    address = tuple(address)
    if not compound(expr):
        return Block.leaf(display_text(expr), address)

    op, args = expr[0], expr[1:]

    if len(args) == 1:
        operand = _operand(args[0], address + (0,), ctx, ctx.unary_precedence)
        return Block.horizontal([_operator_symbol(op, address, ctx), operand], address)

    if op in ctx.fraction_ops and len(args) == 2:
        return Block.fraction(build(args[0], ctx, address + (0,)),
                              build(args[1], ctx, address + (1,)), address)

    prec = ctx.precedence(expr)
    inverse = ctx.inverse_ops.get(op)
    children = []
    for i, arg in enumerate(args):
        child_address = address + (i,)
        if i > 0 and inverse is not None and is_negation(arg):
            children.append(_operator_symbol(inverse, address, ctx))
            children.append(_inverted(arg, child_address, ctx, inverse))
            continue
        if i > 0:
            children.append(_operator_symbol(op, address, ctx))
        children.append(_operand(arg, child_address, ctx, prec))
    return Block.horizontal(children, address)


def build_alignable(expr: ExprType, ctx: Optional[BlockContext] = None
                    ) -> Tuple[Optional[Block], Optional[Block], Optional[Block]]:
    """
    Split a relation into (left, relation symbol, right) for column alignment.

    Returns:
        (build(lhs), Symbol(relation), build(rhs)) if expr's top operator is
        the context's relation operator, else (build(expr), None, None)
    """
    ctx = ctx or BlockContext()
    if compound(expr) and expr[0] == ctx.relation_op and len(expr) == 3:
        return (build(expr[1], ctx, (0,)),
                _operator_symbol(expr[0], ROOT, ctx),
                build(expr[2], ctx, (1,)))
    return build(expr, ctx), None, None


# ============================================================
# Plain-text Rendering
# ============================================================

def _wrap(block: Block) -> str:
    text = format_block(block)
    if not block.is_symbol and not block.has_tag(BlockTag.PARENTHESES):
        return f"({text})"
    return text


def format_block(block: Optional[Block]) -> str:
    """
    Render a block tree as one line of text.

    Concealed symbols are dropped; fractions become ``num/den``.
    """
    if block is None:
        return ""
    if block.is_symbol:
        return "" if block.has_tag(BlockTag.CONCEALED) else block.symbol

    if block.block_type == BlockType.FRACTION_CONTAINER:
        text = f"{_wrap(block.numerator)}/{_wrap(block.denominator)}"
    elif len(block.children) == 2:
        # unary operator, or an inverted negation
        text = "".join(format_block(child) for child in block.children)
    else:
        children = block.children
        text = format_block(children[0])
        for op, operand in zip(children[1::2], children[2::2]):
            if op.has_tag(BlockTag.CONCEALED):
                text += format_block(operand)
            else:
                text += f" {op.symbol} {format_block(operand)}"

    if block.has_tag(BlockTag.PARENTHESES):
        return f"({text})"
    return text

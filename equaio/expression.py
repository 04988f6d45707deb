"""
Expression representation, sub-term addresses and expression contexts.

Expressions use the plain nested-list form:

    atom:      3, 2.5, "x"
    compound:  [op, arg0, arg1, ...]

    x + 3 = 5       -> ["=", ["+", "x", 3], 5]
    -(x)            -> ["-", "x"]           (unary negation)
    a - b           -> ["-", "a", "b"]      (binary subtraction)
    a + b + c       -> ["+", "a", "b", "c"] (associative, n-ary)

An Address is a tuple of child indices from the root. Child index ``i``
denotes argument ``i`` of a compound, i.e. list element ``i + 1``:

    expr = ["=", ["+", "x", 3], 5]
    subexpr_at(expr, ())      -> expr
    subexpr_at(expr, (0,))    -> ["+", "x", 3]
    subexpr_at(expr, (0, 1))  -> 3

Addresses are only meaningful for the expression they were computed
against. Once a sequence grows or is rewound they must be discarded.
"""

from typing import Iterable, Iterator, List, Tuple, Union

# Type aliases
ExprType = Union[int, float, str, List]
AddressType = Tuple[int, ...]

ROOT: AddressType = ()

# Binding strength of binary operators, loosest first. Unary operators bind
# tighter than any binary operator.
OPERATOR_PRECEDENCE = {
    "=": 1,
    "|": 2,
    "&": 3,
    "+": 4,
    "-": 4,
    "*": 5,
    "/": 5,
    "^": 6,
}
UNARY_PRECEDENCE = 7


# ============================================================
# Predicates
# ============================================================

def compound(exp: ExprType) -> bool:
    """True if exp is an operator application (a non-empty list)."""
    return isinstance(exp, list) and len(exp) > 0


def constant(exp: ExprType) -> bool:
    """True if exp is a numeric constant."""
    return isinstance(exp, (int, float)) and not isinstance(exp, bool)


def variable(exp: ExprType) -> bool:
    """True if exp is a named atom (variable or symbolic constant)."""
    return isinstance(exp, str)


def atom(exp: ExprType) -> bool:
    """True if exp is a constant or a named atom."""
    return constant(exp) or variable(exp)


def arguments(exp: ExprType) -> List:
    """Arguments of a compound expression (empty list for atoms)."""
    return exp[1:] if compound(exp) else []


def is_negation(exp: ExprType) -> bool:
    """True if exp is a unary negation ``["-", x]``."""
    return compound(exp) and exp[0] == "-" and len(exp) == 2


# ============================================================
# Addresses
# ============================================================

def is_valid_address(expr: ExprType, address: Iterable[int]) -> bool:
    """Check that every index on the path exists in expr."""
    current = expr
    for index in address:
        if not compound(current) or index < 0 or index >= len(current) - 1:
            return False
        current = current[index + 1]
    return True


def subexpr_at(expr: ExprType, address: Iterable[int]) -> ExprType:
    """
    Return the sub-expression at an address.

    Raises:
        IndexError: If the address does not resolve in expr
    """
    current = expr
    for index in address:
        if not compound(current) or index < 0 or index >= len(current) - 1:
            raise IndexError(f"address {tuple(address)} does not resolve")
        current = current[index + 1]
    return current


def replace_at(expr: ExprType, address: AddressType, new: ExprType) -> ExprType:
    """
    Return a copy of expr with the node at address replaced by new.

    Only the nodes along the path are rebuilt; untouched siblings are shared
    with the original, which is never mutated.
    """
    if not address:
        return new
    if not compound(expr):
        raise IndexError(f"address {address} does not resolve")
    head, rest = address[0], address[1:]
    if head < 0 or head >= len(expr) - 1:
        raise IndexError(f"address {address} does not resolve")
    result = list(expr)
    result[head + 1] = replace_at(expr[head + 1], rest, new)
    return result


def common_prefix(addresses: Iterable[AddressType]) -> AddressType:
    """Longest address that is a prefix of every address given."""
    addresses = list(addresses)
    if not addresses:
        return ROOT
    prefix = []
    for column in zip(*addresses):
        if any(index != column[0] for index in column):
            break
        prefix.append(column[0])
    return tuple(prefix)


def iter_addresses(expr: ExprType, address: AddressType = ROOT) -> Iterator[AddressType]:
    """Yield every address in expr, parents before children."""
    yield address
    for i, arg in enumerate(arguments(expr)):
        yield from iter_addresses(arg, address + (i,))


# ============================================================
# Expression Context
# ============================================================

class ExpressionContext:
    """
    Immutable description of the operators and names an expression may use.

    Contexts have value semantics: ``with_variables`` and ``with_constants``
    return new contexts and never modify the receiver.

    Example:
        ctx = arithmetic_context().with_variables(["x", "y"])
        parse("x + y = 3", ctx)
    """

    __slots__ = ('_unary_ops', '_binary_ops', '_assoc_ops', '_constants',
                 '_variables', '_handle_numerics')

    def __init__(self, unary_ops: Iterable[str] = (), binary_ops: Iterable[str] = (),
                 assoc_ops: Iterable[str] = (), constants: Iterable[str] = (),
                 variables: Iterable[str] = (), handle_numerics: bool = False):
        object.__setattr__(self, '_unary_ops', tuple(unary_ops))
        object.__setattr__(self, '_binary_ops', tuple(binary_ops))
        object.__setattr__(self, '_assoc_ops', tuple(assoc_ops))
        object.__setattr__(self, '_constants', tuple(constants))
        object.__setattr__(self, '_variables', tuple(variables))
        object.__setattr__(self, '_handle_numerics', bool(handle_numerics))

    def __setattr__(self, name, value):
        raise AttributeError("ExpressionContext is immutable")

    @property
    def unary_ops(self) -> Tuple[str, ...]:
        return self._unary_ops

    @property
    def binary_ops(self) -> Tuple[str, ...]:
        return self._binary_ops

    @property
    def assoc_ops(self) -> Tuple[str, ...]:
        return self._assoc_ops

    @property
    def constants(self) -> Tuple[str, ...]:
        return self._constants

    @property
    def variables(self) -> Tuple[str, ...]:
        return self._variables

    @property
    def handle_numerics(self) -> bool:
        return self._handle_numerics

    def is_assoc(self, op: str) -> bool:
        return op in self._assoc_ops

    def knows_name(self, name: str) -> bool:
        """True if name is a declared variable or constant."""
        return name in self._variables or name in self._constants

    def _replace(self, **changes) -> 'ExpressionContext':
        fields = {
            "unary_ops": self._unary_ops,
            "binary_ops": self._binary_ops,
            "assoc_ops": self._assoc_ops,
            "constants": self._constants,
            "variables": self._variables,
            "handle_numerics": self._handle_numerics,
        }
        fields.update(changes)
        return ExpressionContext(**fields)

    def with_variables(self, names: Iterable[str]) -> 'ExpressionContext':
        """Return a new context with names added to the declared variables."""
        merged = list(self._variables)
        for name in names:
            if name not in merged:
                merged.append(name)
        return self._replace(variables=merged)

    def with_constants(self, names: Iterable[str]) -> 'ExpressionContext':
        """Return a new context with names added to the symbolic constants."""
        merged = list(self._constants)
        for name in names:
            if name not in merged:
                merged.append(name)
        return self._replace(constants=merged)

    def __eq__(self, other):
        if isinstance(other, ExpressionContext):
            return self.to_dict() == other.to_dict()
        return False

    def __hash__(self):
        return hash((self._unary_ops, self._binary_ops, self._assoc_ops,
                     self._constants, self._variables, self._handle_numerics))

    def __repr__(self) -> str:
        return (f"ExpressionContext(unary={list(self._unary_ops)}, "
                f"binary={list(self._binary_ops)}, vars={list(self._variables)})")

    def to_dict(self) -> dict:
        """Convert to the ``context`` object of the ruleset schema."""
        return {
            "unary_ops": list(self._unary_ops),
            "binary_ops": list(self._binary_ops),
            "assoc_ops": list(self._assoc_ops),
            "constants": list(self._constants),
            "variables": list(self._variables),
            "handle_numerics": self._handle_numerics,
        }


def arithmetic_context() -> ExpressionContext:
    """Context for school arithmetic: unary -, binary + - * /, + and * associative."""
    return ExpressionContext(
        unary_ops=["-"],
        binary_ops=["+", "-", "*", "/"],
        assoc_ops=["+", "*"],
        handle_numerics=True,
    )

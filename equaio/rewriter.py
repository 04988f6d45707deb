"""
Pattern matching, instantiation and numeric folding for equaio rules.

Patterns and skeletons are expressions with a few special forms:

    Pattern:
        ["?", "X"]            - match any expression, bind to X
        ["?each", item]       - as the only argument of an associative
                                operator: match every argument against item
        literal               - match exact value

    Skeleton:
        [":", "X"]            - substitute bound value of X
        [":each", item]       - splice one instantiation of item per element
                                of the indexed variables it mentions
        literal               - keep as-is

Bindings are lists of [name, value] pairs, or the string "failed".
"""

from typing import Any, Callable, Dict, List, Optional, Set, Union

from .expression import ExprType, atom, compound, constant
from .parser import is_indexed_name

# Type aliases
BindingsType = Union[List[List], str]  # List of [name, value] pairs or "failed"
NumericType = Union[int, float]

# FoldOp handler: receives list of numeric args, returns result or None (can't fold)
FoldHandler = Callable[[List[NumericType]], Optional[NumericType]]
FoldFuncsType = Dict[str, FoldHandler]


# ============================================================
# Fold Operation Builders
# ============================================================

def nary_fold(
    identity: NumericType,
    binary_op: Callable[[NumericType, NumericType], NumericType],
) -> FoldHandler:
    """Create an n-ary folder with identity element.

    Examples:
        nary_fold(0, lambda a, b: a + b)  # (+) = 0, (+ x) = x, (+ x y z) = x+y+z
        nary_fold(1, lambda a, b: a * b)  # (*) = 1, (* x) = x, (* x y z) = x*y*z
    """
    def handler(args: List[NumericType]) -> NumericType:
        result = identity
        for a in args:
            result = binary_op(result, a)
        return result
    return handler


def special_minus() -> FoldHandler:
    """Subtraction handler: (- x) = -x, (- x y) = x-y."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) == 1:
            return -args[0]
        if len(args) == 2:
            return args[0] - args[1]
        return None
    return handler


def exact_div() -> FoldHandler:
    """Division that only folds when the quotient is exact."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2 or args[1] == 0:
            return None
        a, b = args
        if isinstance(a, int) and isinstance(b, int):
            if a % b != 0:
                return None  # keep 1 / 3 symbolic
            return a // b
        return a / b
    return handler


ARITHMETIC_PRELUDE: FoldFuncsType = {
    "+": nary_fold(0, lambda a, b: a + b),
    "*": nary_fold(1, lambda a, b: a * b),
    "-": special_minus(),
    "/": exact_div(),
}


def evaluate_numeric(expr: ExprType, fold_funcs: Optional[FoldFuncsType] = None) -> Optional[NumericType]:
    """
    Fold a purely numeric expression to a single number.

    Returns:
        The value, or None if expr contains names, unknown operators or a
        division that is not exact.
    """
    funcs = fold_funcs if fold_funcs is not None else ARITHMETIC_PRELUDE
    if constant(expr):
        return expr
    if not compound(expr) or expr[0] not in funcs:
        return None
    values = []
    for arg in expr[1:]:
        value = evaluate_numeric(arg, funcs)
        if value is None:
            return None
        values.append(value)
    result = funcs[expr[0]](values)
    # Preserve integer type when possible
    if isinstance(result, float) and result.is_integer():
        result = int(result)
    return result


# ============================================================
# Pattern Helpers
# ============================================================

def arbitrary_expression(pat: ExprType) -> bool:
    """Check if pattern matches any expression (?)."""
    return compound(pat) and len(pat) == 2 and pat[0] == "?"


def arbitrary_each(pat: ExprType) -> bool:
    """Check if pattern matches the remaining arguments item-wise (?each)."""
    return compound(pat) and len(pat) == 2 and pat[0] == "?each"


def skeleton_evaluation(s: ExprType) -> bool:
    """Check if skeleton element should be evaluated (:)."""
    return compound(s) and len(s) == 2 and s[0] == ":"


def skeleton_each(s: ExprType) -> bool:
    """Check if skeleton element expands once per ellipsis item (:each)."""
    return compound(s) and len(s) == 2 and s[0] == ":each"


def variable_names(pat: ExprType, marker: str = "?") -> Set[str]:
    """Names of all pattern (``?``) or skeleton (``:``) variables in pat."""
    if not compound(pat):
        return set()
    if len(pat) == 2 and pat[0] == marker and isinstance(pat[1], str):
        return {pat[1]}
    names = set()
    for sub in pat[1:]:
        names |= variable_names(sub, marker)
    return names


def extend_bindings(name: str, dat: ExprType, bindings: BindingsType) -> BindingsType:
    """
    Extend bindings with name -> dat.

    Returns:
        Extended bindings, or "failed" if name is already bound to something else
    """
    if bindings == "failed":
        return "failed"
    for entry in bindings:
        if entry[0] == name:
            return bindings if entry[1] == dat else "failed"
    return bindings + [[name, dat]]


def lookup(var: str, bindings: BindingsType) -> Any:
    """Return the value bound to var, or var itself if unbound."""
    if bindings == "failed":
        return var
    for entry in bindings:
        if entry[0] == var:
            return entry[1]
    return var


# ============================================================
# Pattern Matching
# ============================================================

def match(pat: ExprType, exp: ExprType, bindings: BindingsType) -> BindingsType:
    """
    Match a pattern against an expression with bindings.

    Args:
        pat: The pattern to match
        exp: The expression to match against
        bindings: Current bindings

    Returns:
        Updated bindings on success, "failed" on failure
    """
    if bindings == "failed":
        return "failed"

    if atom(pat):
        return bindings if atom(exp) and pat == exp else "failed"

    if arbitrary_expression(pat):
        return extend_bindings(pat[1], exp, bindings)

    if not compound(pat) or not compound(exp):
        return "failed"

    return match_compound(pat, exp, bindings)


def match_compound(pat: List, exp: List, bindings: BindingsType) -> BindingsType:
    """
    Match compound patterns against compound expressions, element by element.

    An ellipsis (?each) consumes all remaining expression elements and must
    be the last pattern element.
    """
    for i, current_pat in enumerate(pat):
        if bindings == "failed":
            return "failed"
        if arbitrary_each(current_pat):
            if i != len(pat) - 1:
                raise ValueError("Ellipsis (?each) must be last in compound pattern")
            return match_each(current_pat[1], exp[i:], bindings)
        if i >= len(exp):
            return "failed"
        bindings = match(current_pat, exp[i], bindings)
    if len(exp) != len(pat):
        return "failed"
    return bindings


def match_each(item: ExprType, exps: List, bindings: BindingsType) -> BindingsType:
    """
    Match every expression in exps against the same item pattern.

    Indexed variables (``A_i``) are bound per item and collected into a list
    in argument order; all other variables must agree across items.
    """
    if bindings == "failed" or not exps:
        return "failed"
    indexed = {n for n in variable_names(item) if is_indexed_name(n)}
    collected: Dict[str, List] = {name: [] for name in indexed}

    for exp in exps:
        scoped = [entry for entry in bindings if entry[0] not in indexed]
        result = match(item, exp, scoped)
        if result == "failed":
            return "failed"
        bindings = []
        for name, value in result:
            if name in collected:
                collected[name].append(value)
            else:
                bindings.append([name, value])

    for name in sorted(indexed):
        bindings = extend_bindings(name, collected[name], bindings)
    return bindings


# ============================================================
# Instantiation
# ============================================================

def instantiate(skeleton: ExprType, bindings: BindingsType) -> ExprType:
    """
    Instantiate a skeleton with bindings.

    Args:
        skeleton: The skeleton to instantiate
        bindings: Bindings produced by match

    Returns:
        The instantiated expression
    """
    if atom(skeleton):
        return skeleton
    if skeleton_evaluation(skeleton):
        return lookup(skeleton[1], bindings)
    if compound(skeleton):
        return instantiate_compound(skeleton, bindings)
    return []


def instantiate_compound(skeleton: List, bindings: BindingsType) -> List:
    """
    Instantiate a compound skeleton, expanding ellipsis items in place.

    ``[":each", item]`` becomes one instantiation of item per element of the
    lists bound to the indexed variables item mentions.
    """
    result = []
    for element in skeleton:
        if skeleton_each(element):
            item = element[1]
            names = sorted(n for n in variable_names(item, ":") if is_indexed_name(n))
            lists = [lookup(name, bindings) for name in names]
            lists = [value for value in lists if isinstance(value, list)]
            count = min((len(value) for value in lists), default=0)
            for k in range(count):
                local = [[name, value[k]] for name, value in zip(names, lists)]
                result.append(instantiate(item, local + bindings))
        else:
            result.append(instantiate(element, bindings))
    return result


def to_skeleton(pattern: ExprType) -> ExprType:
    """Turn a parsed pattern into a skeleton (``?`` -> ``:``, ``?each`` -> ``:each``)."""
    if arbitrary_expression(pattern):
        return [":", pattern[1]]
    if arbitrary_each(pattern):
        return [":each", to_skeleton(pattern[1])]
    if compound(pattern):
        return [to_skeleton(sub) for sub in pattern]
    return pattern

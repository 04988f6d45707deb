"""
Rule engine: which rewrites are possible for a selection, and the automatic
follow-up steps after one is applied.

A worksheet talks to its engine only through the ActionProvider interface:

    get_possible_actions(expr, context, addresses) -> [(Action, result), ...]
    normalize(expr, context)                        -> expr
    get_auto_action(expr, context)                  -> (Action, result) or None

RuleEngine implements it on top of a RuleSet. Any object with these methods
can stand in for it, which is how the worksheet tests use a fixed fake.

Selection semantics:
    - the rewrite target is the node at the common prefix of the selected
      addresses
    - if that node is an associative application and the selection covers
      two or more, but not all, of its arguments, the target is the
      sub-application of just those arguments; its result replaces them at
      the position of the first one:

          select 3 and 5 in x + 3 + 5   ->  target 3 + 5  ->  x + 8
"""

import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .expression import (
    AddressType, ExprType, ExpressionContext,
    common_prefix, compound, constant, is_negation, is_valid_address,
    iter_addresses, replace_at, subexpr_at,
)
from .parser import RELATION_OP, format_expression
from .rewriter import evaluate_numeric, instantiate, match
from .rule import Rule, RuleSet

logger = logging.getLogger(__name__)

ActionList = List[Tuple['Action', ExprType]]
Rebuild = Callable[[ExprType], ExprType]


class Action:
    """
    Describes how an expression line was derived from its predecessor.
    Immutable; history lines share instances.

    Kinds:
        initial        - the first line of a sequence
        rule           - a rule from the ruleset (rule_id is set)
        evaluate       - numeric evaluation of a sub-term
        equation       - the same operation applied to both sides
        normalization  - structural clean-up by the normalizer
    """

    __slots__ = ('kind', 'label', 'rule_id')

    INITIAL = "initial"
    RULE = "rule"
    EVALUATE = "evaluate"
    EQUATION = "equation"
    NORMALIZATION = "normalization"

    def __init__(self, kind: str, label: str, rule_id: Optional[str] = None):
        object.__setattr__(self, 'kind', kind)
        object.__setattr__(self, 'label', label)
        object.__setattr__(self, 'rule_id', rule_id)

    def __setattr__(self, name, value):
        raise AttributeError("Action is immutable")

    @classmethod
    def initial(cls) -> 'Action':
        return cls(cls.INITIAL, "Initial")

    @classmethod
    def normalization(cls) -> 'Action':
        return cls(cls.NORMALIZATION, "Normalize")

    @classmethod
    def from_rule(cls, rule: Rule) -> 'Action':
        return cls(cls.RULE, rule.label, rule.id)

    @classmethod
    def evaluate(cls, term: ExprType, value) -> 'Action':
        return cls(cls.EVALUATE, f"Evaluate {format_expression(term)} = {format_expression(value)}")

    @classmethod
    def equation(cls, label: str) -> 'Action':
        return cls(cls.EQUATION, label)

    def __str__(self) -> str:
        return self.label

    def __repr__(self) -> str:
        if self.rule_id:
            return f"Action({self.kind}, @{self.rule_id} {self.label!r})"
        return f"Action({self.kind}, {self.label!r})"

    def __eq__(self, other):
        if isinstance(other, Action):
            return (self.kind, self.label, self.rule_id) == (other.kind, other.label, other.rule_id)
        return False

    def __hash__(self):
        return hash((self.kind, self.label, self.rule_id))

    def to_dict(self) -> Dict:
        return {"kind": self.kind, "label": self.label, "rule_id": self.rule_id}


class ActionProvider:
    """
    Strategy a worksheet uses to discover and follow up rewrites.

    Subclasses must implement get_possible_actions; the defaults for the
    automatic steps do nothing.
    """

    def get_possible_actions(self, expr: ExprType, context: ExpressionContext,
                             addresses: Iterable[AddressType]) -> ActionList:
        raise NotImplementedError

    def normalize(self, expr: ExprType, context: ExpressionContext) -> ExprType:
        return expr

    def get_auto_action(self, expr: ExprType,
                        context: ExpressionContext) -> Optional[Tuple[Action, ExprType]]:
        return None


# ============================================================
# Target Resolution
# ============================================================

def resolve_target(expr: ExprType, context: ExpressionContext,
                   addresses: Iterable[AddressType]) -> Optional[Tuple[ExprType, Rebuild, AddressType, bool]]:
    """
    Work out which term a selection refers to.

    Returns:
        (term, rebuild, prefix, whole) where rebuild(result) gives the full
        expression with term replaced by result, and whole is False when term
        is a subset of an associative application. None if nothing valid is
        selected.
    """
    selected = []
    for address in addresses:
        address = tuple(address)
        if is_valid_address(expr, address) and address not in selected:
            selected.append(address)
    if not selected:
        return None

    prefix = common_prefix(selected)
    node = subexpr_at(expr, prefix)

    if compound(node) and context.is_assoc(node[0]) and all(len(a) > len(prefix) for a in selected):
        picked = sorted({a[len(prefix)] for a in selected})
        if 2 <= len(picked) < len(node) - 1:
            term = [node[0]] + [node[i + 1] for i in picked]

            def rebuild_subset(result: ExprType) -> ExprType:
                args = []
                for i, arg in enumerate(node[1:]):
                    if i == picked[0]:
                        args.append(result)
                    elif i not in picked:
                        args.append(arg)
                return replace_at(expr, prefix, [node[0]] + args)

            return term, rebuild_subset, prefix, False

    return node, lambda result: replace_at(expr, prefix, result), prefix, True


def _pair_subterms(node: ExprType, context: ExpressionContext) -> Iterator[Tuple[ExprType, Rebuild]]:
    """Yield the node itself, then every two-argument slice of an associative node."""
    yield node, lambda result: result
    if not (compound(node) and context.is_assoc(node[0]) and len(node) > 3):
        return
    args = node[1:]
    for i in range(len(args)):
        for j in range(i + 1, len(args)):
            def rebuild(result, i=i, j=j):
                rest = [a for k, a in enumerate(args) if k != j]
                rest[i] = result
                return [node[0]] + rest
            yield [node[0], args[i], args[j]], rebuild


# ============================================================
# Rule Engine
# ============================================================

class RuleEngine(ActionProvider):
    """
    ActionProvider backed by a RuleSet.

    Example:
        engine = RuleEngine(load_ruleset("algebra.json"))
        ctx = engine.context.with_variables(["x"])
        expr = parse("x + 0 = 5", ctx)
        for action, result in engine.get_possible_actions(expr, ctx, [(0,)]):
            print(action, format_expression(result))
    """

    def __init__(self, ruleset: RuleSet):
        self.ruleset = ruleset

    @property
    def context(self) -> ExpressionContext:
        return self.ruleset.context

    def apply_rule(self, rule: Rule, term: ExprType) -> Optional[ExprType]:
        """
        Apply one rule at the top of term.

        Tries the rule's pattern variants in order and instantiates the
        skeleton with the first match. Does not recurse into subexpressions.

        Returns:
            The rewritten term, or None if no variant matches
        """
        for variant in rule.variants:
            bindings = match(variant, term, [])
            if bindings != "failed":
                return instantiate(rule.skeleton, bindings)
        return None

    def rules_matching(self, term: ExprType) -> List[Tuple[Rule, ExprType]]:
        """All (rule, result) pairs for rules that apply at the top of term."""
        matching = []
        for rule in self.ruleset:
            result = self.apply_rule(rule, term)
            if result is not None:
                matching.append((rule, result))
        return matching

    def get_possible_actions(self, expr: ExprType, context: ExpressionContext,
                             addresses: Iterable[AddressType]) -> ActionList:
        target = resolve_target(expr, context, addresses)
        if target is None:
            return []
        term, rebuild, prefix, whole = target

        actions: ActionList = []

        def add(action: Action, result: ExprType) -> None:
            if result == expr:
                return
            if any(a == action and r == result for a, r in actions):
                return
            actions.append((action, result))

        for rule, result in self.rules_matching(term):
            add(Action.from_rule(rule), rebuild(result))

        if context.handle_numerics and compound(term) and not (is_negation(term) and constant(term[1])):
            value = evaluate_numeric(term)
            if value is not None:
                add(Action.evaluate(term, value), rebuild(value))

        if whole:
            for action, result in self._equation_actions(expr, prefix, term):
                add(action, result)

        logger.debug("%d possible actions for %s at %s",
                     len(actions), format_expression(expr), list(addresses))
        return actions

    def _equation_actions(self, expr: ExprType, prefix: AddressType, term: ExprType) -> ActionList:
        """Operations applied to both sides of a relation."""
        if not (compound(expr) and expr[0] == RELATION_OP and len(expr) == 3):
            return []
        if not prefix or len(prefix) > 2:
            return []
        side = expr[prefix[0] + 1]
        lhs, rhs = expr[1], expr[2]
        actions = []

        side_op = side[0] if compound(side) else None
        difference = side_op == "-" and len(side) == 3
        subtracted = len(prefix) == 2 and difference and prefix[1] == 1
        additive = len(prefix) == 1 or side_op == "+" or difference
        if additive and term != 0:
            if subtracted:
                inverse = term
                label = f"Add {format_expression(term)} to both sides"
            elif is_negation(term):
                inverse = term[1]
                label = f"Add {format_expression(inverse)} to both sides"
            else:
                inverse = ["-", term]
                label = f"Subtract {format_expression(term)} from both sides"
            actions.append((Action.equation(label),
                            [RELATION_OP, ["+", lhs, inverse], ["+", rhs, inverse]]))

        if len(prefix) == 2 and side_op == "*" and term != 0:
            label = f"Divide both sides by {format_expression(term)}"
            actions.append((Action.equation(label),
                            [RELATION_OP, ["/", lhs, term], ["/", rhs, term]]))
        return actions

    def normalize(self, expr: ExprType, context: ExpressionContext) -> ExprType:
        """
        Bring expr into structural normal form.

        - nested applications of the same associative operator are flattened
        - double negation is removed
        - single-argument associative applications are unwrapped
        """
        if not compound(expr):
            return expr
        op = expr[0]
        args = [self.normalize(arg, context) for arg in expr[1:]]

        if is_negation(expr) and is_negation(args[0]):
            return args[0][1]

        if context.is_assoc(op):
            flat = []
            for arg in args:
                if compound(arg) and arg[0] == op and len(arg) > 2:
                    flat.extend(arg[1:])
                else:
                    flat.append(arg)
            if len(flat) == 1:
                return flat[0]
            args = flat

        return [op] + args

    def get_auto_action(self, expr: ExprType,
                        context: ExpressionContext) -> Optional[Tuple[Action, ExprType]]:
        """
        First automatic rule that applies anywhere in expr (parents first).

        Within an associative application every pair of arguments is tried,
        so ``x + 3 + 0`` is simplified by ``X + 0 = X``.
        """
        auto_rules = self.ruleset.auto_rules
        if not auto_rules:
            return None
        for address in iter_addresses(expr):
            node = subexpr_at(expr, address)
            if not compound(node):
                continue
            for term, rebuild in _pair_subterms(node, context):
                for rule in auto_rules:
                    result = self.apply_rule(rule, term)
                    if result is not None and result != term:
                        return Action.from_rule(rule), replace_at(expr, address, rebuild(result))
        return None

"""
Rule sets and their JSON description format.

    {
        "name": "algebra",
        "context": {
            "unary_ops": ["-"],
            "binary_ops": ["+", "-", "*", "/"],
            "assoc_ops": ["+", "*"],
            "handle_numerics": true
        },
        "variations": [
            {"expr": "A + B = B + A"}
        ],
        "rules": [
            {"id": "add_zero", "expr": "X + 0 = X", "label": "Addition with 0"},
            {"id": "distribution", "expr": "X * (A_i + ...) = (X * A_i) + ...",
             "label": "Distribution", "auto": false, "variations": []}
        ]
    }

Each rule's ``expr`` is ``pattern = result``. Uppercase names are pattern
variables; ``A_i + ...`` matches every argument of an associative operator.

Variations are rewrites applied to rule patterns (not to expressions) so
that ``X + 0`` also matches ``0 + X``. A rule's own ``variations`` replace the
ruleset-level list; an empty list disables them for that rule.
"""

import json
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import SchemaError
from .expression import ExprType, ExpressionContext, iter_addresses, replace_at, subexpr_at
from .parser import RELATION_OP, format_expression, parse
from .rewriter import instantiate, match, to_skeleton

# Upper bound on pattern variants generated per rule
MAX_VARIANTS = 64

VariationType = Tuple[ExprType, ExprType]  # (pattern, skeleton)


class Rule:
    """A single rewrite rule: pattern, result skeleton and display metadata."""

    def __init__(self, id: str, label: str, pattern: ExprType, skeleton: ExprType,
                 auto: bool = False, variants: Optional[List[ExprType]] = None,
                 expr: Optional[str] = None):
        self.id = id
        self.label = label
        self.pattern = pattern
        self.skeleton = skeleton
        self.auto = auto
        self.variants = variants if variants is not None else [pattern]
        self.expr = expr

    def __repr__(self) -> str:
        flag = " [auto]" if self.auto else ""
        return f"@{self.id} \"{self.label}\": {self.expr or format_expression(self.pattern)}{flag}"

    def to_dict(self) -> Dict:
        """Convert to the rule object of the JSON format."""
        return {
            "id": self.id,
            "expr": self.expr,
            "label": self.label,
            "auto": self.auto,
        }


class RuleSet:
    """A named collection of rules together with the context they are written in."""

    def __init__(self, name: str, context: ExpressionContext, rules: List[Rule],
                 variations: Optional[List[VariationType]] = None):
        self.name = name
        self.context = context
        self.rules = list(rules)
        self.variations = list(variations or [])
        self._by_id = {rule.id: rule for rule in self.rules}

    def rule(self, rule_id: str) -> Optional[Rule]:
        """Get a rule by id."""
        return self._by_id.get(rule_id)

    @property
    def auto_rules(self) -> List[Rule]:
        return [rule for rule in self.rules if rule.auto]

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._by_id

    def __repr__(self) -> str:
        return f"RuleSet({self.name!r}, {len(self.rules)} rules)"


# ============================================================
# Variations
# ============================================================

def _single_rewrites(pattern: ExprType, variations: List[VariationType]) -> Iterator[ExprType]:
    """Yield every pattern obtained by applying one variation at one node."""
    for address in iter_addresses(pattern):
        node = subexpr_at(pattern, address)
        for var_pattern, var_skeleton in variations:
            bindings = match(var_pattern, node, [])
            if bindings != "failed":
                yield replace_at(pattern, address, instantiate(var_skeleton, bindings))


def pattern_variants(pattern: ExprType, variations: List[VariationType],
                     limit: int = MAX_VARIANTS) -> List[ExprType]:
    """
    All patterns reachable from pattern by repeatedly applying variations.

    The original pattern comes first; the rest follow in breadth-first order.
    """
    variants = [pattern]
    frontier = [pattern]
    while frontier and len(variants) < limit:
        current = frontier.pop(0)
        for candidate in _single_rewrites(current, variations):
            if candidate not in variants:
                variants.append(candidate)
                frontier.append(candidate)
                if len(variants) >= limit:
                    break
    return variants


# ============================================================
# Loading
# ============================================================

def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SchemaError(message)


def _string_list(data: Dict, key: str, where: str) -> List[str]:
    value = data.get(key, [])
    _require(isinstance(value, list) and all(isinstance(v, str) for v in value),
             f"{where}.{key} must be a list of strings")
    return value


def parse_context(data) -> ExpressionContext:
    """Build an ExpressionContext from the ``context`` object."""
    _require(isinstance(data, dict), "context must be an object")
    handle_numerics = data.get("handle_numerics", False)
    _require(isinstance(handle_numerics, bool), "context.handle_numerics must be a boolean")
    return ExpressionContext(
        unary_ops=_string_list(data, "unary_ops", "context"),
        binary_ops=_string_list(data, "binary_ops", "context"),
        assoc_ops=_string_list(data, "assoc_ops", "context"),
        constants=_string_list(data, "constants", "context"),
        handle_numerics=handle_numerics,
    )


def parse_rule_expr(text, context: ExpressionContext, where: str) -> Tuple[ExprType, ExprType]:
    """
    Parse ``pattern = result`` rule text.

    Returns:
        (pattern, skeleton)

    Raises:
        SchemaError: If the text is not a relation between two patterns
    """
    _require(isinstance(text, str), f"{where}.expr must be a string")
    parsed = parse(text, context, pattern=True)
    _require(parsed is not None, f"{where}.expr could not be parsed: {text!r}")
    _require(isinstance(parsed, list) and parsed[0] == RELATION_OP and len(parsed) == 3,
             f"{where}.expr must have the form 'pattern {RELATION_OP} result': {text!r}")
    return parsed[1], to_skeleton(parsed[2])


def parse_variations(data, context: ExpressionContext, where: str) -> List[VariationType]:
    _require(isinstance(data, list), f"{where} must be a list")
    variations = []
    for i, entry in enumerate(data):
        _require(isinstance(entry, dict), f"{where}[{i}] must be an object")
        variations.append(parse_rule_expr(entry.get("expr"), context, f"{where}[{i}]"))
    return variations


def ruleset_from_dict(data) -> RuleSet:
    """Validate a decoded JSON ruleset and build a RuleSet."""
    _require(isinstance(data, dict), "ruleset must be an object")
    name = data.get("name")
    _require(isinstance(name, str) and name != "", "ruleset.name must be a non-empty string")
    _require("context" in data, "ruleset.context is required")
    context = parse_context(data["context"])
    variations = parse_variations(data.get("variations", []), context, "variations")

    raw_rules = data.get("rules")
    _require(isinstance(raw_rules, list), "ruleset.rules must be a list")
    rules = []
    seen = set()
    for i, raw in enumerate(raw_rules):
        where = f"rules[{i}]"
        _require(isinstance(raw, dict), f"{where} must be an object")
        rule_id = raw.get("id")
        _require(isinstance(rule_id, str) and rule_id != "", f"{where}.id must be a non-empty string")
        _require(rule_id not in seen, f"duplicate rule id: {rule_id}")
        seen.add(rule_id)
        label = raw.get("label", rule_id)
        _require(isinstance(label, str), f"{where}.label must be a string")
        auto = raw.get("auto", False)
        _require(isinstance(auto, bool), f"{where}.auto must be a boolean")

        pattern, skeleton = parse_rule_expr(raw.get("expr"), context, where)
        if "variations" in raw:
            rule_variations = parse_variations(raw["variations"], context, f"{where}.variations")
        else:
            rule_variations = variations
        rules.append(Rule(
            id=rule_id,
            label=label,
            pattern=pattern,
            skeleton=skeleton,
            auto=auto,
            variants=pattern_variants(pattern, rule_variations),
            expr=raw["expr"],
        ))

    return RuleSet(name, context, rules, variations)


def parse_ruleset(text: str) -> RuleSet:
    """
    Parse a JSON ruleset description.

    Raises:
        SchemaError: If the text is not valid JSON or violates the schema
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise SchemaError(f"ruleset is not valid JSON: {e}") from e
    return ruleset_from_dict(data)


def load_ruleset(path: Union[str, Path]) -> RuleSet:
    """Load a ruleset from a .json file."""
    return parse_ruleset(Path(path).read_text())

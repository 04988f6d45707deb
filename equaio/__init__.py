"""
equaio - step-by-step expression rewriting

A learner transforms an expression one verified step at a time: select
sub-terms, pick one of the rewrites the rules allow, rewind when needed.

Quick Start:
    from equaio import Catalog, SelectionSet, format_expression

    ws = Catalog.load().build_worksheet("algebra0")   # x + 3 = 5
    selection = SelectionSet()
    selection.toggle((0, 1), True)                    # the 3

    with ws.edit(0) as seq:
        for action, result in seq.get_possible_actions(selection):
            print(action, format_expression(result))
        seq.try_apply_action_by_index(selection, 0)
    selection.clear()

Rule Syntax (JSON rulesets, see equaio.rule):
    X + 0 = X                            - X is a pattern variable
    X * (A_i + ...) = (X * A_i) + ...    - A_i + ... matches every argument

Addresses:
    ()      - the whole expression
    (0, 1)  - second argument of the first argument
"""

__version__ = "0.1.0"

from .errors import (
    EquaioError,
    SchemaError,
    InvalidIndexError,
    InvalidActionIndex,
    InvalidHistoryIndex,
    InvalidSequenceIndex,
)

# Expressions
from .expression import (
    ExprType,
    AddressType,
    ROOT,
    ExpressionContext,
    arithmetic_context,
    subexpr_at,
    replace_at,
    is_valid_address,
)
from .parser import parse, format_expression

# Rules and engine
from .rewriter import match, instantiate, evaluate_numeric
from .rule import Rule, RuleSet, parse_ruleset, load_ruleset
from .engine import Action, ActionProvider, RuleEngine

# Session
from .selection import SelectionSet
from .worksheet import ExpressionLine, WorkableExpressionSequence, Worksheet
from .grouping import GroupedHistory, group_history

# Presentation
from .block import (
    Block,
    BlockType,
    BlockTag,
    BlockContext,
    build,
    build_alignable,
    format_block,
)
from .utils import convert_mathvar

from .catalog import Catalog, Category, Problem

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "EquaioError",
    "SchemaError",
    "InvalidIndexError",
    "InvalidActionIndex",
    "InvalidHistoryIndex",
    "InvalidSequenceIndex",
    # Expressions
    "ExprType",
    "AddressType",
    "ROOT",
    "ExpressionContext",
    "arithmetic_context",
    "subexpr_at",
    "replace_at",
    "is_valid_address",
    "parse",
    "format_expression",
    # Rules
    "match",
    "instantiate",
    "evaluate_numeric",
    "Rule",
    "RuleSet",
    "parse_ruleset",
    "load_ruleset",
    # Engine
    "Action",
    "ActionProvider",
    "RuleEngine",
    # Session
    "SelectionSet",
    "ExpressionLine",
    "WorkableExpressionSequence",
    "Worksheet",
    "GroupedHistory",
    "group_history",
    # Presentation
    "Block",
    "BlockType",
    "BlockTag",
    "BlockContext",
    "build",
    "build_alignable",
    "format_block",
    "convert_mathvar",
    # Catalog
    "Catalog",
    "Category",
    "Problem",
]

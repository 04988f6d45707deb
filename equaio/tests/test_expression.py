"""Tests for expression predicates, addresses and contexts."""

import pytest
from equaio.expression import (
    ROOT, ExpressionContext, arithmetic_context,
    compound, constant, variable, is_negation,
    is_valid_address, subexpr_at, replace_at, common_prefix,
    iter_addresses,
)


EXPR = ["=", ["+", "x", 3], 5]


class TestPredicates:
    """Tests for atom/compound predicates."""

    def test_constant(self):
        """Numbers are constants, booleans and names are not."""
        assert constant(3)
        assert constant(2.5)
        assert not constant(True)
        assert not constant("x")

    def test_variable(self):
        assert variable("x")
        assert not variable(3)

    def test_compound(self):
        assert compound(["+", "x", 1])
        assert not compound([])
        assert not compound("x")

    def test_is_negation(self):
        """Only one-argument minus is a negation."""
        assert is_negation(["-", "x"])
        assert not is_negation(["-", "x", "y"])
        assert not is_negation(["+", "x"])


class TestAddresses:
    """Tests for address resolution and replacement."""

    def test_subexpr_root(self):
        assert subexpr_at(EXPR, ROOT) == EXPR

    def test_subexpr_child_index_skips_operator(self):
        """Child index i is list element i + 1."""
        assert subexpr_at(EXPR, (0,)) == ["+", "x", 3]
        assert subexpr_at(EXPR, (0, 1)) == 3
        assert subexpr_at(EXPR, (1,)) == 5

    def test_subexpr_invalid(self):
        with pytest.raises(IndexError):
            subexpr_at(EXPR, (2,))
        with pytest.raises(IndexError):
            subexpr_at(EXPR, (1, 0))

    def test_is_valid_address(self):
        assert is_valid_address(EXPR, ())
        assert is_valid_address(EXPR, (0, 0))
        assert not is_valid_address(EXPR, (0, 2))
        assert not is_valid_address(EXPR, (-1,))

    def test_replace_at_does_not_mutate(self):
        """replace_at builds a new expression and leaves the input alone."""
        original = ["=", ["+", "x", 3], 5]
        result = replace_at(original, (0, 1), 4)
        assert result == ["=", ["+", "x", 4], 5]
        assert original == ["=", ["+", "x", 3], 5]

    def test_replace_at_root(self):
        assert replace_at(EXPR, (), "y") == "y"

    def test_replace_at_invalid(self):
        with pytest.raises(IndexError):
            replace_at(EXPR, (3,), 0)

    def test_common_prefix(self):
        assert common_prefix([(0, 1), (0, 0)]) == (0,)
        assert common_prefix([(0, 1), (1,)]) == ()
        assert common_prefix([(0, 1)]) == (0, 1)
        assert common_prefix([]) == ()

    def test_iter_addresses_preorder(self):
        """Parents come before children, left to right."""
        assert list(iter_addresses(EXPR)) == [(), (0,), (0, 0), (0, 1), (1,)]


class TestExpressionContext:
    """Tests for ExpressionContext."""

    def test_immutable(self):
        ctx = arithmetic_context()
        with pytest.raises(AttributeError):
            ctx.handle_numerics = False

    def test_with_variables_returns_new_context(self):
        ctx = arithmetic_context()
        with_x = ctx.with_variables(["x"])
        assert with_x.variables == ("x",)
        assert ctx.variables == ()
        assert with_x.knows_name("x")
        assert not ctx.knows_name("x")

    def test_with_variables_no_duplicates(self):
        ctx = arithmetic_context().with_variables(["x"]).with_variables(["x", "y"])
        assert ctx.variables == ("x", "y")

    def test_with_constants(self):
        ctx = ExpressionContext(unary_ops=["~"]).with_constants(["true"])
        assert ctx.knows_name("true")
        assert ctx.constants == ("true",)

    def test_equality(self):
        assert arithmetic_context() == arithmetic_context()
        assert hash(arithmetic_context()) == hash(arithmetic_context())
        assert arithmetic_context() != arithmetic_context().with_variables(["x"])

    def test_is_assoc(self):
        ctx = arithmetic_context()
        assert ctx.is_assoc("+")
        assert ctx.is_assoc("*")
        assert not ctx.is_assoc("-")

    def test_to_dict(self):
        data = arithmetic_context().to_dict()
        assert data["binary_ops"] == ["+", "-", "*", "/"]
        assert data["handle_numerics"] is True

"""Tests for the problem catalog and worked sessions over the bundled rules."""

import json

import pytest
from equaio.catalog import Catalog, Problem
from equaio.engine import Action
from equaio.errors import SchemaError
from equaio.parser import format_expression
from equaio.selection import SelectionSet


def action_index(actions, rule_id=None, label=None):
    """Position of the action with the given rule id or label."""
    for i, (action, _) in enumerate(actions):
        if rule_id is not None and action.rule_id == rule_id:
            return i
        if label is not None and str(action) == label:
            return i
    raise AssertionError(f"no action {rule_id or label} in {[str(a) for a, _ in actions]}")


class TestBundledCatalog:
    """Tests for the catalog shipped with the package."""

    def setup_method(self):
        self.catalog = Catalog.load()

    def test_categories(self):
        names = [c.name for c in self.catalog.categories]
        assert names == ["Algebra (Step by Step)", "Algebra", "Logic"]

    def test_menu_skips_missing_problems(self):
        menu = dict((c.name, problems) for c, problems in self.catalog.menu())
        assert [p.id for p in menu["Algebra"]] == [
            "algebra_simplify0", "algebra_simplify1", "algebra_simplify2",
        ]

    def test_problem(self):
        problem = self.catalog.problem("algebra1")
        assert problem.label == "Solve for x"
        assert problem.sublabel == "2x - 1 = 3"
        assert problem.rule == "algebra"
        assert problem.variables == ["x"]

    def test_unknown_problem(self):
        assert self.catalog.problem("nope") is None
        with pytest.raises(KeyError):
            self.catalog.build_worksheet("nope")

    def test_ruleset_cached(self):
        assert self.catalog.ruleset("algebra") is self.catalog.ruleset("algebra")

    def test_unknown_ruleset(self):
        with pytest.raises(KeyError):
            self.catalog.ruleset("nope")

    def test_build_worksheet(self):
        ws = self.catalog.build_worksheet("algebra3")
        assert len(ws) == 2
        assert ws.get(0).top.expression == ["=", ["+", "x", "y"], 3]
        assert ws.get(1).top.expression == ["=", ["-", "x", "y"], 1]

    def test_worksheet_context_has_variables(self):
        ws = self.catalog.build_worksheet("algebra3")
        assert set(ws.context.variables) == {"x", "y"}

    @pytest.mark.parametrize("problem_id", [
        "algebra0", "algebra1", "algebra2", "algebra3",
        "algebra_simplify0", "algebra_simplify1", "algebra_simplify2", "logic0",
    ])
    def test_every_problem_parses(self, problem_id):
        problem = self.catalog.problem(problem_id)
        ws = self.catalog.build_worksheet(problem_id)
        assert len(ws) == len(problem.initial_expressions)


class TestCatalogFiles:
    """Tests for loading catalog directories."""

    def write_catalog(self, root, problems, menu=None):
        (root / "rules").mkdir()
        (root / "rules" / "tiny.json").write_text(json.dumps({
            "name": "tiny",
            "context": {"binary_ops": ["+"], "assoc_ops": ["+"], "handle_numerics": True},
            "rules": [{"id": "add_zero", "expr": "X + 0 = X"}],
        }))
        (root / "problems.json").write_text(json.dumps(problems))
        (root / "menu.json").write_text(json.dumps(menu or [
            {"name": "Tiny", "problem_ids": list(problems)},
        ]))

    def test_unparseable_expression_skipped(self, tmp_path, caplog):
        self.write_catalog(tmp_path, {
            "p": {"label": "P", "rule": "tiny", "variables": ["x"],
                  "initial_expressions": ["x +", "x + 0"]},
        })
        catalog = Catalog.load(tmp_path)
        with caplog.at_level("WARNING", logger="equaio.catalog"):
            ws = catalog.build_worksheet("p")
        assert len(ws) == 1
        assert ws.get(0).top.expression == ["+", "x", 0]
        assert "skipping" in caplog.text

    def test_malformed_problem(self, tmp_path):
        self.write_catalog(tmp_path, {"p": {"label": "P"}})
        with pytest.raises(SchemaError):
            Catalog.load(tmp_path)

    def test_malformed_json(self, tmp_path):
        self.write_catalog(tmp_path, {})
        (tmp_path / "menu.json").write_text("[")
        with pytest.raises(SchemaError):
            Catalog.load(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Catalog.load(tmp_path / "missing")

    def test_problem_from_dict(self):
        problem = Problem.from_dict("p", {
            "label": "P", "rule": "tiny", "initial_expressions": ["x"],
        })
        assert problem.variables == []
        assert problem.sublabel is None


class TestWorkedSessions:
    """Solve bundled problems step by step through the public operations."""

    def setup_method(self):
        self.catalog = Catalog.load()

    def apply(self, ws, index, addresses, rule_id=None, label=None):
        selection = SelectionSet(addresses)
        with ws.edit(index) as seq:
            actions = seq.get_possible_actions(selection)
            seq.try_apply_action_by_index(selection, action_index(actions, rule_id, label))
        selection.clear()
        return ws.get(index)

    def test_solve_with_automatic_steps(self):
        """x + 3 = 5 with identities simplified automatically."""
        ws = self.catalog.build_worksheet("algebra_simplify0")
        seq = self.apply(ws, 0, [(0, 1)], label="Subtract 3 from both sides")
        assert seq.top.expression == ["=", "x", ["+", 5, ["-", 3]]]
        assert [line.is_auto_generated for line in seq.history] == [False, False, True, True, True]
        assert seq.history[2].action == Action.normalization()

        seq = self.apply(ws, 0, [(1,)], label="Evaluate 5 + (-3) = 2")
        assert seq.top.expression == ["=", "x", 2]
        assert len(seq) == 6

    def test_solve_step_by_step(self):
        """(2 * x) - 1 = 3 without automatic rules."""
        ws = self.catalog.build_worksheet("algebra1")
        seq = self.apply(ws, 0, [(0, 1)], label="Add 1 to both sides")
        assert seq.top.expression == ["=", ["+", ["-", ["*", 2, "x"], 1], 1], ["+", 3, 1]]

        seq = self.apply(ws, 0, [(0,)], rule_id="sub_add_cancel")
        assert seq.top.expression == ["=", ["*", 2, "x"], ["+", 3, 1]]

        seq = self.apply(ws, 0, [(1,)], label="Evaluate 3 + 1 = 4")
        seq = self.apply(ws, 0, [(0, 0)], label="Divide both sides by 2")
        assert seq.top.expression == ["=", ["/", ["*", 2, "x"], 2], ["/", 4, 2]]

        seq = self.apply(ws, 0, [(0,)], rule_id="cancel_factor")
        seq = self.apply(ws, 0, [(1,)], label="Evaluate 4 / 2 = 2")
        assert seq.top.expression == ["=", "x", 2]
        assert not any(line.is_auto_generated for line in seq.history)

    def test_simplify_expression(self):
        ws = self.catalog.build_worksheet("algebra2")
        seq = self.apply(ws, 0, [(0,), (2,)], rule_id="factor_out_right")
        assert seq.top.expression == ["+", ["*", ["+", 6, 3], "x"], ["-", 4], 1]

        seq = self.apply(ws, 0, [(0, 0)], label="Evaluate 6 + 3 = 9")
        seq = self.apply(ws, 0, [(1,), (2,)], label="Evaluate -4 + 1 = -3")
        assert seq.top.expression == ["+", ["*", 9, "x"], -3]

    def test_logic(self):
        ws = self.catalog.build_worksheet("logic0")
        seq = self.apply(ws, 0, [()], rule_id="factor_or_right")
        assert seq.top.expression == ["|", ["&", ["~", "P"], "P"], "Q"]

        seq = self.apply(ws, 0, [(0,)], rule_id="contradiction")
        assert seq.top.expression == ["|", "false", "Q"]

        seq = self.apply(ws, 0, [()], rule_id="or_false")
        assert seq.top.expression == "Q"

    def test_flattening_step_is_visible(self):
        """The normalized line reads differently from the grouped line before it."""
        ws = self.catalog.build_worksheet("algebra0")
        seq = self.apply(ws, 0, [(0, 1)], label="Subtract 3 from both sides")
        texts = [format_expression(line.expression) for line in seq.history[1:]]
        assert texts == ["(x + 3) + (-3) = 5 + (-3)", "x + 3 + (-3) = 5 + (-3)"]
        assert seq.history[2].action == Action.normalization()

    def test_rewind_and_retry(self):
        ws = self.catalog.build_worksheet("algebra0")
        self.apply(ws, 0, [(0, 1)], label="Subtract 3 from both sides")
        with ws.edit(0) as seq:
            seq.reset_to(0)
        assert ws.get(0).top.expression == ["=", ["+", "x", 3], 5]
        assert len(ws.get(0)) == 1

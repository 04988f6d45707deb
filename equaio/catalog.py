"""
Bundled problems and the rulesets they are solved with.

A catalog directory holds:

    menu.json         [{"name": "Algebra", "problem_ids": ["algebra0", ...]}, ...]
    problems.json     {"algebra0": {"label": ..., "sublabel": ..., "rule": "algebra",
                                    "variables": ["x"],
                                    "initial_expressions": ["x + 3 = 5"]}, ...}
    rules/NAME.json   one ruleset per file (see equaio.rule)

Usage:
    catalog = Catalog.load()
    ws = catalog.build_worksheet("algebra0")
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .engine import RuleEngine
from .errors import SchemaError
from .parser import parse
from .rule import RuleSet, load_ruleset
from .worksheet import Worksheet

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"


class Category:
    """A menu heading and the problems listed under it."""

    def __init__(self, name: str, problem_ids: List[str]):
        self.name = name
        self.problem_ids = list(problem_ids)

    def __repr__(self) -> str:
        return f"Category({self.name!r}, {self.problem_ids})"


class Problem:
    """One exercise: which ruleset to use and the expressions to start from."""

    def __init__(self, id: str, label: str, rule: str, variables: List[str],
                 initial_expressions: List[str], sublabel: Optional[str] = None):
        self.id = id
        self.label = label
        self.sublabel = sublabel
        self.rule = rule
        self.variables = list(variables)
        self.initial_expressions = list(initial_expressions)

    @classmethod
    def from_dict(cls, problem_id: str, data) -> 'Problem':
        where = f"problems.{problem_id}"
        if not isinstance(data, dict):
            raise SchemaError(f"{where} must be an object")
        for key in ("label", "rule"):
            if not isinstance(data.get(key), str):
                raise SchemaError(f"{where}.{key} must be a string")
        for key in ("variables", "initial_expressions"):
            value = data.get(key, [])
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise SchemaError(f"{where}.{key} must be a list of strings")
        sublabel = data.get("sublabel")
        if sublabel is not None and not isinstance(sublabel, str):
            raise SchemaError(f"{where}.sublabel must be a string")
        return cls(
            id=problem_id,
            label=data["label"],
            rule=data["rule"],
            variables=data.get("variables", []),
            initial_expressions=data.get("initial_expressions", []),
            sublabel=sublabel,
        )

    def __repr__(self) -> str:
        return f"Problem({self.id!r}, {self.label!r}, rule={self.rule!r})"


def _read_json(path: Path):
    try:
        return json.loads(path.read_text())
    except ValueError as e:
        raise SchemaError(f"{path.name} is not valid JSON: {e}") from e


class Catalog:
    """Problem menu, problem map and ruleset registry."""

    def __init__(self, categories: List[Category], problems: Dict[str, Problem],
                 rules_dir: Path):
        self._categories = list(categories)
        self._problems = dict(problems)
        self.rules_dir = Path(rules_dir)
        self._rulesets: Dict[str, RuleSet] = {}

    @classmethod
    def load(cls, directory: Optional[Union[str, Path]] = None) -> 'Catalog':
        """
        Load a catalog directory (the bundled data by default).

        Raises:
            SchemaError: If menu.json or problems.json is malformed
            FileNotFoundError: If either file is missing
        """
        directory = Path(directory) if directory is not None else DATA_DIR

        menu = _read_json(directory / "menu.json")
        if not isinstance(menu, list):
            raise SchemaError("menu.json must be a list")
        categories = []
        for i, entry in enumerate(menu):
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                raise SchemaError(f"menu[{i}] must be an object with a name")
            categories.append(Category(entry["name"], entry.get("problem_ids", [])))

        raw_problems = _read_json(directory / "problems.json")
        if not isinstance(raw_problems, dict):
            raise SchemaError("problems.json must be an object")
        problems = {pid: Problem.from_dict(pid, data) for pid, data in raw_problems.items()}

        logger.debug("loaded %d categories and %d problems from %s",
                     len(categories), len(problems), directory)
        return cls(categories, problems, directory / "rules")

    @property
    def categories(self) -> List[Category]:
        return list(self._categories)

    def menu(self) -> List[Tuple[Category, List[Problem]]]:
        """Each category with its problems; ids missing from the problem map are left out."""
        return [(category, [self._problems[pid] for pid in category.problem_ids
                            if pid in self._problems])
                for category in self._categories]

    def problem(self, problem_id: str) -> Optional[Problem]:
        return self._problems.get(problem_id)

    def problem_ids(self) -> List[str]:
        return list(self._problems)

    def ruleset(self, name: str) -> RuleSet:
        """
        The ruleset stored as rules/NAME.json, loaded once and cached.

        Raises:
            KeyError: If there is no such ruleset
            SchemaError: If the file is malformed
        """
        if name not in self._rulesets:
            path = self.rules_dir / f"{name}.json"
            if not path.is_file():
                raise KeyError(f"Unknown ruleset: {name}")
            self._rulesets[name] = load_ruleset(path)
        return self._rulesets[name]

    def build_worksheet(self, problem_id: str) -> Worksheet:
        """
        A fresh worksheet seeded with the problem's initial expressions.

        Expressions that do not parse in the problem's context are skipped.

        Raises:
            KeyError: If problem_id is unknown
        """
        problem = self.problem(problem_id)
        if problem is None:
            raise KeyError(f"Unknown problem: {problem_id}")
        ruleset = self.ruleset(problem.rule)
        context = ruleset.context.with_variables(problem.variables)
        ws = Worksheet(RuleEngine(ruleset), context)
        for text in problem.initial_expressions:
            expr = parse(text, context)
            if expr is None:
                logger.warning("skipping expression %r of problem %s: does not parse",
                               text, problem_id)
                continue
            ws.introduce(expr)
        return ws

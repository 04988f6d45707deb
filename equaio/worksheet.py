"""
Step history for one or more expressions being rewritten.

    ExpressionLine              - one step: expression, producing action, auto flag
    WorkableExpressionSequence  - the steps of one expression and the
                                  query / apply / rewind operations on them
    Worksheet                   - independent sequences, accessed by
                                  copy-modify-commit

Typical interaction:

    ws = Worksheet(engine, ctx)
    i = ws.introduce(parse("x + 3 = 5", ctx))

    seq = ws.get(i)
    actions = seq.get_possible_actions(selection)
    seq.try_apply_action_by_index(selection, 0)
    ws.store(i, seq)
    selection.clear()

Applying an action re-derives the action list from the selection passed in,
so callers must pass the same selection that produced the list they showed.
"""

import logging
import threading
from contextlib import contextmanager
from copy import deepcopy
from typing import Dict, Iterable, Iterator, List, Optional

from .engine import Action, ActionList, ActionProvider
from .errors import InvalidActionIndex, InvalidHistoryIndex, InvalidSequenceIndex
from .expression import AddressType, ExprType, ExpressionContext
from .parser import format_expression

logger = logging.getLogger(__name__)

# Upper bound on automatic lines appended after one manual step
MAX_AUTO_STEPS = 64


class ExpressionLine:
    """One step of a sequence. Immutable; the expression is copied in and out."""

    __slots__ = ('_expression', '_action', '_is_auto_generated')

    def __init__(self, expression: ExprType, action: Action, is_auto_generated: bool = False):
        self._expression = deepcopy(expression)
        self._action = action
        self._is_auto_generated = bool(is_auto_generated)

    @property
    def expression(self) -> ExprType:
        return deepcopy(self._expression)

    @property
    def action(self) -> Action:
        return self._action

    @property
    def is_auto_generated(self) -> bool:
        return self._is_auto_generated

    def __eq__(self, other):
        if isinstance(other, ExpressionLine):
            return (self._expression == other._expression
                    and self._action == other._action
                    and self._is_auto_generated == other._is_auto_generated)
        return False

    def __hash__(self):
        return hash((repr(self._expression), self._action, self._is_auto_generated))

    def __repr__(self) -> str:
        flag = " (auto)" if self._is_auto_generated else ""
        return f"{self._action}: {format_expression(self._expression)}{flag}"

    def to_dict(self) -> Dict:
        return {
            "expression": self.expression,
            "action": self._action.to_dict(),
            "is_auto_generated": self._is_auto_generated,
        }


class WorkableExpressionSequence:
    """
    The full step history of one expression.

    The history is never empty and its first line is never auto-generated.
    Readers get copies; only the methods below change it.
    """

    def __init__(self, history: List[ExpressionLine], provider: ActionProvider,
                 context: ExpressionContext):
        if not history:
            raise ValueError("a sequence needs at least one line")
        if history[0].is_auto_generated:
            raise ValueError("the first line of a sequence cannot be auto-generated")
        self._history = list(history)
        self.provider = provider
        self.context = context

    @classmethod
    def introduce(cls, expr: ExprType, provider: ActionProvider,
                  context: ExpressionContext) -> 'WorkableExpressionSequence':
        """Start a sequence whose only line is expr."""
        return cls([ExpressionLine(expr, Action.initial(), False)], provider, context)

    @property
    def history(self) -> List[ExpressionLine]:
        return list(self._history)

    @property
    def top(self) -> ExpressionLine:
        """The current (last) line."""
        return self._history[-1]

    def __len__(self) -> int:
        return len(self._history)

    def __iter__(self) -> Iterator[ExpressionLine]:
        return iter(list(self._history))

    def __repr__(self) -> str:
        return f"WorkableExpressionSequence({len(self._history)} lines, top={self.top!r})"

    def copy(self) -> 'WorkableExpressionSequence':
        return WorkableExpressionSequence(self._history, self.provider, self.context)

    def get_possible_actions(self, selection: Iterable[AddressType]) -> ActionList:
        """
        Actions the provider offers for the top expression and selection.

        Returned in the provider's order, unmodified.
        """
        return self.provider.get_possible_actions(self.top.expression, self.context, list(selection))

    def try_apply_action_by_index(self, selection: Iterable[AddressType], index: int) -> ExpressionLine:
        """
        Apply the index-th possible action for selection.

        Appends the resulting manual line, then any automatic follow-up lines.
        Nothing is appended unless every follow-up line could be computed.

        Returns:
            The appended manual line

        Raises:
            InvalidActionIndex: If index is out of range; history is unchanged
        """
        actions = self.get_possible_actions(selection)
        if index < 0 or index >= len(actions):
            raise InvalidActionIndex(index, len(actions))
        action, result = actions[index]
        logger.info("applying action %d: %s", index, action)
        line = ExpressionLine(result, action, False)
        follow_ups = self._automatic_lines(result)
        self._history.append(line)
        self._history.extend(follow_ups)
        return line

    def _automatic_lines(self, top: ExprType) -> List[ExpressionLine]:
        """Automatic lines that follow top, computed without touching history."""
        lines = []
        for _ in range(MAX_AUTO_STEPS):
            normalized = self.provider.normalize(top, self.context)
            if normalized != top:
                lines.append(ExpressionLine(normalized, Action.normalization(), True))
                top = normalized
                continue
            step = self.provider.get_auto_action(top, self.context)
            if step is None:
                return lines
            action, result = step
            logger.debug("automatic step: %s", action)
            lines.append(ExpressionLine(result, action, True))
            top = result
        logger.warning("stopped after %d automatic steps", MAX_AUTO_STEPS)
        return lines

    def reset_to(self, index: int) -> None:
        """
        Rewind history so that line index becomes the top line.

        Later lines are discarded. Clear any live selection afterwards.

        Raises:
            InvalidHistoryIndex: If index is out of range; history is unchanged
        """
        if index < 0 or index >= len(self._history):
            raise InvalidHistoryIndex(index, len(self._history))
        logger.info("resetting sequence to line %d of %d", index, len(self._history))
        del self._history[index + 1:]


class Worksheet:
    """
    Ordered, independent sequences for one session.

    Slots are read and written whole: ``get`` hands out a copy, ``store``
    replaces the slot. ``edit`` wraps that cycle in a per-slot lock for
    hosts that serve several callers at once.
    """

    def __init__(self, provider: ActionProvider, context: ExpressionContext):
        self.provider = provider
        self.context = context
        self._sequences: List[WorkableExpressionSequence] = []
        self._slot_locks: List[threading.Lock] = []
        self._lock = threading.Lock()

    def introduce(self, expr: ExprType) -> int:
        """Append a new single-line sequence for expr and return its index."""
        seq = WorkableExpressionSequence.introduce(expr, self.provider, self.context)
        with self._lock:
            self._sequences.append(seq)
            self._slot_locks.append(threading.Lock())
            index = len(self._sequences) - 1
        logger.info("introduced sequence %d: %s", index, format_expression(expr))
        return index

    def get(self, index: int) -> Optional[WorkableExpressionSequence]:
        """A copy of the sequence at index, or None if index is out of range."""
        with self._lock:
            if index < 0 or index >= len(self._sequences):
                return None
            return self._sequences[index].copy()

    def store(self, index: int, seq: WorkableExpressionSequence) -> None:
        """
        Replace the sequence at index.

        Raises:
            InvalidSequenceIndex: If index is out of range
        """
        with self._lock:
            if index < 0 or index >= len(self._sequences):
                raise InvalidSequenceIndex(index, len(self._sequences))
            self._sequences[index] = seq.copy()

    @contextmanager
    def edit(self, index: int) -> Iterator[WorkableExpressionSequence]:
        """
        get -> modify -> store under the slot's lock.

        The sequence is stored only if the block exits normally:

            with ws.edit(0) as seq:
                seq.try_apply_action_by_index(selection, 2)
        """
        with self._lock:
            if index < 0 or index >= len(self._slot_locks):
                raise InvalidSequenceIndex(index, len(self._slot_locks))
            slot_lock = self._slot_locks[index]
        with slot_lock:
            seq = self.get(index)
            yield seq
            self.store(index, seq)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sequences)

    def __repr__(self) -> str:
        return f"Worksheet({len(self)} sequences)"

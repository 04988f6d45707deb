"""
Grouping of a sequence's history for collapsed display.

Each group is one manual step followed by the automatic steps that came
after it:

    [L0 manual, L1 auto, L2 auto, L3 manual, L4 manual]
        -> [L0, L1, L2] @0,  [L3] @3,  [L4] @4

Concatenating the groups in order gives back the history exactly.
"""

from typing import Dict, Iterable, List

from .worksheet import ExpressionLine


class GroupedHistory:
    """A contiguous slice of history; anchor_index is the position of its first line."""

    __slots__ = ('lines', 'anchor_index')

    def __init__(self, lines: List[ExpressionLine], anchor_index: int):
        if not lines:
            raise ValueError("a history group cannot be empty")
        self.lines = list(lines)
        self.anchor_index = anchor_index

    @property
    def head(self) -> ExpressionLine:
        return self.lines[0]

    @property
    def last(self) -> ExpressionLine:
        """The line shown when the group is collapsed."""
        return self.lines[-1]

    @property
    def has_manual_head(self) -> bool:
        return not self.lines[0].is_auto_generated

    @property
    def last_index(self) -> int:
        return self.anchor_index + len(self.lines) - 1

    def __len__(self) -> int:
        return len(self.lines)

    def __eq__(self, other):
        if isinstance(other, GroupedHistory):
            return self.lines == other.lines and self.anchor_index == other.anchor_index
        return False

    def __repr__(self) -> str:
        return f"GroupedHistory(@{self.anchor_index}, {len(self.lines)} lines)"

    def to_dict(self) -> Dict:
        return {
            "anchor_index": self.anchor_index,
            "lines": [line.to_dict() for line in self.lines],
        }


def group_history(history: Iterable[ExpressionLine]) -> List[GroupedHistory]:
    """
    Split history into manual-step groups.

    A manual line closes the current group and starts a new one; automatic
    lines join the current group. Automatic lines before the first manual
    line form a group of their own, anchored at its first line.
    """
    groups = []
    buffer: List[ExpressionLine] = []
    anchor = 0
    for i, line in enumerate(history):
        if line.is_auto_generated:
            if not buffer:
                anchor = i
            buffer.append(line)
        else:
            if buffer:
                groups.append(GroupedHistory(buffer, anchor))
            buffer = [line]
            anchor = i
    if buffer:
        groups.append(GroupedHistory(buffer, anchor))
    return groups

"""
The learner's current multi-selection of sub-terms.

A SelectionSet is an ordered, duplicate-free list of addresses on the
current (last) line of a sequence. It is toggled one address at a time:

    selection = SelectionSet()
    selection.toggle((0, 1), True)    # select
    selection.toggle((0, 1), True)    # no-op, already selected
    selection.toggle((0, 1), False)   # deselect

Addresses belong to one expression. Clear the selection whenever the
sequence it refers to is applied to or rewound.
"""

from typing import Iterable, Iterator, List, Optional

from .expression import AddressType


class SelectionSet:
    """Ordered set of addresses."""

    __slots__ = ('_addresses',)

    def __init__(self, addresses: Optional[Iterable[AddressType]] = None):
        self._addresses: List[AddressType] = []
        for address in addresses or ():
            self.toggle(address, True)

    def toggle(self, address: Iterable[int], present: bool) -> None:
        """
        Make address present or absent.

        Args:
            address: The address to add or remove
            present: True to select (appended if absent), False to deselect
        """
        address = tuple(address)
        if present:
            if address not in self._addresses:
                self._addresses.append(address)
        else:
            self._addresses = [a for a in self._addresses if a != address]

    def contains(self, address: Iterable[int]) -> bool:
        return tuple(address) in self._addresses

    def clear(self) -> None:
        self._addresses = []

    @property
    def addresses(self) -> List[AddressType]:
        """Selected addresses in selection order (a copy)."""
        return list(self._addresses)

    def copy(self) -> 'SelectionSet':
        return SelectionSet(self._addresses)

    def __contains__(self, address) -> bool:
        return self.contains(address)

    def __iter__(self) -> Iterator[AddressType]:
        return iter(list(self._addresses))

    def __len__(self) -> int:
        return len(self._addresses)

    def __bool__(self) -> bool:
        return len(self._addresses) > 0

    def __eq__(self, other):
        if isinstance(other, SelectionSet):
            return self._addresses == other._addresses
        return False

    def __repr__(self) -> str:
        return f"SelectionSet({self._addresses})"

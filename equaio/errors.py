"""Exceptions raised by equaio. Every failure leaves the state it touched unchanged."""


class EquaioError(Exception):
    """Base class for equaio errors."""


class SchemaError(EquaioError, ValueError):
    """A ruleset description is malformed."""


class InvalidIndexError(EquaioError, IndexError):
    """The caller supplied an index outside the valid range."""

    what = "index"

    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        if length == 0:
            message = f"{self.what} {index} out of range (none available)"
        else:
            message = f"{self.what} {index} out of range (0..{length - 1})"
        super().__init__(message)


class InvalidActionIndex(InvalidIndexError):
    what = "action index"


class InvalidHistoryIndex(InvalidIndexError):
    what = "history index"


class InvalidSequenceIndex(InvalidIndexError):
    what = "sequence index"

"""
Position value type.

A Position is an immutable, non-empty sequence of base-62 digits. Positions
compare digit by digit; when one is a strict prefix of the other, the shorter
one sorts first. This matches byte-order comparison of the canonical text, so
``Position('V') < Position('V0') < Position('W')`` just as ``'V' < 'V0' < 'W'``.
"""

from functools import total_ordering
from typing import Iterable, Tuple, Union

import base62


@total_ordering
class Position:
    """An ordered sort key for one item of a collection."""

    __slots__ = ("_digits", "_text")

    def __init__(self, digits: Iterable[int]):
        digits = tuple(digits)
        # encode() validates range and non-emptiness
        text = base62.encode(digits)
        object.__setattr__(self, "_digits", digits)
        object.__setattr__(self, "_text", text)

    @classmethod
    def parse(cls, text: str) -> "Position":
        """Build a Position from stored text, validating every character."""
        return cls(base62.decode(text))

    @classmethod
    def from_digits(cls, digits: Iterable[int]) -> "Position":
        return cls(digits)

    @classmethod
    def coerce(cls, value: Union["Position", str]) -> "Position":
        """Accept either a Position or its text form."""
        if isinstance(value, Position):
            return value
        return cls.parse(value)

    @property
    def digits(self) -> Tuple[int, ...]:
        return self._digits

    @property
    def text(self) -> str:
        return self._text

    def __setattr__(self, name, value):
        raise AttributeError("Position is immutable")

    def __delattr__(self, name):
        raise AttributeError("Position is immutable")

    def __len__(self):
        return len(self._digits)

    def __str__(self):
        return self._text

    def __repr__(self):
        return f"Position({self._text!r})"

    def __eq__(self, other):
        if not isinstance(other, Position):
            return NotImplemented
        return self._digits == other._digits

    def __lt__(self, other):
        if not isinstance(other, Position):
            return NotImplemented
        # Tuple comparison puts a strict prefix before the longer sequence
        return self._digits < other._digits

    def __hash__(self):
        return hash(self._digits)

    def __reduce__(self):
        return (Position, (self._digits,))


def compare(a: Position, b: Position) -> int:
    """Three-way comparison: -1 if a < b, 0 if equal, 1 if a > b."""
    if a == b:
        return 0
    return -1 if a < b else 1

"""
Fractional Indexing for CRDT-compatible list ordering.

Uses base-62 strings (0-9, A-Z, a-z) with lexicographic ordering to allow
insertions between any two positions without renumbering existing items.

Requires COLLATE "C" on the database column to ensure byte-order sorting,
which gives predictable order: 0-9 < A-Z < a-z.

The engine is pure: every function here is a deterministic function of its
arguments and performs no I/O. Reading the current boundaries of a collection
and writing new positions back is the job of ``database.PositionStore``.
"""

import logging
from typing import Hashable, List, Optional, Sequence, Tuple, Union

from base62 import BASE, MAX_DIGIT, MIDPOINT, PositionError
from position import Position

logger = logging.getLogger(__name__)

PositionLike = Union[Position, str]

# Padding used past the end of a bound, and for an absent bound
_BELOW = -1  # below digit 0, like an exhausted or missing low bound
_ABOVE = BASE  # above digit 61, like a missing high bound

FIRST = Position((MIDPOINT,))  # 'V'


class InvalidRange(PositionError):
    """Raised when no position can be placed between the requested bounds."""

    def __init__(self, low, high, reason=None):
        self.low = low
        self.high = high
        message = f"Invalid ordering: low='{low}' must be < high='{high}'"
        if reason:
            message = f"No position fits between low='{low}' and high='{high}': {reason}"
        super().__init__(message)


def first() -> Position:
    """
    Position for the first item of an empty collection.

    Always the middle symbol 'V', which leaves the same room before and after.
    """
    return FIRST


def after(position: PositionLike) -> Position:
    """
    Generate a position after the given one, with no upper bound.

    Examples:
        >>> str(after('V'))
        'k'
        >>> str(after('z'))
        'zV'
    """
    return between(position, None)


def before(position: PositionLike) -> Position:
    """
    Generate a position before the given one, with no lower bound.

    Examples:
        >>> str(before('V'))
        'F'
        >>> str(before('1'))
        '0V'

    Raises:
        InvalidRange: If nothing sorts below the position (e.g. '0')
    """
    return between(None, position)


def between(low: Optional[PositionLike], high: Optional[PositionLike]) -> Position:
    """
    Generate a position strictly between two positions.

    Either bound may be None, meaning the list is open on that side. The result
    is the shortest digit sequence that fits, and is the same for the same inputs.

    The midpoint is the floor of the two digit values. before('V') is digit 15
    and between('A', 'Z') is digit 22, which in 0-9A-Za-z are the symbols 'F'
    and 'M'. Older write-ups of these cases name the symbols 'B' and 'N'; those
    letters do not match the digit values and are not what this returns.

    Examples:
        >>> str(between(None, None))
        'V'
        >>> str(between('A', 'Z'))
        'M'
        >>> str(between('V', 'W'))
        'VV'

    Raises:
        InvalidRange: If low >= high, or if no digit sequence fits between them
        InvalidSymbol, EmptyInput: If a bound given as text is malformed
    """
    lo = Position.coerce(low) if low is not None else None
    hi = Position.coerce(high) if high is not None else None

    if lo is None and hi is None:
        return FIRST

    if lo is not None and hi is not None and lo >= hi:
        raise InvalidRange(lo, hi)

    result = _bisect(
        lo.digits if lo is not None else None,
        hi.digits if hi is not None else None,
    )
    if result is None:
        raise InvalidRange(lo, hi, reason="the gap between them is empty")

    position = Position(result)
    logger.debug(f"between({lo}, {hi}) -> {position}")
    return position


def _bisect(lo: Optional[Tuple[int, ...]], hi: Optional[Tuple[int, ...]]) -> Optional[List[int]]:
    """
    Digit-wise bisection with precision growth.

    Works index by index over a small frontier of candidate prefixes. Each
    candidate remembers whether it still equals the low bound's prefix
    (``tight_lo``) and whether it still equals the high bound's prefix
    (``tight_hi``); a bound that is no longer tight stops constraining the
    digits that follow. The first index at which some candidate can be
    finished by a single separating digit gives the shortest result.

    Returns None when the bounds leave no room at any length.
    """
    frontier = [((), True, True)]

    while frontier:
        next_frontier = []
        for prefix, tight_lo, tight_hi in frontier:
            index = len(prefix)

            if tight_hi and hi is not None and index >= len(hi):
                # prefix equals high, so every extension sorts after it
                continue

            low_digit = _BELOW
            if tight_lo and lo is not None and index < len(lo):
                low_digit = lo[index]
            high_digit = _ABOVE
            if tight_hi and hi is not None:
                high_digit = hi[index]

            # high's own digit may finish the result when high continues past it
            high_is_longer = tight_hi and hi is not None and index < len(hi) - 1
            lowest = max(low_digit + 1, 1)  # a final 0 would leave no room below
            highest = high_digit if high_is_longer else high_digit - 1
            highest = min(highest, MAX_DIGIT)

            if lowest <= highest:
                if low_digit == _BELOW and high_digit == _ABOVE:
                    digit = MIDPOINT
                else:
                    digit = min(max((low_digit + high_digit) // 2, lowest), highest)
                return list(prefix) + [digit]

            # No separating digit at this precision: extend along the bounds
            if low_digit != _BELOW:
                next_frontier.append(
                    (prefix + (low_digit,), True, tight_hi and low_digit == high_digit)
                )
            if tight_hi and low_digit < high_digit < _ABOVE:
                next_frontier.append((prefix + (high_digit,), False, True))
            if low_digit + 1 < high_digit and low_digit + 1 <= MAX_DIGIT:
                # only digit 0 lies strictly between, and it cannot end a position
                next_frontier.append((prefix + (low_digit + 1,), False, False))

        frontier = next_frontier

    return None


def key_length_for(count: int) -> int:
    """
    Shortest key length that spaces ``count`` positions with free room at both ends.

    Keys of length L whose last digit is non-zero number 61 * 62**(L-1); the
    smallest and largest of them are never assigned.
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    length = 1
    while _capacity(length) < count + 2:
        length += 1
    return length


def _capacity(length: int) -> int:
    return MAX_DIGIT * BASE ** (length - 1)


def _slot_to_digits(slot: int, length: int) -> List[int]:
    # Last digit runs 1..61, the others 0..61, so every slot is a usable key
    slot, last = divmod(slot, MAX_DIGIT)
    digits = [last + 1]
    for _ in range(length - 1):
        slot, digit = divmod(slot, BASE)
        digits.append(digit)
    digits.reverse()
    return digits


def rebalanced_positions(count: int) -> List[Position]:
    """
    Generate ``count`` evenly spaced positions of minimal equal length.

    Examples:
        >>> [str(p) for p in rebalanced_positions(3)]
        ['G', 'V', 'k']
    """
    if count == 0:
        return []
    length = key_length_for(count)
    capacity = _capacity(length)
    positions = [
        Position(_slot_to_digits(((index + 1) * capacity) // (count + 1), length))
        for index in range(count)
    ]
    logger.debug(f"Generated {count} rebalanced positions of length {length}")
    return positions


def rebalance(
    entries: Sequence[Tuple[Hashable, PositionLike]]
) -> List[Tuple[Hashable, Position]]:
    """
    Assign fresh, evenly spaced positions to an already ordered collection.

    Args:
        entries: (item_id, position) pairs sorted by current position

    Returns:
        (item_id, new_position) pairs in the same order. The new positions do
        not depend on the old ones, only on how many entries there are.
    """
    # Stored text is validated even though the old values are not reused
    entries = [(item_id, Position.coerce(position)) for item_id, position in entries]
    if not entries:
        return []
    positions = rebalanced_positions(len(entries))
    return [(item_id, new_position) for (item_id, _), new_position in zip(entries, positions)]

"""
Base-62 digit codec for lexicographic positions.

Positions are stored as text made of the symbols 0-9, A-Z, a-z. The symbols
are ordered by their ASCII byte value (0-9 = 48-57, A-Z = 65-90, a-z = 97-122),
so a plain byte comparison of two stored strings (COLLATE "C" in PostgreSQL)
agrees with the comparison of their digit values.
"""

from typing import Iterable, Tuple

# Base-62 alphabet: digits, uppercase, lowercase (requires COLLATE "C" in PostgreSQL)
ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
BASE = len(ALPHABET)  # 62
MIN_DIGIT = 0
MAX_DIGIT = BASE - 1  # 61, which is 'z'
MIDPOINT = BASE // 2  # 31, which is 'V'

_DIGIT_FOR_CHAR = {char: digit for digit, char in enumerate(ALPHABET)}


class PositionError(ValueError):
    """Base class for every error raised while handling positions."""


class InvalidSymbol(PositionError):
    """Raised when position text contains a character outside the alphabet."""

    def __init__(self, text, index):
        self.text = text
        self.index = index
        self.symbol = text[index]
        super().__init__(
            f"Invalid position '{text}': character {self.symbol!r} at index {index} "
            f"is not a base-62 symbol (0-9, A-Z, a-z)"
        )


class EmptyInput(PositionError):
    """Raised when an empty string is presented as a position."""

    def __init__(self):
        super().__init__("Invalid position: a position needs at least one character")


def verify_alphabet(alphabet: str = ALPHABET) -> None:
    """
    Check that symbol order matches digit order.

    Raises:
        RuntimeError: If a symbol repeats or the symbols are not strictly
            increasing by code point.
    """
    if len(set(alphabet)) != len(alphabet):
        raise RuntimeError("Position alphabet contains duplicate symbols")
    for digit in range(1, len(alphabet)):
        if ord(alphabet[digit - 1]) >= ord(alphabet[digit]):
            raise RuntimeError(
                f"Position alphabet is not in byte order at digit {digit}: "
                f"{alphabet[digit - 1]!r} >= {alphabet[digit]!r}"
            )


def char_to_digit(char: str) -> int:
    """Convert alphabet character to integer (0-61)."""
    if not isinstance(char, str) or len(char) != 1:
        raise ValueError(f"Expected a single character, got {char!r}")
    try:
        return _DIGIT_FOR_CHAR[char]
    except KeyError:
        raise InvalidSymbol(char, 0) from None


def digit_to_char(digit: int) -> str:
    """Convert integer (0-61) to alphabet character."""
    if not MIN_DIGIT <= digit <= MAX_DIGIT:
        raise ValueError(f"Digit must be between {MIN_DIGIT} and {MAX_DIGIT}, got {digit}")
    return ALPHABET[digit]


def decode(text: str) -> Tuple[int, ...]:
    """
    Decode position text into its digit sequence.

    Examples:
        >>> decode('V')
        (31,)
        >>> decode('0Az')
        (0, 10, 61)

    Raises:
        TypeError: If text is not a string
        EmptyInput: If text is empty
        InvalidSymbol: If text contains a character outside the alphabet
    """
    if not isinstance(text, str):
        raise TypeError(f"Position text must be a string, got {type(text).__name__}")
    if not text:
        raise EmptyInput()

    digits = []
    for index, char in enumerate(text):
        digit = _DIGIT_FOR_CHAR.get(char)
        if digit is None:
            raise InvalidSymbol(text, index)
        digits.append(digit)
    return tuple(digits)


def encode(digits: Iterable[int]) -> str:
    """Encode a non-empty digit sequence as position text."""
    digits = tuple(digits)
    if not digits:
        raise EmptyInput()
    return "".join(digit_to_char(digit) for digit in digits)


def is_valid(text) -> bool:
    """Check if a string is valid position text."""
    if not text or not isinstance(text, str):
        return False
    return all(char in _DIGIT_FOR_CHAR for char in text)


verify_alphabet()

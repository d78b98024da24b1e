"""Fixed mapping between digits 0-9 and 7-segment LED patterns.

Segment order (wire order of every pattern in this package)::

     ---0---
    |       |
    1       2
    |       |
     ---3---
    |       |
    4       5
    |       |
     ---6---

0 top, 1 upper-left, 2 upper-right, 3 middle, 4 lower-left, 5 lower-right,
6 bottom.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from typing import Final

from .errors import InvalidDigit, InvalidPatternLength, UnknownPattern

SegmentPattern = tuple[int, ...]

N_SEGMENTS: Final[int] = 7
N_DIGITS: Final[int] = 10

SEGMENTS: Final[tuple[str, ...]] = (
    "top",
    "upper_left",
    "upper_right",
    "middle",
    "lower_left",
    "lower_right",
    "bottom",
)

# Indexed by digit; the table is a bijection.
_CANONICAL: Final[tuple[SegmentPattern, ...]] = (
    (1, 1, 1, 0, 1, 1, 1),
    (0, 0, 1, 0, 0, 1, 0),
    (1, 0, 1, 1, 1, 0, 1),
    (1, 0, 1, 1, 0, 1, 1),
    (0, 1, 1, 1, 0, 1, 0),
    (1, 1, 0, 1, 0, 1, 1),
    (1, 1, 0, 1, 1, 1, 1),
    (1, 0, 1, 0, 0, 1, 0),
    (1, 1, 1, 1, 1, 1, 1),
    (1, 1, 1, 1, 0, 1, 1),
)


def encode(digit: int) -> SegmentPattern:
    if isinstance(digit, bool) or not isinstance(digit, int):
        raise InvalidDigit(f"digit must be an int, got {type(digit).__name__}")
    if not (0 <= digit < N_DIGITS):
        raise InvalidDigit(f"digit out of range: {digit}")
    return _CANONICAL[digit]


def decode(pattern: Sequence[int]) -> int:
    check_length(pattern)
    values = tuple(pattern)
    # Segment bits are plain ints; bool, float and str never match
    if any(type(v) is not int for v in values):
        raise UnknownPattern(f"segment values must be 0 or 1 integers, got {list(values)}")
    for digit, canonical in enumerate(_CANONICAL):
        if values == canonical:
            return digit
    raise UnknownPattern(f"no digit displays pattern {list(values)}")


def check_length(pattern: Sequence[object]) -> None:
    """Raise InvalidPatternLength unless `pattern` has exactly one value per segment."""
    n = len(pattern)
    if n != N_SEGMENTS:
        raise InvalidPatternLength(f"expected {N_SEGMENTS} segment values, got {n}")


def lit_segments(pattern: Sequence[int]) -> tuple[str, ...]:
    check_length(pattern)
    return tuple(name for name, v in zip(SEGMENTS, pattern, strict=True) if v == 1)


def canonical_patterns() -> tuple[SegmentPattern, ...]:
    return _CANONICAL


def codec_signature() -> str:
    raw = ";".join("".join(str(b) for b in p) for p in _CANONICAL)
    return "v1/" + hashlib.sha256(raw.encode("ascii")).hexdigest()[:16]

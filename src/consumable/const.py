"""
General use constants.
"""

from __future__ import annotations
from typing import Final

DECIMAL: Final[frozenset[str]] = frozenset({"0", "1", "2", "3", "4", "5", "6", "7", "8", "9"})
SIGNS: Final[frozenset[str]] = frozenset({"+", "-"})
EXPONENT_MARKERS: Final[frozenset[str]] = frozenset({"e", "E"})
DECIMAL_POINT: Final[str] = "."

MAX_SEQUENCE_ARITY: Final[int] = 10
"""The largest number of consumers `seq()` accepts."""
DEFAULT_INTEGER_BITS: Final[int] = 64
"""The width used by `unsigned_integer()` and `signed_integer()` when none is given."""

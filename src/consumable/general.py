"""
Digit and sign consumers, and the numeric parsers built from them.
"""

from __future__ import annotations
from typing import Final

import consumable.const as const
from consumable.main import (
    Source,
    Result,
    ParseFailure,
    Consumer,
    satisfy,
    char,
    seq,
    optional,
    repeat1,
    mapped,
)

# digits and signs

digit: Final[Consumer[int]] = mapped(satisfy(const.DECIMAL.__contains__, "a digit"), int)
"""Matches a single decimal digit from `0` to `9`. The data is its value."""

sign: Final[Consumer[int]] = mapped(satisfy(const.SIGNS.__contains__, "a sign"), lambda token: -1 if token == "-" else 1)
"""Matches `+` or `-`. The data is `1` or `-1`."""

_digits = repeat1(digit)
_optional_sign = optional(sign, default=1)
_fraction = seq(char(const.DECIMAL_POINT), _digits)
_exponent_marker = satisfy(const.EXPONENT_MARKERS.__contains__, "an exponent marker")

# failures

class NoDigits(ParseFailure):
    """A number was expected, but there's no digit."""
    def __init__(self, at: Source, cause: ParseFailure) -> None:
        self.cause: Final[ParseFailure] = cause
        super().__init__(at, "Expected a number, found no digits.")

class MagnitudeOverflow(ParseFailure):
    """The number doesn't fit the width of the integer."""
    def __init__(self, at: Source, text: str, bits: int) -> None:
        self.text: Final[str] = text
        self.bits: Final[int] = bits
        super().__init__(at, f"The number `{text}` doesn't fit in {bits} bits.")

class MalformedExponent(ParseFailure):
    """An exponent marker isn't followed by any digits."""
    def __init__(self, at: Source) -> None:
        super().__init__(at, "Expected the digits of the exponent.")

# integers

def _magnitude(digits: list[int]) -> int:
    magnitude = 0
    for value in digits:
        magnitude = magnitude * 10 + value
    return magnitude

def unsigned_integer(bits: int | None = const.DEFAULT_INTEGER_BITS) -> Consumer[int]:
    """
    Consumer factory.

    Greedily matches one or more digits and reads them as a base 10 number.

    `bits`: The width of the integer. Numbers above `2**bits - 1` fail with `MagnitudeOverflow`. `None` means unbounded.
    """
    upper = None if bits is None else 2**bits - 1
    def inner(source: Source) -> Result[int] | ParseFailure:
        if not (r := _digits(source)):
            return NoDigits(source, r)
        magnitude = _magnitude(r.data)
        if upper is not None and magnitude > upper:
            assert bits is not None
            return MagnitudeOverflow(source, r.text, bits)
        return r.with_data(magnitude)
    return inner

def signed_integer(bits: int | None = const.DEFAULT_INTEGER_BITS) -> Consumer[int]:
    """
    Consumer factory.

    Matches an optional sign followed by one or more digits. No sign means positive.

    `bits`: The width of the integer, in two's complement. Numbers outside of `-2**(bits-1)` to `2**(bits-1) - 1` fail with `MagnitudeOverflow`. `None` means unbounded.
    """
    bounds = None if bits is None else (-2**(bits-1), 2**(bits-1) - 1)
    def inner(source: Source) -> Result[int] | ParseFailure:
        s = _optional_sign(source)
        if not (r := _digits(s.rest)):
            return NoDigits(s.rest, r)
        value = s.data * _magnitude(r.data)
        if bounds is not None and not bounds[0] <= value <= bounds[1]:
            assert bits is not None
            return MagnitudeOverflow(source, source.src[source.pos:r.rest.pos], bits)
        return source.result(value, r.rest)
    return inner

u8: Final[Consumer[int]] = unsigned_integer(8)
u16: Final[Consumer[int]] = unsigned_integer(16)
u32: Final[Consumer[int]] = unsigned_integer(32)
u64: Final[Consumer[int]] = unsigned_integer(64)

i8: Final[Consumer[int]] = signed_integer(8)
i16: Final[Consumer[int]] = signed_integer(16)
i32: Final[Consumer[int]] = signed_integer(32)
i64: Final[Consumer[int]] = signed_integer(64)
i128: Final[Consumer[int]] = signed_integer(128)

# floats

def float_number(source: Source) -> Result[float] | ParseFailure:
    """
    Matches a decimal floating point number:
    - An optional sign.
    - One or more digits.
    - Optionally, `.` followed by one or more digits. A `.` without digits after it isn't consumed.
    - Optionally, `e` or `E`, an optional sign and one or more digits.

    Fails with `NoDigits` if there are no digits before the `.`, and with `MalformedExponent` if the exponent has no digits.
    """
    s = _optional_sign(source)
    if not (whole := _digits(s.rest)):
        return NoDigits(s.rest, whole)
    rest = whole.rest
    if fraction := _fraction(rest):
        rest = fraction.rest
    if marker := _exponent_marker(rest):
        exponent_sign = _optional_sign(marker.rest)
        if not (exponent := _digits(exponent_sign.rest)):
            return MalformedExponent(exponent_sign.rest)
        rest = exponent.rest
    return source.result(float(source.src[source.pos:rest.pos]), rest)

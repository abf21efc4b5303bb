"""
Library for consuming values off the start of a string with composable consumers.

See the objects for more explanations.

See the `consumable.general` module for the numeric consumers, and `consumable.composite` for building consumers for your own types.

Defining consumers:
```
def foo(source: Source) -> Result[int] | ParseFailure:
    if not (r := u32(source)):
        return r                            # fail with the inner failure
    return source.result(r.data * 2, r.rest)  # succeed, ending where `u32` ended
```

Using consumers:
```
r = consume(foo, "21 is half")

if r:
    value, rest = r     # 42, " is half"
else:
    ...                 # `r` is a `ParseFailure` object
```
"""

import consumable.const as const
import consumable.main
from consumable.main import (
    Source,
    PosNote,
    ParseFailure,
    CharMismatch,
    EndOfInput,
    NoAlternative,
    ParseError,
    Result,
    Consumer,
    ConsumerLike,
    as_consumer,
    to_source,
    consume,
    parse,
    consume_iter,
    satisfy,
    char,
    literal,
    whitespace,
    alphanumeric,
    any_char,
    end,
    nothing,
    ws0,
    ws1,
    seq,
    oneof,
    optional,
    ABSENT,
    repeat0,
    repeat1,
    mapped,
)
import consumable.general as general
from consumable.general import (
    NoDigits,
    MagnitudeOverflow,
    MalformedExponent,
    digit,
    sign,
    unsigned_integer,
    signed_integer,
    float_number,
    u8,
    u16,
    u32,
    u64,
    i8,
    i16,
    i32,
    i64,
    i128,
)
import consumable.composite as composite
from consumable.composite import (
    ValueRejected,
    RecursionLimit,
    Skip,
    Field,
    skip,
    field,
    Product,
    Variant,
    Sum,
    consumes,
    Box,
    boxed,
)

"""
The implementations of the main classes, the leaf consumers and the generic combinators.
"""

from __future__ import annotations
from typing import Any, Self, Literal, TypeVar, Generic, Final, Callable, Sequence, Protocol

from collections.abc import Iterator
import logging

import consumable.const as const

logger = logging.getLogger(__name__)


_T = TypeVar("_T")
_DataT = TypeVar("_DataT")
_DataCovT = TypeVar("_DataCovT", covariant=True)



class Source:
    """
    An immutable view over the string that's being parsed.

    Consuming never changes a `Source`. Consumers return a new `Source` further along the same string,
    so the caller can always retry the original with another consumer.

    Compares equal to a string equal to the remaining text, and hashes like it:
    ```
    assert Source("abc", 1) == "bc"
    ```

    Two sources are only equal if they are the same position of the same string, so `Source("abc", 1)` and `Source("bc")` are both equal to `"bc"` but not to each other.
    Don't mix sources with different strings and plain strings as keys of the same dict or set.
    """
    __slots__ = ("src", "pos")

    def __init__(self, src: str, pos: int = 0) -> None:
        if not 0 <= pos <= len(src):
            raise ValueError(f"Position {pos} is outside of the source.")
        self.src: Final[str] = src
        """The whole string that's being parsed."""
        self.pos: Final[int] = pos
        """The position of the first unconsumed character."""

    @property
    def rest(self) -> str:
        """The unconsumed text."""
        return self.src[self.pos:]

    def __len__(self) -> int:
        """The amount of unconsumed characters."""
        return len(self.src) - self.pos

    def __bool__(self) -> bool:
        """Whether there are any characters left to parse. The opposite of `is_eof()`"""
        return self.pos < len(self.src)

    def __str__(self) -> str:
        return self.rest

    def __repr__(self) -> str:
        return f"<Source {self.pos}: {self.rest[:20]!r}>"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return self.rest == other
        elif isinstance(other, Source):
            return self.src == other.src and self.pos == other.pos
        else:
            return NotImplemented

    def __hash__(self) -> int:
        return hash(self.rest)

    def is_eof(self) -> bool:
        """Whether the end of the input has been reached."""
        return self.pos >= len(self.src)

    def has_chars(self, amount: int) -> bool:
        """Whether there are at least that many characters left."""
        return self.pos+amount <= len(self.src)

    def peek(self, amount: int = 1) -> str | None:
        """
        Retrieves the specified amount of characters without consuming.

        If there aren't enough characters, returns `None`.
        """
        if not self.has_chars(amount):
            return None
        return self.src[self.pos:self.pos+amount]

    def startswith(self, value: str) -> bool:
        return self.src.startswith(value, self.pos)

    def advance(self, amount: int) -> Source:
        """Returns a new `Source` the specified amount of characters further along."""
        return Source(self.src, self.pos+amount)

    def result(self, data: _DataT, rest: Source | None = None, token_type: str | None = None) -> Result[_DataT]:
        """
        Creates a `Result` that starts at this position and ends at `rest`.

        If `rest` is omitted, nothing was consumed.
        """
        if rest is None:
            rest = self
        return Result(data, rest, self.pos, token_type)


def to_source(text: str | Source) -> Source:
    if isinstance(text, Source):
        return text
    return Source(text)



class PosNote:
    """
    Positioned note.

    For `ParseError`s and `ParseFailure`s.
    """
    def __init__(self, pos: int, msg: str | None = None) -> None:
        self.pos: Final[int] = pos
        self.msg: Final[str | None] = msg

    def __repr__(self) -> str:
        return f"<PosNote {self.pos}: {self.msg}>"

class ParseFailure:
    """
    When returned from a consumer, indicates that it has failed. Can be converted into a `ParseError`.

    Every consumer reports its own subclass, so callers can tell which part of the grammar failed.

    ```
    r = consumer(source)
    if r:
        ... # `r` is a `Result` object
    else:
        ... # `r` is a `ParseFailure` object
    ```
    """

    def __init__(self, at: Source, msg: str | None = None, notes: Sequence[PosNote] = ()) -> None:
        """
        `at`: The position of the failure.
        `msg`: The reason for the failure.
        `notes`: Positioned notes to add to the error. The first one is shown first.
        """
        self.at: Final[Source] = at
        self.msg: Final[str | None] = msg
        self.notes: Final[tuple[PosNote, ...]] = tuple(notes)

    @property
    def src(self) -> str:
        """The string that was being parsed."""
        return self.at.src

    @property
    def pos(self) -> int:
        return self.at.pos

    def error(self) -> ParseError:
        """Converts this to a ParseError."""
        return ParseError(self.src, self.pos, self.msg, self.notes)

    def __bool__(self) -> Literal[False]:
        return False

    def __str__(self) -> str:
        return "" if self.msg is None else self.msg

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.pos}: {self.msg}>"

class CharMismatch(ParseFailure):
    """The next character isn't the expected one."""
    def __init__(self, at: Source, expected: str) -> None:
        self.expected: Final[str] = expected
        self.actual: Final[str] = at.src[at.pos]
        super().__init__(at, f"Expected {expected}, found {self.actual!r}.")

class EndOfInput(ParseFailure):
    """The input ended where a character was expected."""
    def __init__(self, at: Source, expected: str) -> None:
        self.expected: Final[str] = expected
        super().__init__(at, f"Expected {expected}, reached the end of the input.")

class NoAlternative(ParseFailure):
    """
    None of the alternatives matched.

    Positioned where the alternatives were attempted. `failures` holds the failure of every alternative, in the order they were tried.
    """
    def __init__(self, at: Source, failures: Sequence[ParseFailure]) -> None:
        self.failures: Final[tuple[ParseFailure, ...]] = tuple(failures)
        super().__init__(
            at,
            f"None of the {len(self.failures)} alternatives matched.",
            [PosNote(failure.pos, failure.msg) for failure in self.failures],
        )

    @property
    def last(self) -> ParseFailure:
        """The failure of the last alternative that was tried."""
        return self.failures[-1]

    @property
    def furthest(self) -> ParseFailure:
        """The failure that got the furthest into the input. Ties go to the earlier alternative."""
        return max(self.failures, key=lambda failure: failure.pos)

class ParseError(Exception):
    """
    The exception that's raised when a parse can't be completed.

    Created from a `ParseFailure` using `ParseFailure.error()`.
    """

    def __init__(self, src: str, pos: int, msg: str | None = None, notes: Sequence[PosNote] = ()) -> None:
        """
        `src`: The string that was being parsed.
        `pos`: The position of the error.
        `msg`: The reason for the error.
        `notes`: Positioned notes to add to the error.
        """
        if msg is None:
            super().__init__()
        else:
            super().__init__(msg)
        self.src: str = src
        self.pos: int = pos
        self.append_pos_note(pos)
        for note in notes:
            self.append_existing_note(note)

    def append_pos_note(self, pos: int, msg: str | None = None) -> Self:
        note: list[str] = [] if msg is None else [msg]

        pos = min(pos, len(self.src))
        # should still work with CRLF
        line = self.src.count("\n", 0, pos) + 1
        column = pos - self.src.rfind("\n", 0, pos) # rfind returning -1 still gives the right column
        note.append(f"At position {pos} (line {line}, column {column})")

        # same line breaks as the line count above
        lines = self.src.split("\n")
        if len(lines) > line-1:
            line_str = lines[line-1]
            if len(line_str) >= column:
                if column <= 20:
                    note.append(f"{line_str[:40]}\n{' '*(column-1)}^")
                else:
                    note.append(f"{line_str[(column-21):(column+19)]}\n{' '*20}^")
        self.add_note("\n".join(note))
        return self

    def append_existing_note(self, note: PosNote) -> Self:
        return self.append_pos_note(note.pos, note.msg)

class Result(Generic[_DataCovT]):
    """
    When returned from a consumer, indicates that it has succeeded.

    ```
    r = consumer(source)
    if r:
        value, rest = r
    else:
        ... # failed
    ```

    When used for typing: `Result[DataType]`
    """
    def __init__(self, data: _DataCovT, rest: Source, start: int, token_type: str | None = None) -> None:
        """
        `data`: The consumed value.
        `rest`: The unconsumed part of the input.
        `start`: Where the consumed text starts.
        `token_type`: The name of the variant that matched, for sum types.
        """
        self.data: Final[_DataCovT] = data
        self.rest: Final[Source] = rest
        self.start: Final[int] = start
        self.token_type: Final[str | None] = token_type

    @property
    def pos(self) -> tuple[int, int]:
        """The position range of the consumed text."""
        return (self.start, self.rest.pos)

    @property
    def consumed(self) -> int:
        """The amount of consumed characters."""
        return self.rest.pos - self.start

    @property
    def text(self) -> str:
        """The consumed text."""
        return self.rest.src[self.start:self.rest.pos]

    def with_data(self, data: _DataT) -> Result[_DataT]:
        """Creates a copy of this result with the provided data."""
        return Result(data, self.rest, self.start, self.token_type)

    def with_type(self, token_type: str | None) -> Result[_DataCovT]:
        """Creates a copy of this result with the provided token type."""
        return Result(self.data, self.rest, self.start, token_type)

    def __iter__(self) -> Iterator[Any]:
        yield self.data
        yield self.rest

    def __bool__(self) -> Literal[True]:
        return True

    def __repr__(self) -> str:
        return (
            (
                f"<{self.start}..{self.rest.pos}>"
                if self.token_type is None else
                f"<{self.token_type} {self.start}..{self.rest.pos}>"
            )
            + " {" + repr(self.data) + "}"
        )



class Consumer(Protocol[_DataCovT]):
    """
    The protocol every consumer follows.

    Takes a `Source` and returns a `Result` holding the value and the unconsumed rest, or a `ParseFailure`.
    """
    def __call__(self, source: Source) -> Result[_DataCovT] | ParseFailure: ...

ConsumerLike = Consumer[Any] | str | type
"""
Anything `as_consumer()` accepts:
- A consumer.
- A string, which is matched literally and discarded.
- A class with a `consume` attribute of its own, such as the ones decorated with `consumable.composite.consumes()`. Inherited ones don't count.
"""

def as_consumer(consumer: ConsumerLike) -> Consumer[Any]:
    if isinstance(consumer, str):
        return literal(consumer)
    elif isinstance(consumer, type):
        # not inherited, a subclass of a sum type must not consume as its base
        consume = vars(consumer).get("consume")
        if consume is None:
            raise TypeError(f"The class `{consumer.__name__}` has no `consume` attribute of its own.")
        return consume
    elif callable(consumer):
        return consumer
    else:
        raise TypeError(f"Can't consume using {consumer!r}.")

def as_consumers(consumers: Sequence[ConsumerLike]) -> tuple[Consumer[Any], ...]:
    return tuple(as_consumer(consumer) for consumer in consumers)

def _single_or_seq(consumers: tuple[ConsumerLike, ...]) -> Consumer[Any]:
    if len(consumers) <= 0:
        raise ValueError("At least one consumer required.")
    if len(consumers) == 1:
        return as_consumer(consumers[0])
    return seq(*consumers)


def consume(consumer: ConsumerLike, text: str | Source) -> Result[Any] | ParseFailure:
    """
    Attempts to consume a value from the start of `text`.

    ```
    r = consume(u32, "42 is the answer.")
    value, rest = r     # 42, " is the answer."
    ```
    """
    return as_consumer(consumer)(to_source(text))

def parse(consumer: ConsumerLike, text: str | Source, *, complete: bool = False) -> Any:
    """
    Consumes a value from the start of `text` and returns it.

    Raises a `ParseError` if the consumer fails, or if `complete` is set and some of the input is left over.
    """
    r = consume(consumer, text)
    if r and complete and not r.rest.is_eof():
        r = CharMismatch(r.rest, "the end of the input")
    if not r:
        logger.debug("Parse failed at position %d: %s", r.pos, r.msg)
        raise r.error()
    return r.data

def consume_iter(consumer: ConsumerLike, text: str | Source) -> Iterator[Any]:
    """
    Lazily consumes values one after another until the consumer fails.

    Stops as well if the consumer matches without consuming anything.
    """
    parser = as_consumer(consumer)
    source = to_source(text)
    while (r := parser(source)) and r.rest.pos > source.pos:
        yield r.data
        source = r.rest



def satisfy(predicate: Callable[[str], bool], expected: str) -> Consumer[str]:
    """
    Consumer factory.

    Matches a single character accepted by `predicate`. The data is the character.

    `expected`: Describes the accepted characters in failure messages.
    """
    def inner(source: Source) -> Result[str] | ParseFailure:
        token = source.peek(1)
        if token is None:
            return EndOfInput(source, expected)
        if not predicate(token):
            return CharMismatch(source, expected)
        return source.result(token, source.advance(1))
    return inner

def char(value: str) -> Consumer[str]:
    """Consumer factory. Matches the given character. Case sensitive."""
    if len(value) != 1:
        raise ValueError("Expected a single character.")
    return satisfy(lambda token: token == value, repr(value))

def literal(value: str) -> Consumer[str]:
    """
    Consumer factory. Matches the given string. Case sensitive.

    Fails at the first character that doesn't match.
    """
    if not value:
        raise ValueError("Empty literals are not allowed.")
    if len(value) == 1:
        return char(value)
    def inner(source: Source) -> Result[str] | ParseFailure:
        if source.startswith(value):
            return source.result(value, source.advance(len(value)))
        for i, expected in enumerate(value):
            at = source.advance(i)
            token = at.peek(1)
            if token is None:
                return EndOfInput(at, f"{expected!r} of {value!r}")
            if token != expected:
                return CharMismatch(at, f"{expected!r} of {value!r}")
        raise AssertionError("unreachable")
    return inner

whitespace: Final[Consumer[str]] = satisfy(str.isspace, "a whitespace")
"""Matches a single character for which `str.isspace()` is true."""
alphanumeric: Final[Consumer[str]] = satisfy(str.isalnum, "an alphanumeric character")
any_char: Final[Consumer[str]] = satisfy(lambda token: True, "a character")

def end(source: Source) -> Result[None] | ParseFailure:
    """Matches the end of the input without consuming."""
    if not source.is_eof():
        return CharMismatch(source, "the end of the input")
    return source.result(None)

def nothing(source: Source) -> Result[None]:
    """Always matches without consuming."""
    return source.result(None)

def _skip_whitespace(source: Source) -> Source:
    pos = source.pos
    while pos < len(source.src) and source.src[pos].isspace():
        pos += 1
    return Source(source.src, pos)

def ws0(source: Source) -> Result[str]:
    """Matches zero or more whitespaces. The data is the matched whitespace."""
    rest = _skip_whitespace(source)
    return source.result(source.src[source.pos:rest.pos], rest)

def ws1(source: Source) -> Result[str] | ParseFailure:
    """Matches one or more whitespaces. The data is the matched whitespace."""
    if not (r := whitespace(source)):
        return r
    return ws0(source)



def seq(*consumers: ConsumerLike) -> Consumer[tuple[Any, ...]]:
    """
    Consumer factory.

    All the given consumers must match in sequence, each one starting where the previous one ended. The data is a tuple of their values.

    Fails with the failure of the first consumer that fails. The consumers after it are not attempted.

    Accepts between 2 and `const.MAX_SEQUENCE_ARITY` consumers.
    """
    if not 2 <= len(consumers) <= const.MAX_SEQUENCE_ARITY:
        raise ValueError(f"Between 2 and {const.MAX_SEQUENCE_ARITY} consumers required.")
    parsers = as_consumers(consumers)
    def inner(source: Source) -> Result[tuple[Any, ...]] | ParseFailure:
        values: list[Any] = []
        rest = source
        for parser in parsers:
            if not (r := parser(rest)):
                return r
            values.append(r.data)
            rest = r.rest
        return source.result(tuple(values), rest)
    return inner

def oneof(*consumers: ConsumerLike) -> Consumer[Any]:
    """
    Consumer factory.

    Attempts each consumer on the same input, in order, until one matches. The first match wins, even if a later one would consume more.

    If none match, fails with a `NoAlternative` holding all the failures.
    """
    if len(consumers) < 2:
        raise ValueError("At least two consumers required.")
    parsers = as_consumers(consumers)
    def inner(source: Source) -> Result[Any] | ParseFailure:
        failures: list[ParseFailure] = []
        for parser in parsers:
            if r := parser(source):
                return r
            failures.append(r)
        logger.debug("All %d alternatives failed at position %d.", len(failures), source.pos)
        return NoAlternative(source, failures)
    return inner

class _Absent:
    """The type of `ABSENT`."""
    __slots__ = ()

    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

ABSENT: Final[_Absent] = _Absent()
"""
A default for `optional()` that no consumer produces.

```
r = consume(optional(end, default=ABSENT), text)
if r.data is ABSENT:
    ... # not at the end
```
"""

def optional(*consumers: ConsumerLike, default: Any = None) -> Consumer[Any]:
    """
    Consumer factory.

    Never fails. If the consumer doesn't match, the data is `default` and nothing is consumed.

    The consumer can match with `None` as well (`end`, `nothing`). Pass `default=ABSENT` to tell the two apart.

    If multiple consumers are supplied, matches them in sequence.
    """
    parser = _single_or_seq(consumers)
    def inner(source: Source) -> Result[Any]:
        if r := parser(source):
            return r
        return source.result(default)
    return inner

def _repeat(parser: Consumer[_T], start: Source, values: list[_T], rest: Source) -> Result[list[_T]]:
    while r := parser(rest):
        # a match that consumed nothing would match forever
        if r.rest.pos == rest.pos:
            logger.debug("Repetition stopped by a zero-length match at position %d.", rest.pos)
            break
        values.append(r.data)
        rest = r.rest
    return start.result(values, rest)

def repeat0(*consumers: ConsumerLike) -> Consumer[list[Any]]:
    """
    Consumer factory.

    Repeatedly matches the given consumer until it fails. Never fails. The data is the list of values.

    A match that consumes nothing ends the repetition and isn't included.

    If multiple consumers are supplied, matches them in sequence. (All consumers must match for an iteration to be considered successful)
    """
    parser = _single_or_seq(consumers)
    def inner(source: Source) -> Result[list[Any]]:
        return _repeat(parser, source, [], source)
    return inner

def repeat1(*consumers: ConsumerLike) -> Consumer[list[Any]]:
    """
    Consumer factory.

    Repeatedly matches the given consumer until it fails. Succeeds if at least one iteration matches, otherwise fails with the failure of the first attempt.

    The first match is always included. Afterwards, a match that consumes nothing ends the repetition and isn't included.

    If multiple consumers are supplied, matches them in sequence. (All consumers must match for an iteration to be considered successful)
    """
    parser = _single_or_seq(consumers)
    def inner(source: Source) -> Result[list[Any]] | ParseFailure:
        if not (r := parser(source)):
            return r
        return _repeat(parser, source, [r.data], r.rest)
    return inner

def mapped(consumer: ConsumerLike, function: Callable[[Any], _T]) -> Consumer[_T]:
    """Consumer factory. Applies `function` to the value of the consumer."""
    parser = as_consumer(consumer)
    def inner(source: Source) -> Result[_T] | ParseFailure:
        if not (r := parser(source)):
            return r
        return r.with_data(function(r.data))
    return inner

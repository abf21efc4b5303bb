"""
Building consumers for your own types out of a list of steps.

Product types, consumed field by field:
```
@consumes("[", field("value", i32), "]")
class Encased:
    def __init__(self, value: int) -> None:
        self.value = value

consume(Encased, "[42]")    # <0..4> {Encased(42)}
```

Sum types, consumed by trying each variant in order:
```
Shape.consume = Sum(
    Variant(Circle, "circle ", field("radius", u32)),
    Variant(Square, "square ", field("side", u32)),
)
```

Recursive types wrap the recursive edge in `boxed()`:
```
Variant(Times, "*", ws1, field("left", boxed(lambda: Expression)), ...)
```
"""

from __future__ import annotations
from typing import Any, TypeVar, Generic, Final, Callable

import logging

from consumable.main import (
    Source,
    Result,
    ParseFailure,
    NoAlternative,
    Consumer,
    ConsumerLike,
    as_consumer,
    ws0,
)

logger = logging.getLogger(__name__)


_T = TypeVar("_T")



class ValueRejected(ParseFailure):
    """A step matched, but its `check` rejected the value."""
    def __init__(self, at: Source, name: str | None, value: Any) -> None:
        self.name: Final[str | None] = name
        self.value: Final[Any] = value
        if name is None:
            super().__init__(at, f"The value {value!r} was rejected.")
        else:
            super().__init__(at, f"The value {value!r} was rejected for the field `{name}`.")

class RecursionLimit(ParseFailure):
    """A recursive grammar nested deeper than Python's recursion limit allows."""
    def __init__(self, at: Source) -> None:
        super().__init__(at, "Nested too deeply.")


class Skip:
    """A step that consumes a value and discards it."""
    def __init__(self, consumer: ConsumerLike, check: Callable[[Any], bool] | None = None) -> None:
        self.consumer: Final[Consumer[Any]] = as_consumer(consumer)
        self.check: Final[Callable[[Any], bool] | None] = check

class Field(Skip):
    """A step that consumes a value and passes it to the build function as `name`."""
    def __init__(self, name: str, consumer: ConsumerLike, check: Callable[[Any], bool] | None = None) -> None:
        super().__init__(consumer, check)
        self.name: Final[str] = name

def skip(consumer: ConsumerLike, *, check: Callable[[Any], bool] | None = None) -> Skip:
    """
    A step that consumes and discards.

    `check`: If given, the value must pass it, otherwise the step fails with `ValueRejected`.
    """
    return Skip(consumer, check)

def field(name: str, consumer: ConsumerLike, *, check: Callable[[Any], bool] | None = None) -> Field:
    """
    A step that captures a value for the build function.

    `check`: If given, the value must pass it, otherwise the step fails with `ValueRejected`.
    """
    return Field(name, consumer, check)

StepLike = Skip | ConsumerLike
"""A `field()`, a `skip()`, or anything else `as_consumer()` accepts, which is discarded."""

def convert_step(step: StepLike) -> Skip:
    if isinstance(step, Skip):
        return step
    return Skip(step)



class Product(Generic[_T]):
    """
    A consumer that runs its steps in order, each one starting where the previous one ended.

    Fails with the failure of the first step that fails. Otherwise calls `build` with the captured fields as keyword arguments, in the order they were declared.

    `ignore_whitespace`: Skips whitespace between the steps.
    `ignore_outer_whitespace`: Skips whitespace before the first step and after the last one.
    """
    def __init__(
        self,
        build: Callable[..., _T],
        *steps: StepLike,
        ignore_whitespace: bool = False,
        ignore_outer_whitespace: bool = False,
    ) -> None:
        if len(steps) <= 0:
            raise ValueError("At least one step required.")
        self.build: Final[Callable[..., _T]] = build
        self.steps: Final[tuple[Skip, ...]] = tuple(convert_step(step) for step in steps)
        self.ignore_whitespace: Final[bool] = ignore_whitespace
        self.ignore_outer_whitespace: Final[bool] = ignore_outer_whitespace
        self.token_type: str | None = None
        """The `token_type` of the results. Set by `Variant`."""

        names = [step.name for step in self.steps if isinstance(step, Field)]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field names in {names}.")

    def __call__(self, source: Source) -> Result[_T] | ParseFailure:
        fields: dict[str, Any] = {}
        rest = source
        if self.ignore_outer_whitespace:
            rest = ws0(rest).rest
        for i, step in enumerate(self.steps):
            if self.ignore_whitespace and i > 0:
                rest = ws0(rest).rest
            if not (r := step.consumer(rest)):
                return r
            if step.check is not None and not step.check(r.data):
                return ValueRejected(rest, step.name if isinstance(step, Field) else None, r.data)
            if isinstance(step, Field):
                fields[step.name] = r.data
            rest = r.rest
        if self.ignore_outer_whitespace:
            rest = ws0(rest).rest
        return source.result(self.build(**fields), rest, self.token_type)

class Variant(Product[_T]):
    """
    A `Product` with a name, for use in a `Sum`.

    The name becomes the `token_type` of the result. Defaults to the name of `build`.
    """
    def __init__(
        self,
        build: Callable[..., _T],
        *steps: StepLike,
        name: str | None = None,
        ignore_whitespace: bool = False,
        ignore_outer_whitespace: bool = False,
    ) -> None:
        super().__init__(
            build,
            *steps,
            ignore_whitespace=ignore_whitespace,
            ignore_outer_whitespace=ignore_outer_whitespace,
        )
        self.name: Final[str] = name if name is not None else getattr(build, "__name__", repr(build))
        self.token_type = self.name

class Sum:
    """
    A consumer that tries its variants in order on the same input. The first one that matches wins.

    Fails with a `NoAlternative` holding the failure of every variant.
    """
    def __init__(self, *variants: Variant[Any]) -> None:
        if len(variants) <= 0:
            raise ValueError("At least one variant required.")
        self.variants: Final[tuple[Variant[Any], ...]] = variants

    def __call__(self, source: Source) -> Result[Any] | ParseFailure:
        failures: list[ParseFailure] = []
        for variant in self.variants:
            if r := variant(source):
                return r
            failures.append(r)
        logger.debug(
            "No variant of %s matched at position %d.",
            ", ".join(variant.name for variant in self.variants),
            source.pos,
        )
        return NoAlternative(source, failures)


def consumes(
    *steps: StepLike,
    ignore_whitespace: bool = False,
    ignore_outer_whitespace: bool = False,
) -> Callable[[type[_T]], type[_T]]:
    """
    Class decorator. Sets the `consume` attribute of the class to a `Product` that builds the class.

    ```
    @consumes("(", field("x", i32), ",", field("y", i32), ")", ignore_whitespace=True)
    class Point:
        def __init__(self, x: int, y: int) -> None:
            ...
    ```
    """
    def decorate(cls: type[_T]) -> type[_T]:
        setattr(cls, "consume", Product(
            cls,
            *steps,
            ignore_whitespace=ignore_whitespace,
            ignore_outer_whitespace=ignore_outer_whitespace,
        ))
        return cls
    return decorate



class Box(Generic[_T]):
    """
    Holds a single value. Used at the recursive edges of a grammar.

    Each match creates a new `Box`, so the values never form cycles.
    """
    __slots__ = ("value",)

    def __init__(self, value: _T) -> None:
        self.value: Final[_T] = value

    def unbox(self) -> _T:
        return self.value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Box):
            return self.value == other.value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"Box({self.value!r})"

def boxed(target: Callable[[], ConsumerLike]) -> Consumer[Box[Any]]:
    """
    Consumer factory for recursive grammars.

    `target` is called on every attempt to get the consumer, so it can refer to a type that isn't defined yet. The data is the value wrapped in a `Box`.

    Nesting is limited by Python's recursion limit. Each level of a `Sum` or `Product` takes about 3 frames, so the default limit of 1000 allows nesting a little over 300 deep. Deeper input fails with `RecursionLimit`, use `sys.setrecursionlimit()` to go further.

    Left recursion is not supported.
    """
    def inner(source: Source) -> Result[Box[Any]] | ParseFailure:
        try:
            r = as_consumer(target())(source)
        except RecursionError:
            return RecursionLimit(source)
        if not r:
            return r
        return r.with_data(Box(r.data))
    return inner

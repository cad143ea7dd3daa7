"""Maybe type: Present[T] | Absent for optional values."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import TYPE_CHECKING, Any, NoReturn, TypeIs

import msgspec

from monadic._partial import apply_one
from monadic.errors import AbsentValueError

if TYPE_CHECKING:
    from monadic.either import Left, Right

__all__ = [
    'Absent',
    'AbsentType',
    'Maybe',
    'Present',
    'absent',
    'choose',
    'compose_binders',
    'element_at_or_absent',
    'first_or_absent',
    'last_or_absent',
    'lift',
    'present',
    'single_or_absent',
    'when',
]


class Present[T](msgspec.Struct, frozen=True, gc=False):
    """Present variant of Maybe containing a value of type T.

    Present wraps any value, including ``None`` and zero values: presence is
    carried by the variant, never by the value.

    Examples:
        >>> Present(5).map(lambda x: x + 1).filter(lambda x: x > 3)
        Present(value=6)
        >>> Present(0) == Absent
        False
    """

    value: T

    def is_present(self) -> TypeIs[Present[T]]:
        """Return True since this is Present.

        This method provides type narrowing - after checking is_present(),
        the type checker knows the maybe is Present[T].
        """
        return True

    def is_absent(self) -> TypeIs[AbsentType]:
        """Return False since this is Present."""
        return False

    def unwrap(self) -> T:
        """Return the contained value."""
        return self.value

    def get_or_else(self, default: T) -> T:  # noqa: ARG002
        """Return the contained value, ignoring the default."""
        return self.value

    def get_or_else_lazy(self, factory: Callable[[], T]) -> T:  # noqa: ARG002
        """Return the contained value without calling the factory."""
        return self.value

    def map[U](self, f: Callable[[T], U]) -> Present[U]:
        """Apply a function to the contained value.

        Args:
            f: Function to apply to the value.

        Returns:
            Present containing f(value).
        """
        return Present(f(self.value))

    def bind[U](self, f: Callable[[T], Maybe[U]]) -> Maybe[U]:
        """Apply a Maybe-returning function to the contained value.

        Also known as flatmap. The result of f is returned as is, which
        gives the left identity law ``present(x).bind(f) == f(x)``.

        Args:
            f: Function that takes T and returns Maybe[U].

        Returns:
            The Maybe returned by f.
        """
        return f(self.value)

    def filter(self, predicate: Callable[[T], bool]) -> Maybe[T]:
        """Return self if the predicate holds, else Absent.

        Args:
            predicate: Function that returns True to keep the value.

        Returns:
            self if predicate(value) is True, else Absent.
        """
        if predicate(self.value):
            return self
        return Absent

    def fold[B](self, seed: B, f: Callable[[B, T], B]) -> B:
        """Combine the seed with the contained value.

        Args:
            seed: Initial accumulator.
            f: Function taking (accumulator, value).

        Returns:
            f(seed, value).
        """
        return f(seed, self.value)

    def zip[U, C](self, other: Maybe[U], f: Callable[[T, U], C]) -> Maybe[C]:
        """Combine with another Maybe when both are present.

        Args:
            other: The Maybe to combine with.
            f: Combiner, called once when both values exist.

        Returns:
            Present(f(value, other.value)) or Absent.
        """
        if isinstance(other, Present):
            return Present(f(self.value, other.value))
        return Absent

    def join[U, K, D](
        self,
        other: Maybe[U],
        key_of_this: Callable[[T], K],
        key_of_other: Callable[[U], K],
        combine: Callable[[T, U], D],
    ) -> Maybe[D]:
        """Combine with another Maybe when both are present and keys match.

        Args:
            other: The Maybe to correlate with.
            key_of_this: Key projection for this value.
            key_of_other: Key projection for the other value.
            combine: Result combiner.

        Returns:
            Present(combine(value, other.value)) if both are present and
            their keys compare equal, else Absent.
        """
        if isinstance(other, Present) and key_of_this(self.value) == key_of_other(other.value):
            return Present(combine(self.value, other.value))
        return Absent

    def or_else(self, _other: Maybe[T]) -> Present[T]:
        """Return self unchanged since this is Present."""
        return self

    def on_present(self, effect: Callable[[T], Any]) -> Present[T]:
        """Run a side effect with the value and return self unchanged."""
        effect(self.value)
        return self

    def apply[A, B](self: Present[Callable[[A], B]], arg: Maybe[A]) -> Maybe[B]:
        """Apply the contained function to a Maybe-wrapped argument.

        A function of several arguments takes them one apply at a time:
        each call but the last returns Present(partial).

        Args:
            arg: The argument; the result is Absent if it is Absent.

        Returns:
            Present(f(arg.value)) or Absent.
        """
        return arg.map(lambda value: apply_one(self.value, value))

    def flatten[U](self: Present[Maybe[U]]) -> Maybe[U]:
        """Flatten a nested Maybe.

        Converts Maybe[Maybe[T]] into Maybe[T].
        """
        return self.value

    def to_either[L](self, _left_value: L) -> Right[T]:
        """Convert to Either, returning Right(value)."""
        from monadic.either import Right

        return Right(self.value)


class AbsentType(msgspec.Struct, frozen=True, gc=False):
    """Absent variant of Maybe representing no value.

    Use the ``Absent`` singleton instead of instantiating directly;
    all instances compare equal.
    """

    def is_present(self) -> TypeIs[Present[Any]]:
        """Return False since this is Absent."""
        return False

    def is_absent(self) -> TypeIs[AbsentType]:
        """Return True since this is Absent.

        This method provides type narrowing - after checking is_absent(),
        the type checker knows the maybe is Absent.
        """
        return True

    def unwrap(self) -> NoReturn:
        """Raise since there is no value.

        Raises:
            AbsentValueError: Always.
        """
        raise AbsentValueError

    def get_or_else[T](self, default: T) -> T:
        """Return the default value since this is Absent."""
        return default

    def get_or_else_lazy[T](self, factory: Callable[[], T]) -> T:
        """Compute and return the fallback since this is Absent."""
        return factory()

    def map(self, _f: Callable[[Any], Any]) -> AbsentType:
        """Return Absent without calling the function."""
        return self

    def bind(self, _f: Callable[[Any], Any]) -> AbsentType:
        """Return Absent without calling the function."""
        return self

    def filter(self, _predicate: Callable[[Any], bool]) -> AbsentType:
        """Return Absent without calling the predicate."""
        return self

    def fold[B](self, seed: B, _f: Callable[[B, Any], B]) -> B:
        """Return the seed unchanged."""
        return seed

    def zip(self, _other: Maybe[Any], _f: Callable[[Any, Any], Any]) -> AbsentType:
        """Return Absent since self is Absent."""
        return self

    def join(
        self,
        _other: Maybe[Any],
        _key_of_this: Callable[[Any], Any],
        _key_of_other: Callable[[Any], Any],
        _combine: Callable[[Any, Any], Any],
    ) -> AbsentType:
        """Return Absent since self is Absent."""
        return self

    def or_else[T](self, other: Maybe[T]) -> Maybe[T]:
        """Return other since self is Absent."""
        return other

    def on_present(self, _effect: Callable[[Any], Any]) -> AbsentType:
        """Return self without running the effect."""
        return self

    def apply(self, _arg: Maybe[Any]) -> AbsentType:
        """Return Absent since there is no function to apply."""
        return self

    def flatten(self) -> AbsentType:
        """Return Absent since there is nothing to flatten."""
        return self

    def to_either[L](self, left_value: L) -> Left[L]:
        """Convert to Either, returning Left(left_value)."""
        from monadic.either import Left

        return Left(left_value)


Absent: AbsentType = AbsentType()
"""Singleton instance representing the absence of a value."""


type Maybe[T] = Present[T] | AbsentType


# ---------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------


def present[T](x: T) -> Maybe[T]:
    """Wrap a value as Present."""
    return Present(x)


def absent[T]() -> Maybe[T]:
    """Return the Absent singleton."""
    return Absent


def when[T](condition: bool, x: T) -> Maybe[T]:
    """Return Present(x) if condition holds, else Absent.

    Examples:
        >>> when(3 > 2, 'yes')
        Present(value='yes')
        >>> when(False, 'yes')
        AbsentType()
    """
    return Present(x) if condition else Absent


def lift[R](f: Callable[..., R], *maybes: Maybe[Any]) -> Maybe[R]:
    """Apply an n-ary function to Maybe-wrapped arguments.

    Args:
        f: Function taking one argument per Maybe.
        *maybes: The arguments.

    Returns:
        Present(f(*values)) if every argument is present, else Absent.
        f is not called when any argument is absent.
    """
    values: list[Any] = []
    for m in maybes:
        if isinstance(m, AbsentType):
            return Absent
        values.append(m.value)
    return Present(f(*values))


def compose_binders[A, B, C](
    f: Callable[[A], Maybe[B]], g: Callable[[B], Maybe[C]]
) -> Callable[[A], Maybe[C]]:
    """Compose two Maybe-returning functions left to right."""

    def composed(a: A) -> Maybe[C]:
        return f(a).bind(g)

    return composed


# ---------------------------------------------------------------------
# Collection adapters
# ---------------------------------------------------------------------


def first_or_absent[T](xs: Iterable[T], predicate: Callable[[T], bool] | None = None) -> Maybe[T]:
    """Return the first element (matching predicate, if given), or Absent."""
    for x in xs:
        if predicate is None or predicate(x):
            return Present(x)
    return Absent


def last_or_absent[T](xs: Iterable[T], predicate: Callable[[T], bool] | None = None) -> Maybe[T]:
    """Return the last element (matching predicate, if given), or Absent."""
    found: Maybe[T] = Absent
    for x in xs:
        if predicate is None or predicate(x):
            found = Present(x)
    return found


def single_or_absent[T](xs: Iterable[T], predicate: Callable[[T], bool] | None = None) -> Maybe[T]:
    """Return the only element (matching predicate, if given), or Absent.

    Absent is returned both when nothing qualifies and when more than one
    element qualifies.
    """
    found: Maybe[T] = Absent
    for x in xs:
        if predicate is None or predicate(x):
            if isinstance(found, Present):
                return Absent
            found = Present(x)
    return found


def element_at_or_absent[T](xs: Iterable[T], index: int) -> Maybe[T]:
    """Return the element at a zero-based index, or Absent if out of range."""
    if index < 0:
        return Absent
    if isinstance(xs, Sequence):
        return Present(xs[index]) if index < len(xs) else Absent
    return first_or_absent(itertools.islice(xs, index, index + 1))


def choose[T](xs: Iterable[T], f: Callable[[T], Maybe[T]]) -> Iterator[T]:
    """Project each element through f and yield only the present results.

    Lazy; original order is preserved.

    Examples:
        >>> list(choose([1, 2, 3, 4], lambda x: when(x % 2 == 0, x * 10)))
        [20, 40]
    """
    for x in xs:
        chosen = f(x)
        if isinstance(chosen, Present):
            yield chosen.value

"""Either type: Left[L] | Right[R] for values with two possible shapes.

Neither side is privileged: every operation comes as a left/right pair.
By convention one side may carry errors, but the type does not say which.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeIs

import msgspec

from monadic._partial import apply_one

if TYPE_CHECKING:
    from monadic.maybe import Maybe

__all__ = ['Either', 'Left', 'Right', 'left', 'right']


class Left[L](msgspec.Struct, frozen=True, gc=False):
    """Left variant of Either containing a value of type L.

    Examples:
        >>> Left(3).map_left(lambda x: x * 2).match(lambda l: l, lambda r: -1)
        6
        >>> Left(1) == Right(1)
        False
    """

    value: L

    def is_left(self) -> TypeIs[Left[L]]:
        """Return True since this is Left."""
        return True

    def is_right(self) -> TypeIs[Right[Any]]:
        """Return False since this is Left."""
        return False

    def map_left[U](self, f: Callable[[L], U]) -> Left[U]:
        """Apply a function to the left value.

        Args:
            f: Function to apply to the left value.

        Returns:
            Left containing f(value).
        """
        return Left(f(self.value))

    def map_right(self, _f: Callable[[Any], Any]) -> Left[L]:
        """Return self unchanged since this is Left."""
        return self

    def bind_left[U, R](self, f: Callable[[L], Either[U, R]]) -> Either[U, R]:
        """Apply an Either-returning function to the left value.

        Left identity: ``left(x).bind_left(f) == f(x)``.
        """
        return f(self.value)

    def bind_right(self, _f: Callable[[Any], Either[L, Any]]) -> Left[L]:
        """Return self unchanged since this is Left."""
        return self

    def fold_left[B](self, seed: B, f: Callable[[B, L], B]) -> B:
        """Return f(seed, value)."""
        return f(seed, self.value)

    def fold_right[B](self, seed: B, _f: Callable[[B, Any], B]) -> B:
        """Return the seed unchanged since this is Left."""
        return seed

    def zip_left[U, R, C](self, other: Either[U, R], f: Callable[[L, U], C]) -> Either[C, R]:
        """Combine the left values of self and other.

        If other is Right, its right value is passed through: the result
        carries *other's* right side, since self has none.

        Args:
            other: Either to combine with.
            f: Combiner for the two left values.

        Returns:
            Left(f(value, other.value)) or other's Right.
        """
        if isinstance(other, Left):
            return Left(f(self.value, other.value))
        return other

    def zip_right(self, _other: Either[Any, Any], _f: Callable[[Any, Any], Any]) -> Left[L]:
        """Return self unchanged since this is Left."""
        return self

    def join_left[U, R, K, C](
        self,
        other: Either[U, R],
        key_of_this: Callable[[L], K],
        key_of_other: Callable[[U], K],
        f: Callable[[L, U], C],
    ) -> Either[C, R | None]:
        """Combine the left values of self and other when their keys match.

        If other is Right, its right value is passed through. If both are
        Left but the keys differ, neither has a right value to carry and
        the result is Right(None).
        """
        if isinstance(other, Left):
            if key_of_this(self.value) == key_of_other(other.value):
                return Left(f(self.value, other.value))
            return Right(None)
        return other

    def join_right(
        self,
        _other: Either[Any, Any],
        _key_of_this: Callable[[Any], Any],
        _key_of_other: Callable[[Any], Any],
        _f: Callable[[Any, Any], Any],
    ) -> Left[L]:
        """Return self unchanged since this is Left."""
        return self

    def match[D](self, on_left: Callable[[L], D], _on_right: Callable[[Any], D]) -> D:
        """Eliminate the Either by calling on_left with the value."""
        return on_left(self.value)

    def do_left(self, effect: Callable[[L], Any]) -> Left[L]:
        """Run a side effect with the left value and return self."""
        effect(self.value)
        return self

    def do_right(self, _effect: Callable[[Any], Any]) -> Left[L]:
        """Return self without running the effect."""
        return self

    def apply_left[A, B, R](self: Left[Callable[[A], B]], arg: Either[A, R]) -> Either[B, R]:
        """Apply the left-held function to arg's left value.

        A function of several arguments is applied one argument per call;
        intermediate results hold a partial.
        """
        return arg.map_left(lambda value: apply_one(self.value, value))

    def apply_right(self, _arg: Either[Any, Any]) -> Left[L]:
        """Return self unchanged since there is no right-held function."""
        return self

    def left_value(self) -> Maybe[L]:
        """Return Present(value)."""
        from monadic.maybe import Present

        return Present(self.value)

    def right_value(self) -> Maybe[Any]:
        """Return Absent since this is Left."""
        from monadic.maybe import Absent

        return Absent

    def swap(self) -> Right[L]:
        """Return the value on the other side."""
        return Right(self.value)


class Right[R](msgspec.Struct, frozen=True, gc=False):
    """Right variant of Either containing a value of type R.

    Examples:
        >>> Right('e').map_left(lambda x: x * 2).match(lambda l: l, lambda r: -1)
        -1
    """

    value: R

    def is_left(self) -> TypeIs[Left[Any]]:
        """Return False since this is Right."""
        return False

    def is_right(self) -> TypeIs[Right[R]]:
        """Return True since this is Right."""
        return True

    def map_left(self, _f: Callable[[Any], Any]) -> Right[R]:
        """Return self unchanged since this is Right."""
        return self

    def map_right[U](self, f: Callable[[R], U]) -> Right[U]:
        """Apply a function to the right value.

        Args:
            f: Function to apply to the right value.

        Returns:
            Right containing f(value).
        """
        return Right(f(self.value))

    def bind_left(self, _f: Callable[[Any], Either[Any, R]]) -> Right[R]:
        """Return self unchanged since this is Right."""
        return self

    def bind_right[L, U](self, f: Callable[[R], Either[L, U]]) -> Either[L, U]:
        """Apply an Either-returning function to the right value."""
        return f(self.value)

    def fold_left[B](self, seed: B, _f: Callable[[B, Any], B]) -> B:
        """Return the seed unchanged since this is Right."""
        return seed

    def fold_right[B](self, seed: B, f: Callable[[B, R], B]) -> B:
        """Return f(seed, value)."""
        return f(seed, self.value)

    def zip_left(self, _other: Either[Any, Any], _f: Callable[[Any, Any], Any]) -> Right[R]:
        """Return self unchanged since this is Right."""
        return self

    def zip_right[L, U, C](self, other: Either[L, U], f: Callable[[R, U], C]) -> Either[L, C]:
        """Combine the right values of self and other.

        If other is Left, its left value is passed through: the result
        carries *other's* left side, since self has none.
        """
        if isinstance(other, Right):
            return Right(f(self.value, other.value))
        return other

    def join_left(
        self,
        _other: Either[Any, Any],
        _key_of_this: Callable[[Any], Any],
        _key_of_other: Callable[[Any], Any],
        _f: Callable[[Any, Any], Any],
    ) -> Right[R]:
        """Return self unchanged since this is Right."""
        return self

    def join_right[L, U, K, C](
        self,
        other: Either[L, U],
        key_of_this: Callable[[R], K],
        key_of_other: Callable[[U], K],
        f: Callable[[R, U], C],
    ) -> Either[L | None, C]:
        """Combine the right values of self and other when their keys match.

        If other is Left, its left value is passed through. If both are
        Right but the keys differ, the result is Left(None).
        """
        if isinstance(other, Right):
            if key_of_this(self.value) == key_of_other(other.value):
                return Right(f(self.value, other.value))
            return Left(None)
        return other

    def match[D](self, _on_left: Callable[[Any], D], on_right: Callable[[R], D]) -> D:
        """Eliminate the Either by calling on_right with the value."""
        return on_right(self.value)

    def do_left(self, _effect: Callable[[Any], Any]) -> Right[R]:
        """Return self without running the effect."""
        return self

    def do_right(self, effect: Callable[[R], Any]) -> Right[R]:
        """Run a side effect with the right value and return self."""
        effect(self.value)
        return self

    def apply_left(self, _arg: Either[Any, Any]) -> Right[R]:
        """Return self unchanged since there is no left-held function."""
        return self

    def apply_right[L, A, B](self: Right[Callable[[A], B]], arg: Either[L, A]) -> Either[L, B]:
        """Apply the right-held function to arg's right value, one argument per call."""
        return arg.map_right(lambda value: apply_one(self.value, value))

    def left_value(self) -> Maybe[Any]:
        """Return Absent since this is Right."""
        from monadic.maybe import Absent

        return Absent

    def right_value(self) -> Maybe[R]:
        """Return Present(value)."""
        from monadic.maybe import Present

        return Present(self.value)

    def swap(self) -> Left[R]:
        """Return the value on the other side."""
        return Left(self.value)


type Either[L, R] = Left[L] | Right[R]


def left[L, R](x: L) -> Either[L, R]:
    """Wrap a value as Left."""
    return Left(x)


def right[L, R](x: R) -> Either[L, R]:
    """Wrap a value as Right."""
    return Right(x)

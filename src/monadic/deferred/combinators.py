"""Module-level combinators over several Deferreds.

Provides applicative lifting, collection sequencing and lifted branching:

- lift: apply an n-ary function to Deferred arguments
- sequence / traverse: Deferred of a list, failing if any element fails
- if_: choose between two Deferreds on a Deferred predicate

Examples:
    >>> from monadic.deferred import Deferred, lift, sequence
    >>>
    >>> total = lift(lambda a, b, c: a + b + c, *(Deferred.from_value(n) for n in (1, 2, 3)))
    >>> total.wait()
    6
    >>> sequence([Deferred.from_value(1), Deferred.from_value(2)]).wait()
    [1, 2]
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from monadic.deferred.core import Deferred, _gather

__all__ = [
    'if_',
    'lift',
    'sequence',
    'traverse',
]


def lift[R](f: Callable[..., R], *deferreds: Deferred[Any]) -> Deferred[R]:
    """Apply an n-ary function to Deferred arguments.

    The arguments resolve independently and concurrently; f is called once
    all have completed. Faults and cancellations follow the same policy as
    Deferred.zip.

    Args:
        f: Function taking one argument per Deferred.
        *deferreds: The arguments.

    Returns:
        Deferred of f(*values).

    Examples:
        >>> lift(str.upper, Deferred.from_value('ab')).wait()
        'AB'
    """
    return _gather(deferreds).map(lambda values: f(*values))


def sequence[T](deferreds: Iterable[Deferred[T]]) -> Deferred[list[T]]:
    """Collect Deferreds into a Deferred of a list.

    Waits for every input, even after one has failed, so no fault goes
    unobserved. A single fault is propagated as is; several faults are
    propagated as an ExceptionGroup. With no faults, any cancellation
    cancels the result.

    Args:
        deferreds: The computations to collect, in order.

    Returns:
        Deferred of the list of values, in input order.

    Examples:
        >>> sequence([]).wait()
        []
    """
    return _gather(list(deferreds))


def traverse[T, U](items: Iterable[T], f: Callable[[T], Deferred[U]]) -> Deferred[list[U]]:
    """Map each item to a Deferred and collect the results.

    All computations are created up front, so hot ones run concurrently.
    An exception raised by f itself faults the result instead of
    propagating.

    Args:
        items: Items to process.
        f: Function from an item to a Deferred.

    Returns:
        Deferred of the list of results, in item order.

    Examples:
        >>> traverse([1, 2, 3], lambda n: Deferred.from_value(n * 2)).wait()
        [2, 4, 6]
    """
    deferreds: list[Deferred[U]] = []
    for item in items:
        try:
            deferreds.append(f(item))
        except Exception as exc:
            deferreds.append(Deferred.from_error(exc))
    return sequence(deferreds)


def if_[T](predicate: Deferred[bool]) -> Callable[[Deferred[T], Deferred[T]], Deferred[T]]:
    """Build a chooser between two Deferreds driven by predicate.

    Args:
        predicate: Deferred boolean.

    Returns:
        Function of (when_true, when_false) resolving to when_true's outcome
        if predicate resolves truthy, else when_false's.

    Examples:
        >>> choose = if_(Deferred.from_value(False))
        >>> choose(Deferred.from_value('a'), Deferred.from_value('b')).wait()
        'b'
    """

    def choose(when_true: Deferred[T], when_false: Deferred[T]) -> Deferred[T]:
        return predicate.bind(lambda p: when_true if p else when_false)

    return choose

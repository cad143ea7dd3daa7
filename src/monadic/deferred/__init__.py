"""Deferred computations: combinators over concurrent.futures.Future.

This module provides:
- Deferred: map/bind/filter/zip/join/apply, rescue/catch_as, and_/or_
- Outcome snapshots: Completed, Faulted, Cancelled
- lift, sequence, traverse, if_: combinators over several Deferreds

Examples:
    >>> from monadic.deferred import Deferred
    >>>
    >>> Deferred.from_value(10).map(lambda x: x * 2).filter(lambda x: x > 15).wait()
    20
"""

from monadic.deferred.combinators import if_, lift, sequence, traverse
from monadic.deferred.core import Deferred
from monadic.deferred.outcome import Cancelled, Completed, Faulted, Outcome

__all__ = [
    'Cancelled',
    'Completed',
    'Deferred',
    'Faulted',
    'Outcome',
    'if_',
    'lift',
    'sequence',
    'traverse',
]

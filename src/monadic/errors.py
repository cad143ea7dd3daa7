"""Error types for Deferred faults and Maybe unwrapping.

The rejection faults raised by Deferred.filter and Deferred.join carry a
msgspec struct form, used as the payload of their debug log events.
"""

from __future__ import annotations

from typing import Any

import msgspec

__all__ = [
    'AbsentValueError',
    'KeyMismatch',
    'KeyMismatchError',
    'OperationCancelledError',
    'PredicateRejected',
    'PredicateRejectedError',
]


class OperationCancelledError(Exception):
    """Base for cancellation-style faults.

    A Deferred that ends with one of these is *faulted*, not cancelled:
    the computation produced no acceptable value and says why.
    """

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or 'Operation cancelled')


# --- Predicate Rejection ---


class PredicateRejected(msgspec.Struct, frozen=True, gc=False):
    """A value did not pass a filter predicate - struct variant."""

    value: Any


class PredicateRejectedError(OperationCancelledError):
    """A value did not pass a filter predicate - exception variant."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Value doesn't pass predicate: {value!r}")

    def to_struct(self) -> PredicateRejected:
        """Convert to struct for encoding."""
        return PredicateRejected(self.value)


# --- Join Key Mismatch ---


class KeyMismatch(msgspec.Struct, frozen=True, gc=False):
    """Join keys compared unequal - struct variant."""

    outer_key: Any
    inner_key: Any


class KeyMismatchError(OperationCancelledError):
    """Join keys compared unequal - exception variant."""

    def __init__(self, outer_key: Any, inner_key: Any) -> None:
        self.outer_key = outer_key
        self.inner_key = inner_key
        super().__init__(f'Not equal: {outer_key!r} != {inner_key!r}')

    def to_struct(self) -> KeyMismatch:
        """Convert to struct for encoding."""
        return KeyMismatch(self.outer_key, self.inner_key)


# --- Absent Value ---


class AbsentValueError(Exception):
    """A value was demanded from Absent."""

    def __init__(self, message: str | None = None) -> None:
        self.message = message
        super().__init__(message or 'Called unwrap on Absent')

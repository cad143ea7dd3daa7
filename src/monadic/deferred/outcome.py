"""Outcome snapshots of a resolved Deferred: Completed | Faulted | Cancelled."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any

import msgspec

__all__ = ['Cancelled', 'Completed', 'Faulted', 'Outcome', 'outcome_of']


class Completed[T](msgspec.Struct, frozen=True, gc=False):
    """The computation produced a value."""

    value: T


class Faulted(msgspec.Struct, frozen=True, gc=False):
    """The computation raised; error is the exception it ended with."""

    error: BaseException


class Cancelled(msgspec.Struct, frozen=True, gc=False):
    """The computation was cancelled and will produce no outcome."""


type Outcome[T] = Completed[T] | Faulted | Cancelled


def outcome_of(future: Future[Any]) -> Outcome[Any]:
    """Snapshot a finished future.

    Args:
        future: A future for which done() is True.

    Returns:
        Cancelled, Faulted(exception) or Completed(result).
    """
    if future.cancelled():
        return Cancelled()
    error = future.exception()
    if error is not None:
        return Faulted(error)
    return Completed(future.result())

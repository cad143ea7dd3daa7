"""Deferred type: combinators over a host future.

Deferred wraps a ``concurrent.futures.Future`` and lifts the Maybe/Either
combinator vocabulary (map, bind, filter, zip, join, apply) onto it, plus
fault recovery (rescue, catch_as) and lifted booleans (and_, or_).

Every combinator returns a new pending Deferred immediately and attaches a
continuation to its source. Continuations run on whichever thread resolves
the source, or right away on the calling thread if the source is already
resolved. Exceptions raised by user callbacks inside a continuation become
faults on the output; they never escape to the caller.

Example:
    ```python
    doubled = Deferred.run(fetch_count).map(lambda x: x * 2)
    checked = doubled.filter(lambda x: x > 15)

    checked.wait()      # blocking, for scripts and tests
    await checked       # from async code
    ```
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Generator, Iterable, Sequence
from concurrent.futures import Executor, Future, InvalidStateError
from typing import TYPE_CHECKING, Any, Final

import aiologic
import anyio
import msgspec

from monadic._partial import apply_one
from monadic.deferred.outcome import Cancelled, Completed, Faulted, Outcome, outcome_of
from monadic.errors import KeyMismatchError, PredicateRejectedError
from monadic.maybe import Absent, Present
from monadic.runtime._config import get_config
from monadic.runtime._logging import get_logger
from monadic.runtime.executor import default_executor

if TYPE_CHECKING:
    from monadic.maybe import Maybe

__all__ = ['Deferred']


class _Default:
    """Marker for 'use the configured wait timeout'."""

    def __repr__(self) -> str:
        return '<configured timeout>'


_CONFIGURED: Final = _Default()


# ---------------------------------------------------------------------
# Future plumbing
# ---------------------------------------------------------------------


def _set_result(target: Future[Any], value: Any) -> None:
    try:
        target.set_result(value)
    except InvalidStateError:
        # target was cancelled by its owner while the source was running
        get_logger(__name__).debug('deferred.late_resolution', outcome='completed')


def _set_exception(target: Future[Any], error: BaseException) -> None:
    try:
        target.set_exception(error)
    except InvalidStateError:
        get_logger(__name__).debug('deferred.late_resolution', outcome='faulted', error=repr(error))


def _settle(target: Future[Any], outcome: Outcome[Any]) -> None:
    """Resolve target with the given outcome."""
    if isinstance(outcome, Cancelled):
        target.cancel()
    elif isinstance(outcome, Faulted):
        _set_exception(target, outcome.error)
    else:
        _set_result(target, outcome.value)


def _forward(source: Future[Any], target: Future[Any]) -> None:
    """Resolve target with source's outcome once source resolves."""
    source.add_done_callback(lambda f: _settle(target, outcome_of(f)))


def _combined_outcome(futures: Sequence[Future[Any]]) -> Outcome[list[Any]]:
    """Fold finished futures into one outcome.

    Faults win over cancellations. A single fault is kept as is; several
    faults are raised together as an exception group so none is lost.
    """
    outcomes = [outcome_of(f) for f in futures]
    faults = [o.error for o in outcomes if isinstance(o, Faulted)]
    if len(faults) == 1:
        return Faulted(faults[0])
    if faults:
        return Faulted(BaseExceptionGroup('multiple deferred computations faulted', faults))
    if any(isinstance(o, Cancelled) for o in outcomes):
        return Cancelled()
    return Completed([o.value for o in outcomes if isinstance(o, Completed)])


def _event_fields(error: PredicateRejectedError | KeyMismatchError) -> dict[str, Any]:
    """Log fields for a rejection, from its struct form; unencodable values become repr strings."""
    return msgspec.to_builtins(error.to_struct(), enc_hook=repr)


def _as_deferred(value: Any) -> Deferred[Any]:
    if isinstance(value, Deferred):
        return value
    if isinstance(value, Future):
        return Deferred(value)
    msg = f'Expected a Deferred or a concurrent.futures.Future, got {type(value).__name__}'
    raise TypeError(msg)


class Deferred[T]:
    """A single asynchronous value: Completed, Faulted or Cancelled.

    A Deferred is either *hot* (its work is already scheduled, e.g. via
    run() or from_value()) or *cold* (created by lazy(), scheduled on the
    first start()). Derived Deferreds remember their sources, so start(),
    wait() and await schedule a whole cold pipeline.

    Attributes:
        _future: The host future holding the outcome.
        _starters: Callables that schedule this computation's cold sources.
    """

    __slots__ = ('_future', '_starters')

    def __init__(
        self,
        future: Future[T],
        *,
        sources: Iterable[Deferred[Any]] = (),
    ) -> None:
        """Wrap a host future.

        Args:
            future: The future to observe. It may already be resolved.
            sources: Deferreds this one derives from; started by start().
        """
        self._future = future
        self._starters: tuple[Callable[[], None], ...] = tuple(s.start for s in sources)

    # -----------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------

    @classmethod
    def from_value(cls, value: T) -> Deferred[T]:
        """Create a Deferred already completed with value."""
        future: Future[T] = Future()
        future.set_result(value)
        return cls(future)

    @classmethod
    def from_error(cls, error: BaseException) -> Deferred[T]:
        """Create a Deferred already faulted with error."""
        future: Future[T] = Future()
        future.set_exception(error)
        return cls(future)

    @classmethod
    def cancelled(cls) -> Deferred[T]:
        """Create a Deferred already cancelled."""
        future: Future[T] = Future()
        future.cancel()
        return cls(future)

    @classmethod
    def run(
        cls,
        fn: Callable[..., T],
        *args: Any,
        executor: Executor | None = None,
        **kwargs: Any,
    ) -> Deferred[T]:
        """Schedule fn(*args, **kwargs) now.

        Args:
            fn: Sync callable to run.
            *args: Positional arguments.
            executor: Executor to submit to; defaults to the shared pool.
            **kwargs: Keyword arguments.

        Returns:
            A hot Deferred for fn's outcome.
        """
        pool = executor if executor is not None else default_executor()
        return cls(pool.submit(fn, *args, **kwargs))

    @classmethod
    def lazy(
        cls,
        fn: Callable[..., T],
        *args: Any,
        executor: Executor | None = None,
        **kwargs: Any,
    ) -> Deferred[T]:
        """Create a cold Deferred that schedules fn on the first start().

        Cancelling a cold Deferred before it starts means fn never runs.
        Cancelling it after start() withdraws the submitted job if the
        executor has not picked it up yet.

        Example:
            ```python
            pipeline = Deferred.lazy(load).map(parse)   # nothing runs yet
            pipeline.wait()                              # load is scheduled here
            ```
        """
        future: Future[T] = Future()
        lock = threading.Lock()
        started = False

        def start() -> None:
            nonlocal started
            with lock:
                if started:
                    return
                started = True
            if future.done():
                return
            pool = executor if executor is not None else default_executor()
            try:
                submitted = pool.submit(fn, *args, **kwargs)
            except RuntimeError as exc:
                _set_exception(future, exc)
                return
            _forward(submitted, future)
            future.add_done_callback(lambda f: submitted.cancel() if f.cancelled() else None)

        deferred = cls(future)
        deferred._starters = (start,)
        return deferred

    # -----------------------------------------------------------------
    # Observation
    # -----------------------------------------------------------------

    def start(self) -> Deferred[T]:
        """Schedule this computation and any cold sources; idempotent.

        Returns:
            self, for chaining.
        """
        for starter in self._starters:
            starter()
        return self

    def done(self) -> bool:
        """Return True once the computation has resolved."""
        return self._future.done()

    def cancel(self) -> bool:
        """Cancel the computation if it has not resolved or started running.

        Returns:
            True if the Deferred is now cancelled.
        """
        return self._future.cancel()

    def outcome(self) -> Maybe[Outcome[T]]:
        """Return Present(outcome) once resolved, Absent while pending."""
        if not self._future.done():
            return Absent
        return Present(outcome_of(self._future))

    def wait(self, timeout: float | None | _Default = _CONFIGURED) -> T:
        """Block until resolved and return the value.

        This is an escape hatch for top-level callers and tests. Never call
        it from inside a continuation: on a single worker it deadlocks.

        Args:
            timeout: Seconds to wait; None waits forever. Defaults to
                RuntimeConfig.wait_timeout.

        Returns:
            The completed value.

        Raises:
            Exception: The fault the computation ended with.
            concurrent.futures.CancelledError: If it was cancelled.
            TimeoutError: If it did not resolve in time.
        """
        if isinstance(timeout, _Default):
            timeout = get_config().wait_timeout
        self.start()
        return self._future.result(timeout)

    async def wait_async(self, timeout: float | None | _Default = _CONFIGURED) -> T:
        """Await the value without blocking the event loop.

        Works under any event loop supported by anyio.

        Args:
            timeout: Seconds to wait; None waits forever. Defaults to
                RuntimeConfig.wait_timeout.

        Returns:
            The completed value.

        Raises:
            Exception: The fault the computation ended with.
            concurrent.futures.CancelledError: If it was cancelled.
            TimeoutError: If it did not resolve in time.
        """
        if isinstance(timeout, _Default):
            timeout = get_config().wait_timeout
        self.start()
        if not self._future.done():
            event = aiologic.Event()
            self._future.add_done_callback(lambda _: event.set())
            with anyio.fail_after(timeout):
                await event
        return self._future.result()

    def __await__(self) -> Generator[Any, Any, T]:
        """Support await syntax.

        Example:
            ```python
            async def example():
                assert await Deferred.from_value(42) == 42
            ```
        """
        return self.wait_async().__await__()

    # -----------------------------------------------------------------
    # Continuations
    # -----------------------------------------------------------------

    def _then[U](
        self,
        on_completed: Callable[[T, Future[U]], None],
        on_faulted: Callable[[BaseException, Future[U]], None] | None = None,
    ) -> Deferred[U]:
        """Attach a continuation and return the Deferred it resolves.

        Cancellation always propagates. Faults propagate unless on_faulted
        is given. Exceptions raised by either handler fault the output.
        Handlers are skipped once the output has been cancelled by its owner.
        """
        target: Future[U] = Future()

        def on_done(source: Future[T]) -> None:
            if target.cancelled():
                get_logger(__name__).debug('deferred.continuation_skipped')
                return
            outcome = outcome_of(source)
            try:
                if isinstance(outcome, Completed):
                    on_completed(outcome.value, target)
                elif isinstance(outcome, Faulted) and on_faulted is not None:
                    on_faulted(outcome.error, target)
                else:
                    _settle(target, outcome)
            except Exception as exc:
                get_logger(__name__).debug('deferred.callback_failed', error=repr(exc))
                _set_exception(target, exc)

        self._future.add_done_callback(on_done)
        return Deferred(target, sources=(self,))

    def map[U](self, selector: Callable[[T], U]) -> Deferred[U]:
        """Transform the completed value.

        Faults and cancellation pass through without calling selector.

        Args:
            selector: Sync function applied to the value.

        Returns:
            Deferred of selector(value).
        """
        return self._then(lambda value, target: _set_result(target, selector(value)))

    def bind[U](self, binder: Callable[[T], Deferred[U] | Future[U] | None]) -> Deferred[U]:
        """Chain a computation that itself produces a Deferred.

        The inner computation is started and its outcome (value, fault or
        cancellation) becomes the output's. A None inner result cancels the
        output; an exception raised by binder faults it.

        Args:
            binder: Function from the value to a Deferred (or host future).

        Returns:
            Deferred of the inner computation's outcome.
        """

        def on_completed(value: T, target: Future[U]) -> None:
            inner = binder(value)
            if inner is None:
                target.cancel()
                return
            _forward(_as_deferred(inner).start()._future, target)

        return self._then(on_completed)

    def filter(self, predicate: Callable[[T], bool]) -> Deferred[T]:
        """Keep the value only if predicate holds.

        Unlike Maybe.filter there is no empty outcome to fall back to: a
        rejected value faults the output with PredicateRejectedError.

        Args:
            predicate: Function that returns True to keep the value.

        Returns:
            Deferred of the same value, or faulted on rejection.
        """

        def on_completed(value: T, target: Future[T]) -> None:
            if predicate(value):
                _set_result(target, value)
                return
            rejection = PredicateRejectedError(value)
            get_logger(__name__).debug('deferred.filter_rejected', **_event_fields(rejection))
            _set_exception(target, rejection)

        return self._then(on_completed)

    def tap(self, effect: Callable[[T], Any]) -> Deferred[T]:
        """Run a side effect with the completed value and pass it on."""

        def on_completed(value: T, target: Future[T]) -> None:
            effect(value)
            _set_result(target, value)

        return self._then(on_completed)

    def const[U](self, value: U) -> Deferred[U]:
        """Resolve to value once this resolves, whatever its outcome."""
        target: Future[U] = Future()
        self._future.add_done_callback(lambda _: _set_result(target, value))
        return Deferred(target, sources=(self,))

    def zip[U, C](self, other: Deferred[U], selector: Callable[[T, U], C]) -> Deferred[C]:
        """Combine with another Deferred once both resolve.

        Both operands are awaited. If one faults, that fault propagates; if
        both fault, an ExceptionGroup carrying both does. Otherwise a
        cancellation of either cancels the output.

        Args:
            other: Deferred to combine with.
            selector: Combiner for the two values.

        Returns:
            Deferred of selector(value, other_value).
        """
        return _gather((self, other)).map(lambda values: selector(values[0], values[1]))

    def apply[A, B](self: Deferred[Callable[[A], B]], arg: Deferred[A]) -> Deferred[B]:
        """Apply the function this resolves to to arg's value.

        The function and the argument resolve independently. A function of
        several arguments takes one per apply call, each but the last
        resolving to a partial:

            Deferred.from_value(add3).apply(a).apply(b).apply(c)
        """
        return _gather((self, arg)).map(lambda pair: apply_one(pair[0], pair[1]))

    def join[U, K, D](
        self,
        inner: Deferred[U],
        outer_key: Callable[[T], K],
        inner_key: Callable[[U], K],
        result_selector: Callable[[T, U], D],
    ) -> Deferred[D]:
        """Correlate with another Deferred on equal keys.

        Both operands are scheduled first (cold ones included), then
        correlated once both resolve. Unequal keys fault the output with
        KeyMismatchError.

        Args:
            inner: Deferred to correlate with.
            outer_key: Key projection for this value.
            inner_key: Key projection for inner's value.
            result_selector: Combiner applied when keys are equal.

        Returns:
            Deferred of result_selector(value, inner_value).
        """
        self.start()
        inner.start()

        def correlate(values: list[Any]) -> D:
            outer_value, inner_value = values
            ok, ik = outer_key(outer_value), inner_key(inner_value)
            if ok == ik:
                return result_selector(outer_value, inner_value)
            mismatch = KeyMismatchError(ok, ik)
            get_logger(__name__).debug('deferred.join_key_mismatch', **_event_fields(mismatch))
            raise mismatch

        return _gather((self, inner)).map(correlate)

    def group_join[U, K, D](
        self,
        inner: Deferred[U],
        outer_key: Callable[[T], K],
        inner_key: Callable[[U], K],
        result_selector: Callable[[T, Deferred[U]], D],
    ) -> Deferred[D]:
        """Pair this value with inner, filtered on equal keys.

        Both operands are scheduled first. Once this resolves, the output
        resolves to result_selector(value, matched), where matched is inner
        filtered on key equality: it faults with PredicateRejectedError if
        the keys differ.
        """
        self.start()
        inner.start()

        def group(value: T) -> D:
            key = outer_key(value)
            return result_selector(value, inner.filter(lambda candidate: inner_key(candidate) == key))

        return self.map(group)

    # -----------------------------------------------------------------
    # Recovery
    # -----------------------------------------------------------------

    def rescue(self, fallback: Callable[[], Deferred[T] | Future[T] | None]) -> Deferred[T]:
        """Continue with a fallback computation if this one faults.

        The fallback factory is only invoked on a fault, and its outcome
        becomes the output's. Completed values pass through untouched and
        cancellation is not rescued.

        Args:
            fallback: Zero-argument factory of the fallback Deferred.

        Returns:
            Deferred of this value or the fallback's outcome.
        """

        def on_faulted(error: BaseException, target: Future[T]) -> None:
            get_logger(__name__).debug('deferred.rescued', error=repr(error))
            replacement = fallback()
            if replacement is None:
                target.cancel()
                return
            _forward(_as_deferred(replacement).start()._future, target)

        return self._then(lambda value, target: _set_result(target, value), on_faulted)

    def catch_as[E: BaseException](self, error_type: type[E], handler: Callable[[E], T]) -> Deferred[T]:
        """Recover from faults of one exception type by computing a value.

        Faults of other types and cancellation pass through unchanged.

        Args:
            error_type: Exception class (or tuple base) to recover from.
            handler: Function from the exception to a replacement value.

        Returns:
            Deferred of this value or handler(error).
        """

        def on_faulted(error: BaseException, target: Future[T]) -> None:
            if isinstance(error, error_type):
                _set_result(target, handler(error))
            else:
                _set_exception(target, error)

        return self._then(lambda value, target: _set_result(target, value), on_faulted)

    # -----------------------------------------------------------------
    # Lifted booleans
    # -----------------------------------------------------------------

    def and_(self: Deferred[bool], other: Deferred[bool]) -> Deferred[bool]:
        """Resolve to True iff both resolve truthy.

        Not short-circuiting: other is already scheduled and is simply not
        consulted when this resolves falsy.
        """
        return self.bind(lambda p: other.map(bool) if p else Deferred.from_value(False))

    def or_(self: Deferred[bool], other: Deferred[bool]) -> Deferred[bool]:
        """Resolve to True iff either resolves truthy."""
        return self.bind(lambda p: Deferred.from_value(True) if p else other.map(bool))

    def __repr__(self) -> str:
        return f'Deferred({self._future!r})'


def _gather(deferreds: Sequence[Deferred[Any]]) -> Deferred[list[Any]]:
    """Resolve to the list of all values once every input resolves.

    Inputs are not short-circuited: the output waits for all of them and
    applies the fault/cancellation policy of _combined_outcome.
    """
    target: Future[list[Any]] = Future()
    futures = [d._future for d in deferreds]
    if not futures:
        target.set_result([])
        return Deferred(target)

    lock = threading.Lock()
    remaining = len(futures)

    def on_done(_: Future[Any]) -> None:
        nonlocal remaining
        with lock:
            remaining -= 1
            if remaining:
                return
        _settle(target, _combined_outcome(futures))

    for future in futures:
        future.add_done_callback(on_done)
    return Deferred(target, sources=deferreds)

"""Tests for Deferred: construction, observation, continuations and recovery."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Any

import pytest
from hypothesis import given

from monadic import (
    Absent,
    Cancelled,
    Completed,
    Deferred,
    Faulted,
    KeyMismatchError,
    OperationCancelledError,
    Present,
    PredicateRejectedError,
)
from monadic.runtime import add_log_hook
from tests.strategies import int_functions, int_predicates, int_to_text_functions, integers, resolved_deferreds


def pending() -> tuple[Future[Any], Deferred[Any]]:
    """A Deferred over a future the test resolves by hand."""
    future: Future[Any] = Future()
    return future, Deferred(future)


@pytest.fixture
def debug_events(caplog: pytest.LogCaptureFixture) -> list[dict[str, Any]]:
    """Event dicts logged by deferred continuations at DEBUG."""
    caplog.set_level(logging.DEBUG, logger='monadic.deferred.core')
    events: list[dict[str, Any]] = []
    add_log_hook(events.append)
    return events


def event_names(events: list[dict[str, Any]]) -> list[str]:
    return [e['event'] for e in events]


class TestConstruction:
    """Tests for from_value, from_error, cancelled, run and lazy."""

    def test_from_value(self):
        d = Deferred.from_value(42)
        assert d.done()
        assert d.wait() == 42

    def test_from_error(self):
        d = Deferred.from_error(ValueError('boom'))
        with pytest.raises(ValueError, match='boom'):
            d.wait()

    def test_cancelled(self):
        d = Deferred.cancelled()
        assert d.done()
        with pytest.raises(CancelledError):
            d.wait()

    def test_run(self):
        assert Deferred.run(lambda a, b: a + b, 1, 2).wait() == 3

    def test_run_with_private_executor(self, executor):
        assert Deferred.run(lambda x, scale: x * scale, 2, executor=executor, scale=3).wait() == 6

    def test_run_on_default_pool_thread(self):
        name = Deferred.run(lambda: threading.current_thread().name).wait()
        assert name.startswith('monadic')

    def test_run_fault(self):
        def fail() -> None:
            raise KeyError('missing')

        with pytest.raises(KeyError):
            Deferred.run(fail).wait()


class TestLazy:
    """Tests for cold Deferreds created with lazy()."""

    def test_not_scheduled_until_started(self, counter):
        fn = counter(1)
        d = Deferred.lazy(fn)
        assert not d.done()
        assert fn.calls == 0
        assert d.wait() == 1
        assert fn.calls == 1

    def test_start_is_idempotent(self, counter):
        fn = counter(1)
        d = Deferred.lazy(fn)
        d.start().start()
        assert d.wait() == 1
        d.start()
        assert fn.calls == 1

    def test_waiting_on_derived_starts_source(self, counter):
        fn = counter(10)
        pipeline = Deferred.lazy(fn).map(lambda x: x * 2)
        assert fn.calls == 0
        assert pipeline.wait() == 20
        assert fn.calls == 1

    def test_cancel_before_start_never_runs(self, counter):
        fn = counter(1)
        d = Deferred.lazy(fn)
        assert d.cancel() is True
        d.start()
        assert fn.calls == 0
        assert d.outcome() == Present(Cancelled())

    def test_cancel_after_start_withdraws_queued_job(self, counter, gate):
        pool = ThreadPoolExecutor(max_workers=1)
        try:
            busy = pool.submit(gate.wait)
            fn = counter(1)
            d = Deferred.lazy(fn, executor=pool).start()
            assert d.cancel() is True
            gate.set()
            busy.result(5)
        finally:
            gate.set()
            pool.shutdown(wait=True)
        assert fn.calls == 0
        assert d.outcome() == Present(Cancelled())

    def test_shut_down_executor_faults(self, executor):
        executor.shutdown()
        d = Deferred.lazy(lambda: 1, executor=executor)
        with pytest.raises(RuntimeError):
            d.wait()

    def test_arguments_forwarded(self):
        assert Deferred.lazy(lambda a, b=0: a - b, 5, b=2).wait() == 3


class TestObservation:
    """Tests for done, cancel, outcome and wait."""

    def test_outcome_pending(self):
        _, d = pending()
        assert d.outcome() == Absent

    def test_outcome_completed(self):
        assert Deferred.from_value(1).outcome() == Present(Completed(1))

    def test_outcome_faulted(self):
        error = ValueError('x')
        outcome = Deferred.from_error(error).outcome().unwrap()
        assert isinstance(outcome, Faulted)
        assert outcome.error is error

    def test_cancel_pending(self):
        _, d = pending()
        assert d.cancel() is True
        assert d.outcome() == Present(Cancelled())

    def test_cancel_resolved_is_noop(self):
        d = Deferred.from_value(1)
        assert d.cancel() is False
        assert d.wait() == 1

    def test_wait_timeout(self):
        _, d = pending()
        with pytest.raises(TimeoutError):
            d.wait(timeout=0.01)

    def test_continuation_runs_when_source_resolves(self, gate):
        d = Deferred.run(gate.wait).map(lambda _: 'released')
        assert not d.done()
        gate.set()
        assert d.wait() == 'released'

    def test_repr(self):
        assert repr(Deferred.from_value(1)).startswith('Deferred(<Future')


class TestAwait:
    """Tests for wait_async and the await protocol."""

    async def test_await_value(self):
        assert await Deferred.run(lambda: 5) == 5

    async def test_await_resolved(self):
        assert await Deferred.from_value(1).map(lambda x: x + 1) == 2

    async def test_await_lazy_starts_it(self, counter):
        fn = counter('ran')
        assert await Deferred.lazy(fn) == 'ran'
        assert fn.calls == 1

    async def test_await_fault(self):
        with pytest.raises(ValueError):
            await Deferred.from_error(ValueError('x'))

    async def test_await_cancelled(self):
        with pytest.raises(CancelledError):
            await Deferred.cancelled()

    async def test_wait_async_timeout(self):
        _, d = pending()
        with pytest.raises(TimeoutError):
            await d.wait_async(timeout=0.05)

    async def test_wait_async_resolved_from_another_thread(self):
        future, d = pending()
        threading.Timer(0.01, future.set_result, args=('late',)).start()
        assert await d.wait_async(timeout=5) == 'late'


class TestMap:
    """Tests for map()."""

    def test_map_pipeline_passes_filter(self):
        d = Deferred.run(lambda: 10).map(lambda x: x * 2).filter(lambda x: x > 15)
        assert d.wait() == 20

    def test_map_skipped_on_fault(self, counter):
        selector = counter(0)
        d = Deferred.from_error(ValueError('x')).map(selector)
        with pytest.raises(ValueError):
            d.wait()
        assert selector.calls == 0

    def test_map_skipped_on_cancellation(self, counter):
        selector = counter(0)
        d = Deferred.cancelled().map(selector)
        assert d.outcome() == Present(Cancelled())
        assert selector.calls == 0

    def test_selector_exception_becomes_fault(self, debug_events):
        d = Deferred.from_value(1).map(lambda x: x / 0)
        with pytest.raises(ZeroDivisionError):
            d.wait()
        assert 'deferred.callback_failed' in event_names(debug_events)

    def test_cancelling_source_cancels_derived(self):
        _, d = pending()
        derived = d.map(lambda x: x)
        d.cancel()
        assert derived.outcome() == Present(Cancelled())


class TestBind:
    """Tests for bind()."""

    def test_bind(self):
        assert Deferred.from_value(2).bind(lambda x: Deferred.run(lambda: x + 1)).wait() == 3

    def test_bind_to_host_future(self, executor):
        assert Deferred.from_value(2).bind(lambda x: executor.submit(pow, x, 3)).wait() == 8

    def test_bind_starts_cold_inner(self):
        assert Deferred.from_value(2).bind(lambda x: Deferred.lazy(lambda: x * 5)).wait() == 10

    def test_inner_fault_propagates(self):
        d = Deferred.from_value(1).bind(lambda _: Deferred.from_error(KeyError('k')))
        with pytest.raises(KeyError):
            d.wait()

    def test_inner_cancellation_propagates(self):
        d = Deferred.from_value(1).bind(lambda _: Deferred.cancelled())
        with pytest.raises(CancelledError):
            d.wait()

    def test_none_inner_cancels(self):
        d = Deferred.from_value(1).bind(lambda _: None)
        assert d.outcome() == Present(Cancelled())

    def test_binder_exception_becomes_fault(self):
        def binder(_: int) -> Deferred[int]:
            raise LookupError('nope')

        with pytest.raises(LookupError):
            Deferred.from_value(1).bind(binder).wait()

    def test_non_deferred_inner_faults(self):
        with pytest.raises(TypeError, match='Expected a Deferred'):
            Deferred.from_value(1).bind(lambda x: x).wait()

    def test_binder_skipped_on_fault(self, counter):
        binder = counter(Deferred.from_value(0))
        d = Deferred.from_error(ValueError()).bind(binder)
        with pytest.raises(ValueError):
            d.wait()
        assert binder.calls == 0

    def test_binder_skipped_once_output_cancelled(self, counter):
        future, d = pending()
        binder = counter(Deferred.lazy(lambda: 0))
        derived = d.bind(binder)
        assert derived.cancel() is True
        future.set_result(1)
        assert binder.calls == 0
        assert derived.outcome() == Present(Cancelled())


class TestFilter:
    """Tests for filter()."""

    def test_filter_rejection_faults(self, debug_events):
        d = Deferred.run(lambda: 10).map(lambda x: x * 2).filter(lambda x: x > 100)
        with pytest.raises(PredicateRejectedError) as exc_info:
            d.wait()
        assert exc_info.value.value == 20
        assert "Value doesn't pass predicate: 20" in str(exc_info.value)
        assert isinstance(d.outcome().unwrap(), Faulted)
        assert 'deferred.filter_rejected' in event_names(debug_events)

    def test_rejection_is_cancellation_style_fault(self):
        d = Deferred.from_value(1).filter(lambda _: False)
        with pytest.raises(OperationCancelledError):
            d.wait()

    def test_predicate_skipped_on_cancellation(self, counter):
        predicate = counter(True)
        assert Deferred.cancelled().filter(predicate).outcome() == Present(Cancelled())
        assert predicate.calls == 0


class TestTapAndConst:
    """Tests for tap() and const()."""

    def test_tap_runs_effect_once(self):
        seen: list[int] = []
        assert Deferred.from_value(3).tap(seen.append).wait() == 3
        assert seen == [3]

    def test_tap_effect_failure_faults(self):
        def effect(_: int) -> None:
            raise RuntimeError('effect')

        with pytest.raises(RuntimeError, match='effect'):
            Deferred.from_value(3).tap(effect).wait()

    @pytest.mark.parametrize(
        'source',
        [Deferred.from_value(1), Deferred.from_error(ValueError()), Deferred.cancelled()],
        ids=['completed', 'faulted', 'cancelled'],
    )
    def test_const_resolves_whatever_the_outcome(self, source):
        assert source.const('done').wait() == 'done'


class TestZipAndApply:
    """Tests for zip() and apply()."""

    def test_zip(self, counter):
        selector = counter('pair')
        d = Deferred.run(lambda: 1).zip(Deferred.run(lambda: 2), selector)
        assert d.wait() == 'pair'
        assert selector.calls == 1

    def test_zip_values_in_order(self, gate):
        slow = Deferred.run(lambda: gate.wait() and 'slow')
        d = slow.zip(Deferred.from_value('fast'), lambda a, b: (a, b))
        assert not d.done()
        gate.set()
        assert d.wait() == ('slow', 'fast')

    def test_zip_one_fault(self, counter):
        selector = counter()
        d = Deferred.from_value(1).zip(Deferred.from_error(ValueError('right')), selector)
        with pytest.raises(ValueError, match='right'):
            d.wait()
        assert selector.calls == 0

    def test_zip_both_fault_groups_errors(self):
        d = Deferred.from_error(ValueError('a')).zip(Deferred.from_error(KeyError('b')), lambda a, b: a)
        with pytest.raises(ExceptionGroup) as exc_info:
            d.wait()
        assert [type(e) for e in exc_info.value.exceptions] == [ValueError, KeyError]

    def test_zip_fault_beats_cancellation(self):
        d = Deferred.cancelled().zip(Deferred.from_error(ValueError()), lambda a, b: a)
        with pytest.raises(ValueError):
            d.wait()

    def test_zip_cancellation(self):
        d = Deferred.from_value(1).zip(Deferred.cancelled(), lambda a, b: a)
        assert d.outcome() == Present(Cancelled())

    def test_zip_starts_cold_operands(self):
        d = Deferred.lazy(lambda: 2).zip(Deferred.lazy(lambda: 3), lambda a, b: a * b)
        assert d.wait() == 6

    def test_apply(self):
        assert Deferred.from_value(lambda x: x + 1).apply(Deferred.run(lambda: 1)).wait() == 2

    def test_apply_argument_fault(self):
        with pytest.raises(ValueError):
            Deferred.from_value(lambda x: x).apply(Deferred.from_error(ValueError())).wait()

    def test_apply_two_arguments(self):
        d = Deferred.from_value(lambda a, b: a - b).apply(Deferred.run(lambda: 10)).apply(Deferred.from_value(3))
        assert d.wait() == 7

    def test_apply_three_arguments(self, gate):
        slow = Deferred.run(lambda: gate.wait() and 'b')
        add3 = Deferred.from_value(lambda a, b, c: a + b + c)
        d = add3.apply(Deferred.from_value('a')).apply(slow).apply(Deferred.from_value('c'))
        assert not d.done()
        gate.set()
        assert d.wait() == 'abc'

    def test_apply_intermediate_is_partial(self):
        step = Deferred.from_value(lambda a, b: (a, b)).apply(Deferred.from_value(1)).wait()
        assert step(2) == (1, 2)

    def test_apply_defaulted_parameter_not_awaited(self):
        assert Deferred.from_value(lambda a, b=5: a + b).apply(Deferred.from_value(1)).wait() == 6


class TestJoin:
    """Tests for join() and group_join()."""

    def test_join_matching_keys(self):
        d = Deferred.from_value(('k', 1)).join(
            Deferred.run(lambda: ('k', 2)),
            lambda t: t[0],
            lambda t: t[0],
            lambda a, b: a[1] + b[1],
        )
        assert d.wait() == 3

    def test_join_key_mismatch_faults(self, counter, debug_events):
        selector = counter()
        d = Deferred.from_value(('k', 1)).join(Deferred.from_value(('j', 2)), lambda t: t[0], lambda t: t[0], selector)
        with pytest.raises(KeyMismatchError) as exc_info:
            d.wait()
        assert (exc_info.value.outer_key, exc_info.value.inner_key) == ('k', 'j')
        assert selector.calls == 0
        assert 'deferred.join_key_mismatch' in event_names(debug_events)

    def test_join_schedules_cold_operands_immediately(self):
        outer_ran, inner_ran = threading.Event(), threading.Event()
        outer = Deferred.lazy(lambda: outer_ran.set() or 1)
        inner = Deferred.lazy(lambda: inner_ran.set() or 1)
        outer.join(inner, lambda x: x, lambda x: x, lambda a, b: a + b)
        assert outer_ran.wait(5)
        assert inner_ran.wait(5)

    def test_join_inner_fault(self):
        d = Deferred.from_value(1).join(Deferred.from_error(ValueError()), lambda x: x, lambda x: x, lambda a, b: a)
        with pytest.raises(ValueError):
            d.wait()

    def test_group_join_matching(self):
        d = Deferred.from_value(('k', 1)).group_join(
            Deferred.from_value(('k', 2)),
            lambda t: t[0],
            lambda t: t[0],
            lambda outer, matched: (outer, matched),
        )
        outer, matched = d.wait()
        assert outer == ('k', 1)
        assert matched.wait() == ('k', 2)

    def test_group_join_mismatch_faults_matched(self):
        d = Deferred.from_value(('k', 1)).group_join(
            Deferred.from_value(('j', 2)),
            lambda t: t[0],
            lambda t: t[0],
            lambda outer, matched: matched,
        )
        matched = d.wait()
        with pytest.raises(PredicateRejectedError):
            matched.wait()


class TestRescue:
    """Tests for rescue() and catch_as()."""

    def test_rescue_fault_uses_fallback(self, counter, debug_events):
        fallback = counter(Deferred.from_value('fallback'))
        d = Deferred.from_error(ValueError()).rescue(fallback)
        assert d.wait() == 'fallback'
        assert fallback.calls == 1
        assert 'deferred.rescued' in event_names(debug_events)

    def test_rescue_success_never_invokes_fallback(self, counter):
        fallback = counter(Deferred.from_value('fallback'))
        assert Deferred.run(lambda: 'original').rescue(fallback).wait() == 'original'
        assert fallback.calls == 0

    def test_rescue_takes_fallback_outcome(self):
        d = Deferred.from_error(ValueError()).rescue(lambda: Deferred.from_error(KeyError('again')))
        with pytest.raises(KeyError):
            d.wait()

    def test_rescue_does_not_catch_cancellation(self, counter):
        fallback = counter(Deferred.from_value('fallback'))
        d = Deferred.cancelled().rescue(fallback)
        assert d.outcome() == Present(Cancelled())
        assert fallback.calls == 0

    def test_rescue_with_cold_fallback(self):
        assert Deferred.from_error(ValueError()).rescue(lambda: Deferred.lazy(lambda: 7)).wait() == 7

    def test_rescue_none_fallback_cancels(self):
        d = Deferred.from_error(ValueError()).rescue(lambda: None)
        assert d.outcome() == Present(Cancelled())

    def test_rescue_fallback_factory_failure_faults(self):
        def fallback() -> Deferred[int]:
            raise OSError('no fallback')

        with pytest.raises(OSError, match='no fallback'):
            Deferred.from_error(ValueError()).rescue(fallback).wait()

    def test_catch_as_matching_type(self):
        d = Deferred.from_error(KeyError('k')).catch_as(LookupError, lambda e: f'recovered {e.args[0]}')
        assert d.wait() == 'recovered k'

    def test_catch_as_other_type_passes_through(self, counter):
        handler = counter(0)
        d = Deferred.from_error(ValueError('v')).catch_as(KeyError, handler)
        with pytest.raises(ValueError):
            d.wait()
        assert handler.calls == 0

    def test_catch_as_filter_rejection(self):
        d = Deferred.from_value(5).filter(lambda x: x > 10).catch_as(PredicateRejectedError, lambda e: -e.value)
        assert d.wait() == -5


class TestLiftedBooleans:
    """Tests for and_() and or_()."""

    @pytest.mark.parametrize(
        ('a', 'b', 'expected_and', 'expected_or'),
        [
            (True, True, True, True),
            (True, False, False, True),
            (False, True, False, True),
            (False, False, False, False),
        ],
    )
    def test_truth_table(self, a, b, expected_and, expected_or):
        assert Deferred.from_value(a).and_(Deferred.run(lambda: b)).wait() is expected_and
        assert Deferred.from_value(a).or_(Deferred.run(lambda: b)).wait() is expected_or

    def test_truthy_values_coerced(self):
        assert Deferred.from_value(1).and_(Deferred.from_value('x')).wait() is True

    def test_fault_propagates(self):
        with pytest.raises(ValueError):
            Deferred.from_error(ValueError()).or_(Deferred.from_value(True)).wait()

    def test_short_circuit_ignores_other_fault(self):
        assert Deferred.from_value(False).and_(Deferred.from_error(ValueError())).wait() is False
        assert Deferred.from_value(True).or_(Deferred.from_error(ValueError())).wait() is True


class TestLateResolution:
    """A derived Deferred cancelled by its owner ignores its source's late outcome."""

    def test_selector_skipped_after_derived_cancelled(self, counter, debug_events):
        future, d = pending()
        selector = counter(2)
        derived = d.map(selector)
        assert derived.cancel() is True
        future.set_result(1)
        assert selector.calls == 0
        assert derived.outcome() == Present(Cancelled())
        assert 'deferred.continuation_skipped' in event_names(debug_events)

    def test_const_after_derived_cancelled(self, debug_events):
        future, d = pending()
        derived = d.const('done')
        assert derived.cancel() is True
        future.set_result(1)
        assert derived.outcome() == Present(Cancelled())
        assert 'deferred.late_resolution' in event_names(debug_events)


# --- Hypothesis Property Tests ---


class TestDeferredLaws:
    """Functor and monad laws observed by waiting on the result."""

    @pytest.mark.hypothesis_property
    @given(integers, int_functions, int_to_text_functions)
    def test_map_composition(self, value, f, g):
        assert Deferred.from_value(value).map(f).map(g).wait() == g(f(value))

    @pytest.mark.hypothesis_property
    @given(integers)
    def test_map_identity(self, value):
        assert Deferred.from_value(value).map(lambda x: x).wait() == value

    @pytest.mark.hypothesis_property
    @given(integers, int_functions)
    def test_left_identity(self, value, f):
        assert Deferred.from_value(value).bind(lambda x: Deferred.from_value(f(x))).wait() == f(value)

    @pytest.mark.hypothesis_property
    @given(integers)
    def test_right_identity(self, value):
        assert Deferred.from_value(value).bind(Deferred.from_value).wait() == value

    @pytest.mark.hypothesis_property
    @given(integers, int_functions, int_functions)
    def test_associativity(self, value, f, g):
        def bf(x: int) -> Deferred[int]:
            return Deferred.from_value(f(x))

        def bg(x: int) -> Deferred[int]:
            return Deferred.from_value(g(x))

        m = Deferred.from_value(value)
        assert m.bind(bf).bind(bg).wait() == m.bind(lambda x: bf(x).bind(bg)).wait()

    @pytest.mark.hypothesis_property
    @given(integers, int_predicates)
    def test_filter_faults_iff_predicate_false(self, value, predicate):
        outcome = Deferred.from_value(value).filter(predicate).outcome().unwrap()
        if predicate(value):
            assert outcome == Completed(value)
        else:
            assert isinstance(outcome, Faulted)
            assert isinstance(outcome.error, PredicateRejectedError)

    @pytest.mark.hypothesis_property
    @given(resolved_deferreds())
    def test_rescue_replaces_only_faults(self, source):
        rescued = source.rescue(lambda: Deferred.from_value('fallback')).outcome().unwrap()
        match source.outcome().unwrap():
            case Faulted():
                assert rescued == Completed('fallback')
            case original:
                assert rescued == original

    @pytest.mark.hypothesis_property
    @given(resolved_deferreds(), integers)
    def test_const_always_completes(self, source, value):
        assert source.const(value).outcome() == Present(Completed(value))

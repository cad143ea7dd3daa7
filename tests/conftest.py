"""Pytest configuration and shared fixtures for monadic tests."""

from __future__ import annotations

import threading
from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor

import pytest

from monadic.runtime import clear_log_hooks, init, reset_logging, shutdown_default_executor


@pytest.fixture(autouse=True)
def runtime() -> Generator[None]:
    """Initialize the runtime with a bounded wait so a broken pipeline fails instead of hanging.

    Logging configured by a test is undone afterwards.
    """
    init(max_workers=4, wait_timeout=5.0)
    yield
    clear_log_hooks()
    reset_logging()


@pytest.fixture(scope='session', autouse=True)
def shutdown_executor() -> Generator[None]:
    """Shut down the shared pool once the session is over."""
    yield
    shutdown_default_executor(wait=True)


@pytest.fixture
def executor() -> Generator[ThreadPoolExecutor]:
    """A private two-thread pool."""
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True, cancel_futures=True)


@pytest.fixture
def gate() -> Generator[threading.Event]:
    """An event that blocked worker functions wait on; always released at teardown."""
    event = threading.Event()
    yield event
    event.set()


class Counter:
    """Callable that counts its invocations and returns a fixed value."""

    def __init__(self, value: object = None) -> None:
        self.value = value
        self.calls = 0

    def __call__(self, *_: object) -> object:
        self.calls += 1
        return self.value


@pytest.fixture
def counter() -> type[Counter]:
    """The Counter class, for invocation-counting assertions."""
    return Counter

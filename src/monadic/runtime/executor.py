"""Default executor for Deferred.run() and Deferred.lazy()."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from monadic.runtime._config import get_config
from monadic.runtime._logging import get_logger

__all__ = ['default_executor', 'shutdown_default_executor']

_lock = threading.Lock()
_executor: ThreadPoolExecutor | None = None
_executor_workers: int | None = None


def default_executor() -> ThreadPoolExecutor:
    """Return the shared thread pool, creating it on first use.

    The pool is sized by get_config().max_workers. If init() changed the
    worker count since the pool was created, the old pool is shut down
    without waiting and a new one is created.

    Returns:
        The shared ThreadPoolExecutor.
    """
    global _executor, _executor_workers  # noqa: PLW0603

    workers = get_config().max_workers
    with _lock:
        if _executor is not None and _executor_workers == workers:
            return _executor
        if _executor is not None:
            _executor.shutdown(wait=False)
        _executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix='monadic')
        _executor_workers = workers
        get_logger(__name__).debug('executor.created', max_workers=workers)
        return _executor


def shutdown_default_executor(wait: bool = True) -> None:
    """Shut down the shared thread pool, if one exists.

    A later default_executor() call creates a fresh pool.

    Args:
        wait: Block until running work items finish.
    """
    global _executor, _executor_workers  # noqa: PLW0603

    with _lock:
        executor, _executor, _executor_workers = _executor, None, None
    if executor is not None:
        executor.shutdown(wait=wait)

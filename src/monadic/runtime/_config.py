"""Runtime configuration: RuntimeConfig, environment detection, and initialization."""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass

import psutil

from monadic.runtime._logging import configure_logging, get_logger

__all__ = [
    'RuntimeConfig',
    'get_config',
    'init',
]


@dataclass(frozen=True)
class RuntimeConfig:
    """Configuration for deferred computations.

    Attributes:
        max_workers: Thread count of the default executor used by
            Deferred.run() and Deferred.lazy().
        wait_timeout: Default timeout in seconds for Deferred.wait().
            None waits forever.
        log_level: Logging level (e.g., "DEBUG", "INFO"). None = silent.
    """

    max_workers: int = 4
    wait_timeout: float | None = None
    log_level: str | None = None


# Global runtime configuration (set by init())
_config: RuntimeConfig | None = None


def _detect_max_workers() -> int:
    """Detect the default executor size.

    Priority:
    1. MONADIC_MAX_WORKERS environment variable
    2. Physical CPU cores, capped by container CPU limits
    3. Default to 4

    The result is clamped to 1..256.
    """
    env_workers = os.environ.get('MONADIC_MAX_WORKERS', '')
    if env_workers:
        try:
            return max(1, min(256, int(env_workers)))
        except ValueError:
            get_logger(__name__).warning('config.invalid_env', variable='MONADIC_MAX_WORKERS', value=env_workers)

    try:
        # Physical cores preferred over logical; continuations are short
        physical_cores = psutil.cpu_count(logical=False)
        if physical_cores is None:
            physical_cores = psutil.cpu_count(logical=True) or 4

        container_limit = _detect_container_cpu_limit()
        if container_limit is not None:
            physical_cores = min(physical_cores, container_limit)

        return max(1, min(256, physical_cores))
    except Exception:
        return 4


def _detect_container_cpu_limit() -> int | None:
    """Detect CPU limit in containerized environments."""
    # cgroups v2
    try:
        with pathlib.Path('/sys/fs/cgroup/cpu.max').open() as f:
            content = f.read().strip()
            if content != 'max':
                quota, period = content.split()
                if quota != 'max':
                    return max(1, int(int(quota) / int(period)))
    except (FileNotFoundError, ValueError, PermissionError):
        pass

    # cgroups v1
    try:
        with pathlib.Path('/sys/fs/cgroup/cpu/cpu.cfs_quota_us').open() as quota_f:
            quota_v1 = int(quota_f.read().strip())
        with pathlib.Path('/sys/fs/cgroup/cpu/cpu.cfs_period_us').open() as period_f:
            period_v1 = int(period_f.read().strip())
        if quota_v1 > 0:
            return max(1, quota_v1 // period_v1)
    except (FileNotFoundError, ValueError, PermissionError):
        pass

    return None


def _detect_wait_timeout() -> float | None:
    """Read MONADIC_WAIT_TIMEOUT; unset, empty or non-positive means no timeout."""
    env_timeout = os.environ.get('MONADIC_WAIT_TIMEOUT', '')
    if not env_timeout:
        return None
    try:
        timeout = float(env_timeout)
    except ValueError:
        get_logger(__name__).warning('config.invalid_env', variable='MONADIC_WAIT_TIMEOUT', value=env_timeout)
        return None
    return timeout if timeout > 0 else None


def _detect_log_level() -> str | None:
    """Read MONADIC_LOG_LEVEL; unset means monadic installs no handler."""
    env_level = os.environ.get('MONADIC_LOG_LEVEL', '').upper()
    if not env_level:
        return None
    if env_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        get_logger(__name__).warning('config.invalid_env', variable='MONADIC_LOG_LEVEL', value=env_level)
        return None
    return env_level


def init(
    max_workers: int | None = None,
    wait_timeout: float | None = None,
    log_level: str | None = None,
) -> RuntimeConfig:
    """Initialize the runtime with specified configuration.

    Args:
        max_workers: Default executor size. Auto-detected if None.
        wait_timeout: Default Deferred.wait() timeout in seconds.
            Read from MONADIC_WAIT_TIMEOUT if None.
        log_level: Logging level ("DEBUG", "INFO", etc.).
            Read from MONADIC_LOG_LEVEL if None. When set, configure_logging()
            is applied to the ``monadic`` logger; unset leaves it to the host.

    Returns:
        The RuntimeConfig that was set.

    Example:
        ```python
        from monadic.runtime import init

        # Auto-detect everything
        init()

        # Explicit configuration
        init(max_workers=8, wait_timeout=30.0, log_level='DEBUG')
        ```
    """
    global _config  # noqa: PLW0603

    if max_workers is None:
        resolved_workers = _detect_max_workers()
    else:
        resolved_workers = max(1, min(256, max_workers))

    resolved_timeout = wait_timeout if wait_timeout is not None else _detect_wait_timeout()
    resolved_level = log_level if log_level is not None else _detect_log_level()

    _config = RuntimeConfig(
        max_workers=resolved_workers,
        wait_timeout=resolved_timeout,
        log_level=resolved_level,
    )

    if resolved_level is not None:
        configure_logging(resolved_level)

    return _config


def get_config() -> RuntimeConfig:
    """Get the current runtime configuration.

    Initializes from the environment on first use if init() has not
    been called. A MONADIC_LOG_LEVEL found there configures only the
    ``monadic`` logger; the host's root logger is left alone.

    Returns:
        The current RuntimeConfig.
    """
    if _config is None:
        return init()
    return _config

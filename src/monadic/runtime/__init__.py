"""Runtime support: configuration, logging, and the default executor.

Example:
    ```python
    from monadic.runtime import init

    init(max_workers=8, log_level='DEBUG')
    ```
"""

from monadic.runtime._config import RuntimeConfig, get_config, init
from monadic.runtime._logging import (
    add_log_hook,
    clear_log_hooks,
    configure_logging,
    get_logger,
    remove_log_hook,
    reset_logging,
)
from monadic.runtime.executor import default_executor, shutdown_default_executor

__all__ = [
    'RuntimeConfig',
    'add_log_hook',
    'clear_log_hooks',
    'configure_logging',
    'default_executor',
    'get_config',
    'get_logger',
    'init',
    'remove_log_hook',
    'reset_logging',
    'shutdown_default_executor',
]

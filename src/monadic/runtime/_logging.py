"""Logging for monadic's own events.

Library code logs structlog events through stdlib loggers under the
``monadic`` namespace, so by default they obey whatever the host
application set up. configure_logging() is opt-in and scoped: it gives the
``monadic`` logger its own structlog-formatted handler and stops it from
propagating. The root logger and the global structlog configuration are
never touched.

Example:
    ```python
    from monadic.runtime import configure_logging

    configure_logging('DEBUG', json_output=False)
    ```
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, Final

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = [
    'LIBRARY_LOGGER',
    'add_log_hook',
    'clear_log_hooks',
    'configure_logging',
    'get_logger',
    'remove_log_hook',
    'reset_logging',
]

LIBRARY_LOGGER: Final = 'monadic'

type LogHook = Callable[[dict[str, Any]], None]

_hooks: list[LogHook] = []
_handler: logging.Handler | None = None


# --- Hooks ---


def add_log_hook(hook: LogHook) -> None:
    """Register a hook called with a copy of every emitted monadic event.

    Hooks see events that pass the logger's level, whether or not
    configure_logging() has been called.
    """
    _hooks.append(hook)


def remove_log_hook(hook: LogHook) -> None:
    """Unregister hook; unknown hooks are ignored."""
    if hook in _hooks:
        _hooks.remove(hook)


def clear_log_hooks() -> None:
    _hooks.clear()


def _call_hooks(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for hook in tuple(_hooks):
        try:
            hook(dict(event_dict))
        except Exception:
            # stdlib logger: reporting through structlog would re-enter the hooks
            logging.getLogger(LIBRARY_LOGGER).debug('log hook %r failed', hook, exc_info=True)
    return event_dict


# --- Emitting ---


def _event_processors() -> list[Any]:
    """Processor chain for monadic events, ending in a plain stdlib record."""
    return [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _call_hooks,
        structlog.stdlib.render_to_log_kwargs,
    ]


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger bound to the stdlib logger of the same name.

    Args:
        name: Logger name, normally a module's ``__name__``. Defaults to
            the library logger.

    Returns:
        A structlog BoundLogger. Event keys travel as the record's extra
        attributes, so plain stdlib handlers can read them too.
    """
    return structlog.wrap_logger(
        logging.getLogger(name or LIBRARY_LOGGER),
        processors=_event_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


# --- Handler ---


def _formatter(json_output: bool) -> structlog.stdlib.ProcessorFormatter:
    """Render records of the monadic logger tree, structlog's or plain stdlib's alike."""
    if json_output:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt='iso'),
            structlog.stdlib.ExtraAdder(),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def configure_logging(level: str = 'INFO', *, json_output: bool = True) -> logging.Logger:
    """Send monadic's events to stderr as structured logs.

    Calling it again replaces the handler it installed before. Other
    handlers on the ``monadic`` logger are left in place.

    Args:
        level: Level name for the ``monadic`` logger; unknown names mean INFO.
        json_output: If True, emit JSON lines. If False, use console output.

    Returns:
        The configured ``monadic`` logger.
    """
    global _handler  # noqa: PLW0603

    logger = logging.getLogger(LIBRARY_LOGGER)
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler.close()

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(_formatter(json_output))
    logger.addHandler(_handler)
    logger.setLevel(logging.getLevelNamesMapping().get(level.upper(), logging.INFO))
    logger.propagate = False
    return logger


def reset_logging() -> None:
    """Undo configure_logging(): events propagate to the host's handlers again."""
    global _handler  # noqa: PLW0603

    logger = logging.getLogger(LIBRARY_LOGGER)
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler.close()
        _handler = None
    logger.setLevel(logging.NOTSET)
    logger.propagate = True

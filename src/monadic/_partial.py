"""One-argument application for the apply family.

Maybe.apply, Either.apply_left/apply_right and Deferred.apply take one
argument at a time. A held function that needs more positional arguments
gets the argument bound and comes back as a partial, so a function of
three arguments is applied with three chained apply calls.
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable
from typing import Any

__all__ = ['apply_one']

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def _required_positional(fn: Callable[..., Any]) -> int | None:
    """Count fn's required positional parameters.

    None means the count is unknown: fn has no inspectable signature or
    accepts *args. Such functions are always called with the argument.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return None
    required = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if parameter.kind in _POSITIONAL and parameter.default is inspect.Parameter.empty:
            required += 1
    return required


def apply_one(fn: Callable[..., Any], arg: Any) -> Any:
    """Call fn with arg, or bind arg first if fn needs more arguments.

    Example:
        ```python
        step = apply_one(lambda a, b, c: a + b + c, 1)   # partial, waits for b, c
        step = apply_one(step, 2)                        # partial, waits for c
        apply_one(step, 3)                               # 6
        ```
    """
    required = _required_positional(fn)
    if required is not None and required > 1:
        return functools.partial(fn, arg)
    return fn(arg)

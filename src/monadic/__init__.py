"""monadic: Maybe, Either and Deferred combinators for Python 3.13+.

Flat imports (preferred):
    from monadic import Maybe, Present, Absent, Either, Left, Right, Deferred

Submodule imports (for organization):
    from monadic.maybe import choose, first_or_absent
    from monadic.either import left, right
    from monadic.deferred import sequence, traverse
    from monadic.runtime import init
"""

# Deferred
from monadic.deferred import (
    Cancelled,
    Completed,
    Deferred,
    Faulted,
    Outcome,
    if_,
    sequence,
    traverse,
)

# Either
from monadic.either import Either, Left, Right, left, right

# Errors
from monadic.errors import (
    AbsentValueError,
    KeyMismatchError,
    OperationCancelledError,
    PredicateRejectedError,
)

# Maybe
from monadic.maybe import (
    Absent,
    AbsentType,
    Maybe,
    Present,
    absent,
    choose,
    present,
    when,
)

__all__ = [
    # Maybe
    'Absent',
    'AbsentType',
    # Errors
    'AbsentValueError',
    # Deferred
    'Cancelled',
    'Completed',
    'Deferred',
    # Either
    'Either',
    'Faulted',
    'KeyMismatchError',
    'Left',
    'Maybe',
    'OperationCancelledError',
    'Outcome',
    'PredicateRejectedError',
    'Present',
    'Right',
    'absent',
    'choose',
    'if_',
    'left',
    'present',
    'right',
    'sequence',
    'traverse',
    'when',
]

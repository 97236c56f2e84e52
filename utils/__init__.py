"""
VCF DocStore Utilities

Error taxonomy, thread-safe counter and summary tables.
"""

# Import all utility functions for easy access
from .errors import (
    ErrorKind,
    VCFDBError,
    describe_error
)

from .counter import (
    Counter
)

__all__ = [
    # Errors
    'ErrorKind',
    'VCFDBError',
    'describe_error',

    # Counter
    'Counter'
]

"""
Error Taxonomy

One exception type shared by every component. The kind tells callers which
stage failed and whether the failure can be tolerated; the message is what
gets shown to the operator.
"""

from enum import Enum


class ErrorKind(Enum):
    """Categories of failure raised across the loader"""
    DECODE = 'decode'                  # malformed or unreadable VCF file
    ORDER_VIOLATION = 'order'          # a source stream is not sorted by locus
    MERGE = 'merge'                    # record fields have an unexpected shape
    STORAGE = 'storage'                # document store write/read failure
    LEDGER_STATE = 'ledger'            # collection in an incompatible state
    NAME_COLLISION = 'collision'       # duplicate file identifiers or sample names
    CONFIGURATION = 'configuration'    # invalid option or collection name


class VCFDBError(Exception):
    """
    Error raised by the loader, the ledger and the administrative tools

    Args:
        kind: ErrorKind describing the failing stage
        message: Human readable description
        locus: Optional (chrom, pos) the error is attributable to
    """

    def __init__(self, kind, message, locus=None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.locus = locus

    def __str__(self):
        if self.locus is not None:
            return f"{self.locus[0]}:{self.locus[1]} => {self.message}"
        return self.message


def describe_error(exc):
    """Uniform one-line description for our errors and the ones bubbling up from pysam/pymongo"""
    if isinstance(exc, VCFDBError):
        return f"[{exc.kind.value}] {exc}"
    message = str(exc).strip()
    if not message:
        return type(exc).__name__
    return f"{type(exc).__name__}: {message}"

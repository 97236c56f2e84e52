"""
Variant Records

Immutable per-file variant rows handed from the parser threads to the aligner,
plus normalization of the heterogeneous INFO / FORMAT field values into the
shapes the document store accepts.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# Scalar types a field value may hold once normalized
SCALAR_TYPES = (bool, int, float, str)


@dataclass(frozen=True)
class VariantRecord:
    """One VCF data line from one input file."""
    chrom: str
    pos: int
    ref: str
    id: Optional[str] = None
    qual: Optional[float] = None
    filters: List[str] = field(default_factory=list)
    info: Dict[str, Any] = field(default_factory=dict)
    samples: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def locus(self) -> Tuple[str, int]:
        return (self.chrom, self.pos)


def coerce_field_value(value):
    """
    Normalize an INFO or FORMAT value for storage

    Integers, floats, strings and flags are kept as they are, sequences become
    lists of normalized scalars. Anything else is stringified explicitly.

    Args:
        value: Raw value produced by the decoder

    Returns:
        None, a scalar, or a list of scalars
    """
    if value is None or isinstance(value, SCALAR_TYPES):
        return value
    if isinstance(value, (list, tuple)):
        return [_coerce_scalar(v) for v in value]
    # Unrecognized type: keep its text representation rather than dropping it
    return str(value)


def _coerce_scalar(value):
    if value is None or isinstance(value, SCALAR_TYPES):
        return value
    return str(value)


def is_field_value(value):
    """Check that a value has one of the normalized shapes produced by coerce_field_value"""
    if value is None or isinstance(value, SCALAR_TYPES):
        return True
    if isinstance(value, list):
        return all(v is None or isinstance(v, SCALAR_TYPES) for v in value)
    return False

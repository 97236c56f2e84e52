"""
VCF DocStore Pipeline Module

Decoding, alignment, merging and loading of sorted VCF record streams.
"""

from .records import VariantRecord, coerce_field_value, is_field_value
from .aligner import END_OF_STREAM, RecordAligner, compare_loci, iter_queue
from .merger import document_id, merge_records
from .loader import BulkLoader, AppendLoader
from .manager import PipelineManager, ImportReport, StageErrors, PipelineAborted

__all__ = [
    'VariantRecord',
    'coerce_field_value',
    'is_field_value',
    'END_OF_STREAM',
    'RecordAligner',
    'compare_loci',
    'iter_queue',
    'document_id',
    'merge_records',
    'BulkLoader',
    'AppendLoader',
    'PipelineManager',
    'ImportReport',
    'StageErrors',
    'PipelineAborted'
]

"""
Record Merger

Folds an aligned group into one columnar document. Every per-file array gets
one slot per file known to the collection; files without a record at the
locus get None in their slot and None for each of their samples.
"""

import numbers

from config.constants import (
    ID_FIELD, CHROM_FIELD, POS_FIELD, REF_FIELD,
    IDS_FIELD, QUALS_FIELD, FILTERS_FIELD, INFOS_FIELD, SAMPLES_FIELD,
    PER_FILE_FIELDS, REF_OVERRIDE_FIELD,
)
from utils.errors import ErrorKind, VCFDBError
from .records import is_field_value


def document_id(chrom, pos):
    """Identity of the merged document for a locus"""
    return f"{chrom}:{pos}"


def empty_document(chrom, pos, ref):
    return {
        ID_FIELD: document_id(chrom, pos),
        CHROM_FIELD: chrom,
        POS_FIELD: pos,
        REF_FIELD: ref,
        IDS_FIELD: [],
        QUALS_FIELD: [],
        FILTERS_FIELD: [],
        INFOS_FIELD: [],
        SAMPLES_FIELD: [],
    }


def _pad_file(document, sample_count):
    for name in PER_FILE_FIELDS:
        document[name].append(None)
    document[SAMPLES_FIELD].extend([None] * sample_count)


def validate_record(record, expected_samples, locus):
    """
    Check the structural shape of a record before it is merged

    Raises:
        VCFDBError: MERGE error naming the offending field
    """
    def fail(message):
        raise VCFDBError(ErrorKind.MERGE, message, locus=locus)

    if not isinstance(record.chrom, str) or not record.chrom:
        fail(f"invalid chromosome {record.chrom!r}")
    if not isinstance(record.pos, int) or isinstance(record.pos, bool):
        fail(f"invalid position {record.pos!r}")
    if not isinstance(record.ref, str):
        fail(f"invalid reference allele {record.ref!r}")
    if record.id is not None and not isinstance(record.id, str):
        fail(f"invalid ID {record.id!r}")
    if record.qual is not None and (
            not isinstance(record.qual, numbers.Real) or isinstance(record.qual, bool)):
        fail(f"invalid QUAL {record.qual!r}")
    if not isinstance(record.filters, list) or not all(isinstance(f, str) for f in record.filters):
        fail(f"invalid FILTER {record.filters!r}")
    if not isinstance(record.info, dict):
        fail(f"INFO is not a mapping: {record.info!r}")
    for key, value in record.info.items():
        if not is_field_value(value):
            fail(f"INFO field {key} has an unsupported value {value!r}")
    if not isinstance(record.samples, list):
        fail(f"samples are not a list: {record.samples!r}")
    if len(record.samples) != expected_samples:
        fail(f"record has {len(record.samples)} samples, header declares {expected_samples}")
    for sample in record.samples:
        if not isinstance(sample, dict):
            fail(f"sample entry is not a mapping: {sample!r}")
        for key, value in sample.items():
            if not is_field_value(value):
                fail(f"sample field {key} has an unsupported value {value!r}")


def merge_records(tuples, sample_counts, first_file_index=0):
    """
    Merge an aligned group into one padded document

    Args:
        tuples: Aligned group, list of (source_index, VariantRecord) sorted by index
        sample_counts: Number of samples of every file known to the collection
        first_file_index: Collection slot of source index 0 (previous file count when appending)

    Returns:
        dict: Merged document with per-file arrays of length len(sample_counts)

    Raises:
        VCFDBError: MERGE error when a record is malformed
    """
    if not tuples:
        raise VCFDBError(ErrorKind.MERGE, "cannot merge an empty group")

    first = tuples[0][1]
    locus = (first.chrom, first.pos)
    merged_record = empty_document(first.chrom, first.pos, first.ref)

    try:
        _fold_group(merged_record, tuples, sample_counts, first_file_index, locus)
    except (TypeError, AttributeError, ValueError) as e:
        raise VCFDBError(ErrorKind.MERGE, f"malformed record: {e}", locus=locus)
    return merged_record


def _fold_group(merged_record, tuples, sample_counts, first_file_index, locus):
    array_index = 0
    for source_index, record in tuples:
        slot = first_file_index + source_index
        if slot < array_index or slot >= len(sample_counts):
            raise VCFDBError(ErrorKind.MERGE, f"unexpected source index {source_index}", locus=locus)
        if (record.chrom, record.pos) != locus:
            raise VCFDBError(
                ErrorKind.MERGE,
                f"group mixes loci ({record.chrom}:{record.pos} from source #{source_index})",
                locus=locus
            )
        validate_record(record, sample_counts[slot], locus)

        while slot > array_index:
            _pad_file(merged_record, sample_counts[array_index])
            array_index += 1

        merged_record[IDS_FIELD].append(record.id)
        merged_record[QUALS_FIELD].append(record.qual)
        merged_record[FILTERS_FIELD].append(list(record.filters))
        merged_record[INFOS_FIELD].append(dict(record.info))

        samples = [dict(sample) for sample in record.samples]
        if record.ref != merged_record[REF_FIELD]:
            for sample in samples:
                sample[REF_OVERRIDE_FIELD] = record.ref
        merged_record[SAMPLES_FIELD].extend(samples)
        array_index += 1

    while array_index < len(sample_counts):
        _pad_file(merged_record, sample_counts[array_index])
        array_index += 1

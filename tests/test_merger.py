"""Tests for the record merger."""

import pytest

from pipeline.merger import document_id, merge_records
from pipeline.records import VariantRecord, coerce_field_value, is_field_value
from utils.errors import ErrorKind, VCFDBError
from builders import make_record


PER_FILE = ['IDs', 'QUALs', 'FILTERs', 'INFOs']


def test_document_id_joins_chrom_and_pos():
    assert document_id('chr1', 100) == 'chr1:100'


def test_single_file_group_pads_missing_files():
    record = make_record('chr1', 100, id='rs1', qual=50.0, info={'DP': 10})

    doc = merge_records([(0, record)], sample_counts=[1, 2])

    assert doc['_id'] == 'chr1:100'
    assert doc['CHROM'] == 'chr1' and doc['POS'] == 100 and doc['REF'] == 'A'
    assert doc['IDs'] == ['rs1', None]
    assert doc['QUALs'] == [50.0, None]
    assert doc['FILTERs'] == [['PASS'], None]
    assert doc['INFOs'] == [{'DP': 10}, None]
    assert doc['samples'] == [{'GT': ['A', 'T']}, None, None]


def test_leading_and_middle_slots_are_padded():
    record = make_record('chr1', 150, samples=[{'GT': ['A', 'A']}, {'GT': ['A', 'T']}])

    doc = merge_records([(2, record)], sample_counts=[1, 3, 2])

    for name in PER_FILE:
        assert doc[name][:2] == [None, None]
        assert doc[name][2] is not None
    assert doc['samples'] == [None, None, None, None, {'GT': ['A', 'A']}, {'GT': ['A', 'T']}]


@pytest.mark.parametrize('present', [[0], [1], [2], [0, 2], [0, 1, 2], [1, 2]])
def test_arrays_always_match_file_count(present):
    sample_counts = [1, 2, 1]
    group = [
        (i, make_record('chr1', 10, samples=[{'GT': ['A', 'T']}] * sample_counts[i]))
        for i in present
    ]

    doc = merge_records(group, sample_counts)

    for name in PER_FILE:
        assert len(doc[name]) == 3
        for i in range(3):
            assert (doc[name][i] is None) == (i not in present)
    assert len(doc['samples']) == sum(sample_counts)


def test_both_files_present_have_no_nulls():
    group = [(0, make_record('chr1', 200)), (1, make_record('chr1', 200))]

    doc = merge_records(group, [1, 1])

    for name in PER_FILE + ['samples']:
        assert None not in doc[name]


def test_reference_override_tags_divergent_records():
    group = [
        (0, make_record('chr1', 200, ref='A')),
        (1, make_record('chr1', 200, ref='AT', samples=[{'GT': ['AT', 'A']}])),
    ]

    doc = merge_records(group, [1, 1])

    assert doc['REF'] == 'A'
    assert '_RR_' not in doc['samples'][0]
    assert doc['samples'][1]['_RR_'] == 'AT'


def test_first_file_index_offsets_slots_for_appends():
    doc = merge_records([(0, make_record('chr1', 5))], sample_counts=[2, 1, 1], first_file_index=1)

    assert doc['IDs'] == [None, None, None]
    assert doc['FILTERs'] == [None, ['PASS'], None]
    assert doc['samples'] == [None, None, {'GT': ['A', 'T']}, None]


def test_merged_document_does_not_share_record_state():
    record = make_record('chr1', 1, info={'AF': [0.5]})
    doc = merge_records([(0, record)], [1])

    doc['INFOs'][0]['AF'] = 'changed'
    doc['samples'][0]['GT'] = []

    assert record.info == {'AF': [0.5]}


def test_empty_group_is_a_merge_error():
    with pytest.raises(VCFDBError) as excinfo:
        merge_records([], [1])
    assert excinfo.value.kind is ErrorKind.MERGE


def test_sample_count_mismatch_is_a_merge_error():
    record = make_record('chr1', 100, samples=[{'GT': ['A', 'T']}, {'GT': ['A', 'A']}])

    with pytest.raises(VCFDBError) as excinfo:
        merge_records([(0, record)], [1])

    assert excinfo.value.kind is ErrorKind.MERGE
    assert excinfo.value.locus == ('chr1', 100)
    assert str(excinfo.value).startswith('chr1:100 =>')


@pytest.mark.parametrize('overrides', [
    {'qual': 'high'},
    {'filters': 'PASS'},
    {'info': {'DP': {'nested': 1}}},
    {'info': ['DP']},
    {'samples': ['0/1']},
    {'samples': None},
    {'samples': 'S1'},
    {'samples': [{'GT': ['A', 'T'], 'AD': object()}]},
])
def test_malformed_fields_are_merge_errors(overrides):
    fields = {'chrom': 'chr1', 'pos': 100, 'ref': 'A', 'samples': [{'GT': ['A', 'T']}]}
    fields.update(overrides)
    record = VariantRecord(**fields)

    with pytest.raises(VCFDBError) as excinfo:
        merge_records([(0, record)], [1])

    assert excinfo.value.kind is ErrorKind.MERGE


def test_source_index_outside_collection_is_a_merge_error():
    with pytest.raises(VCFDBError):
        merge_records([(2, make_record('chr1', 1))], [1, 1])


def test_unexpected_failures_become_merge_errors_with_locus():
    group = [(0, make_record('chr1', 7)), (1, object())]
    with pytest.raises(VCFDBError) as excinfo:
        merge_records(group, [1, 1])

    assert excinfo.value.kind is ErrorKind.MERGE
    assert excinfo.value.locus == ('chr1', 7)


def test_group_mixing_loci_is_a_merge_error():
    group = [(0, make_record('chr1', 1)), (1, make_record('chr1', 2))]
    with pytest.raises(VCFDBError) as excinfo:
        merge_records(group, [1, 1])
    assert 'mixes loci' in str(excinfo.value)


def test_coerce_field_value_shapes():
    assert coerce_field_value(3) == 3
    assert coerce_field_value(True) is True
    assert coerce_field_value((1, None, 2.5)) == [1, None, 2.5]
    assert coerce_field_value(b'raw') == "b'raw'"
    assert coerce_field_value([object]) == [str(object)]


def test_is_field_value():
    assert is_field_value(None)
    assert is_field_value(['a', 1, None])
    assert not is_field_value({'a': 1})
    assert not is_field_value([[1]])

"""Tests for the pipeline manager: termination, error policy and abort."""

import io
import threading

import pytest

from config.import_config import ImportOptions
from ledger.consistency import ImportCounts
from pipeline.manager import PipelineManager, StageErrors
from pipeline.records import VariantRecord
from utils.errors import ErrorKind, VCFDBError
from builders import make_record, make_stream


def initial_counts(*sample_counts):
    return ImportCounts(append=False, old_vcfs=0, old_samples=0, sample_counts=list(sample_counts))


def run_pipeline(store, sources, options, counts=None, collection='cohort'):
    counts = counts or initial_counts(*[1] * len(sources))
    manager = PipelineManager(store, collection, sources, counts, options, progress_stream=io.StringIO())
    return manager, manager.run()


def run_with_timeout(target, timeout=20):
    result = {}
    thread = threading.Thread(target=lambda: result.setdefault('value', target()), daemon=True)
    thread.start()
    thread.join(timeout)
    assert not thread.is_alive(), "pipeline did not terminate"
    return result['value']


def test_concrete_two_file_scenario(store, options):
    a = make_stream(('chr1', 100), ('chr1', 200))
    b = make_stream(('chr1', 150), ('chr1', 200))

    _, report = run_pipeline(store, [a, b], options)

    assert report.succeeded
    assert report.imported == 3
    docs = {d['_id']: d for d in store.documents('cohort')}
    assert set(docs) == {'chr1:100', 'chr1:150', 'chr1:200'}
    assert docs['chr1:100']['IDs'] == [None, None] and docs['chr1:100']['FILTERs'] == [['PASS'], None]
    assert docs['chr1:150']['FILTERs'] == [None, ['PASS']]
    assert docs['chr1:200']['FILTERs'] == [['PASS'], ['PASS']]
    assert None not in docs['chr1:200']['samples']


@pytest.mark.parametrize('parsers,mergers,loaders', [
    (1, 1, 1), (1, 1, 4), (3, 4, 1), (2, 3, 5), (5, 2, 2),
])
def test_terminates_for_any_pool_sizes(store, parsers, mergers, loaders):
    options = ImportOptions(merger_threads=mergers, loader_threads=loaders, chunk_size=3,
                            parser_buffer_size=1, merger_buffer_size=1, loader_buffer_size=1,
                            no_progress=True, poll_interval=0.01)
    sources = [
        make_stream(*[('chr1', pos) for pos in range(1 + i, 60, 1 + i)])
        for i in range(parsers)
    ]
    expected = {f"chr1:{record.pos}" for source in sources for record in source}

    manager, report = run_with_timeout(lambda: run_pipeline(store, sources, options))

    assert report.succeeded
    assert manager.loaders_done.total == loaders
    assert report.imported == len(expected)
    assert {d['_id'] for d in store.documents('cohort')} == expected
    for q in manager.parse_queues + [manager.merge_queue, manager.load_queue]:
        assert q.empty()


def test_each_load_worker_opens_its_own_session(store, options):
    run_pipeline(store, [make_stream(('chr1', 1))], options)
    assert store.sessions == options.loader_threads


def test_empty_sources_succeed_without_documents(store, options):
    _, report = run_pipeline(store, [[], []], options)

    assert report.succeeded
    assert report.imported == 0


def test_merge_error_is_fatal_by_default(store, options):
    bad = make_record('chr1', 2, samples=[])
    source = [make_record('chr1', 1), bad, make_record('chr1', 3)]

    _, report = run_with_timeout(lambda: run_pipeline(store, [source], options))

    assert not report.succeeded
    stages = [stage for stage, _ in report.errors.items()]
    assert 'merger' in stages
    assert report.dropped == []


def test_drop_mode_skips_bad_records_and_succeeds(store, options):
    options.drop_bad_records = True
    bad = make_record('chr1', 2, samples=[])
    source = [make_record('chr1', 1), bad, make_record('chr1', 3)]

    _, report = run_pipeline(store, [source], options)

    assert report.succeeded
    assert report.imported == 2
    assert [locus for locus, _ in report.dropped] == [('chr1', 2)]
    assert report.dropped[0][1].kind is ErrorKind.MERGE
    assert {d['_id'] for d in store.documents('cohort')} == {'chr1:1', 'chr1:3'}


def test_drop_mode_skips_records_without_sample_list(store, options):
    options.drop_bad_records = True
    source = [make_record('chr1', 1), VariantRecord('chr1', 2, 'A', samples=None), make_record('chr1', 3)]

    _, report = run_pipeline(store, [source], options)

    assert report.succeeded
    assert report.imported == 2
    assert [locus for locus, _ in report.dropped] == [('chr1', 2)]
    assert report.dropped[0][1].kind is ErrorKind.MERGE


def test_storage_failure_is_fatal(store, options):
    store.fail_after = 1
    sources = [make_stream(*[('chr1', pos) for pos in range(1, 200)])]

    _, report = run_with_timeout(lambda: run_pipeline(store, sources, options))

    assert not report.succeeded
    assert any(stage == 'loader' and exc.kind is ErrorKind.STORAGE for stage, exc in report.errors.items())


def test_order_violation_is_fatal(store, options):
    source = make_stream(('chr1', 5), ('chr1', 4))

    _, report = run_with_timeout(lambda: run_pipeline(store, [source], options))

    assert not report.succeeded
    assert [exc.kind for stage, exc in report.errors.items() if stage == 'aligner'] == [ErrorKind.ORDER_VIOLATION]


def failing_source(records, error):
    yield from records
    raise error


def test_parse_failure_is_fatal_and_wrapped(store, options):
    source = failing_source(make_stream(('chr1', 1)), OSError("truncated file"))

    _, report = run_with_timeout(lambda: run_pipeline(store, [source], options))

    assert not report.succeeded
    (stage, exc), = report.errors.items()
    assert stage == 'parser'
    assert exc.kind is ErrorKind.DECODE
    assert 'truncated file' in str(exc)


def test_abort_discards_queued_items(store):
    options = ImportOptions(merger_threads=1, loader_threads=1, chunk_size=1,
                            parser_buffer_size=5, merger_buffer_size=5, loader_buffer_size=5,
                            no_progress=True, poll_interval=0.01)
    store.fail_after = 0
    sources = [make_stream(*[('chr1', pos) for pos in range(1, 500)]) for _ in range(3)]

    manager, report = run_with_timeout(lambda: run_pipeline(store, sources, options, initial_counts(1, 1, 1)))

    assert not report.succeeded
    assert not any(thread.is_alive() for thread in manager._threads)
    for q in manager.parse_queues + [manager.merge_queue, manager.load_queue]:
        assert q.empty()


def test_progress_output(store, options):
    options.no_progress = False
    stream = io.StringIO()
    manager = PipelineManager(store, 'cohort', [make_stream(('chr1', 1))], initial_counts(1), options,
                              progress_stream=stream)
    manager.run()

    output = stream.getvalue()
    assert '\rTotal: 1 @ ' in output
    assert 'Imported 1 records in' in output


def test_append_mode_uses_existing_documents(store, options):
    store.insert('cohort', {
        '_id': 'chr1:1', 'CHROM': 'chr1', 'POS': 1, 'REF': 'A',
        'IDs': [None], 'QUALs': [None], 'FILTERs': [['PASS']], 'INFOs': [{}],
        'samples': [{'GT': ['A', 'T']}],
    })
    counts = ImportCounts(append=True, old_vcfs=1, old_samples=1, sample_counts=[1, 1])

    _, report = run_pipeline(store, [make_stream(('chr1', 1), ('chr1', 2))], options, counts)

    assert report.succeeded
    docs = {d['_id']: d for d in store.documents('cohort')}
    assert docs['chr1:1']['FILTERs'] == [['PASS'], ['PASS']]
    assert docs['chr1:2']['FILTERs'] == [None, ['PASS']]


def test_stage_errors_bool_and_order():
    errors = StageErrors()
    assert not errors
    errors.record('loader', VCFDBError(ErrorKind.STORAGE, 'down'))
    errors.record('parser', VCFDBError(ErrorKind.DECODE, 'bad'))
    errors.drop(('chr1', 1), VCFDBError(ErrorKind.MERGE, 'x'))

    assert errors
    assert [stage for stage, _ in errors.items()] == ['parser', 'loader']
    assert len(errors.dropped_since(0)) == 1
    assert errors.dropped_since(1) == []


def test_records_are_not_modified_by_the_pipeline(store, options):
    record = VariantRecord('chr1', 1, 'A', samples=[{'GT': ['A', 'T']}])
    run_pipeline(store, [[record]], options)
    assert record.samples == [{'GT': ['A', 'T']}]

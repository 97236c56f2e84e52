"""Tests for import configuration, the counter and error descriptions."""

import json
import threading

import pytest

from config.import_config import ImportOptions, load_config, options_from_config
from utils.counter import Counter
from utils.errors import ErrorKind, VCFDBError, describe_error


def test_default_options():
    options = ImportOptions()
    assert (options.address, options.port, options.db) == ('localhost', 27017, 'VCF')
    assert options.chunk_size == 500
    assert (options.merger_threads, options.loader_threads) == (1, 2)
    assert options.parser_buffer_size == options.merger_buffer_size == options.loader_buffer_size == 1000
    assert not options.append and not options.drop_bad_records and not options.no_progress
    assert options.validate() is options


@pytest.mark.parametrize('name', ['chunk_size', 'merger_threads', 'loader_threads', 'parser_buffer_size'])
def test_tunables_must_be_positive(name):
    with pytest.raises(VCFDBError) as excinfo:
        ImportOptions(**{name: 0}).validate()
    assert excinfo.value.kind is ErrorKind.CONFIGURATION
    assert name.replace('_', '-') in str(excinfo.value)


def test_with_overrides_ignores_none_and_rejects_unknown():
    options = ImportOptions().with_overrides(chunk_size=10, db=None)
    assert options.chunk_size == 10
    assert options.db == 'VCF'

    with pytest.raises(VCFDBError):
        ImportOptions().with_overrides(threads=3)


def test_load_config_and_merge(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'database': {'address': 'mongo', 'port': 27018},
        'import': {'merger_threads': 4, 'drop_bad_records': True},
    }))

    options = options_from_config(load_config(path))

    assert options.address == 'mongo' and options.port == 27018
    assert options.merger_threads == 4
    assert options.drop_bad_records
    assert options.loader_threads == 2


def test_load_config_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / 'missing.json')

    broken = tmp_path / 'broken.json'
    broken.write_text('{"database": ')
    with pytest.raises(ValueError):
        load_config(broken)

    wrong = tmp_path / 'wrong.json'
    wrong.write_text('{"import": [1, 2]}')
    with pytest.raises(ValueError):
        load_config(wrong)


def test_unknown_config_keys_are_rejected(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text('{"import": {"turbo": true}}')
    with pytest.raises(VCFDBError):
        options_from_config(load_config(path))


def test_counter_is_thread_safe():
    counter = Counter()

    def work():
        for _ in range(1000):
            counter.increment()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert counter.total == 8000
    assert counter.add(5) == 8005


def test_describe_error():
    assert describe_error(VCFDBError(ErrorKind.MERGE, 'bad INFO', locus=('chr1', 5))) == '[merge] chr1:5 => bad INFO'
    assert describe_error(OSError('disk gone')) == 'OSError: disk gone'
    assert describe_error(KeyError()) == 'KeyError'

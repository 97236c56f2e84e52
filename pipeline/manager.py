"""
Pipeline Manager

Runs one import: parse, align, merge and load workers connected by bounded
queues. Every stage signals the end of its output with END_OF_STREAM tokens,
one per consumer of the queue it feeds:

    parser  -- 1 token  -->        own queue (single consumer: the aligner)
    aligner -- merger_threads -->  merge queue
    merger  -- loader_threads -->  load queue (each loader waits for merger_threads)

Worker failures never travel through the queues. They are recorded in a
StageErrors object and raise the shared fatal flag; the controller loop then
aborts the run, which makes every blocked queue operation give up and lets the
threads exit.
"""

import logging
import queue
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import List

from utils.counter import Counter
from utils.errors import ErrorKind, VCFDBError, describe_error
from .aligner import END_OF_STREAM, RecordAligner, iter_queue
from .loader import AppendLoader, BulkLoader
from .merger import merge_records


STAGES = ['parser', 'aligner', 'merger', 'loader']


class PipelineAborted(BaseException):
    """Raised inside a worker blocked on a queue once the run has been aborted"""


class StageErrors:
    """Per-stage error lists plus the loci dropped in drop-bad-records mode"""

    def __init__(self):
        self._lock = threading.Lock()
        self.by_stage = {stage: [] for stage in STAGES}
        self.dropped = []

    def record(self, stage, exc):
        with self._lock:
            self.by_stage[stage].append(exc)

    def drop(self, locus, exc):
        with self._lock:
            self.dropped.append((locus, exc))

    def dropped_since(self, start):
        with self._lock:
            return self.dropped[start:]

    def items(self):
        """(stage, exception) pairs in stage order"""
        with self._lock:
            return [(stage, exc) for stage in STAGES for exc in self.by_stage[stage]]

    def __bool__(self):
        with self._lock:
            return any(self.by_stage.values())


@dataclass
class ImportReport:
    """Outcome of one pipeline run."""
    imported: int
    elapsed: float
    errors: StageErrors
    dropped: List = field(default_factory=list)
    succeeded: bool = False


class PipelineManager:
    """
    Owns the queues and worker threads of one import run

    Args:
        store: DocumentStore; each load worker opens its own session on it
        collection: Target collection name
        sources: One iterable of VariantRecord per input file, sorted by locus
        counts: ImportCounts returned by the consistency ledger
        options: ImportOptions with the pool sizes, buffer sizes and chunk size
        progress_stream: Where the progress line is written
    """

    def __init__(self, store, collection, sources, counts, options, progress_stream=sys.stdout):
        self.store = store
        self.collection = collection
        self.sources = sources
        self.counts = counts
        self.options = options
        self.progress_stream = progress_stream

        self.counter = Counter()
        self.loaders_done = Counter()
        self.errors = StageErrors()
        self.fatal = threading.Event()
        self._abort = threading.Event()

        self.parse_queues = [queue.Queue(maxsize=options.parser_buffer_size) for _ in sources]
        self.merge_queue = queue.Queue(maxsize=options.merger_buffer_size)
        self.load_queue = queue.Queue(maxsize=options.loader_buffer_size)
        self._threads = []
        self._loaders = []

    # -- queue access -----------------------------------------------------

    def _put(self, q, item):
        while True:
            if self._abort.is_set():
                raise PipelineAborted()
            try:
                q.put(item, timeout=self.options.poll_interval)
                return
            except queue.Full:
                continue

    def _get(self, q):
        while True:
            if self._abort.is_set():
                raise PipelineAborted()
            try:
                return q.get(timeout=self.options.poll_interval)
            except queue.Empty:
                continue

    def _send_tokens(self, q, count):
        for _ in range(count):
            self._put(q, END_OF_STREAM)

    def _fail(self, stage, exc):
        logging.debug(f"{stage} failed: {describe_error(exc)}")
        self.errors.record(stage, exc)
        self.fatal.set()

    # -- workers ----------------------------------------------------------

    def _parse(self, source, output):
        try:
            try:
                for record in source:
                    self._put(output, record)
            except VCFDBError as e:
                self._fail('parser', e)
            except Exception as e:
                self._fail('parser', VCFDBError(ErrorKind.DECODE, describe_error(e)))
            self._send_tokens(output, 1)
        except PipelineAborted:
            pass

    def _align(self):
        try:
            streams = [iter_queue(q, get=self._get) for q in self.parse_queues]
            try:
                for group in RecordAligner(streams):
                    self._put(self.merge_queue, group)
            except Exception as e:
                self._fail('aligner', e)
            self._send_tokens(self.merge_queue, self.options.merger_threads)
        except PipelineAborted:
            pass

    def _merge(self):
        try:
            try:
                for group in iter_queue(self.merge_queue, get=self._get):
                    try:
                        document = merge_records(group, self.counts.sample_counts, self.counts.old_vcfs)
                    except VCFDBError as e:
                        if e.kind is not ErrorKind.MERGE or not self.options.drop_bad_records:
                            raise
                        self.errors.drop(e.locus or group[0][1].locus, e)
                        continue
                    self._put(self.load_queue, document)
            except Exception as e:
                self._fail('merger', e)
            self._send_tokens(self.load_queue, self.options.loader_threads)
        except PipelineAborted:
            pass

    def _make_loader(self, session):
        if self.counts.append:
            return AppendLoader(session, self.collection, self.options.chunk_size, self.counter,
                                self.counts.old_vcfs, self.counts.old_samples)
        return BulkLoader(session, self.collection, self.options.chunk_size, self.counter)

    def _load(self):
        session = None
        try:
            session = self.store.open_session()
            loader = self._make_loader(session)
            loader.run(lambda: self._get(self.load_queue), self.options.merger_threads)
            self.loaders_done.increment()
        except PipelineAborted:
            pass
        except Exception as e:
            self._fail('loader', e)
        finally:
            if session is not None and session is not self.store:
                session.close()

    # -- controller -------------------------------------------------------

    def _start(self, name, target, *args):
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)
        return thread

    def _start_workers(self):
        for i, (source, q) in enumerate(zip(self.sources, self.parse_queues)):
            self._start(f"parser-{i}", self._parse, source, q)
        self._start("aligner", self._align)
        for i in range(self.options.merger_threads):
            self._start(f"merger-{i}", self._merge)
        self._loaders = [
            self._start(f"loader-{i}", self._load) for i in range(self.options.loader_threads)
        ]

    def _report_dropped(self, reported):
        for locus, exc in self.errors.dropped_since(reported):
            logging.warning(f"Dropped record at {locus[0]}:{locus[1]}: {exc.message}")
            reported += 1
        return reported

    def _print_progress(self, start):
        if self.options.no_progress:
            return
        total = self.counter.total
        elapsed = max(time.time() - start, 1e-9)
        parser_depth = sum(q.qsize() for q in self.parse_queues)
        self.progress_stream.write(
            f"\rTotal: {total} @ {total / elapsed:.0f} records/s "
            f"({parser_depth}|{self.merge_queue.qsize()}|{self.load_queue.qsize()})"
        )
        self.progress_stream.flush()

    def _drain(self):
        discarded = 0
        for q in self.parse_queues + [self.merge_queue, self.load_queue]:
            while True:
                try:
                    q.get_nowait()
                    discarded += 1
                except queue.Empty:
                    break
        return discarded

    def abort(self):
        """Stop every worker at its next queue operation and discard queued items"""
        self._abort.set()
        for thread in self._threads:
            thread.join()
        discarded = self._drain()
        if discarded:
            logging.info(f"Discarded {discarded} queued items.")

    def run(self):
        """
        Run the pipeline until every load worker finished or a fatal error occurred

        Returns:
            ImportReport
        """
        start = time.time()
        self._start_workers()

        reported = 0
        while any(thread.is_alive() for thread in self._loaders):
            if self.fatal.wait(self.options.poll_interval):
                break
            reported = self._report_dropped(reported)
            self._print_progress(start)
        reported = self._report_dropped(reported)

        if self.fatal.is_set():
            logging.error("A fatal error occurred, aborting the import.")
            self.abort()
        else:
            for thread in self._threads:
                thread.join()

        elapsed = time.time() - start
        self._print_progress(start)
        succeeded = not self.fatal.is_set() and self.loaders_done.total == self.options.loader_threads
        if not self.options.no_progress:
            self.progress_stream.write("\n")
            self.progress_stream.write(f"Imported {self.counter.total} records in {elapsed:.2f} seconds.\n")
            self.progress_stream.flush()

        return ImportReport(
            imported=self.counter.total,
            elapsed=elapsed,
            errors=self.errors,
            dropped=list(self.errors.dropped),
            succeeded=succeeded,
        )
